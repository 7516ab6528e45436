"""
Action Executor

Runs one named browser action with the uniform event/result contract:

1. Validate arguments against the action's parameter model
2. Emit ACT_START with the model's intent or a templated default
3. Run the action body
4. Emit ACT_OK / ACT_FAIL and return a ToolCallRecord whose ActionResult
   holds the extracted content or the error text

Recoverable failures never leave this module; they become
ActionResult.error so the model can react on its next turn. Fatal errors
(URL policy, cancellation, extension conflict, LLM policy errors) propagate.
"""

from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from pydantic import ValidationError

from webpilot.core.domain.cancellation import CancellationToken
from webpilot.core.domain.errors import FATAL_ERRORS
from webpilot.core.domain.events import ExecutionState
from webpilot.core.domain.history import ToolCallRecord
from webpilot.core.domain.models import ActionResult
from webpilot.core.i18n import t
from webpilot.core.tools.base import ActionContext, ActionFailure, ActionParams, BrowserTool

ActionEventEmitter = Callable[[ExecutionState, str], Awaitable[None]]


async def _no_emit(state: ExecutionState, details: str) -> None:
    return None


class ActionExecutor:
    """
    Registry and runner for browser actions.

    Args:
        tools: Available actions; names must be unique
        context: Browser and policy collaborators handed to every action
        emit: Coroutine receiving (state, details) for ACT_* events
        cancellation: Checked before every action
    """

    def __init__(
        self,
        tools: list[BrowserTool],
        context: ActionContext,
        emit: ActionEventEmitter | None = None,
        cancellation: CancellationToken | None = None,
    ):
        self.tools: dict[str, BrowserTool] = {}
        for tool in tools:
            if tool.name in self.tools:
                raise ValueError(f"Duplicate action name: {tool.name}")
            self.tools[tool.name] = tool
        self.context = context
        self.emit = emit or _no_emit
        self.cancellation = cancellation
        self.logger = structlog.get_logger().bind(component="action_executor")

    def is_content_search(self, name: str) -> bool:
        tool = self.tools.get(name)
        return bool(tool and tool.is_content_search)

    def describe_actions(self) -> str:
        """Render the action catalogue for the navigator system prompt."""
        lines = []
        for tool in self.tools.values():
            properties = tool.parameters_schema.get("properties", {})
            params = ", ".join(
                f"{name}: {spec.get('description', spec.get('type', 'any'))}"
                for name, spec in properties.items()
                if name != "intent"
            )
            lines.append(f"- {tool.name}({params}): {tool.description}")
        return "\n".join(lines)

    async def execute(self, name: str, args: dict[str, Any] | None = None) -> ToolCallRecord:
        """
        Run one action.

        Args:
            name: Action name
            args: Raw arguments from the model or a replayed history

        Returns:
            ToolCallRecord with validated args and the ActionResult

        Raises:
            Any error in FATAL_ERRORS
        """
        args = dict(args or {})
        if self.cancellation is not None:
            self.cancellation.raise_if_cancelled()

        tool = self.tools.get(name)
        if tool is None:
            message = t("act_errors_unknownAction", name)
            await self.emit(ExecutionState.ACT_FAIL, message)
            self.logger.warning("action_unknown", action=name)
            return ToolCallRecord(
                name=name, args=args, result=ActionResult(error=message, include_in_memory=True)
            )

        try:
            params: ActionParams = tool.params_model.model_validate(args)
        except ValidationError as e:
            message = t("act_errors_invalidParams", name, _summarize_validation(e))
            await self.emit(ExecutionState.ACT_FAIL, message)
            self.logger.warning("action_invalid_params", action=name, error=str(e))
            return ToolCallRecord(
                name=name, args=args, result=ActionResult(error=message, include_in_memory=True)
            )

        await self.emit(ExecutionState.ACT_START, params.intent or tool.start_message(params))
        self.logger.info("action_started", action=name)

        element_xpath: str | None = None
        try:
            element_xpath = await self._element_xpath(params)
            output = await tool.execute(params, self.context)
        except FATAL_ERRORS:
            raise
        except ActionFailure as e:
            await self.emit(ExecutionState.ACT_FAIL, e.message)
            self.logger.warning("action_failed", action=name, error=e.detail)
            result = ActionResult(error=e.detail, include_in_memory=True)
        except Exception as e:
            message = t("act_errors_failed", name, str(e))
            await self.emit(ExecutionState.ACT_FAIL, message)
            self.logger.warning(
                "action_failed", action=name, error=str(e), error_type=type(e).__name__
            )
            result = ActionResult(error=str(e) or type(e).__name__, include_in_memory=True)
        else:
            await self.emit(ExecutionState.ACT_OK, output.message)
            self.logger.info("action_completed", action=name, is_done=output.is_done)
            result = ActionResult(
                extracted_content=output.content if output.content is not None else output.message,
                is_done=output.is_done,
                include_in_memory=True,
                payload=output.payload,
            )

        return ToolCallRecord(
            name=name,
            args=params.model_dump(exclude_none=True),
            result=result,
            element_xpath=element_xpath,
        )

    async def _element_xpath(self, params: ActionParams) -> str | None:
        index = getattr(params, "index", None)
        if index is None:
            return None
        page = await self.context.browser.get_current_page()
        state = page.get_cached_state()
        element = state.selector_map.get(index) if state else None
        return element.xpath if element and element.xpath else None


def _summarize_validation(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'args'}: {err['msg']}" for err in error.errors()
    )
