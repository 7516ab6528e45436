"""
Navigator

Executes one plan step per turn:

1. Snapshot the current page and add a browser-state message to memory
2. Ask the navigator model for its reasoning state and an action list
3. Run at most `max_actions_per_step` actions through the ActionExecutor,
   stopping early on `done` or on the first failing action
4. Rank and fetch the results of content-search actions
5. Return a NavigatorOutcome; the controller updates the plan and counters

Also provides the single-step primitive used by history replay.
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic import BaseModel, Field

from webpilot.core.domain.cancellation import CancellationToken
from webpilot.core.domain.errors import FATAL_ERRORS, HistoryReplayError
from webpilot.core.domain.history import HistoryItem, ToolCallRecord
from webpilot.core.domain.memory import ConversationMemory
from webpilot.core.domain.models import ActionResult
from webpilot.core.domain.ranking import Ranker
from webpilot.core.i18n import t
from webpilot.core.interfaces.llm import ChatModelProtocol
from webpilot.core.interfaces.web import SearchResponse, SearchResult
from webpilot.core.prompts.navigator_prompt import (
    build_navigator_system_prompt,
    build_state_message,
)
from webpilot.core.tools.executor import ActionExecutor

RANKED_SNIPPET_CHARS = 2000


class ActionCall(BaseModel):
    name: str = Field(description="action name")
    args: dict[str, Any] = Field(default_factory=dict, description="action arguments")


class NavigatorState(BaseModel):
    evaluation_previous_goal: str = ""
    memory: str = ""
    next_goal: str = ""


class NavigatorOutput(BaseModel):
    current_state: NavigatorState = Field(default_factory=NavigatorState)
    action: list[ActionCall] = Field(default_factory=list)


@dataclass
class NavigatorOutcome:
    """
    Result of one navigator turn.

    Attributes:
        step: Plan step the turn worked on
        summary: Result text recorded in past_steps
        done: True if an executed action reported is_done
        results: ActionResults of the executed actions, in order
        history_item: Replayable record of the turn
    """

    step: str
    summary: str
    done: bool = False
    results: list[ActionResult] = field(default_factory=list)
    history_item: HistoryItem | None = None


class Navigator:
    """
    Drives browser actions for one plan step at a time.

    Args:
        chat_model: Structured-output model choosing the actions
        action_executor: Runs the chosen actions
        memory: Conversation memory shared with the controller
        ranker: Ranking sub-step for content-search actions (optional)
        max_actions_per_step: Upper bound on actions per turn
        use_vision: Request screenshots with page snapshots
    """

    def __init__(
        self,
        chat_model: ChatModelProtocol,
        action_executor: ActionExecutor,
        memory: ConversationMemory,
        ranker: Ranker | None = None,
        max_actions_per_step: int = 5,
        use_vision: bool = False,
    ):
        self.chat_model = chat_model
        self.action_executor = action_executor
        self.memory = memory
        self.ranker = ranker
        self.max_actions_per_step = max(1, max_actions_per_step)
        self.use_vision = use_vision
        self._state_pending = False
        self._last_url: str | None = None
        self.logger = structlog.get_logger().bind(component="navigator")

    @property
    def browser(self):
        return self.action_executor.context.browser

    def system_prompt(self) -> str:
        return build_navigator_system_prompt(
            self.action_executor.describe_actions(), self.max_actions_per_step
        )

    async def add_state_message_to_memory(
        self,
        previous_results: list[ActionResult],
        step_number: int,
        max_steps: int,
    ) -> None:
        """
        Snapshot the page into memory.

        The snapshot is consumed by the next `navigate` call, which then does
        not scan the page again.
        """
        page = await self.browser.get_current_page()
        state = await page.get_state(self.use_vision)
        self.memory.add_state_message(
            build_state_message(state, previous_results, step_number, max_steps)
        )
        self._state_pending = True
        self._last_url = state.url

    def discard_pending_state(self) -> None:
        """Drop a snapshot that no navigator turn will consume."""
        if self._state_pending:
            self.memory.remove_last_state_message()
            self._state_pending = False

    async def navigate(
        self,
        step: str,
        objective: str,
        previous_results: list[ActionResult],
        step_number: int,
        max_steps: int,
        cancellation: CancellationToken | None = None,
    ) -> NavigatorOutcome:
        """
        Run one navigator turn for `step`.

        Raises:
            Any error in FATAL_ERRORS; other exceptions mean the turn failed
            and the step should be retried
        """
        self.logger.info("navigation_started", step=step[:100], step_number=step_number)

        if not self._state_pending:
            await self.add_state_message_to_memory(previous_results, step_number, max_steps)
        self.memory.add_step_directive(step)
        try:
            output = await self.chat_model.invoke(self.memory.to_llm_messages(), NavigatorOutput)
        except Exception:
            # a retried turn adds its own directive
            self.memory.remove_last_step_directive()
            raise
        finally:
            self.memory.remove_last_state_message()
            self._state_pending = False
        if cancellation is not None:
            cancellation.raise_if_cancelled()

        self.memory.add_model_output(output.model_dump_json())

        history_item = HistoryItem(step=step, model_output=output.model_dump(), url=self._last_url)

        calls = output.action[: self.max_actions_per_step]
        if len(output.action) > len(calls):
            self.logger.warning(
                "actions_truncated", requested=len(output.action), allowed=len(calls)
            )

        results: list[ActionResult] = []
        for call in calls:
            record = await self.action_executor.execute(call.name, call.args)
            if self.action_executor.is_content_search(call.name):
                await self._rank_search_results(
                    record, objective, step, output.current_state.memory, cancellation
                )
            history_item.tool_calls.append(record)
            results.append(record.result)
            if record.result.is_done or record.result.error:
                break

        done = any(result.is_done for result in results)
        summary = _summarize(results) or output.current_state.memory
        self.logger.info(
            "navigation_completed", actions=len(results), done=done, step_number=step_number
        )
        return NavigatorOutcome(
            step=step, summary=summary, done=done, results=results, history_item=history_item
        )

    async def _rank_search_results(
        self,
        record: ToolCallRecord,
        objective: str,
        step: str,
        progress: str,
        cancellation: CancellationToken | None,
    ) -> None:
        payload = record.result.payload or {}
        response = payload.get("search_response")
        if self.ranker is None or not isinstance(response, SearchResponse):
            return

        ranked = await self.ranker.rank(objective, step, progress, response, cancellation)
        payload["ranked_results"] = ranked
        if ranked:
            record.result.extracted_content = _format_ranked(response.query, ranked)

    async def execute_history_step(
        self,
        item: HistoryItem,
        index: int,
        total: int,
        max_retries: int = 3,
        delay_between_actions: float = 2.0,
        skip_failures: bool = True,
        cancellation: CancellationToken | None = None,
    ) -> list[ActionResult]:
        """
        Replay the recorded actions of one history item.

        Args:
            item: Recorded navigator turn
            index: Position of the item in the history
            total: Number of items in the history
            max_retries: Attempts before the step counts as failed
            delay_between_actions: Seconds to wait after every action and retry
            skip_failures: Return an error result instead of raising when the
                step keeps failing

        Returns:
            ActionResults of the replayed actions

        Raises:
            HistoryReplayError: If the step fails and skip_failures is False
        """
        attempts = max(1, max_retries)
        for attempt in range(1, attempts + 1):
            try:
                results = await self._replay_item(item, delay_between_actions, cancellation)
                self.logger.info("history_step_replayed", index=index, total=total)
                return results
            except FATAL_ERRORS:
                raise
            except Exception as e:
                if attempt < attempts:
                    self.logger.warning(
                        "history_step_retry", index=index, attempt=attempt, error=str(e)
                    )
                    await asyncio.sleep(delay_between_actions)
                    continue

                message = t("exec_replay_stepFailed", index + 1, str(e))
                if not skip_failures:
                    raise HistoryReplayError(message) from e
                self.logger.warning("history_step_skipped", index=index, error=str(e))
                return [ActionResult(error=message, include_in_memory=True)]

        return []

    async def _replay_item(
        self,
        item: HistoryItem,
        delay_between_actions: float,
        cancellation: CancellationToken | None,
    ) -> list[ActionResult]:
        results: list[ActionResult] = []
        for call in item.tool_calls:
            if cancellation is not None:
                cancellation.raise_if_cancelled()

            args = dict(call.args)
            if call.element_xpath:
                # indexes change between sessions; the xpath is stable
                page = await self.browser.get_current_page()
                state = await page.get_state(self.use_vision)
                node = next(
                    (n for n in state.selector_map.values() if n.xpath == call.element_xpath),
                    None,
                )
                if node is None:
                    raise LookupError(f"Element {call.element_xpath} not found on current page")
                args["index"] = node.index

            record = await self.action_executor.execute(call.name, args)
            if record.result.error:
                raise RuntimeError(record.result.error)
            results.append(record.result)
            await asyncio.sleep(delay_between_actions)

        return results


def _summarize(results: list[ActionResult]) -> str:
    parts = []
    for result in results:
        if result.error:
            parts.append(f"Error: {result.error}")
        elif result.extracted_content:
            parts.append(result.extracted_content)
    return "\n".join(parts)


def _format_ranked(query: str, results: list[SearchResult]) -> str:
    entries = []
    for result in results:
        entry = {
            "title": result.title,
            "url": result.url,
            "score": result.score,
            "snippet": result.content,
        }
        if result.raw_content:
            entry["content"] = result.raw_content[:RANKED_SNIPPET_CHARS]
        entries.append(entry)
    return json.dumps({"query": query, "ranked_results": entries})
