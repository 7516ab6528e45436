"""
Base classes for browser actions.

A browser action is a named operation with a pydantic parameter model and an
async body running against the BrowserContext. The body reports success by
returning a ToolOutput and a recoverable failure by raising ActionFailure;
event emission and ActionResult construction are left to the ActionExecutor
so every action follows the same contract.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from webpilot.core.domain.errors import URLNotAllowedError
from webpilot.core.interfaces.browser import BrowserContextProtocol, ElementNode, PageProtocol
from webpilot.core.interfaces.web import SearchEngineProtocol
from webpilot.core.i18n import t


class ActionParams(BaseModel):
    """Common parameters shared by every action."""

    model_config = ConfigDict(extra="ignore")

    intent: str = Field(default="", description="purpose of this action")


@dataclass
class ToolOutput:
    """
    Successful action outcome.

    Attributes:
        message: Text for the ACT_OK event
        content: Text stored in ActionResult.extracted_content (defaults to message)
        is_done: Marks the terminal `done` action
        payload: Structured data for follow-up processing
    """

    message: str
    content: str | None = None
    is_done: bool = False
    payload: dict[str, Any] | None = None


class ActionFailure(Exception):
    """
    Recoverable action failure.

    Args:
        message: User-facing text for the ACT_FAIL event
        detail: Error text stored in ActionResult.error (defaults to message)
    """

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or message


@dataclass
class UrlPolicy:
    """
    Prefix-based navigation policy.

    Denied prefixes win over allowed ones. An empty allow list allows
    everything that is not denied.
    """

    allowed_urls: list[str] = field(default_factory=list)
    denied_urls: list[str] = field(default_factory=list)

    ALWAYS_ALLOWED = ("about:blank",)

    def is_allowed(self, url: str) -> bool:
        normalized = url.strip().lower()
        if normalized in self.ALWAYS_ALLOWED:
            return True
        if any(normalized.startswith(p.lower()) for p in self.denied_urls):
            return False
        if not self.allowed_urls:
            return True
        return any(normalized.startswith(p.lower()) for p in self.allowed_urls)

    def check(self, url: str) -> None:
        """
        Raises:
            URLNotAllowedError: If url violates the policy
        """
        if not self.is_allowed(url):
            raise URLNotAllowedError(f"URL not allowed: {url}")


@dataclass
class ActionContext:
    """Collaborators available to action bodies."""

    browser: BrowserContextProtocol
    url_policy: UrlPolicy = field(default_factory=UrlPolicy)
    search_engine: SearchEngineProtocol | None = None
    use_vision: bool = False


class BrowserTool(ABC):
    """Base class for all browser actions."""

    params_model: type[ActionParams] = ActionParams
    is_content_search: bool = False

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        pass

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return self.params_model.model_json_schema()

    @abstractmethod
    def start_message(self, params: Any) -> str:
        """Default ACT_START text when the model gives no intent."""

    @abstractmethod
    async def execute(self, params: Any, ctx: ActionContext) -> ToolOutput:
        pass


async def get_element(
    ctx: ActionContext, index: int, refresh: bool = False
) -> tuple[PageProtocol, ElementNode]:
    """
    Resolve a highlight index against the current page.

    Uses the snapshot the model saw unless refresh is set or none exists.

    Raises:
        ActionFailure: If no element has that index
    """
    page = await ctx.browser.get_current_page()
    state = None if refresh else page.get_cached_state()
    if state is None:
        state = await page.get_state(ctx.use_vision)
    element = state.selector_map.get(index)
    if element is None:
        raise ActionFailure(t("act_errors_elementNotExist", index))
    return page, element
