"""
Shared fixtures: an in-memory browser and a scripted structured-output model.
"""

from typing import Any

import pytest

from webpilot.core.interfaces.browser import DropdownOption, ElementNode, PageState, TabInfo


class FakePage:
    """Scriptable PageProtocol implementation recording every call."""

    def __init__(self, url: str = "https://example.com", elements: list[ElementNode] | None = None):
        self._url = url
        self.elements = {e.index: e for e in (elements or [])}
        self.calls: list[tuple[str, Any]] = []
        self.scroll_info = (0, 800, 2400)
        self.element_scroll_info = (0, 200, 600)
        self.dropdown_options: list[DropdownOption] = []
        self.text_found = True
        self.file_uploader_indexes: set[int] = set()
        self.fail_on: dict[str, Exception] = {}
        self._cached: PageState | None = None

    @property
    def url(self) -> str:
        return self._url

    def _record(self, name: str, payload: Any = None) -> None:
        self.calls.append((name, payload))
        if name in self.fail_on:
            raise self.fail_on[name]

    async def get_state(self, use_vision: bool = False) -> PageState:
        self._cached = PageState(
            url=self._url,
            title="Example",
            selector_map=dict(self.elements),
            tabs=[TabInfo(tab_id=0, url=self._url, title="Example")],
        )
        return self._cached

    def get_cached_state(self) -> PageState | None:
        return self._cached

    def is_file_uploader(self, element: ElementNode) -> bool:
        return element.index in self.file_uploader_indexes

    async def click_element_node(self, use_vision: bool, element: ElementNode) -> None:
        self._record("click", element.index)

    async def input_text_element_node(self, use_vision: bool, element: ElementNode, text: str) -> None:
        self._record("input", (element.index, text))

    async def go_back(self) -> None:
        self._record("go_back")

    async def scroll_to_percent(self, y_percent: float, element: ElementNode | None = None) -> None:
        self._record("scroll_to_percent", (y_percent, element.index if element else None))

    async def scroll_to_previous_page(self, element: ElementNode | None = None) -> None:
        self._record("previous_page", element.index if element else None)

    async def scroll_to_next_page(self, element: ElementNode | None = None) -> None:
        self._record("next_page", element.index if element else None)

    async def scroll_to_text(self, text: str, nth: int = 1) -> bool:
        self._record("scroll_to_text", (text, nth))
        return self.text_found

    async def send_keys(self, keys: str) -> None:
        self._record("send_keys", keys)

    async def get_dropdown_options(self, index: int) -> list[DropdownOption]:
        self._record("get_dropdown_options", index)
        return self.dropdown_options

    async def select_dropdown_option(self, index: int, text: str) -> str:
        self._record("select_dropdown_option", (index, text))
        return text

    async def get_scroll_info(self) -> tuple[int, int, int]:
        return self.scroll_info

    async def get_element_scroll_info(self, element: ElementNode) -> tuple[int, int, int]:
        return self.element_scroll_info


class FakeBrowser:
    """BrowserContextProtocol implementation over FakePage tabs."""

    def __init__(self, page: FakePage | None = None):
        self.pages: dict[int, FakePage] = {0: page or FakePage()}
        self.current_tab = 0
        self.navigations: list[str] = []
        self.cleaned_up = False
        self.tabs_opened_on_click: list[int] = []

    @property
    def page(self) -> FakePage:
        return self.pages[self.current_tab]

    async def get_current_page(self) -> FakePage:
        return self.page

    async def navigate_to(self, url: str) -> None:
        self.navigations.append(url)
        self.page._url = url

    async def open_tab(self, url: str) -> FakePage:
        tab_id = max(self.pages) + 1
        self.pages[tab_id] = FakePage(url)
        self.current_tab = tab_id
        return self.pages[tab_id]

    async def close_tab(self, tab_id: int) -> None:
        self.pages.pop(tab_id, None)
        if self.current_tab == tab_id:
            self.current_tab = min(self.pages)

    async def switch_tab(self, tab_id: int) -> FakePage:
        self.current_tab = tab_id
        return self.pages[tab_id]

    async def get_all_tab_ids(self) -> set[int]:
        # a click can "open" queued tabs
        if self.tabs_opened_on_click and self.page.calls and self.page.calls[-1][0] == "click":
            for tab_id in self.tabs_opened_on_click:
                self.pages.setdefault(tab_id, FakePage(f"https://example.com/tab{tab_id}"))
            self.tabs_opened_on_click = []
        return set(self.pages)

    async def get_current_tab_id(self) -> int:
        return self.current_tab

    async def cleanup(self) -> None:
        self.cleaned_up = True


class ScriptedChatModel:
    """
    ChatModelProtocol returning queued responses per schema.

    Each queued entry is either a schema instance, a dict validated into the
    requested schema, or an exception to raise.
    """

    def __init__(self, script: dict[str, list[Any]] | None = None):
        self.script = {name: list(items) for name, items in (script or {}).items()}
        self.calls: list[tuple[str, list[dict[str, Any]]]] = []

    def queue(self, schema_name: str, *items: Any) -> None:
        self.script.setdefault(schema_name, []).extend(items)

    async def invoke(self, messages, response_schema):
        name = response_schema.__name__
        self.calls.append((name, [dict(m) for m in messages]))
        queued = self.script.get(name)
        if not queued:
            raise AssertionError(f"No scripted response for {name}")
        item = queued.pop(0)
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, dict):
            return response_schema.model_validate(item)
        return item

    def calls_for(self, schema_name: str) -> list[list[dict[str, Any]]]:
        return [messages for name, messages in self.calls if name == schema_name]


def make_elements() -> list[ElementNode]:
    return [
        ElementNode(index=0, tag_name="a", xpath="/html/body/a[1]", text="Home"),
        ElementNode(index=1, tag_name="input", xpath="/html/body/form/input", attributes={"name": "q"}),
        ElementNode(index=2, tag_name="select", xpath="/html/body/form/select", text="Country"),
        ElementNode(index=3, tag_name="div", xpath="/html/body/div[2]", text="Results"),
    ]


@pytest.fixture
def fake_page() -> FakePage:
    return FakePage(elements=make_elements())


@pytest.fixture
def fake_browser(fake_page) -> FakeBrowser:
    return FakeBrowser(fake_page)


@pytest.fixture
def scripted_model() -> ScriptedChatModel:
    return ScriptedChatModel()


@pytest.fixture
def controller_factory(fake_browser, scripted_model):
    """
    Build an ExecutionController over the fake browser and scripted model.

    Returns (controller, events) where events collects every emitted event.
    """
    from webpilot.core.domain.controller import ExecutionController
    from webpilot.core.domain.events import Actor, EventBus, ExecutionEmitter
    from webpilot.core.domain.memory import ConversationMemory
    from webpilot.core.domain.models import AgentContext, AgentOptions
    from webpilot.core.domain.navigator import Navigator
    from webpilot.core.domain.planner import Planner
    from webpilot.core.tools.base import ActionContext
    from webpilot.core.tools.browser_actions import default_browser_tools
    from webpilot.core.tools.executor import ActionExecutor

    def build(task: str = "objective", history_store=None, task_id: str = "task-1", **option_overrides):
        context = AgentContext(task_id=task_id, options=AgentOptions(**option_overrides))
        bus = EventBus()
        emitter = ExecutionEmitter(bus, context)
        executor = ActionExecutor(
            default_browser_tools(),
            ActionContext(browser=fake_browser),
            emit=emitter.for_actor(Actor.NAVIGATOR),
            cancellation=context.cancellation,
        )
        memory = ConversationMemory(max_messages=context.options.max_memory_messages)
        navigator = Navigator(
            scripted_model,
            executor,
            memory,
            max_actions_per_step=context.options.max_actions_per_step,
        )
        controller = ExecutionController(
            task=task,
            context=context,
            planner=Planner(scripted_model),
            navigator=navigator,
            memory=memory,
            event_bus=bus,
            emitter=emitter,
            history_store=history_store,
        )
        events: list = []
        controller.subscribe_execution_events(events.append)
        return controller, events

    return build
