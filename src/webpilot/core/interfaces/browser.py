"""
Protocol definition for the browser collaborator.

The host supplies a BrowserContext (tab management, navigation) whose pages
expose a snapshot of interactive elements keyed by highlight index plus the
primitive actions the navigator's tools call. Implementations may raise
URLNotAllowedError or ExtensionConflictError; every other exception is
treated as a recoverable action failure.
"""

from dataclasses import dataclass, field
from typing import Protocol


@dataclass
class ElementNode:
    """Interactive DOM element addressed by its highlight index."""

    index: int
    tag_name: str
    xpath: str = ""
    text: str = ""
    attributes: dict[str, str] = field(default_factory=dict)

    def describe(self) -> str:
        attrs = " ".join(f'{k}="{v}"' for k, v in self.attributes.items())
        opening = f"<{self.tag_name}{' ' + attrs if attrs else ''}>"
        return f"[{self.index}]{opening}{self.text}</{self.tag_name}>"


@dataclass
class TabInfo:
    tab_id: int
    url: str
    title: str = ""


@dataclass
class PageState:
    """
    Snapshot of the current page.

    Attributes:
        url: Page URL
        title: Document title
        selector_map: Highlight index -> element
        tabs: All open tabs
        pixels_above: Scrollable content above the viewport
        pixels_below: Scrollable content below the viewport
        screenshot: Base64 screenshot when vision is enabled
    """

    url: str
    title: str = ""
    selector_map: dict[int, ElementNode] = field(default_factory=dict)
    tabs: list[TabInfo] = field(default_factory=list)
    pixels_above: int = 0
    pixels_below: int = 0
    screenshot: str | None = None

    def elements_text(self) -> str:
        return "\n".join(
            node.describe() for _, node in sorted(self.selector_map.items())
        )


@dataclass
class DropdownOption:
    index: int
    text: str
    value: str = ""


class PageProtocol(Protocol):
    """A single browser tab."""

    @property
    def url(self) -> str:
        ...

    async def get_state(self, use_vision: bool = False) -> PageState:
        """Scan the page and return a fresh snapshot."""
        ...

    def get_cached_state(self) -> PageState | None:
        """Return the snapshot from the last scan without touching the page."""
        ...

    def is_file_uploader(self, element: ElementNode) -> bool:
        ...

    async def click_element_node(self, use_vision: bool, element: ElementNode) -> None:
        ...

    async def input_text_element_node(
        self, use_vision: bool, element: ElementNode, text: str
    ) -> None:
        ...

    async def go_back(self) -> None:
        ...

    async def scroll_to_percent(
        self, y_percent: float, element: ElementNode | None = None
    ) -> None:
        ...

    async def scroll_to_previous_page(self, element: ElementNode | None = None) -> None:
        ...

    async def scroll_to_next_page(self, element: ElementNode | None = None) -> None:
        ...

    async def scroll_to_text(self, text: str, nth: int = 1) -> bool:
        """Scroll to the nth (1-indexed) occurrence; False if not found."""
        ...

    async def send_keys(self, keys: str) -> None:
        ...

    async def get_dropdown_options(self, index: int) -> list[DropdownOption]:
        ...

    async def select_dropdown_option(self, index: int, text: str) -> str:
        ...

    async def get_scroll_info(self) -> tuple[int, int, int]:
        """Return (scroll_y, visible_height, scroll_height) of the document."""
        ...

    async def get_element_scroll_info(self, element: ElementNode) -> tuple[int, int, int]:
        """Return (scroll_top, client_height, scroll_height) of an element."""
        ...


class BrowserContextProtocol(Protocol):
    """Tab management and navigation."""

    async def get_current_page(self) -> PageProtocol:
        ...

    async def navigate_to(self, url: str) -> None:
        ...

    async def open_tab(self, url: str) -> PageProtocol:
        ...

    async def close_tab(self, tab_id: int) -> None:
        ...

    async def switch_tab(self, tab_id: int) -> PageProtocol:
        ...

    async def get_all_tab_ids(self) -> set[int]:
        ...

    async def get_current_tab_id(self) -> int:
        ...

    async def cleanup(self) -> None:
        ...
