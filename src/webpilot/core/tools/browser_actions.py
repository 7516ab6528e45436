"""
Browser action catalogue.

Navigation, element interaction, tab management, scrolling, dropdowns and
the content-search actions offered to the navigator model.
"""

import asyncio
import json
from urllib.parse import quote_plus

from pydantic import Field

from webpilot.core.domain.errors import FATAL_ERRORS
from webpilot.core.i18n import t
from webpilot.core.tools.base import (
    ActionContext,
    ActionFailure,
    ActionParams,
    BrowserTool,
    ToolOutput,
    get_element,
)

GOOGLE_SEARCH_URL = "https://www.google.com/search?q={query}&udm=14"


# ---------------------------------------------------------------- params


class DoneParams(ActionParams):
    text: str = Field(description="final result or summary of the task")
    success: bool = Field(default=True, description="whether the task succeeded")


class QueryParams(ActionParams):
    query: str = Field(min_length=1, description="search query")


class WebSearchParams(QueryParams):
    max_results: int = Field(default=10, ge=1, le=25, description="number of results")


class UrlParams(ActionParams):
    url: str = Field(min_length=1, description="url to open")


class IndexParams(ActionParams):
    index: int = Field(ge=0, description="index of the element")


class InputTextParams(IndexParams):
    text: str = Field(description="text to input")


class TabParams(ActionParams):
    tab_id: int = Field(ge=0, description="id of the tab")


class CacheParams(ActionParams):
    content: str = Field(description="content to cache")


class OptionalIndexParams(ActionParams):
    index: int | None = Field(
        default=None,
        ge=0,
        description="index of a scrollable element; omit to scroll the document",
    )


class ScrollPercentParams(OptionalIndexParams):
    y_percent: float = Field(ge=0, le=100, description="target scroll position, 0-100")


class ScrollTextParams(ActionParams):
    text: str = Field(min_length=1, description="text to scroll to")
    nth: int = Field(default=1, ge=1, description="which occurrence, 1-indexed")


class SendKeysParams(ActionParams):
    keys: str = Field(min_length=1, description="keys to send, e.g. 'Enter' or 'Control+A'")


class SelectOptionParams(IndexParams):
    text: str = Field(description="exact text of the option to select")


class WaitParams(ActionParams):
    seconds: int = Field(default=3, ge=0, le=60, description="seconds to wait")


# ---------------------------------------------------------------- actions


class DoneTool(BrowserTool):
    params_model = DoneParams

    @property
    def name(self) -> str:
        return "done"

    @property
    def description(self) -> str:
        return "Complete the task and report the final result"

    def start_message(self, params: DoneParams) -> str:
        return t("act_done_start")

    async def execute(self, params: DoneParams, ctx: ActionContext) -> ToolOutput:
        return ToolOutput(message=params.text, is_done=True)


class SearchGoogleTool(BrowserTool):
    params_model = QueryParams

    @property
    def name(self) -> str:
        return "search_google"

    @property
    def description(self) -> str:
        return "Search the query in Google in the current tab; the query should be concrete, like a human would type it"

    def start_message(self, params: QueryParams) -> str:
        return t("act_searchGoogle_start", params.query)

    async def execute(self, params: QueryParams, ctx: ActionContext) -> ToolOutput:
        url = GOOGLE_SEARCH_URL.format(query=quote_plus(params.query))
        ctx.url_policy.check(url)
        await ctx.browser.navigate_to(url)
        return ToolOutput(message=t("act_searchGoogle_ok", params.query))


class SearchWebTool(BrowserTool):
    """Structured web search; results are ranked and fetched by the navigator."""

    params_model = WebSearchParams
    is_content_search = True

    @property
    def name(self) -> str:
        return "search_web"

    @property
    def description(self) -> str:
        return "Search the web and return structured results (title, url, snippet) without leaving the current page"

    def start_message(self, params: WebSearchParams) -> str:
        return t("act_searchWeb_start", params.query)

    async def execute(self, params: WebSearchParams, ctx: ActionContext) -> ToolOutput:
        if ctx.search_engine is None:
            raise ActionFailure(t("act_errors_failed", self.name, "web search is not configured"))

        response = await ctx.search_engine.search(params.query, params.max_results)
        response.results = [r for r in response.results if ctx.url_policy.is_allowed(r.url)]
        return ToolOutput(
            message=t("act_searchWeb_ok", params.query, len(response.results)),
            content=json.dumps(response.to_dict()),
            payload={"search_response": response},
        )


class GoToUrlTool(BrowserTool):
    params_model = UrlParams

    @property
    def name(self) -> str:
        return "go_to_url"

    @property
    def description(self) -> str:
        return "Navigate to URL in the current tab"

    def start_message(self, params: UrlParams) -> str:
        return t("act_goToUrl_start", params.url)

    async def execute(self, params: UrlParams, ctx: ActionContext) -> ToolOutput:
        ctx.url_policy.check(params.url)
        await ctx.browser.navigate_to(params.url)
        return ToolOutput(message=t("act_goToUrl_ok", params.url))


class GoBackTool(BrowserTool):
    @property
    def name(self) -> str:
        return "go_back"

    @property
    def description(self) -> str:
        return "Go back to the previous page"

    def start_message(self, params: ActionParams) -> str:
        return t("act_goBack_start")

    async def execute(self, params: ActionParams, ctx: ActionContext) -> ToolOutput:
        page = await ctx.browser.get_current_page()
        await page.go_back()
        return ToolOutput(message=t("act_goBack_ok"))


class ClickElementTool(BrowserTool):
    params_model = IndexParams

    @property
    def name(self) -> str:
        return "click_element"

    @property
    def description(self) -> str:
        return "Click element by index"

    def start_message(self, params: IndexParams) -> str:
        return t("act_click_start", params.index)

    async def execute(self, params: IndexParams, ctx: ActionContext) -> ToolOutput:
        page, element = await get_element(ctx, params.index)

        if page.is_file_uploader(element):
            return ToolOutput(message=t("act_click_fileUploader", params.index))

        try:
            initial_tabs = await ctx.browser.get_all_tab_ids()
            await page.click_element_node(ctx.use_vision, element)
            message = t("act_click_ok", params.index, element.text)

            current_tabs = await ctx.browser.get_all_tab_ids()
            new_tabs = sorted(current_tabs - initial_tabs)
            if new_tabs:
                message += f" - {t('act_click_newTabOpened')}"
                await ctx.browser.switch_tab(new_tabs[0])
        except FATAL_ERRORS:
            raise
        except Exception as e:
            raise ActionFailure(
                t("act_errors_elementNoLongerAvailable", params.index), detail=str(e)
            ) from e

        return ToolOutput(message=message)


class InputTextTool(BrowserTool):
    params_model = InputTextParams

    @property
    def name(self) -> str:
        return "input_text"

    @property
    def description(self) -> str:
        return "Input text into an interactive input element"

    def start_message(self, params: InputTextParams) -> str:
        return t("act_inputText_start", params.index)

    async def execute(self, params: InputTextParams, ctx: ActionContext) -> ToolOutput:
        page, element = await get_element(ctx, params.index)
        await page.input_text_element_node(ctx.use_vision, element, params.text)
        return ToolOutput(message=t("act_inputText_ok", params.text, params.index))


class SwitchTabTool(BrowserTool):
    params_model = TabParams

    @property
    def name(self) -> str:
        return "switch_tab"

    @property
    def description(self) -> str:
        return "Switch to tab by id"

    def start_message(self, params: TabParams) -> str:
        return t("act_switchTab_start", params.tab_id)

    async def execute(self, params: TabParams, ctx: ActionContext) -> ToolOutput:
        if await ctx.browser.get_current_tab_id() == params.tab_id:
            return ToolOutput(message=t("act_switchTab_alreadyActive", params.tab_id))
        await ctx.browser.switch_tab(params.tab_id)
        return ToolOutput(message=t("act_switchTab_ok", params.tab_id))


class OpenTabTool(BrowserTool):
    params_model = UrlParams

    @property
    def name(self) -> str:
        return "open_tab"

    @property
    def description(self) -> str:
        return "Open URL in a new tab"

    def start_message(self, params: UrlParams) -> str:
        return t("act_openTab_start", params.url)

    async def execute(self, params: UrlParams, ctx: ActionContext) -> ToolOutput:
        ctx.url_policy.check(params.url)
        await ctx.browser.open_tab(params.url)
        return ToolOutput(message=t("act_openTab_ok", params.url))


class CloseTabTool(BrowserTool):
    params_model = TabParams

    @property
    def name(self) -> str:
        return "close_tab"

    @property
    def description(self) -> str:
        return "Close tab by id"

    def start_message(self, params: TabParams) -> str:
        return t("act_closeTab_start", params.tab_id)

    async def execute(self, params: TabParams, ctx: ActionContext) -> ToolOutput:
        await ctx.browser.close_tab(params.tab_id)
        return ToolOutput(message=t("act_closeTab_ok", params.tab_id))


class CacheContentTool(BrowserTool):
    params_model = CacheParams

    @property
    def name(self) -> str:
        return "cache_content"

    @property
    def description(self) -> str:
        return "Cache what you have found so far from the current page for future use"

    def start_message(self, params: CacheParams) -> str:
        return t("act_cache_start")

    async def execute(self, params: CacheParams, ctx: ActionContext) -> ToolOutput:
        message = t("act_cache_ok", params.content)
        return ToolOutput(message=message)


class _ScrollTool(BrowserTool):
    """Shared element lookup for actions taking an optional element index."""

    async def _target(self, params: OptionalIndexParams, ctx: ActionContext):
        if params.index is None:
            return await ctx.browser.get_current_page(), None
        return await get_element(ctx, params.index)


class ScrollToPercentTool(_ScrollTool):
    params_model = ScrollPercentParams

    @property
    def name(self) -> str:
        return "scroll_to_percent"

    @property
    def description(self) -> str:
        return "Scroll the document or an element to a vertical position given in percent (0 is top, 100 is bottom)"

    def start_message(self, params: ScrollPercentParams) -> str:
        return t("act_scrollToPercent_start", params.y_percent)

    async def execute(self, params: ScrollPercentParams, ctx: ActionContext) -> ToolOutput:
        page, element = await self._target(params, ctx)
        await page.scroll_to_percent(params.y_percent, element)
        return ToolOutput(message=t("act_scrollToPercent_ok", params.y_percent))


class ScrollToTopTool(_ScrollTool):
    params_model = OptionalIndexParams

    @property
    def name(self) -> str:
        return "scroll_to_top"

    @property
    def description(self) -> str:
        return "Scroll the document or an element to the top"

    def start_message(self, params: OptionalIndexParams) -> str:
        return t("act_scrollToTop_start")

    async def execute(self, params: OptionalIndexParams, ctx: ActionContext) -> ToolOutput:
        page, element = await self._target(params, ctx)
        await page.scroll_to_percent(0, element)
        return ToolOutput(message=t("act_scrollToTop_ok"))


class ScrollToBottomTool(_ScrollTool):
    params_model = OptionalIndexParams

    @property
    def name(self) -> str:
        return "scroll_to_bottom"

    @property
    def description(self) -> str:
        return "Scroll the document or an element to the bottom"

    def start_message(self, params: OptionalIndexParams) -> str:
        return t("act_scrollToBottom_start")

    async def execute(self, params: OptionalIndexParams, ctx: ActionContext) -> ToolOutput:
        page, element = await self._target(params, ctx)
        await page.scroll_to_percent(100, element)
        return ToolOutput(message=t("act_scrollToBottom_ok"))


class PreviousPageTool(_ScrollTool):
    params_model = OptionalIndexParams

    @property
    def name(self) -> str:
        return "previous_page"

    @property
    def description(self) -> str:
        return "Scroll the document or an element up by one page. If no index is given, scroll the whole document"

    def start_message(self, params: OptionalIndexParams) -> str:
        return t("act_previousPage_start")

    async def execute(self, params: OptionalIndexParams, ctx: ActionContext) -> ToolOutput:
        page, element = await self._target(params, ctx)
        if element is not None:
            scroll_top, _, _ = await page.get_element_scroll_info(element)
            if scroll_top <= 0:
                return ToolOutput(message=t("act_errors_alreadyAtTop", params.index))
        else:
            scroll_y, _, _ = await page.get_scroll_info()
            if scroll_y <= 0:
                return ToolOutput(message=t("act_errors_pageAlreadyAtTop"))

        await page.scroll_to_previous_page(element)
        return ToolOutput(message=t("act_previousPage_ok"))


class NextPageTool(_ScrollTool):
    params_model = OptionalIndexParams

    @property
    def name(self) -> str:
        return "next_page"

    @property
    def description(self) -> str:
        return "Scroll the document or an element down by one page. If no index is given, scroll the whole document"

    def start_message(self, params: OptionalIndexParams) -> str:
        return t("act_nextPage_start")

    async def execute(self, params: OptionalIndexParams, ctx: ActionContext) -> ToolOutput:
        page, element = await self._target(params, ctx)
        if element is not None:
            scroll_top, client_height, scroll_height = await page.get_element_scroll_info(element)
            if scroll_top + client_height >= scroll_height:
                return ToolOutput(message=t("act_errors_alreadyAtBottom", params.index))
        else:
            scroll_y, visible_height, scroll_height = await page.get_scroll_info()
            if scroll_y + visible_height >= scroll_height:
                return ToolOutput(message=t("act_errors_pageAlreadyAtBottom"))

        await page.scroll_to_next_page(element)
        return ToolOutput(message=t("act_nextPage_ok"))


class ScrollToTextTool(BrowserTool):
    params_model = ScrollTextParams

    @property
    def name(self) -> str:
        return "scroll_to_text"

    @property
    def description(self) -> str:
        return "Scroll to the nth occurrence of a text on the page (nth starts at 1)"

    def start_message(self, params: ScrollTextParams) -> str:
        return t("act_scrollToText_start", params.text, params.nth)

    async def execute(self, params: ScrollTextParams, ctx: ActionContext) -> ToolOutput:
        page = await ctx.browser.get_current_page()
        try:
            found = await page.scroll_to_text(params.text, params.nth)
        except FATAL_ERRORS:
            raise
        except Exception as e:
            raise ActionFailure(t("act_scrollToText_failed", str(e))) from e

        key = "act_scrollToText_ok" if found else "act_scrollToText_notFound"
        return ToolOutput(message=t(key, params.text, params.nth))


class SendKeysTool(BrowserTool):
    params_model = SendKeysParams

    @property
    def name(self) -> str:
        return "send_keys"

    @property
    def description(self) -> str:
        return "Send special keys or shortcuts like Backspace, Enter, Escape, Control+C"

    def start_message(self, params: SendKeysParams) -> str:
        return t("act_sendKeys_start", params.keys)

    async def execute(self, params: SendKeysParams, ctx: ActionContext) -> ToolOutput:
        page = await ctx.browser.get_current_page()
        await page.send_keys(params.keys)
        return ToolOutput(message=t("act_sendKeys_ok", params.keys))


class GetDropdownOptionsTool(BrowserTool):
    params_model = IndexParams

    @property
    def name(self) -> str:
        return "get_dropdown_options"

    @property
    def description(self) -> str:
        return "Get all options from a native dropdown"

    def start_message(self, params: IndexParams) -> str:
        return t("act_getDropdownOptions_start", params.index)

    async def execute(self, params: IndexParams, ctx: ActionContext) -> ToolOutput:
        page, _ = await get_element(ctx, params.index)
        try:
            options = await page.get_dropdown_options(params.index)
        except FATAL_ERRORS:
            raise
        except Exception as e:
            raise ActionFailure(t("act_getDropdownOptions_failed", str(e))) from e

        if not options:
            return ToolOutput(message=t("act_getDropdownOptions_noOptions"))

        # JSON-encoded text so the model reuses the exact option string
        lines = [f"{option.index}: text={json.dumps(option.text)}" for option in options]
        lines.append(t("act_getDropdownOptions_useExactText"))
        return ToolOutput(
            message=t("act_getDropdownOptions_ok", len(options)),
            content="\n".join(lines),
        )


class SelectDropdownOptionTool(BrowserTool):
    params_model = SelectOptionParams

    @property
    def name(self) -> str:
        return "select_dropdown_option"

    @property
    def description(self) -> str:
        return "Select dropdown option for interactive element index by the text of the option you want to select"

    def start_message(self, params: SelectOptionParams) -> str:
        return t("act_selectDropdownOption_start", params.text, params.index)

    async def execute(self, params: SelectOptionParams, ctx: ActionContext) -> ToolOutput:
        page, element = await get_element(ctx, params.index)
        if (element.tag_name or "").lower() != "select":
            raise ActionFailure(
                t("act_selectDropdownOption_notSelect", params.index, element.tag_name or "unknown")
            )

        try:
            await page.select_dropdown_option(params.index, params.text)
        except FATAL_ERRORS:
            raise
        except Exception as e:
            raise ActionFailure(t("act_selectDropdownOption_failed", str(e))) from e

        return ToolOutput(message=t("act_selectDropdownOption_ok", params.text, params.index))


class WaitTool(BrowserTool):
    params_model = WaitParams

    @property
    def name(self) -> str:
        return "wait"

    @property
    def description(self) -> str:
        return "Wait for x seconds, default 3; use it to let a page finish loading"

    def start_message(self, params: WaitParams) -> str:
        return t("act_wait_start", params.seconds)

    async def execute(self, params: WaitParams, ctx: ActionContext) -> ToolOutput:
        await asyncio.sleep(params.seconds)
        return ToolOutput(message=t("act_wait_ok", params.seconds))


def default_browser_tools() -> list[BrowserTool]:
    """Full action catalogue in the order it is presented to the model."""
    return [
        DoneTool(),
        SearchGoogleTool(),
        SearchWebTool(),
        GoToUrlTool(),
        GoBackTool(),
        ClickElementTool(),
        InputTextTool(),
        SwitchTabTool(),
        OpenTabTool(),
        CloseTabTool(),
        CacheContentTool(),
        ScrollToPercentTool(),
        ScrollToTopTool(),
        ScrollToBottomTool(),
        PreviousPageTool(),
        NextPageTool(),
        ScrollToTextTool(),
        SendKeysTool(),
        GetDropdownOptionsTool(),
        SelectDropdownOptionTool(),
        WaitTool(),
    ]
