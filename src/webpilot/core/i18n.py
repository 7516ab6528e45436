"""
User-facing message catalogue.

Every terminal outcome and action report that reaches the host through the
event channel is looked up here. Placeholders are positional (`{0}`, `{1}`).
Unknown keys fall back to the key itself so a missing translation never
breaks execution.
"""

from typing import Any

DEFAULT_LOCALE = "en"

MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        # task lifecycle
        "exec_task_start": "Task started",
        "exec_task_ok": "Task completed",
        "exec_task_fail": "Task failed: {0}",
        "exec_task_cancel": "Task cancelled",
        "exec_task_pause": "Task paused",
        "exec_errors_maxStepsReached": "Task failed: maximum number of steps reached",
        "exec_errors_maxFailuresReached": "Task failed: too many consecutive failures",
        # planning
        "exec_planning_start": "Planning...",
        "exec_planning_fail": "Planning failed: {0}",
        "exec_navigating_fail": "Navigation failed: {0}",
        # replay
        "exec_replay_start": "Replaying task history",
        "exec_replay_ok": "Replay completed",
        "exec_replay_cancel": "Replay cancelled",
        "exec_replay_fail": "Replay failed: {0}",
        "exec_replay_historyNotFound": "No history found for this task",
        "exec_replay_historyEmpty": "History is empty",
        "exec_replay_stepFailed": "Replay step {0} failed: {1}",
        # actions
        "act_done_start": "Completing task",
        "act_searchGoogle_start": "Searching for \"{0}\" in Google",
        "act_searchGoogle_ok": "Searched for \"{0}\" in Google",
        "act_searchWeb_start": "Searching the web for \"{0}\"",
        "act_searchWeb_ok": "Found {1} results for \"{0}\"",
        "act_goToUrl_start": "Navigating to {0}",
        "act_goToUrl_ok": "Navigated to {0}",
        "act_goBack_start": "Navigating back",
        "act_goBack_ok": "Navigated back",
        "act_click_start": "Clicking element {0}",
        "act_click_ok": "Clicked element {0}: {1}",
        "act_click_fileUploader": "Element {0} opens a file upload dialog. Do not click it, use a dedicated upload action instead",
        "act_click_newTabOpened": "New tab opened - switching to it",
        "act_inputText_start": "Typing into element {0}",
        "act_inputText_ok": "Input \"{0}\" into element {1}",
        "act_switchTab_start": "Switching to tab {0}",
        "act_switchTab_ok": "Switched to tab {0}",
        "act_switchTab_alreadyActive": "Tab {0} is already the active tab",
        "act_openTab_start": "Opening {0} in a new tab",
        "act_openTab_ok": "Opened {0} in a new tab",
        "act_closeTab_start": "Closing tab {0}",
        "act_closeTab_ok": "Closed tab {0}",
        "act_cache_start": "Caching findings",
        "act_cache_ok": "Cached findings: {0}",
        "act_scrollToPercent_start": "Scrolling to {0}%",
        "act_scrollToPercent_ok": "Scrolled to {0}%",
        "act_scrollToTop_start": "Scrolling to top",
        "act_scrollToTop_ok": "Scrolled to top",
        "act_scrollToBottom_start": "Scrolling to bottom",
        "act_scrollToBottom_ok": "Scrolled to bottom",
        "act_previousPage_start": "Scrolling to previous page",
        "act_previousPage_ok": "Scrolled to previous page",
        "act_nextPage_start": "Scrolling to next page",
        "act_nextPage_ok": "Scrolled to next page",
        "act_scrollToText_start": "Scrolling to occurrence {1} of \"{0}\"",
        "act_scrollToText_ok": "Scrolled to occurrence {1} of \"{0}\"",
        "act_scrollToText_notFound": "Occurrence {1} of \"{0}\" not found on page",
        "act_scrollToText_failed": "Failed to scroll to text: {0}",
        "act_sendKeys_start": "Sending keys {0}",
        "act_sendKeys_ok": "Sent keys {0}",
        "act_getDropdownOptions_start": "Reading options of dropdown {0}",
        "act_getDropdownOptions_ok": "Found {0} dropdown options",
        "act_getDropdownOptions_noOptions": "No options found in dropdown",
        "act_getDropdownOptions_useExactText": "Use the exact text string in select_dropdown_option",
        "act_getDropdownOptions_failed": "Failed to read dropdown options: {0}",
        "act_selectDropdownOption_start": "Selecting \"{0}\" in dropdown {1}",
        "act_selectDropdownOption_ok": "Selected \"{0}\" in dropdown {1}",
        "act_selectDropdownOption_notSelect": "Element {0} is a <{1}>, not a <select>",
        "act_selectDropdownOption_failed": "Failed to select dropdown option: {0}",
        "act_wait_start": "Waiting {0} seconds",
        "act_wait_ok": "Waited {0} seconds",
        "act_errors_elementNotExist": "Element with index {0} does not exist - retry or use an alternative action",
        "act_errors_elementNoLongerAvailable": "Element {0} is no longer available",
        "act_errors_pageAlreadyAtTop": "Page is already at the top",
        "act_errors_pageAlreadyAtBottom": "Page is already at the bottom",
        "act_errors_alreadyAtTop": "Element {0} is already at the top",
        "act_errors_alreadyAtBottom": "Element {0} is already at the bottom",
        "act_errors_invalidParams": "Invalid parameters for {0}: {1}",
        "act_errors_unknownAction": "Unknown action: {0}",
        "act_errors_failed": "Action {0} failed: {1}",
    }
}

_locale = DEFAULT_LOCALE


def set_locale(locale: str) -> None:
    global _locale
    _locale = locale if locale in MESSAGES else DEFAULT_LOCALE


def get_locale() -> str:
    return _locale


def t(key: str, *args: Any) -> str:
    """Translate a message key, formatting positional placeholders."""
    template = MESSAGES.get(_locale, {}).get(key) or MESSAGES[DEFAULT_LOCALE].get(key, key)
    try:
        return template.format(*args)
    except (IndexError, KeyError):
        return template
