"""
Unit Tests for ActionExecutor

Covers the uniform event/result contract every action follows: ACT_START,
then ACT_OK with an in-memory result or ACT_FAIL with an error result, and
fatal errors passing through the tool boundary.
"""

from unittest.mock import AsyncMock

import pytest

from webpilot.core.domain.cancellation import CancellationToken
from webpilot.core.domain.errors import RequestCancelledError, URLNotAllowedError
from webpilot.core.domain.events import ExecutionState
from webpilot.core.tools.base import ActionContext, UrlPolicy
from webpilot.core.tools.browser_actions import DoneTool, GoToUrlTool, default_browser_tools
from webpilot.core.tools.executor import ActionExecutor


@pytest.fixture
def emit():
    return AsyncMock()


@pytest.fixture
def executor(fake_browser, emit):
    return ActionExecutor(
        default_browser_tools(),
        ActionContext(browser=fake_browser, url_policy=UrlPolicy(denied_urls=["https://blocked.example"])),
        emit=emit,
    )


def states(emit: AsyncMock) -> list[ExecutionState]:
    return [call.args[0] for call in emit.await_args_list]


class TestRegistry:
    """Action catalogue handling."""

    def test_duplicate_names_rejected(self, fake_browser):
        with pytest.raises(ValueError, match="Duplicate action name"):
            ActionExecutor([DoneTool(), DoneTool()], ActionContext(browser=fake_browser))

    def test_full_catalogue_registered(self, executor):
        assert len(executor.tools) == 21
        assert executor.is_content_search("search_web")
        assert not executor.is_content_search("click_element")
        assert not executor.is_content_search("missing")

    def test_describe_actions_lists_parameters(self, executor):
        description = executor.describe_actions()
        assert "- click_element(index:" in description
        assert "intent" not in description.split("- click_element")[1].split("\n")[0]

    def test_index_actions_take_only_an_index(self, executor):
        for name in ("click_element", "get_dropdown_options"):
            properties = executor.tools[name].parameters_schema["properties"]
            assert "index" in properties
            assert "xpath" not in properties
        assert "xpath" not in executor.describe_actions()


class TestExecuteContract:
    """Event and result contract."""

    @pytest.mark.asyncio
    async def test_success_emits_start_and_ok(self, executor, emit, fake_page):
        await fake_page.get_state()
        record = await executor.execute("click_element", {"index": 0})

        assert states(emit) == [ExecutionState.ACT_START, ExecutionState.ACT_OK]
        assert record.result.error is None
        assert record.result.include_in_memory is True
        assert record.result.extracted_content == "Clicked element 0: Home"
        assert record.element_xpath == "/html/body/a[1]"
        assert fake_page.calls == [("click", 0)]

    @pytest.mark.asyncio
    async def test_intent_overrides_start_message(self, executor, emit):
        await executor.execute("send_keys", {"keys": "Enter", "intent": "Submit the form"})
        assert emit.await_args_list[0].args == (ExecutionState.ACT_START, "Submit the form")

    @pytest.mark.asyncio
    async def test_done_sets_is_done_without_browser_io(self, executor, fake_page, fake_browser):
        record = await executor.execute("done", {"text": "All found"})

        assert record.result.is_done is True
        assert record.result.extracted_content == "All found"
        assert fake_page.calls == []
        assert fake_browser.navigations == []

    @pytest.mark.asyncio
    async def test_unknown_action_is_recoverable(self, executor, emit):
        record = await executor.execute("fly", {})

        assert states(emit) == [ExecutionState.ACT_FAIL]
        assert record.result.error == "Unknown action: fly"

    @pytest.mark.asyncio
    async def test_invalid_params_are_recoverable(self, executor, emit):
        record = await executor.execute("click_element", {"index": -1})

        assert states(emit) == [ExecutionState.ACT_FAIL]
        assert record.result.error.startswith("Invalid parameters for click_element")

    @pytest.mark.asyncio
    async def test_missing_element_is_recoverable(self, executor, emit):
        record = await executor.execute("click_element", {"index": 42})

        assert states(emit) == [ExecutionState.ACT_START, ExecutionState.ACT_FAIL]
        assert "Element with index 42 does not exist" in record.result.error
        assert record.result.include_in_memory is True

    @pytest.mark.asyncio
    async def test_browser_exception_becomes_error_result(self, executor, emit, fake_page):
        fake_page.fail_on["send_keys"] = TimeoutError("page hung")

        record = await executor.execute("send_keys", {"keys": "Enter"})

        assert states(emit)[-1] is ExecutionState.ACT_FAIL
        assert record.result.error == "page hung"

    @pytest.mark.asyncio
    async def test_url_policy_violation_is_fatal(self, executor):
        with pytest.raises(URLNotAllowedError):
            await executor.execute("go_to_url", {"url": "https://blocked.example/page"})

    @pytest.mark.asyncio
    async def test_cancelled_token_raises_before_running(self, fake_browser):
        token = CancellationToken()
        token.cancel()
        executor = ActionExecutor([GoToUrlTool()], ActionContext(browser=fake_browser), cancellation=token)

        with pytest.raises(RequestCancelledError):
            await executor.execute("go_to_url", {"url": "https://example.org"})
        assert fake_browser.navigations == []

    @pytest.mark.asyncio
    async def test_recorded_args_are_validated_values(self, executor):
        record = await executor.execute("wait", {"seconds": 0, "unexpected": True})
        assert record.args == {"intent": "", "seconds": 0}
