"""
Unit tests for AgentFactory.

Tests verify:
- Options derived from settings
- Chat model injection and lazy creation per alias
- Controller wiring (shared event bus, URL policy, history store)
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from webpilot.application.factory import AgentFactory
from webpilot.config.settings import WebPilotSettings
from webpilot.core.domain.errors import URLNotAllowedError
from webpilot.core.domain.events import EventBus, EventType
from webpilot.core.tools.browser_actions import DoneTool


@pytest.fixture
def settings(tmp_path):
    return WebPilotSettings(
        max_steps=7,
        max_failures=2,
        planning_interval=3,
        replay_historical_tasks=True,
        history_dir=str(tmp_path / "history"),
        denied_urls=["https://blocked.example"],
    )


@pytest.fixture
def factory(settings, scripted_model):
    return AgentFactory(
        settings=settings,
        chat_model=scripted_model,
        search_engine=AsyncMock(),
        page_fetcher=AsyncMock(),
    )


class TestAgentFactory:
    """Test suite for AgentFactory."""

    def test_options_from_settings(self, factory):
        """Test execution bounds are copied from settings."""
        options = factory.create_options()

        assert options.max_steps == 7
        assert options.max_failures == 2
        assert options.planning_interval == 3
        assert options.replay_historical_tasks is True

    def test_injected_chat_model_used_for_every_role(self, factory, scripted_model):
        """Test one injected model serves planner, navigator and ranker."""
        assert factory.get_chat_model("main") is scripted_model
        assert factory.get_chat_model("fast") is scripted_model

    def test_chat_models_created_lazily_per_alias(self, settings):
        """Test LiteLLM models are built on demand and cached."""
        factory = AgentFactory(settings=settings)
        with patch(
            "webpilot.infrastructure.llm.litellm_chat_model.LiteLLMChatModel.from_config_file"
        ) as from_config_file:
            from_config_file.side_effect = lambda path, alias: MagicMock(alias=alias)

            main = factory.get_chat_model("main")
            again = factory.get_chat_model("main")
            fast = factory.get_chat_model("fast")

        assert main is again
        assert fast.alias == "fast"
        assert from_config_file.call_count == 2

    def test_controller_wiring(self, factory, fake_browser):
        """Test controller gets context, bus and history store."""
        bus = EventBus()

        controller = factory.create_controller("find it", fake_browser, task_id="t-1", event_bus=bus)

        assert controller.task_id == "t-1"
        assert controller.event_bus is bus
        assert controller.context.options.max_steps == 7
        assert controller.tasks == ["find it"]
        assert controller.history_store is factory.history_store
        assert controller.navigator.ranker is not None

        controller.subscribe_execution_events(lambda e: None)
        assert bus.subscriber_count(EventType.EXECUTION) == 1

    def test_generated_task_ids_are_unique(self, factory, fake_browser):
        """Test sessions without explicit id get distinct ids."""
        first = factory.create_controller("a", fake_browser)
        second = factory.create_controller("b", fake_browser)
        assert first.task_id != second.task_id

    def test_custom_tool_catalogue(self, factory, fake_browser):
        """Test a restricted action catalogue is honored."""
        controller = factory.create_controller("a", fake_browser, tools=[DoneTool()])
        assert list(controller.navigator.action_executor.tools) == ["done"]

    @pytest.mark.asyncio
    async def test_url_policy_applied(self, factory, fake_browser):
        """Test denied URL prefixes from settings reach the executor."""
        controller = factory.create_controller("a", fake_browser)

        with pytest.raises(URLNotAllowedError):
            await controller.navigator.action_executor.execute(
                "go_to_url", {"url": "https://blocked.example/x"}
            )
        assert fake_browser.navigations == []
