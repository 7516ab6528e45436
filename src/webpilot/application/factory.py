"""
Application Layer - Agent Factory

Dependency injection for browser-agent sessions. The factory owns every
collaborator that would otherwise be a module-level singleton (chat models,
search engine, page fetcher, history store) and wires a fresh
ExecutionController per task:

    settings -> AgentOptions
    chat models (per alias, cached) -> Planner, Navigator, Ranker
    browser + URL policy + search engine -> ActionExecutor
    EventBus + AgentContext -> ExecutionEmitter -> ExecutionController

Infrastructure adapters are built lazily so that hosts (and tests) can
inject their own implementations instead.
"""

import uuid

import structlog

from webpilot.config.settings import WebPilotSettings
from webpilot.core.domain.controller import ExecutionController
from webpilot.core.domain.events import Actor, EventBus, ExecutionEmitter
from webpilot.core.domain.memory import ConversationMemory
from webpilot.core.domain.models import AgentContext, AgentOptions
from webpilot.core.domain.navigator import Navigator
from webpilot.core.domain.planner import Planner
from webpilot.core.domain.ranking import Ranker
from webpilot.core.i18n import set_locale
from webpilot.core.interfaces.browser import BrowserContextProtocol
from webpilot.core.interfaces.history import HistoryStoreProtocol
from webpilot.core.interfaces.llm import ChatModelProtocol
from webpilot.core.interfaces.store import DocumentStoreProtocol, EmbeddingsProtocol
from webpilot.core.interfaces.web import PageFetcherProtocol, SearchEngineProtocol
from webpilot.core.tools.base import ActionContext, BrowserTool, UrlPolicy
from webpilot.core.tools.browser_actions import default_browser_tools
from webpilot.core.tools.executor import ActionExecutor


class AgentFactory:
    """
    Factory for browser-agent sessions.

    Args:
        settings: Configuration; defaults to WebPilotSettings() (env + .env)
        chat_model: Model used for every role unless overridden per role
        search_engine: SearchEngine for `search_web`
        page_fetcher: Fetcher for ranked search results
        history_store: Persistence for step histories
        document_store: Optional vector store for search ingestion
        embeddings: Embedding model used with document_store
    """

    def __init__(
        self,
        settings: WebPilotSettings | None = None,
        chat_model: ChatModelProtocol | None = None,
        search_engine: SearchEngineProtocol | None = None,
        page_fetcher: PageFetcherProtocol | None = None,
        history_store: HistoryStoreProtocol | None = None,
        document_store: DocumentStoreProtocol | None = None,
        embeddings: EmbeddingsProtocol | None = None,
    ):
        self.settings = settings or WebPilotSettings()
        self._default_chat_model = chat_model
        self._chat_models: dict[str, ChatModelProtocol] = {}
        self._search_engine = search_engine
        self._page_fetcher = page_fetcher
        self._history_store = history_store
        self.document_store = document_store
        self.embeddings = embeddings
        self.logger = structlog.get_logger().bind(component="agent_factory")

        set_locale(self.settings.locale)

    def create_options(self) -> AgentOptions:
        s = self.settings
        return AgentOptions(
            max_steps=s.max_steps,
            max_actions_per_step=s.max_actions_per_step,
            max_failures=s.max_failures,
            planning_interval=s.planning_interval,
            use_vision=s.use_vision,
            replay_historical_tasks=s.replay_historical_tasks,
            max_memory_messages=s.max_memory_messages,
        )

    def create_controller(
        self,
        task: str,
        browser: BrowserContextProtocol,
        task_id: str | None = None,
        event_bus: EventBus | None = None,
        tools: list[BrowserTool] | None = None,
    ) -> ExecutionController:
        """
        Wire a new ExecutionController for one task session.

        Args:
            task: Initial objective
            browser: Browser context the session drives
            task_id: Session id; generated if omitted
            event_bus: Bus to publish on; a new one per session if omitted
            tools: Action catalogue; defaults to the full browser catalogue

        Returns:
            Controller ready for `execute()` or `replay_history()`
        """
        task_id = task_id or self._generate_task_id()
        options = self.create_options()
        context = AgentContext(task_id=task_id, options=options)
        event_bus = event_bus or EventBus()
        emitter = ExecutionEmitter(event_bus, context)

        action_executor = ActionExecutor(
            tools or default_browser_tools(),
            ActionContext(
                browser=browser,
                url_policy=UrlPolicy(
                    allowed_urls=list(self.settings.allowed_urls),
                    denied_urls=list(self.settings.denied_urls),
                ),
                search_engine=self.search_engine,
                use_vision=options.use_vision,
            ),
            emit=emitter.for_actor(Actor.NAVIGATOR),
            cancellation=context.cancellation,
        )
        memory = ConversationMemory(max_messages=options.max_memory_messages)
        navigator = Navigator(
            chat_model=self.get_chat_model(self.settings.navigator_model),
            action_executor=action_executor,
            memory=memory,
            ranker=self.create_ranker(),
            max_actions_per_step=options.max_actions_per_step,
            use_vision=options.use_vision,
        )
        planner = Planner(self.get_chat_model(self.settings.planner_model))

        self.logger.info(
            "controller_created",
            task_id=task_id,
            actions=len(action_executor.tools),
            max_steps=options.max_steps,
            replay_enabled=options.replay_historical_tasks,
        )
        return ExecutionController(
            task=task,
            context=context,
            planner=planner,
            navigator=navigator,
            memory=memory,
            event_bus=event_bus,
            emitter=emitter,
            history_store=self.history_store,
        )

    def create_ranker(self) -> Ranker:
        return Ranker(
            chat_model=self.get_chat_model(self.settings.ranker_model),
            fetcher=self.page_fetcher,
            top_n=self.settings.ranker_top_n,
            fetch_concurrency=self.settings.ranker_fetch_concurrency,
            document_store=self.document_store,
            embeddings=self.embeddings,
        )

    def get_chat_model(self, alias: str) -> ChatModelProtocol:
        """Return the shared chat model for alias, creating it on first use."""
        if self._default_chat_model is not None:
            return self._default_chat_model
        if alias not in self._chat_models:
            from webpilot.infrastructure.llm.litellm_chat_model import LiteLLMChatModel

            self._chat_models[alias] = LiteLLMChatModel.from_config_file(
                self.settings.llm_config_path, alias
            )
            self.logger.debug("chat_model_created", alias=alias)
        return self._chat_models[alias]

    @property
    def search_engine(self) -> SearchEngineProtocol:
        if self._search_engine is None:
            from webpilot.infrastructure.web.duckduckgo import DuckDuckGoSearchEngine

            self._search_engine = DuckDuckGoSearchEngine()
        return self._search_engine

    @property
    def page_fetcher(self) -> PageFetcherProtocol:
        if self._page_fetcher is None:
            from webpilot.infrastructure.web.page_fetcher import HttpPageFetcher

            self._page_fetcher = HttpPageFetcher()
        return self._page_fetcher

    @property
    def history_store(self) -> HistoryStoreProtocol:
        if self._history_store is None:
            from webpilot.infrastructure.persistence.file_history import FileHistoryStore

            self._history_store = FileHistoryStore(self.settings.history_dir)
        return self._history_store

    @staticmethod
    def _generate_task_id() -> str:
        return str(uuid.uuid4())
