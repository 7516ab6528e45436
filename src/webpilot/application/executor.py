"""
Application Layer - Agent Executor Service

Service layer used by hosts (CLI, UI) to run browser-agent sessions.

The AgentExecutor:
- Creates one ExecutionController per task id using AgentFactory
- Keeps sessions independent so several can run concurrently
- Converts execution events into ProgressUpdates (callback or stream)
- Routes follow-up, cancel, pause and resume requests by task id
- Replays persisted step histories
"""

import asyncio
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from datetime import datetime

import structlog

from webpilot.application.factory import AgentFactory
from webpilot.core.domain.controller import ExecutionController
from webpilot.core.domain.events import AgentEvent
from webpilot.core.domain.models import ActionResult, TaskOutcome
from webpilot.core.interfaces.browser import BrowserContextProtocol

logger = structlog.get_logger()


@dataclass
class ProgressUpdate:
    """Progress update during execution.

    Attributes:
        timestamp: When the underlying event was created
        event_type: ExecutionState value (e.g. "step.ok")
        message: Human-readable event details
        details: Actor, task id and step counters
    """

    timestamp: datetime
    event_type: str
    message: str
    details: dict

    @classmethod
    def from_event(cls, event: AgentEvent) -> "ProgressUpdate":
        return cls(
            timestamp=event.timestamp,
            event_type=event.state.value,
            message=event.details,
            details={
                "actor": event.actor.value,
                "task_id": event.task_id,
                "step": event.data.step,
                "max_steps": event.data.max_steps,
            },
        )


ProgressCallback = Callable[[ProgressUpdate], None]


class AgentExecutor:
    """Service layer orchestrating browser-agent sessions.

    Args:
        factory: AgentFactory used to wire controllers; a default one is
            created if omitted
    """

    def __init__(self, factory: AgentFactory | None = None):
        self.factory = factory or AgentFactory()
        self._controllers: dict[str, ExecutionController] = {}
        self.logger = logger.bind(component="agent_executor")

    def start_session(
        self, task: str, browser: BrowserContextProtocol, task_id: str | None = None
    ) -> ExecutionController:
        """Create and register a controller for a new session."""
        if task_id is not None and task_id in self._controllers:
            raise ValueError(f"Session already exists: {task_id}")

        controller = self.factory.create_controller(task, browser, task_id=task_id)
        self._controllers[controller.task_id] = controller
        self.logger.info("session_started", task_id=controller.task_id)
        return controller

    def get_controller(self, task_id: str) -> ExecutionController:
        """
        Raises:
            KeyError: If no session exists for task_id
        """
        try:
            return self._controllers[task_id]
        except KeyError:
            raise KeyError(f"Unknown session: {task_id}") from None

    @property
    def session_ids(self) -> list[str]:
        return list(self._controllers)

    async def execute_task(
        self,
        task: str,
        browser: BrowserContextProtocol,
        task_id: str | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> TaskOutcome:
        """Start a session and run it to a terminal state."""
        controller = self.start_session(task, browser, task_id)
        return await self._run(controller, progress_callback)

    async def follow_up(
        self,
        task_id: str,
        task: str,
        progress_callback: ProgressCallback | None = None,
    ) -> TaskOutcome:
        """Continue an existing session with a new objective."""
        controller = self.get_controller(task_id)
        controller.add_follow_up_task(task)
        return await self._run(controller, progress_callback)

    async def execute_task_streaming(
        self,
        task: str,
        browser: BrowserContextProtocol,
        task_id: str | None = None,
    ) -> AsyncIterator[ProgressUpdate]:
        """Start a session and yield ProgressUpdates until it terminates.

        Raises:
            Exception: Whatever the controller raised outside its own error
                handling (re-raised after the stream is drained)
        """
        controller = self.start_session(task, browser, task_id)
        queue: asyncio.Queue[ProgressUpdate | None] = asyncio.Queue()

        run = asyncio.create_task(self._run(controller, queue.put_nowait))
        run.add_done_callback(lambda _: queue.put_nowait(None))

        while True:
            update = await queue.get()
            if update is None:
                break
            yield update

        await run

    async def replay(
        self,
        task_id: str,
        browser: BrowserContextProtocol,
        max_retries: int = 3,
        skip_failures: bool = True,
        delay_between_actions: float = 2.0,
        progress_callback: ProgressCallback | None = None,
    ) -> list[ActionResult]:
        """Replay the persisted history of task_id in a fresh session."""
        controller = self.factory.create_controller(
            f"Replay {task_id}", browser, task_id=task_id
        )
        callback = self._subscribe(controller, progress_callback)
        try:
            return await controller.replay_history(
                task_id,
                max_retries=max_retries,
                skip_failures=skip_failures,
                delay_between_actions=delay_between_actions,
            )
        finally:
            if callback is not None:
                controller.unsubscribe_execution_events(callback)

    async def cancel(self, task_id: str) -> None:
        await self.get_controller(task_id).cancel()

    async def pause(self, task_id: str) -> None:
        await self.get_controller(task_id).pause()

    async def resume(self, task_id: str) -> None:
        await self.get_controller(task_id).resume()

    async def close(self, task_id: str) -> None:
        """Release the browser and forget the session."""
        controller = self._controllers.pop(task_id, None)
        if controller is None:
            return
        await controller.cleanup()
        self.logger.info("session_closed", task_id=task_id)

    async def _run(
        self,
        controller: ExecutionController,
        progress_callback: ProgressCallback | None,
    ) -> TaskOutcome:
        start_time = datetime.now()
        callback = self._subscribe(controller, progress_callback)
        try:
            outcome = await controller.execute()
        except Exception as e:
            self.logger.error(
                "task_execution_failed",
                task_id=controller.task_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise
        finally:
            if callback is not None:
                controller.unsubscribe_execution_events(callback)

        self.logger.info(
            "task_execution_completed",
            task_id=controller.task_id,
            status=outcome.status.value,
            steps=outcome.steps,
            duration_seconds=(datetime.now() - start_time).total_seconds(),
        )
        return outcome

    @staticmethod
    def _subscribe(
        controller: ExecutionController, progress_callback: ProgressCallback | None
    ) -> Callable[[AgentEvent], None] | None:
        if progress_callback is None:
            return None

        def forward(event: AgentEvent) -> None:
            progress_callback(ProgressUpdate.from_event(event))

        controller.subscribe_execution_events(forward)
        return forward
