"""
Execution Events

Immutable notifications about task, step and action lifecycle, and the
EventBus that delivers them to subscribers (host UI, progress streams).

Events are created, published and discarded. Delivery is concurrent across
subscribers but `emit` awaits all of them, so from the control loop's point
of view delivery is synchronous.
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from webpilot.core.domain.models import AgentContext


class Actor(str, Enum):
    """Component that produced an event."""

    SYSTEM = "system"
    PLANNER = "planner"
    NAVIGATOR = "navigator"


class ExecutionState(str, Enum):
    """Lifecycle state reported by an event."""

    TASK_START = "task.start"
    TASK_OK = "task.ok"
    TASK_FAIL = "task.fail"
    TASK_CANCEL = "task.cancel"
    TASK_PAUSE = "task.pause"
    STEP_START = "step.start"
    STEP_OK = "step.ok"
    STEP_FAIL = "step.fail"
    ACT_START = "act.start"
    ACT_OK = "act.ok"
    ACT_FAIL = "act.fail"

    @property
    def is_terminal(self) -> bool:
        return self in (
            ExecutionState.TASK_OK,
            ExecutionState.TASK_FAIL,
            ExecutionState.TASK_CANCEL,
            ExecutionState.TASK_PAUSE,
        )


class EventType(str, Enum):
    """Channel an event is published on."""

    EXECUTION = "execution"


@dataclass(frozen=True)
class EventData:
    """Payload of an execution event."""

    task_id: str
    step: int
    max_steps: int
    details: str = ""


@dataclass(frozen=True)
class AgentEvent:
    """
    A single execution notification.

    Attributes:
        actor: Component that emitted the event
        state: Lifecycle state being reported
        data: Task id, step counters and human-readable details
        timestamp: Creation time
        type: Channel (always EXECUTION for lifecycle events)
    """

    actor: Actor
    state: ExecutionState
    data: EventData
    timestamp: datetime = field(default_factory=datetime.now)
    type: EventType = EventType.EXECUTION

    @property
    def task_id(self) -> str:
        return self.data.task_id

    @property
    def details(self) -> str:
        return self.data.details


EventCallback = Callable[[AgentEvent], Awaitable[None] | None]


class EventBus:
    """
    Publish/subscribe channel for execution events.

    - A (type, callback) pair is registered at most once
    - Unsubscribe matches by identity
    - Emit runs all callbacks concurrently and awaits them; a failing
      callback is logged and never affects its siblings or the caller
    """

    def __init__(self) -> None:
        self._subscribers: dict[EventType, list[EventCallback]] = {}
        self.logger = structlog.get_logger().bind(component="event_bus")

    def subscribe(self, event_type: EventType, callback: EventCallback) -> None:
        callbacks = self._subscribers.setdefault(event_type, [])
        if not any(cb is callback for cb in callbacks):
            callbacks.append(callback)

    def unsubscribe(self, event_type: EventType, callback: EventCallback) -> None:
        callbacks = self._subscribers.get(event_type)
        if callbacks:
            self._subscribers[event_type] = [cb for cb in callbacks if cb is not callback]

    def clear_subscribers(self, event_type: EventType) -> None:
        if event_type in self._subscribers:
            self._subscribers[event_type] = []

    def subscriber_count(self, event_type: EventType) -> int:
        return len(self._subscribers.get(event_type, []))

    async def emit(self, event: AgentEvent) -> None:
        """Deliver event to every subscriber of its type."""
        callbacks = list(self._subscribers.get(event.type, []))
        if not callbacks:
            return

        results = await asyncio.gather(
            *(self._invoke(callback, event) for callback in callbacks),
            return_exceptions=True,
        )
        for callback, result in zip(callbacks, results):
            if isinstance(result, BaseException):
                self.logger.error(
                    "event_callback_failed",
                    callback=getattr(callback, "__name__", repr(callback)),
                    state=event.state.value,
                    error=str(result),
                    error_type=type(result).__name__,
                )

    @staticmethod
    async def _invoke(callback: EventCallback, event: AgentEvent) -> None:
        result = callback(event)
        if asyncio.iscoroutine(result) or isinstance(result, asyncio.Future):
            await result


class ExecutionEmitter:
    """
    Builds AgentEvents for one session and publishes them on the EventBus.

    Step counters are read from the session context at emit time. Inside
    `namespaced(suffix)` events carry the task id `<task_id>:<suffix>` so a
    replay run is distinguishable from the live run.
    """

    def __init__(self, event_bus: EventBus, context: "AgentContext"):
        self.event_bus = event_bus
        self.context = context
        self._namespace: str | None = None

    @property
    def task_id(self) -> str:
        if self._namespace:
            return f"{self.context.task_id}:{self._namespace}"
        return self.context.task_id

    @contextmanager
    def namespaced(self, suffix: str) -> Iterator[None]:
        previous = self._namespace
        self._namespace = suffix
        try:
            yield
        finally:
            self._namespace = previous

    async def emit(self, actor: Actor, state: ExecutionState, details: str = "") -> None:
        event = AgentEvent(
            actor=actor,
            state=state,
            data=EventData(
                task_id=self.task_id,
                step=self.context.n_steps,
                max_steps=self.context.options.max_steps,
                details=details,
            ),
        )
        await self.event_bus.emit(event)

    def for_actor(self, actor: Actor) -> Callable[[ExecutionState, str], Awaitable[None]]:
        async def emit(state: ExecutionState, details: str) -> None:
            await self.emit(actor, state, details)

        return emit
