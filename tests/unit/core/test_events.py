"""
Unit Tests for EventBus and ExecutionEmitter
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from webpilot.core.domain.events import (
    Actor,
    AgentEvent,
    EventBus,
    EventData,
    EventType,
    ExecutionEmitter,
    ExecutionState,
)
from webpilot.core.domain.models import AgentContext, AgentOptions


def make_event(details: str = "d") -> AgentEvent:
    return AgentEvent(
        actor=Actor.SYSTEM,
        state=ExecutionState.TASK_START,
        data=EventData(task_id="t1", step=0, max_steps=10, details=details),
    )


class TestEventBusSubscription:
    """Subscription bookkeeping."""

    def test_duplicate_subscription_is_noop(self):
        bus = EventBus()
        callback = AsyncMock()
        bus.subscribe(EventType.EXECUTION, callback)
        bus.subscribe(EventType.EXECUTION, callback)
        assert bus.subscriber_count(EventType.EXECUTION) == 1

    def test_unsubscribe_by_identity(self):
        bus = EventBus()
        first, second = AsyncMock(), AsyncMock()
        bus.subscribe(EventType.EXECUTION, first)
        bus.subscribe(EventType.EXECUTION, second)
        bus.unsubscribe(EventType.EXECUTION, first)
        assert bus.subscriber_count(EventType.EXECUTION) == 1

    def test_unsubscribe_unknown_callback_is_noop(self):
        bus = EventBus()
        bus.unsubscribe(EventType.EXECUTION, AsyncMock())
        assert bus.subscriber_count(EventType.EXECUTION) == 0

    def test_clear_subscribers(self):
        bus = EventBus()
        bus.subscribe(EventType.EXECUTION, AsyncMock())
        bus.clear_subscribers(EventType.EXECUTION)
        assert bus.subscriber_count(EventType.EXECUTION) == 0


class TestEventBusEmit:
    """Delivery semantics."""

    @pytest.mark.asyncio
    async def test_emit_delivers_to_all_subscribers(self):
        bus = EventBus()
        async_cb = AsyncMock()
        sync_cb = MagicMock(return_value=None)
        bus.subscribe(EventType.EXECUTION, async_cb)
        bus.subscribe(EventType.EXECUTION, sync_cb)

        event = make_event()
        await bus.emit(event)

        async_cb.assert_awaited_once_with(event)
        sync_cb.assert_called_once_with(event)

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_affect_siblings_or_caller(self):
        bus = EventBus()
        failing = AsyncMock(side_effect=RuntimeError("boom"))
        healthy = AsyncMock()
        bus.subscribe(EventType.EXECUTION, failing)
        bus.subscribe(EventType.EXECUTION, healthy)

        await bus.emit(make_event())

        healthy.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_emit_without_subscribers(self):
        await EventBus().emit(make_event())

    def test_events_are_immutable(self):
        event = make_event()
        with pytest.raises(AttributeError):
            event.actor = Actor.PLANNER  # type: ignore[misc]


class TestExecutionEmitter:
    """Event construction from the session context."""

    @pytest.mark.asyncio
    async def test_emit_reads_counters_from_context(self):
        bus = EventBus()
        received: list[AgentEvent] = []
        bus.subscribe(EventType.EXECUTION, received.append)
        context = AgentContext(task_id="task-1", options=AgentOptions(max_steps=7))
        context.n_steps = 3

        await ExecutionEmitter(bus, context).emit(Actor.NAVIGATOR, ExecutionState.STEP_OK, "ok")

        assert len(received) == 1
        event = received[0]
        assert event.task_id == "task-1"
        assert event.data.step == 3
        assert event.data.max_steps == 7
        assert event.details == "ok"

    @pytest.mark.asyncio
    async def test_namespaced_task_id_is_restored(self):
        bus = EventBus()
        received: list[AgentEvent] = []
        bus.subscribe(EventType.EXECUTION, received.append)
        emitter = ExecutionEmitter(bus, AgentContext(task_id="task-1"))

        with emitter.namespaced("replay"):
            await emitter.emit(Actor.SYSTEM, ExecutionState.TASK_START)
        await emitter.emit(Actor.SYSTEM, ExecutionState.TASK_START)

        assert [e.task_id for e in received] == ["task-1:replay", "task-1"]

    @pytest.mark.asyncio
    async def test_for_actor_binds_actor(self):
        bus = EventBus()
        received: list[AgentEvent] = []
        bus.subscribe(EventType.EXECUTION, received.append)
        emit = ExecutionEmitter(bus, AgentContext(task_id="t")).for_actor(Actor.NAVIGATOR)

        await emit(ExecutionState.ACT_OK, "clicked")

        assert received[0].actor is Actor.NAVIGATOR
        assert received[0].state is ExecutionState.ACT_OK

    def test_terminal_states(self):
        assert ExecutionState.TASK_PAUSE.is_terminal
        assert not ExecutionState.STEP_OK.is_terminal
