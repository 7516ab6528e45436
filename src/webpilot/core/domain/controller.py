"""
Execution Controller

Owns the task control loop for one session:

    STARTING -> STEPPING -> [PLANNING] -> NAVIGATING -> STEPPING ...
             -> DONE | FAILED | CANCELLED | PAUSED

Each iteration first checks the cooperative stop/pause flags and the
consecutive-failure bound, then runs the planner (first pass) or replanner
when planning is due, and finally one navigator turn for the front step of
the plan. The run resolves through exactly one terminal TASK_* event:

- DONE: the replanner reported done (details: final answer or task id)
- FAILED: max steps reached, or a fatal / max-failures error
- CANCELLED: stop requested, or RequestCancelledError raised anywhere
- PAUSED: the loop ended for any other reason (e.g. repeated navigator
  failures)
"""

import json

import structlog

from webpilot.core.domain.errors import (
    HistoryNotFoundError,
    HistoryReplayError,
    MaxFailuresReachedError,
    MaxStepsReachedError,
    RequestCancelledError,
    is_fatal,
)
from webpilot.core.domain.events import (
    Actor,
    EventBus,
    EventCallback,
    EventType,
    ExecutionEmitter,
    ExecutionState,
)
from webpilot.core.domain.history import AgentStepHistory
from webpilot.core.domain.memory import ConversationMemory
from webpilot.core.domain.models import (
    ActionResult,
    AgentContext,
    PlanningOutcome,
    PlanState,
    TaskOutcome,
    TaskStatus,
)
from webpilot.core.domain.navigator import Navigator
from webpilot.core.domain.planner import Planner
from webpilot.core.i18n import t
from webpilot.core.interfaces.history import HistoryStoreProtocol

REPLAY_NAMESPACE = "replay"


class ExecutionController:
    """
    Control loop for one browser task session.

    Args:
        task: Initial objective
        context: Session state (task id, options, counters, cancellation)
        planner: Planner/replanner
        navigator: Navigator bound to the session's memory and browser
        memory: Conversation memory shared with the navigator
        event_bus: Bus that host callbacks subscribe to
        emitter: Event factory bound to context and event_bus
        history_store: Persistence for step histories (optional)
    """

    def __init__(
        self,
        task: str,
        context: AgentContext,
        planner: Planner,
        navigator: Navigator,
        memory: ConversationMemory,
        event_bus: EventBus,
        emitter: ExecutionEmitter,
        history_store: HistoryStoreProtocol | None = None,
    ):
        self.tasks: list[str] = [task]
        self.context = context
        self.planner = planner
        self.navigator = navigator
        self.memory = memory
        self.event_bus = event_bus
        self.emitter = emitter
        self.history_store = history_store
        self.plan_state = PlanState(input=task)
        self.history = AgentStepHistory()
        self.logger = structlog.get_logger().bind(
            component="execution_controller", task_id=context.task_id
        )

        self.memory.init_task_messages(self.navigator.system_prompt(), task)

    # ------------------------------------------------------------ host API

    @property
    def task_id(self) -> str:
        return self.context.task_id

    def get_current_task_id(self) -> str:
        return self.context.task_id

    def subscribe_execution_events(self, callback: EventCallback) -> None:
        self.event_bus.subscribe(EventType.EXECUTION, callback)

    def unsubscribe_execution_events(self, callback: EventCallback) -> None:
        self.event_bus.unsubscribe(EventType.EXECUTION, callback)

    def clear_execution_events(self) -> None:
        self.event_bus.clear_subscribers(EventType.EXECUTION)

    def add_follow_up_task(self, task: str) -> None:
        """
        Queue a follow-up objective for the next `execute` call.

        Earlier tasks stay in memory; action results not meant for memory
        are dropped and the plan is rebuilt by the replanner.
        """
        self.tasks.append(task)
        self.memory.add_new_task(task)
        self.context.action_results = [
            result for result in self.context.action_results if result.include_in_memory
        ]
        self.plan_state.input = task
        self.plan_state.plan = []
        self.plan_state.response = None
        self.context.cancellation.reset()
        self.logger.info("follow_up_task_added", tasks=len(self.tasks))

    async def cancel(self) -> None:
        self.context.cancellation.cancel()
        self.logger.info("task_cancel_requested")

    async def pause(self) -> None:
        self.context.cancellation.pause()
        self.logger.info("task_pause_requested")

    async def resume(self) -> None:
        self.context.cancellation.resume()
        self.logger.info("task_resume_requested")

    async def cleanup(self) -> None:
        try:
            await self.navigator.browser.cleanup()
        except Exception as e:
            self.logger.error("browser_cleanup_failed", error=str(e))

    # ------------------------------------------------------------ main loop

    async def execute(self) -> TaskOutcome:
        """
        Run the control loop until a terminal state.

        The outcome is published as a TASK_* event; the returned TaskOutcome
        mirrors it for hosts that await the call directly.
        """
        ctx = self.context
        max_steps = ctx.options.max_steps
        ctx.reset_for_run()

        self.logger.info("task_started", task=self.tasks[-1][:100], max_steps=max_steps)
        step = 0
        try:
            await self._emit(Actor.SYSTEM, ExecutionState.TASK_START, ctx.task_id)

            done = False
            navigator_done = False
            while step < max_steps:
                if await self._should_stop():
                    break

                if self._planning_due(navigator_done):
                    navigator_done = False
                    outcome = await self._run_planner()
                    if outcome is not None and outcome.done:
                        done = True
                        break

                if ctx.stopped:
                    break

                if self.plan_state.current_step is not None:
                    navigator_done = await self._navigate()
                    if navigator_done:
                        self.logger.info("navigator_reported_done", step=ctx.n_steps)

                step += 1

            if done:
                message = ctx.final_answer or ctx.task_id
                await self._emit(Actor.SYSTEM, ExecutionState.TASK_OK, message)
                return self._outcome(TaskStatus.COMPLETED, message)
            if step >= max_steps:
                self.logger.error("task_max_steps_reached", max_steps=max_steps)
                raise MaxStepsReachedError(t("exec_errors_maxStepsReached"))
            if ctx.stopped:
                message = t("exec_task_cancel")
                await self._emit(Actor.SYSTEM, ExecutionState.TASK_CANCEL, message)
                return self._outcome(TaskStatus.CANCELLED, message)

            message = t("exec_task_pause")
            await self._emit(Actor.SYSTEM, ExecutionState.TASK_PAUSE, message)
            return self._outcome(TaskStatus.PAUSED, message)

        except RequestCancelledError:
            message = t("exec_task_cancel")
            self.logger.info("task_cancelled")
            await self._emit(Actor.SYSTEM, ExecutionState.TASK_CANCEL, message)
            return self._outcome(TaskStatus.CANCELLED, message)

        except Exception as e:
            if isinstance(e, (MaxFailuresReachedError, MaxStepsReachedError)):
                message = str(e)
            else:
                message = t("exec_task_fail", str(e))
            self.logger.error(
                "task_failed", error=str(e), error_type=type(e).__name__, step=step
            )
            await self._emit(Actor.SYSTEM, ExecutionState.TASK_FAIL, message)
            return self._outcome(TaskStatus.FAILED, message)

        finally:
            self.navigator.discard_pending_state()
            await self._store_history()

    async def _should_stop(self) -> bool:
        ctx = self.context
        if ctx.stopped:
            self.logger.info("task_stop_observed")
            return True

        if ctx.paused:
            self.logger.info("task_paused")
            if await ctx.cancellation.wait_if_paused():
                return True
            self.logger.info("task_resumed")

        if ctx.consecutive_failures >= ctx.options.max_failures:
            self.logger.error(
                "task_max_failures_reached", failures=ctx.consecutive_failures
            )
            return True
        return False

    def _planning_due(self, navigator_done: bool) -> bool:
        interval = max(1, self.context.options.planning_interval)
        return (
            self.context.n_steps % interval == 0
            or navigator_done
            or not self.plan_state.plan
        )

    async def _run_planner(self) -> PlanningOutcome | None:
        """
        One planning pass.

        Returns:
            The planning outcome, or None if a transient error was absorbed

        Raises:
            Fatal errors unchanged; MaxFailuresReachedError when transient
            failures reach the configured bound
        """
        ctx = self.context
        await self._emit(Actor.PLANNER, ExecutionState.STEP_START, t("exec_planning_start"))
        try:
            self.navigator.discard_pending_state()
            if len(self.tasks) > 1 or ctx.n_steps > 0:
                await self.navigator.add_state_message_to_memory(
                    ctx.action_results, ctx.n_steps, ctx.options.max_steps
                )
                position = self.memory.length() - 1
            else:
                position = self.memory.length()

            if not self.plan_state.plan and not self.plan_state.past_steps:
                outcome = await self.planner.plan(self.plan_state.input, ctx.cancellation)
            else:
                outcome = await self.planner.replan(self.plan_state, ctx.cancellation)

            self.memory.add_plan(json.dumps(outcome.raw), position)
        except Exception as e:
            if is_fatal(e):
                self.logger.error("planner_fatal_error", error=str(e), error_type=type(e).__name__)
                raise

            ctx.consecutive_failures += 1
            self.logger.error(
                "planner_failed",
                error=str(e),
                error_type=type(e).__name__,
                consecutive_failures=ctx.consecutive_failures,
            )
            await self._emit(
                Actor.PLANNER, ExecutionState.STEP_FAIL, t("exec_planning_fail", str(e))
            )
            if ctx.consecutive_failures >= ctx.options.max_failures:
                raise MaxFailuresReachedError(t("exec_errors_maxFailuresReached")) from e
            return None

        ctx.consecutive_failures = 0
        if outcome.done:
            self.plan_state.response = outcome.final_answer or ""
            if outcome.final_answer:
                ctx.set_final_answer(outcome.final_answer)
            self.logger.info("planner_confirms_completion")
        else:
            self.plan_state.replace_plan(outcome.steps)

        await self._emit(Actor.PLANNER, ExecutionState.STEP_OK, json.dumps(outcome.raw))
        return outcome

    async def _navigate(self) -> bool:
        """
        One navigator turn for the front plan step.

        Returns:
            True if an executed action reported is_done
        """
        ctx = self.context
        step = self.plan_state.current_step or ""
        await self._emit(Actor.NAVIGATOR, ExecutionState.STEP_START, step)
        try:
            outcome = await self.navigator.navigate(
                step,
                self.plan_state.input,
                ctx.action_results,
                ctx.n_steps,
                ctx.options.max_steps,
                ctx.cancellation,
            )
        except Exception as e:
            if is_fatal(e):
                raise
            ctx.consecutive_failures += 1
            self.logger.error(
                "navigator_failed",
                error=str(e),
                error_type=type(e).__name__,
                consecutive_failures=ctx.consecutive_failures,
            )
            await self._emit(
                Actor.NAVIGATOR, ExecutionState.STEP_FAIL, t("exec_navigating_fail", str(e))
            )
            return False

        ctx.action_results = outcome.results
        self.plan_state.complete_step(step, outcome.summary)
        ctx.n_steps += 1
        if outcome.history_item is not None:
            self.history.append(outcome.history_item)

        await self._emit(Actor.NAVIGATOR, ExecutionState.STEP_OK, outcome.summary)
        return outcome.done

    async def _store_history(self) -> None:
        if not self.context.options.replay_historical_tasks or self.history_store is None:
            self.logger.debug("history_storage_skipped")
            return
        try:
            payload = self.history.to_json()
            await self.history_store.store_agent_step_history(
                self.context.task_id, self.tasks[0], payload
            )
            self.logger.info("history_stored", steps=len(self.history), size=len(payload))
        except Exception as e:
            self.logger.error("history_store_failed", error=str(e))

    # ------------------------------------------------------------ replay

    async def replay_history(
        self,
        task_id: str | None = None,
        max_retries: int = 3,
        skip_failures: bool = True,
        delay_between_actions: float = 2.0,
    ) -> list[ActionResult]:
        """
        Replay a persisted step history without calling the LLM.

        Args:
            task_id: Task whose history to replay (defaults to this session's)
            max_retries: Attempts per history step
            skip_failures: Continue past a step that keeps failing
            delay_between_actions: Seconds between replayed actions

        Returns:
            ActionResults of all replayed actions
        """
        ctx = self.context
        source_id = task_id or ctx.task_id
        results: list[ActionResult] = []

        with self.emitter.namespaced(REPLAY_NAMESPACE):
            try:
                history = await self._load_history(source_id)
                self.logger.info("replay_started", source_task_id=source_id, steps=len(history))
                await self._emit(Actor.SYSTEM, ExecutionState.TASK_START, t("exec_replay_start"))

                total = len(history.history)
                for index, item in enumerate(history.history):
                    if ctx.stopped:
                        break
                    if ctx.paused and await ctx.cancellation.wait_if_paused():
                        break

                    await self._emit(Actor.NAVIGATOR, ExecutionState.STEP_START, item.step)
                    step_results = await self.navigator.execute_history_step(
                        item,
                        index,
                        total,
                        max_retries=max_retries,
                        delay_between_actions=delay_between_actions,
                        skip_failures=skip_failures,
                        cancellation=ctx.cancellation,
                    )
                    results.extend(step_results)

                    failed = next((r.error for r in step_results if r.error), None)
                    if failed:
                        await self._emit(Actor.NAVIGATOR, ExecutionState.STEP_FAIL, failed)
                    else:
                        await self._emit(Actor.NAVIGATOR, ExecutionState.STEP_OK, item.step)

                if ctx.stopped:
                    await self._emit(
                        Actor.SYSTEM, ExecutionState.TASK_CANCEL, t("exec_replay_cancel")
                    )
                else:
                    await self._emit(Actor.SYSTEM, ExecutionState.TASK_OK, t("exec_replay_ok"))

            except RequestCancelledError:
                self.logger.info("replay_cancelled")
                await self._emit(Actor.SYSTEM, ExecutionState.TASK_CANCEL, t("exec_replay_cancel"))

            except Exception as e:
                self.logger.error("replay_failed", error=str(e), error_type=type(e).__name__)
                await self._emit(
                    Actor.SYSTEM, ExecutionState.TASK_FAIL, t("exec_replay_fail", str(e))
                )

        return results

    async def _load_history(self, task_id: str) -> AgentStepHistory:
        if self.history_store is None:
            raise HistoryNotFoundError(t("exec_replay_historyNotFound"))
        stored = await self.history_store.load_agent_step_history(task_id)
        if stored is None:
            raise HistoryNotFoundError(t("exec_replay_historyNotFound"))
        history = AgentStepHistory.from_json(stored.history)
        if not history.history:
            raise HistoryReplayError(t("exec_replay_historyEmpty"))
        return history

    # ------------------------------------------------------------ helpers

    async def _emit(self, actor: Actor, state: ExecutionState, details: str = "") -> None:
        await self.emitter.emit(actor, state, details)

    def _outcome(self, status: TaskStatus, message: str) -> TaskOutcome:
        return TaskOutcome(
            task_id=self.context.task_id,
            status=status,
            message=message,
            steps=self.context.n_steps,
        )
