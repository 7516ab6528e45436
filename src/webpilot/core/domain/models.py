"""
Core Domain Models

Data structures shared by the planner, navigator and execution controller:
action results, per-session options and context, planner state and the
typed outcomes each component hands back to the controller.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from webpilot.core.domain.cancellation import CancellationToken


@dataclass
class ActionResult:
    """
    Outcome of a single browser action.

    Attributes:
        extracted_content: Human/LLM readable result text (success case)
        error: Error text (failure case)
        is_done: True only for the terminal `done` action
        include_in_memory: Whether the result is shown to the LLM on later turns
        payload: Structured data produced by the action (e.g. search results)
    """

    extracted_content: str | None = None
    error: str | None = None
    is_done: bool = False
    include_in_memory: bool = False
    payload: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "extracted_content": self.extracted_content,
            "error": self.error,
            "is_done": self.is_done,
            "include_in_memory": self.include_in_memory,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ActionResult":
        return cls(
            extracted_content=data.get("extracted_content"),
            error=data.get("error"),
            is_done=bool(data.get("is_done", False)),
            include_in_memory=bool(data.get("include_in_memory", False)),
        )


@dataclass
class AgentOptions:
    """Execution bounds and feature switches for one session."""

    max_steps: int = 100
    max_actions_per_step: int = 5
    max_failures: int = 3
    planning_interval: int = 1
    use_vision: bool = False
    replay_historical_tasks: bool = False
    max_memory_messages: int = 60


class FinalAnswerAlreadySetError(ValueError):
    """Raised when a second final answer is written to the same context."""


@dataclass
class AgentContext:
    """
    Per-session mutable execution state.

    Owned by exactly one ExecutionController. Counters are mutated only by
    the controller; planner and navigator receive it read-only.
    """

    task_id: str
    options: AgentOptions = field(default_factory=AgentOptions)
    n_steps: int = 0
    consecutive_failures: int = 0
    action_results: list[ActionResult] = field(default_factory=list)
    cancellation: CancellationToken = field(default_factory=CancellationToken, repr=False)
    _final_answer: str | None = field(default=None, repr=False)

    @property
    def final_answer(self) -> str | None:
        return self._final_answer

    def set_final_answer(self, answer: str) -> None:
        """Write the final answer once; later writes are rejected."""
        if self._final_answer is not None:
            raise FinalAnswerAlreadySetError(
                f"Final answer already set for task {self.task_id}"
            )
        self._final_answer = answer

    @property
    def stopped(self) -> bool:
        return self.cancellation.stopped

    @property
    def paused(self) -> bool:
        return self.cancellation.paused

    def reset_for_run(self) -> None:
        """Clear per-run state; a follow-up task gets its own failure budget and final answer."""
        self.n_steps = 0
        self.consecutive_failures = 0
        self._final_answer = None


@dataclass
class PlanState:
    """
    Planner/replanner state carried across planning passes.

    Attributes:
        input: Original objective
        plan: Remaining steps, front is the next step to execute
        past_steps: (step, result summary) pairs in execution order
        response: Final answer, set once the replanner reports done
    """

    input: str
    plan: list[str] = field(default_factory=list)
    past_steps: list[tuple[str, str]] = field(default_factory=list)
    response: str | None = None

    @property
    def current_step(self) -> str | None:
        return self.plan[0] if self.plan else None

    def replace_plan(self, steps: list[str]) -> None:
        self.plan = list(steps)

    def complete_step(self, step: str, summary: str) -> None:
        """Drop the consumed step from the front and record its result."""
        if self.plan and self.plan[0] == step:
            self.plan = self.plan[1:]
        self.past_steps.append((step, summary))


@dataclass
class PlanningOutcome:
    """Result of one successful planner or replanner call."""

    steps: list[str] = field(default_factory=list)
    done: bool = False
    final_answer: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


class TaskStatus(str, Enum):
    """Terminal outcome of one `execute` run."""

    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    PAUSED = "paused"


@dataclass
class TaskOutcome:
    """Summary returned to the host after a run finishes."""

    task_id: str
    status: TaskStatus
    message: str
    steps: int = 0
