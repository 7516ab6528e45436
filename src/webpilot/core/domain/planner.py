"""
Planner / Replanner

The Planner turns an objective into an ordered step list; the Replanner
revises the remaining list from the executed-step transcript or declares
the task done. Completion is decided by the model's structured output alone.

Neither component touches counters or emits events: they return a
PlanningOutcome (or raise) and the ExecutionController applies it.
"""

from typing import Any

import structlog
from pydantic import BaseModel, Field, model_validator

from webpilot.core.domain.cancellation import CancellationToken
from webpilot.core.domain.models import PlanningOutcome, PlanState
from webpilot.core.interfaces.llm import ChatModelProtocol
from webpilot.core.prompts.planner_prompts import (
    format_planner_prompt,
    format_replanner_prompt,
)


class PlanOutput(BaseModel):
    """Initial plan."""

    steps: list[str] = Field(description="ordered steps to achieve the objective")


class ReplanOutput(BaseModel):
    """Revised plan or terminal answer; exactly one of the two."""

    next_steps: list[str] | None = Field(default=None, description="steps still to do")
    done: bool = Field(default=False, description="true if the objective is achieved")
    final_answer: str | None = Field(default=None, description="answer for the user when done")

    @model_validator(mode="after")
    def _exactly_one_branch(self) -> "ReplanOutput":
        if self.done and self.next_steps:
            raise ValueError("next_steps must be empty when done is true")
        if not self.done and self.next_steps is None:
            raise ValueError("next_steps is required unless done is true")
        return self


class Planner:
    """
    Planner and replanner sharing one chat model.

    Args:
        chat_model: Structured-output model used for both calls
    """

    def __init__(self, chat_model: ChatModelProtocol):
        self.chat_model = chat_model
        self.logger = structlog.get_logger().bind(component="planner")

    async def plan(
        self, objective: str, cancellation: CancellationToken | None = None
    ) -> PlanningOutcome:
        messages = [
            {"role": "system", "content": format_planner_prompt(objective)},
            {"role": "user", "content": objective},
        ]
        output = await self.chat_model.invoke(messages, PlanOutput)
        if cancellation is not None:
            cancellation.raise_if_cancelled()

        steps = _clean_steps(output.steps)
        self.logger.info("plan_created", steps=len(steps))
        return PlanningOutcome(steps=steps, raw=_raw(output))

    async def replan(
        self, state: PlanState, cancellation: CancellationToken | None = None
    ) -> PlanningOutcome:
        prompt = format_replanner_prompt(state.input, state.plan, state.past_steps)
        messages = [
            {"role": "system", "content": prompt},
            {"role": "user", "content": "Review the progress and update the plan."},
        ]
        output = await self.chat_model.invoke(messages, ReplanOutput)
        if cancellation is not None:
            cancellation.raise_if_cancelled()

        if output.done:
            self.logger.info("replan_done", has_answer=bool(output.final_answer))
            return PlanningOutcome(done=True, final_answer=output.final_answer, raw=_raw(output))

        steps = _clean_steps(output.next_steps or [])
        self.logger.info("plan_revised", steps=len(steps))
        return PlanningOutcome(steps=steps, raw=_raw(output))


def _clean_steps(steps: list[str]) -> list[str]:
    return [step.strip() for step in steps if step and step.strip()]


def _raw(output: BaseModel) -> dict[str, Any]:
    return output.model_dump(exclude_none=True)
