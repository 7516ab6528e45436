"""
Unit Tests for Planner / Replanner
"""

import pytest
from pydantic import ValidationError

from webpilot.core.domain.cancellation import CancellationToken
from webpilot.core.domain.errors import ChatModelAuthError, RequestCancelledError
from webpilot.core.domain.models import PlanState
from webpilot.core.domain.planner import Planner, ReplanOutput


class TestReplanOutput:
    """Exactly one of next_steps / done."""

    def test_next_steps_branch(self):
        output = ReplanOutput(next_steps=["a"])
        assert not output.done

    def test_done_branch(self):
        output = ReplanOutput(done=True, final_answer="42")
        assert output.final_answer == "42"

    def test_done_with_steps_rejected(self):
        with pytest.raises(ValidationError):
            ReplanOutput(done=True, final_answer="x", next_steps=["more"])

    def test_neither_branch_rejected(self):
        with pytest.raises(ValidationError):
            ReplanOutput()


class TestPlanner:
    @pytest.mark.asyncio
    async def test_plan_returns_cleaned_steps(self, scripted_model):
        scripted_model.queue("PlanOutput", {"steps": ["open site", "  ", "read price "]})

        outcome = await Planner(scripted_model).plan("find the price")

        assert outcome.steps == ["open site", "read price"]
        assert not outcome.done
        assert outcome.raw == {"steps": ["open site", "  ", "read price "]}
        messages = scripted_model.calls_for("PlanOutput")[0]
        assert "find the price" in messages[0]["content"]

    @pytest.mark.asyncio
    async def test_replan_prompt_contains_transcript(self, scripted_model):
        scripted_model.queue("ReplanOutput", {"next_steps": ["compare"]})
        state = PlanState(input="objective", plan=["read price"], past_steps=[("open site", "opened")])

        outcome = await Planner(scripted_model).replan(state)

        assert outcome.steps == ["compare"]
        prompt = scripted_model.calls_for("ReplanOutput")[0][0]["content"]
        assert "open site" in prompt
        assert "opened" in prompt
        assert "read price" in prompt

    @pytest.mark.asyncio
    async def test_replan_done(self, scripted_model):
        scripted_model.queue("ReplanOutput", {"done": True, "final_answer": "answer"})

        outcome = await Planner(scripted_model).replan(PlanState(input="objective"))

        assert outcome.done
        assert outcome.final_answer == "answer"
        assert outcome.steps == []

    @pytest.mark.asyncio
    async def test_model_errors_propagate(self, scripted_model):
        scripted_model.queue("PlanOutput", ChatModelAuthError("bad key"))
        with pytest.raises(ChatModelAuthError):
            await Planner(scripted_model).plan("objective")

    @pytest.mark.asyncio
    async def test_cancellation_observed_after_call(self, scripted_model):
        token = CancellationToken()
        token.cancel()
        scripted_model.queue("PlanOutput", {"steps": ["a"]})

        with pytest.raises(RequestCancelledError):
            await Planner(scripted_model).plan("objective", token)
