"""
Unit Tests for CancellationToken and AgentContext flags
"""

import asyncio

import pytest

from webpilot.core.domain.cancellation import CancellationToken
from webpilot.core.domain.errors import RequestCancelledError
from webpilot.core.domain.models import AgentContext, FinalAnswerAlreadySetError


def test_raise_if_cancelled():
    token = CancellationToken()
    token.raise_if_cancelled()
    token.cancel()
    with pytest.raises(RequestCancelledError):
        token.raise_if_cancelled()


def test_pause_ignored_after_cancel():
    token = CancellationToken()
    token.cancel()
    token.pause()
    assert not token.paused


def test_reset_clears_flags():
    token = CancellationToken()
    token.pause()
    token.cancel()
    token.reset()
    assert not token.stopped
    assert not token.paused


@pytest.mark.asyncio
async def test_wait_if_paused_returns_immediately_when_running():
    assert await CancellationToken().wait_if_paused() is False


@pytest.mark.asyncio
async def test_wait_if_paused_blocks_until_resume():
    token = CancellationToken()
    token.pause()

    waiter = asyncio.create_task(token.wait_if_paused())
    await asyncio.sleep(0)
    assert not waiter.done()

    token.resume()
    assert await asyncio.wait_for(waiter, timeout=1) is False


@pytest.mark.asyncio
async def test_cancel_wakes_paused_waiter():
    token = CancellationToken()
    token.pause()

    waiter = asyncio.create_task(token.wait_if_paused())
    await asyncio.sleep(0)
    token.cancel()

    assert await asyncio.wait_for(waiter, timeout=1) is True


class TestAgentContext:
    """Write-once final answer and run reset."""

    def test_final_answer_is_write_once(self):
        context = AgentContext(task_id="t")
        context.set_final_answer("first")
        with pytest.raises(FinalAnswerAlreadySetError):
            context.set_final_answer("second")
        assert context.final_answer == "first"

    def test_reset_for_run(self):
        context = AgentContext(task_id="t")
        context.n_steps = 4
        context.set_final_answer("x")
        context.reset_for_run()
        assert context.n_steps == 0
        assert context.final_answer is None

    def test_flags_mirror_token(self):
        context = AgentContext(task_id="t")
        context.cancellation.pause()
        assert context.paused
        context.cancellation.cancel()
        assert context.stopped
