"""
Cooperative cancellation and pause.

A CancellationToken is owned by one ExecutionController and passed into every
awaited call boundary (planner, navigator, action executor, replay). Nothing
is interrupted preemptively: an in-flight LLM or browser call completes, and
the flag is observed at the next check.
"""

import asyncio

from webpilot.core.domain.errors import RequestCancelledError


class CancellationToken:
    """Stop/pause flags shared between the host and the control loop."""

    def __init__(self) -> None:
        self._stopped = False
        self._paused = False
        self._resumed = asyncio.Event()
        self._resumed.set()

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def paused(self) -> bool:
        return self._paused

    def cancel(self) -> None:
        self._stopped = True
        # wake anyone blocked on pause so they can observe the stop
        self._resumed.set()

    def pause(self) -> None:
        if not self._stopped:
            self._paused = True
            self._resumed.clear()

    def resume(self) -> None:
        self._paused = False
        self._resumed.set()

    def reset(self) -> None:
        """Clear both flags before a new run on the same session."""
        self._stopped = False
        self.resume()

    def raise_if_cancelled(self) -> None:
        if self._stopped:
            raise RequestCancelledError("Task cancelled")

    async def wait_if_paused(self) -> bool:
        """
        Block while paused.

        Returns:
            True if the token was cancelled (before or during the pause)
        """
        while self._paused and not self._stopped:
            await self._resumed.wait()
        return self._stopped
