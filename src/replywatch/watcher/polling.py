"""Cancellable deadline ticker shared by the polling strategies."""

from __future__ import annotations

import asyncio
import logging
import time

from replywatch.domain.models import WatchConfig
from replywatch.errors import WatchCancelledError, WatchTimeoutError

logger = logging.getLogger(__name__)


class PollClock:
    """Tracks a wall-clock deadline and sleeps between polls.

    The deadline is measured from ``started`` (a ``time.monotonic()``
    reading, normally the episode start), not from the number of polls,
    so a slow capture only eats into the remaining time. Sleeps wake as
    soon as the cancel event is set.
    """

    def __init__(
        self,
        config: WatchConfig,
        cancel: asyncio.Event | None = None,
        started: float | None = None,
        label: str = "watch",
    ) -> None:
        self._config = config
        self._cancel = cancel
        self._started = time.monotonic() if started is None else started
        self._label = label

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self._started

    @property
    def remaining(self) -> float:
        return max(0.0, self._config.timeout - self.elapsed)

    @property
    def expired(self) -> bool:
        return self.elapsed >= self._config.timeout

    @property
    def cancelled(self) -> bool:
        return self._cancel is not None and self._cancel.is_set()

    def raise_if_cancelled(self, partial: str | None = None) -> None:
        if self.cancelled:
            raise WatchCancelledError(
                f"{self._label} cancelled after {self.elapsed:.1f}s",
                elapsed=self.elapsed,
                partial=partial,
            )

    def timeout_error(self, partial: str | None = None) -> WatchTimeoutError:
        return WatchTimeoutError(
            f"{self._label} timed out after {self._config.timeout:.0f}s",
            elapsed=self.elapsed,
            partial=partial,
        )

    async def tick(self) -> None:
        """Sleep one poll interval, cut short by the deadline or cancellation."""
        await self._sleep(min(self._config.poll_interval, self.remaining))

    async def settle(self, delay: float | None = None) -> None:
        """Sleep the settle delay; only cancellation cuts it short."""
        await self._sleep(self._config.stabilization_delay if delay is None else delay)

    async def _sleep(self, seconds: float) -> None:
        await sleep_unless_cancelled(seconds, self._cancel)


async def sleep_unless_cancelled(seconds: float, cancel: asyncio.Event | None) -> bool:
    """Sleep up to ``seconds``; return True if woken by ``cancel``."""
    if seconds <= 0:
        await asyncio.sleep(0)
    elif cancel is None:
        await asyncio.sleep(seconds)
    else:
        try:
            await asyncio.wait_for(cancel.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
    return cancel is not None and cancel.is_set()
