from __future__ import annotations

import asyncio
import logging
import math

from gameday_briefing.core.config import (
    RATE_LIMIT_ENABLED,
    RATE_LIMIT_MAX_CONCURRENT,
    RATE_LIMIT_MIN_TIME_MS,
    RATE_LIMIT_REFILL_SEC,
    RATE_LIMIT_RESERVOIR,
)
from gameday_briefing.models.queue import LimiterStats
from gameday_briefing.net.clock import AsyncioScheduler, Scheduler

logger = logging.getLogger(__name__)


class RateLimiter:
    """Token bucket shared by every outbound call of the process.

    A call must `acquire()` one token and one concurrency slot before it
    starts, then give the slot back with `release()` or
    `release_on_failure()`. The reservoir refills to `capacity` every
    `refill_interval_sec`; call starts are spaced at least `min_time_sec`
    apart. Construct once at startup and inject it wherever calls are made.
    """

    def __init__(
        self,
        *,
        capacity: int = RATE_LIMIT_RESERVOIR,
        refill_interval_sec: float = RATE_LIMIT_REFILL_SEC,
        min_time_sec: float = RATE_LIMIT_MIN_TIME_MS / 1000.0,
        max_concurrent: int = RATE_LIMIT_MAX_CONCURRENT,
        enabled: bool = RATE_LIMIT_ENABLED,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._capacity = max(1, int(capacity))
        self._refill_interval = max(0.001, float(refill_interval_sec))
        self._min_time = max(0.0, float(min_time_sec))
        self._max_concurrent = max(1, int(max_concurrent))
        self._enabled = enabled
        self._scheduler = scheduler or AsyncioScheduler()
        self._slots = asyncio.Semaphore(self._max_concurrent)
        self._lock = asyncio.Lock()
        self._reservoir = self._capacity
        self._next_refill_at: float | None = None
        self._next_start_at = -math.inf
        self._running = 0
        self._queued = 0
        self._acquired = 0
        self._released_on_failure = 0

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    @property
    def reservoir(self) -> int | None:
        """Remaining tokens in the current window, None when unlimited."""
        if not self._enabled:
            return None
        self._refill(self._scheduler.now())
        return max(0, self._reservoir)

    def set_reservoir(self, value: int) -> None:
        self._reservoir = min(self._capacity, max(0, int(value)))

    def _refill(self, now: float) -> None:
        if self._next_refill_at is None:
            self._next_refill_at = now + self._refill_interval
            return
        if now < self._next_refill_at:
            return
        periods = int((now - self._next_refill_at) // self._refill_interval) + 1
        self._next_refill_at += periods * self._refill_interval
        self._reservoir = self._capacity
        logger.debug("reservoir refilled to %d", self._capacity)

    async def acquire(self) -> None:
        if not self._enabled:
            self._running += 1
            self._acquired += 1
            return

        self._queued += 1
        try:
            await self._slots.acquire()
        finally:
            self._queued -= 1

        try:
            async with self._lock:
                while True:
                    now = self._scheduler.now()
                    self._refill(now)
                    wait = self._next_start_at - now
                    if self._reservoir <= 0 and self._next_refill_at is not None:
                        wait = max(wait, self._next_refill_at - now)
                    if wait <= 0:
                        break
                    logger.debug("rate limiter waiting %.3fs (reservoir=%d)", wait, max(0, self._reservoir))
                    await self._scheduler.sleep(wait)
                self._reservoir -= 1
                self._next_start_at = now + self._min_time
                self._running += 1
                self._acquired += 1
        except BaseException:
            self._slots.release()
            raise

    def release(self) -> None:
        self._running = max(0, self._running - 1)
        if self._enabled:
            self._slots.release()

    def release_on_failure(self, *, refund: bool = False) -> None:
        """Free the slot of a failed call.

        `refund=True` returns the token when the call never reached the
        remote side (connection refused, DNS failure).
        """
        self._released_on_failure += 1
        if refund and self._enabled:
            self._reservoir = min(self._capacity, self._reservoir + 1)
        self.release()

    def stats(self) -> LimiterStats:
        return LimiterStats(
            enabled=self._enabled,
            reservoir=self.reservoir,
            capacity=self._capacity if self._enabled else None,
            running=self._running,
            queued=self._queued,
            acquired=self._acquired,
            released_on_failure=self._released_on_failure,
        )
