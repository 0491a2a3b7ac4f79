from __future__ import annotations

import asyncio
import time
from typing import Protocol


class Scheduler(Protocol):
    def now(self) -> float: ...

    async def sleep(self, seconds: float) -> None: ...


class AsyncioScheduler:
    """Monotonic clock plus cancellable sleeps.

    `cancel()` wakes every pending `sleep` and makes it raise
    `asyncio.CancelledError`; later sleeps raise immediately. `now()` reads
    `time.monotonic()` so it is usable outside a running loop.
    """

    def __init__(self) -> None:
        self._cancelled = asyncio.Event()

    def now(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        if self._cancelled.is_set():
            raise asyncio.CancelledError("scheduler cancelled")
        if seconds <= 0:
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(self._cancelled.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        raise asyncio.CancelledError("scheduler cancelled")

    def cancel(self) -> None:
        self._cancelled.set()


class VirtualScheduler:
    """Scheduler whose clock only moves when something sleeps.

    Used to drive rate limiting and backoff without wall-clock waits.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self._now

    async def sleep(self, seconds: float) -> None:
        seconds = max(0.0, seconds)
        self.sleeps.append(seconds)
        self._now += seconds
        await asyncio.sleep(0)
