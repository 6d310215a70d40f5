"""Bounded concurrency primitives.

WorkerPool runs a batch under a semaphore and reports every failure at once.
RateLimiter applies blocking backpressure over a sliding time window.
"""

import asyncio
import logging
import time
from collections import deque
from typing import Awaitable, Callable, Iterable, TypeVar

from framecast.exceptions import BatchError

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class WorkerPool:
    """Run coroutines over a batch with at most ``max_concurrency`` in flight.

    A failing item does not cancel its siblings. Once every item has
    finished, a BatchError carrying all per-item errors is raised if any
    item failed.
    """

    def __init__(self, max_concurrency: int):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.max_concurrency = max_concurrency

    async def run(self, items: Iterable[T], worker: Callable[[T], Awaitable[R]]) -> list[R]:
        """Process all items and return results in input order."""
        semaphore = asyncio.Semaphore(self.max_concurrency)
        errors: list[BaseException] = []
        errors_lock = asyncio.Lock()

        async def _run_one(item: T) -> R | None:
            async with semaphore:
                try:
                    return await worker(item)
                except Exception as e:
                    async with errors_lock:
                        errors.append(e)
                    return None

        results = await asyncio.gather(*(_run_one(item) for item in items))
        if errors:
            logger.warning(f"[POOL] {len(errors)} of {len(results)} item(s) failed")
            raise BatchError(errors)
        return list(results)


class RateLimiter:
    """Sliding-window limiter: at most ``max_calls`` starts per ``window`` seconds.

    ``acquire()`` blocks until a slot is free instead of rejecting the call.
    Clock and sleep are injectable for tests.
    """

    def __init__(
        self,
        max_calls: int,
        window: float = 60.0,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_calls < 1:
            raise ValueError("max_calls must be >= 1")
        self.max_calls = max_calls
        self.window = window
        self._clock = clock
        self._sleep = sleep
        self._calls: deque[float] = deque()
        self._lock = asyncio.Lock()

    def _prune(self, now: float) -> None:
        while self._calls and now - self._calls[0] >= self.window:
            self._calls.popleft()

    async def acquire(self) -> None:
        while True:
            async with self._lock:
                now = self._clock()
                self._prune(now)
                if len(self._calls) < self.max_calls:
                    self._calls.append(now)
                    return
                wait = self._calls[0] + self.window - now

            # Slot is re-checked under the lock after waking
            logger.debug(f"[RATE] window full, waiting {wait:.2f}s")
            await self._sleep(max(wait, 0.0))

    def current_usage(self) -> int:
        """Number of calls recorded in the current window. Does not modify state."""
        now = self._clock()
        return sum(1 for ts in self._calls if now - ts < self.window)
