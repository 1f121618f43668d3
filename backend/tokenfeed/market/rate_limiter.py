"""FIFO rate limiter for outbound provider calls."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimiter:
    """Serializes operations so consecutive starts are at least 1/rps apart.

    Submitted operations are queued and drained by a single driver task in
    submission order. Each operation is awaited before the next one starts, so
    operations on one limiter never overlap. The driver exits when the queue
    empties and is restarted by the next submission.

    The queue is unbounded: callers are never rejected, only delayed.
    """

    def __init__(self, requests_per_second: float) -> None:
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be positive")
        self._min_interval = 1.0 / requests_per_second
        self._queue: deque[tuple[Callable[[], Awaitable[Any]], asyncio.Future]] = deque()
        self._driver: asyncio.Task | None = None
        self._last_start: float | None = None

    @property
    def min_interval(self) -> float:
        """Minimum seconds between two operation starts."""
        return self._min_interval

    @property
    def pending(self) -> int:
        """Number of operations waiting to start."""
        return len(self._queue)

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Queue a zero-argument coroutine function and await its result.

        Exceptions raised by the operation propagate unchanged.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        self._queue.append((operation, future))

        if self._driver is None or self._driver.done():
            self._driver = loop.create_task(self._drain(), name="rate-limiter-driver")

        return await future

    async def _drain(self) -> None:
        loop = asyncio.get_running_loop()
        while self._queue:
            if self._last_start is not None:
                wait = self._min_interval - (loop.time() - self._last_start)
                if wait > 0:
                    await asyncio.sleep(wait)

            operation, future = self._queue.popleft()
            if future.cancelled():
                # Caller went away while queued; its slot is not consumed
                continue

            self._last_start = loop.time()
            try:
                result = await operation()
            except Exception as e:
                if not future.done():
                    future.set_exception(e)
            else:
                if not future.done():
                    future.set_result(result)
