"""Bounded exponential backoff for transient provider failures."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from .errors import SourceConnectionError, SourceHTTPError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RATE_LIMITED_STATUS = 429


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Retry budget. Delays are in seconds."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 8.0

    def delay_for(self, retry: int) -> float:
        """Delay before the given retry (1-indexed): base * 2^(retry-1), capped."""
        return min(self.base_delay * 2 ** (retry - 1), self.max_delay)


DEFAULT_RETRY_POLICY = RetryPolicy()


def is_retryable(error: BaseException) -> bool:
    """Only rate limiting and connection resets are worth another attempt."""
    if isinstance(error, SourceHTTPError):
        return error.status_code == RATE_LIMITED_STATUS
    return isinstance(error, (SourceConnectionError, ConnectionResetError))


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
) -> T:
    """Call ``operation`` up to ``policy.max_retries + 1`` times.

    Non-retryable errors are raised on the spot. When the budget is spent the
    last error is raised unchanged.
    """
    retry = 0
    while True:
        try:
            return await operation()
        except Exception as e:
            if not is_retryable(e) or retry >= policy.max_retries:
                raise
            retry += 1
            delay = policy.delay_for(retry)
            logger.warning(
                "Retry attempt %d/%d after %.2fs: %s", retry, policy.max_retries, delay, e
            )
            await asyncio.sleep(delay)
