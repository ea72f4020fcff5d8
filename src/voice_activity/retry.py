from __future__ import annotations

"""
Retry with exponential backoff for store queries and cache round-trips.

Report batches retry a bounded number of times; the delay before retry ``n``
(0-based) is ``initial_delay * multiplier ** n`` capped at ``max_delay``.
"""


import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from redis.exceptions import RedisError

from .exceptions import StorageError

_ResultT = TypeVar("_ResultT")

DEFAULT_RETRY_EXCEPTIONS: Tuple[Type[BaseException], ...] = (
    RedisError,
    StorageError,
    TimeoutError,
    asyncio.TimeoutError,
    OSError,
)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 4
    initial_delay: float = 1.0
    max_delay: float = 30.0
    multiplier: float = 2.0
    retry_exceptions: Tuple[Type[BaseException], ...] = DEFAULT_RETRY_EXCEPTIONS

    @classmethod
    def from_retries(cls, max_retries: int, base_delay: float, **kwargs) -> "RetryPolicy":
        """``max_retries`` counts retries after the first attempt."""
        return cls(max_attempts=max(1, max_retries + 1), initial_delay=base_delay, **kwargs)

    def delay_for(self, retry_index: int) -> float:
        return min(self.initial_delay * (self.multiplier**retry_index), self.max_delay)


@dataclass(frozen=True)
class RetryContext:
    """What ``on_retry`` callbacks see before the backoff sleep."""

    attempt: int
    max_attempts: int
    delay: float
    exception: BaseException


class RetryExhaustedError(RuntimeError):
    """Every attempt failed; the last failure is chained as ``__cause__``."""

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts


RetryCallback = Callable[[RetryContext], Optional[Awaitable[None]]]


async def execute_with_retry(
    operation: Callable[[int], Awaitable[_ResultT]],
    *,
    policy: RetryPolicy,
    logger: logging.Logger,
    context: str,
    on_retry: Optional[RetryCallback] = None,
) -> _ResultT:
    """
    Await ``operation(attempt)`` until it succeeds or attempts run out.

    Exceptions outside ``policy.retry_exceptions`` propagate on the first
    occurrence. ``on_retry`` may be sync or async; without it a warning is
    logged under ``context``.

    Raises:
        RetryExhaustedError: When the final attempt fails with a retryable error.
    """
    max_attempts = max(1, policy.max_attempts)
    attempt = 1
    while True:
        try:
            return await operation(attempt)
        except policy.retry_exceptions as exc:
            if attempt >= max_attempts:
                raise RetryExhaustedError(f"{context} failed after {attempt} attempt(s)", attempt) from exc

            delay = policy.delay_for(attempt - 1)
            if on_retry is None:
                logger.warning("%s attempt %d/%d failed (%s); retrying in %.2fs", context, attempt, max_attempts, exc, delay)
            else:
                pending = on_retry(RetryContext(attempt, max_attempts, delay, exc))
                if pending is not None:
                    await pending

            await asyncio.sleep(delay)
            attempt += 1


__all__ = [
    "RetryContext",
    "RetryExhaustedError",
    "RetryPolicy",
    "execute_with_retry",
]
