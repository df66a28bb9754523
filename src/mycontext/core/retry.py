"""Retry policy shared by the sentinel and the client router.

A RetryPolicy is a value: bounded attempts, a backoff schedule and a
predicate deciding which errors are worth another attempt. Loops that
retry read their bound from a policy instead of hard-coding one.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

from mycontext.core.errors import AIClientError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _retryable_client_error(error: BaseException) -> bool:
    return isinstance(error, AIClientError) and error.retryable


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Bounded retry configuration.

    Attributes:
        max_retries: Retries after the first attempt (0 = single attempt)
        backoff_seconds: Delay before the first retry
        backoff_multiplier: Growth factor applied per retry
        max_backoff_seconds: Upper bound for any single delay
        retry_on: Predicate selecting errors that may be retried
    """

    max_retries: int = 0
    backoff_seconds: float = 0.0
    backoff_multiplier: float = 2.0
    max_backoff_seconds: float = 30.0
    retry_on: Callable[[BaseException], bool] = field(default=_retryable_client_error)

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

    @property
    def max_attempts(self) -> int:
        """Total attempts including the first one."""
        return self.max_retries + 1

    def delay_for(self, retry: int) -> float:
        """Delay before the given retry (1-based)."""
        if retry < 1 or self.backoff_seconds <= 0:
            return 0.0
        delay = self.backoff_seconds * (self.backoff_multiplier ** (retry - 1))
        return min(delay, self.max_backoff_seconds)

    def should_retry(self, error: BaseException, attempt: int) -> bool:
        """Whether a failure on ``attempt`` (1-based) earns another attempt."""
        return attempt < self.max_attempts and self.retry_on(error)

    @classmethod
    def none(cls) -> RetryPolicy:
        """A policy that never retries."""
        return cls(max_retries=0)

    async def sleep_before(self, retry: int) -> None:
        delay = self.delay_for(retry)
        if delay > 0:
            await asyncio.sleep(delay)


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    on_failure: Callable[[BaseException, int], None] | None = None,
) -> T:
    """Run ``operation`` under ``policy``.

    ``on_failure`` is called with (error, attempt) for every failed attempt,
    including the last. The final error is re-raised unchanged.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except Exception as e:
            if on_failure is not None:
                on_failure(e, attempt)
            if not policy.should_retry(e, attempt):
                raise
            logger.debug(
                "Retrying after attempt %d/%d failed: %s",
                attempt, policy.max_attempts, e,
            )
            await policy.sleep_before(attempt)
