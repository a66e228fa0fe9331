"""Exponential backoff around fallible async operations."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt, wait_exponential

from pricecrawl.config import CrawlerConfig
from pricecrawl.logging_config import get_logger

LOGGER = get_logger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget plus the first delay and its growth factor."""

    retries: int = 3
    delay_ms: int = 1000
    backoff: float = 2.0

    @classmethod
    def from_config(cls, config: CrawlerConfig) -> "RetryPolicy":
        return cls(
            retries=config.max_retries,
            delay_ms=config.initial_backoff_ms,
            backoff=config.backoff_multiplier,
        )


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    retries: int = 3,
    delay_ms: int = 1000,
    backoff: float = 2.0,
    sleep: SleepFn = asyncio.sleep,
    logger: logging.Logger | None = None,
) -> T:
    """Await *operation*, retrying up to *retries* times on any exception.

    The n-th retry waits ``delay_ms * backoff ** (n - 1)`` milliseconds. There is
    no jitter and no cap; once the budget is spent the last exception is raised
    unchanged.
    """

    log = logger or LOGGER

    def _log_retry(retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        error = outcome.exception() if outcome is not None else None
        log.warning(
            "Retrying after error: %s. Retries left: %d",
            error,
            retries - retry_state.attempt_number + 1,
        )

    retrying = AsyncRetrying(
        stop=stop_after_attempt(retries + 1),
        wait=wait_exponential(multiplier=delay_ms / 1000, exp_base=backoff),
        before_sleep=_log_retry,
        sleep=sleep,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            result = await operation()
    return result


async def retry_with_policy(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    sleep: SleepFn = asyncio.sleep,
    logger: logging.Logger | None = None,
) -> T:
    return await retry_async(
        operation,
        retries=policy.retries,
        delay_ms=policy.delay_ms,
        backoff=policy.backoff,
        sleep=sleep,
        logger=logger,
    )


__all__ = ["RetryPolicy", "retry_async", "retry_with_policy"]
