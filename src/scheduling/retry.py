"""Exponential-backoff wrapper for document store operations.

Every read and write the scheduling components issue against the store goes
through retry_operation(). Only rate-limit errors are retried; anything else
propagates on the first failure, and the last rate-limit error is re-raised
unchanged once the attempts are used up.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from src.scheduling.errors import is_rate_limited
from src.scheduling.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 5
DEFAULT_INITIAL_DELAY_MS = 1000


def _log_backoff(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    wait_s = retry_state.next_action.sleep if retry_state.next_action else 0
    logger.warning(
        "retrying_operation",
        attempt=retry_state.attempt_number,
        wait_ms=int(wait_s * 1000),
        error=str(exc),
    )


async def retry_operation(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = DEFAULT_MAX_RETRIES,
    initial_delay_ms: int = DEFAULT_INITIAL_DELAY_MS,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``operation`` and back off on rate-limit failures.

    Args:
        operation: Zero-argument callable returning an awaitable, e.g.
            ``lambda: store.get("schedules", schedule_id)``.
        max_retries: Total number of attempts before the error is re-raised.
        initial_delay_ms: Wait before the second attempt. Attempt ``n`` waits
            ``initial_delay_ms * 2 ** (n - 1)``.
        sleep: Awaitable sleep used between attempts.

    Returns:
        Whatever ``operation`` returns.

    Raises:
        Exception: The original error, after the last attempt for rate limits
            or immediately for anything else.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_retries),
        wait=wait_exponential(multiplier=initial_delay_ms / 1000, exp_base=2),
        retry=retry_if_exception(is_rate_limited),
        before_sleep=_log_backoff,
        sleep=sleep,
        reraise=True,
    )

    # tenacity only awaits coroutine functions; lambdas returning one are not
    async def _call() -> T:
        return await operation()

    return await retrying(_call)


class RetryPolicy:
    """max_retries / initial_delay_ms bound once, shared by a component."""

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_delay_ms: int = DEFAULT_INITIAL_DELAY_MS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.max_retries = max_retries
        self.initial_delay_ms = initial_delay_ms
        self.sleep = sleep

    @classmethod
    def from_config(cls, config) -> "RetryPolicy":
        return cls(
            max_retries=config.retry_max_attempts,
            initial_delay_ms=config.retry_initial_delay_ms,
        )

    async def __call__(self, operation: Callable[[], Awaitable[T]]) -> T:
        return await retry_operation(
            operation,
            self.max_retries,
            self.initial_delay_ms,
            sleep=self.sleep,
        )
