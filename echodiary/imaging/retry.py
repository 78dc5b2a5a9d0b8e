"""
Retry with exponential backoff for remote API calls.

The operation is retried only when it fails with a retryable ApiError.
Waits grow as ``retry_delay_ms * 2 ** attempt`` with no jitter.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from .errors import ApiError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """
    How often and how patiently to retry.

    Args:
        max_retries: Additional attempts after the first one
        retry_delay_ms: Wait before the first retry, doubled for each later one
        log_level: Messages below this level are not emitted
    """
    max_retries: int = 3
    retry_delay_ms: int = 1000
    log_level: int = logging.DEBUG

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.retry_delay_ms < 0:
            raise ValueError(f"retry_delay_ms must be >= 0, got {self.retry_delay_ms}")

    def backoff_ms(self, attempt: int) -> int:
        """Wait after the given zero-based failed attempt."""
        return self.retry_delay_ms * (2 ** attempt)


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    sleep: Optional[SleepFunc] = None,
    description: str = "API call",
) -> T:
    """
    Run an async operation, retrying transient failures.

    Args:
        operation: Zero-argument coroutine function performing one attempt
        policy: Retry limits and backoff
        sleep: Awaitable sleep taking seconds (``asyncio.sleep`` by default)
        description: Label used in log messages

    Returns:
        The first successful result.

    Raises:
        ApiError: The last error, unchanged, when it is not retryable or
            retries are exhausted.
    """
    sleep = sleep or asyncio.sleep
    total_attempts = policy.max_retries + 1

    def log(level: int, message: str) -> None:
        if level >= policy.log_level:
            logger.log(level, message)

    log(logging.INFO, f"Starting {description}")

    for attempt in range(total_attempts):
        log(logging.DEBUG, f"{description} attempt {attempt + 1}/{total_attempts}")
        try:
            result = await operation()
        except ApiError as e:
            if not e.retryable or attempt == policy.max_retries:
                log(
                    logging.ERROR,
                    f"{description} failed after {attempt + 1} attempt(s): "
                    f"{e.message} (code: {e.code}, retryable: {e.retryable})",
                )
                raise

            delay_ms = policy.backoff_ms(attempt)
            log(
                logging.WARNING,
                f"{description} attempt {attempt + 1} failed: {e.message} "
                f"(code: {e.code}); retrying in {delay_ms}ms",
            )
            await sleep(delay_ms / 1000)
            continue

        log(logging.INFO, f"{description} succeeded on attempt {attempt + 1}")
        return result

    # range() always ends in return or raise
    raise AssertionError("unreachable")
