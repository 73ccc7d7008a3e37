# syncshell Retry
# Bounded async retry with linear, capped backoff

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0  # seconds
DEFAULT_MAX_DELAY = 5.0  # seconds

Sleep = Callable[[float], Awaitable[Any]]


class RestoreError(Exception):
    """Raised when every restore attempt failed."""

    def __init__(self, message: str, attempts: int, last_error: Optional[BaseException] = None):
        self.message = message
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(message)


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Delay after the given 1-based attempt: ``min(attempt * base, cap)``."""
    return min(attempt * base_delay, max_delay)


async def retry_async(
    func: Callable[[], Awaitable[Any]],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    retryable_exceptions: tuple[type[Exception], ...] = (Exception,),
    description: str = "operation",
    sleep: Sleep = asyncio.sleep,
) -> Any:
    """
    Await ``func`` until it succeeds or attempts run out.

    Args:
        func: Coroutine factory, called once per attempt.
        max_attempts: Hard ceiling on attempts (at least 1).
        base_delay: Delay unit in seconds.
        max_delay: Cap on any single delay.
        retryable_exceptions: Exception types that trigger another attempt.
        description: Label for log messages.
        sleep: Awaitable sleep, replaceable in tests.

    Returns:
        Result of the first successful attempt.

    Raises:
        RestoreError: After the last attempt failed.
    """
    attempts = max(1, max_attempts)
    last_error: Optional[BaseException] = None

    for attempt in range(1, attempts + 1):
        try:
            return await func()
        except retryable_exceptions as e:
            last_error = e
            if attempt == attempts:
                break
            delay = backoff_delay(attempt, base_delay, max_delay)
            logger.warning(
                "%s attempt %d/%d failed: %s. Retrying in %.1fs...",
                description,
                attempt,
                attempts,
                e,
                delay,
            )
            await sleep(delay)

    logger.error("%s failed after %d attempts: %s", description, attempts, last_error)
    raise RestoreError(
        f"{description} failed after {attempts} attempts: {last_error}",
        attempts=attempts,
        last_error=last_error,
    )
