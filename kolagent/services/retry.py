import asyncio
import logging
from typing import Awaitable, Callable, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryExhausted(Exception):
    """Every attempt failed with a retryable error."""

    def __init__(self, attempts: int, last_error: BaseException):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")


def linear_backoff(base_delay: float) -> Callable[[int], float]:
    """Delay of base_delay * attempt seconds after the given failed attempt."""
    return lambda attempt: base_delay * attempt


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    is_retryable: Callable[[BaseException], bool],
    max_attempts: int,
    delay_for: Callable[[int], float],
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    description: str = "operation",
) -> Tuple[T, int]:
    """
    Await operation() until it succeeds, retrying only errors is_retryable accepts.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        is_retryable: Predicate deciding whether an exception earns another attempt
        max_attempts: Total attempts, including the first
        delay_for: Maps the number of the failed attempt to a wait in seconds
        sleep: Awaitable sleep, injectable for tests
        description: Label used in log lines

    Returns:
        (result, attempts used)

    Raises:
        RetryExhausted: max_attempts retryable failures in a row
        Exception: the first non-retryable error, unchanged
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    attempt = 1
    while True:
        try:
            result = await operation()
            return result, attempt
        except Exception as e:
            if not is_retryable(e):
                raise
            if attempt >= max_attempts:
                logger.error(f"{description} failed after {attempt} attempts: {e}")
                raise RetryExhausted(attempt, e) from e

            delay = delay_for(attempt)
            logger.warning(
                f"{description} attempt {attempt}/{max_attempts} failed ({e}); "
                f"retrying in {delay:.1f}s"
            )
            await sleep(delay)
            attempt += 1
