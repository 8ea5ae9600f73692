"""
Retry with exponential backoff for notification sink writes
"""
import asyncio
import logging
from functools import wraps
from typing import Any, Awaitable, Callable, TypeVar

from foodcourt.repositories.exceptions import StoreUnavailableError


logger = logging.getLogger(__name__)

T = TypeVar("T")

# Transient failures worth another attempt
RETRYABLE_EXCEPTIONS: tuple[type[BaseException], ...] = (
    StoreUnavailableError,  # Sink storage went away
    ConnectionError,  # Network hiccup towards a remote sink
    TimeoutError,  # Sink did not answer in time
)


class RetryExhaustedError(Exception):
    """All attempts failed with retryable errors"""

    def __init__(self, func_name: str, attempts: int, last_exception: BaseException):
        self.func_name = func_name
        self.attempts = attempts
        self.last_exception = last_exception
        super().__init__(f"{func_name}: all {attempts} attempts failed: {last_exception}")


def compute_backoff(
    attempt: int, base_delay: float, max_delay: float, exponential_base: float = 2.0
) -> float:
    """
    Delay before the next attempt

    Args:
        attempt: Number of the attempt that just failed (1-based)
        base_delay: Delay after the first failure
        max_delay: Upper bound
        exponential_base: Growth factor

    Returns:
        Seconds to wait
    """
    return min(base_delay * (exponential_base ** (attempt - 1)), max_delay)


def retry_async(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: tuple[type[BaseException], ...] = RETRYABLE_EXCEPTIONS,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Decorator retrying an async call with exponential backoff

    Non-retryable errors propagate immediately. When every attempt fails
    with a retryable error, RetryExhaustedError is raised.

    Args:
        max_attempts: Maximum number of attempts
        base_delay: Base delay between attempts (seconds)
        max_delay: Maximum delay between attempts (seconds)
        exponential_base: Base of the exponential growth
        exceptions: Exceptions that trigger a retry

    Returns:
        Decorator

    Example:
        @retry_async(max_attempts=5)
        async def write(sink, notification):
            return await sink.write(notification)
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            last_exception: BaseException | None = None

            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)

                except exceptions as e:
                    last_exception = e
                    logger.warning(
                        "%s: %s occurred. Attempt %d/%d. Error: %s",
                        func.__name__,
                        type(e).__name__,
                        attempt,
                        max_attempts,
                        str(e),
                    )

                    if attempt < max_attempts:
                        delay = compute_backoff(attempt, base_delay, max_delay, exponential_base)
                        logger.info("Retrying in %.2f seconds...", delay)
                        await asyncio.sleep(delay)

            logger.error(
                "%s: Max attempts reached. Giving up. Last error: %s",
                func.__name__,
                str(last_exception),
            )
            raise RetryExhaustedError(func.__name__, max_attempts, last_exception)

        return wrapper

    return decorator
