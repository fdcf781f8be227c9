"""
Retry utilities.

Async retry decorator with exponential backoff.
"""

import asyncio
import functools
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from shared.errors import RetryableError
from shared.logging import get_logger

logger = get_logger("retry")

T = TypeVar("T")


def retry_with_backoff(
    max_attempts: int = 3,
    base_delay: float = 2,
    retry_on: Tuple[Type[BaseException], ...] = (RetryableError,)
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Retry an async function with exponential backoff.

    The delay before attempt N+1 is base_delay * 2**(N-1). Exceptions not
    listed in retry_on propagate immediately; the last retryable exception
    is re-raised once attempts are exhausted.

    Args:
        max_attempts: Total number of attempts (default: 3)
        base_delay: Delay in seconds before the first retry (default: 2)
        retry_on: Exception types that trigger a retry

    Returns:
        Decorator
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except retry_on as e:
                    if attempt == max_attempts:
                        logger.warning(
                            f"{func.__name__} failed after {attempt} attempts: {str(e)}",
                            extra={"function": func.__name__, "attempts": attempt}
                        )
                        raise
                    delay = base_delay * (2 ** (attempt - 1))
                    logger.debug(
                        f"{func.__name__} attempt {attempt} failed, retrying in {delay}s",
                        extra={"function": func.__name__, "attempt": attempt, "delay": delay}
                    )
                    await asyncio.sleep(delay)
            raise RuntimeError("unreachable")  # pragma: no cover

        return wrapper

    return decorator
