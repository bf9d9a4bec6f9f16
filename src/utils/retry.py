"""
Bounded retries with exponential backoff and jitter for upstream calls.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import random
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from src.errors import RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float, jitter: float = 0.5) -> float:
    """Exponential delay for ``attempt`` (0-based) spread by +/- ``jitter``."""

    delay = base_delay * (2**attempt)
    return max(0.0, delay * (1 + random.uniform(-jitter, jitter)))


def async_retry(
    max_retries: int | Callable[[], int],
    base_delay: float | Callable[[], float],
    exceptions: tuple[type[BaseException], ...] = (Exception,),
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Retry decorator for async functions.

    Args:
        max_retries: Retry attempts after the first call (or a callable
            returning it, so settings can change at runtime)
        base_delay: Delay in seconds before the first retry
        exceptions: Exceptions that trigger a retry
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            retries = max_retries() if callable(max_retries) else max_retries
            delay_base = base_delay() if callable(base_delay) else base_delay

            for attempt in range(retries + 1):
                try:
                    return await func(*args, **kwargs)
                except exceptions as exc:
                    if attempt == retries:
                        logger.error(
                            "Max retries (%d) exhausted for %s: %s",
                            retries,
                            func.__name__,
                            exc,
                        )
                        raise RetryExhaustedError(
                            f"{func.__name__} failed after {retries} retries: {exc}"
                        ) from exc

                    delay = backoff_delay(attempt, delay_base)
                    logger.warning(
                        "Attempt %d/%d failed for %s, retrying in %.2fs: %s",
                        attempt + 1,
                        retries + 1,
                        func.__name__,
                        delay,
                        exc,
                    )
                    await asyncio.sleep(delay)

            raise RetryExhaustedError(f"{func.__name__} was never attempted")

        return wrapper

    return decorator
