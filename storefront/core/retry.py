"""Retry logic with exponential backoff for commerce backend reads."""
from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from storefront.core.exceptions import NetworkError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def async_retry(
    max_attempts: int = 3,
    initial_delay: float = 0.2,
    max_delay: float = 5.0,
    exponential_base: float = 2.0,
    exceptions: tuple = (NetworkError,),
    sleep: Callable[[float], Awaitable[Any]] | None = None,
):
    """Retry decorator with exponential backoff for idempotent coroutines.

    Args:
        max_attempts: Maximum number of attempts (the first call included)
        initial_delay: Initial delay in seconds
        max_delay: Maximum delay between retries
        exponential_base: Base for exponential backoff calculation
        exceptions: Tuple of exceptions to catch and retry
        sleep: Coroutine used to wait between attempts (asyncio.sleep by default)

    Example:
        @async_retry(max_attempts=3)
        async def retrieve_cart(cart_id):
            return await client.get(f"/store/carts/{cart_id}")
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            delay = initial_delay
            last_exception: BaseException | None = None
            waiter = sleep or asyncio.sleep

            for attempt in range(max(1, max_attempts)):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e

                    if attempt < max_attempts - 1:
                        logger.warning(
                            f"{func.__name__} failed (attempt {attempt + 1}/{max_attempts}): {e}. "
                            f"Retrying in {delay:.2f}s..."
                        )
                        await waiter(delay)
                        delay = min(delay * exponential_base, max_delay)
                    else:
                        logger.error(f"{func.__name__} failed after {max_attempts} attempts: {e}")

            # All attempts exhausted
            raise last_exception

        return wrapper

    return decorator
