"""
Retry with exponential backoff for transient oracle failures.
"""

import asyncio
import logging
from functools import wraps
from typing import Callable, TypeVar

import aiohttp

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError)


def _is_permanent(exc: BaseException) -> bool:
    # 4xx other than 429 will not get better on retry
    return (
        isinstance(exc, aiohttp.ClientResponseError)
        and 400 <= exc.status < 500
        and exc.status != 429
    )


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    retry_on: tuple = TRANSIENT_ERRORS,
):
    """
    Decorator for async callables: retry on transient errors, doubling the
    delay each attempt up to max_delay. The last error is re-raised.
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except retry_on as exc:
                    if _is_permanent(exc) or attempt >= max_retries:
                        logger.warning(
                            "%s: giving up after %d attempt(s): %s",
                            func.__qualname__,
                            attempt + 1,
                            exc,
                        )
                        raise
                    delay = min(base_delay * (2 ** attempt), max_delay)
                    attempt += 1
                    logger.debug(
                        "%s: attempt %d/%d failed (%s), retrying in %.1fs",
                        func.__qualname__,
                        attempt,
                        max_retries + 1,
                        type(exc).__name__,
                        delay,
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
