import time
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from lootvault.services.rate_limiting import SlidingWindowLimiter, get_rate_limiter, retry_with_backoff


async def test_limiter_blocks_until_window_frees():
    limiter = SlidingWindowLimiter(max_requests=2, window_sec=0.2)
    started = time.monotonic()
    await limiter.wait("k")
    await limiter.wait("k")
    assert time.monotonic() - started < 0.15
    await limiter.wait("k")
    assert time.monotonic() - started >= 0.19
    # Other keys have their own window
    await limiter.wait("other")


def test_limiter_rejects_zero_budget():
    with pytest.raises(ValueError):
        SlidingWindowLimiter(max_requests=0)


def test_get_rate_limiter_is_shared_by_name():
    assert get_rate_limiter("test-shared", 3) is get_rate_limiter("test-shared", 3)


async def test_retry_recovers_from_transient_errors():
    calls = AsyncMock(side_effect=[aiohttp.ClientConnectionError(), "ok"])

    @retry_with_backoff(max_retries=2, base_delay=0)
    async def flaky():
        return await calls()

    assert await flaky() == "ok"
    assert calls.await_count == 2


async def test_retry_gives_up_on_client_errors():
    error = aiohttp.ClientResponseError(request_info=MagicMock(), history=(), status=400)
    calls = AsyncMock(side_effect=error)

    @retry_with_backoff(max_retries=3, base_delay=0)
    async def bad_request():
        return await calls()

    with pytest.raises(aiohttp.ClientResponseError):
        await bad_request()
    assert calls.await_count == 1
