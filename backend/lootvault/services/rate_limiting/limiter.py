"""
Sliding-window rate limiter for outbound requests.
"""

import asyncio
import time
from collections import defaultdict, deque
from contextlib import asynccontextmanager


class SlidingWindowLimiter:
    """
    Allows at most max_requests per window_sec for each key.

    Usage:
        limiter = SlidingWindowLimiter(max_requests=5, window_sec=1.0)
        async with limiter.acquire("oracle"):
            ...
    """

    def __init__(self, max_requests: int, window_sec: float = 1.0):
        if max_requests <= 0:
            raise ValueError("max_requests must be > 0")
        self.max_requests = max_requests
        self.window_sec = window_sec
        self._sent: dict[str, deque[float]] = defaultdict(deque)
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def wait(self, key: str = "default") -> None:
        """Block until a request under key fits in the window, then count it."""
        async with self._locks[key]:
            sent = self._sent[key]
            while True:
                now = time.monotonic()
                while sent and sent[0] <= now - self.window_sec:
                    sent.popleft()
                if len(sent) < self.max_requests:
                    sent.append(now)
                    return
                await asyncio.sleep(sent[0] + self.window_sec - now)

    @asynccontextmanager
    async def acquire(self, key: str = "default"):
        await self.wait(key)
        yield self


_limiters: dict[str, SlidingWindowLimiter] = {}


def get_rate_limiter(name: str, max_requests: int, window_sec: float = 1.0) -> SlidingWindowLimiter:
    """Get or create a named limiter."""
    if name not in _limiters:
        _limiters[name] = SlidingWindowLimiter(max_requests, window_sec)
    return _limiters[name]
