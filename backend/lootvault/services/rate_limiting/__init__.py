"""
Rate limiting and retry helpers for outbound oracle calls.
"""

from lootvault.services.rate_limiting.limiter import SlidingWindowLimiter, get_rate_limiter
from lootvault.services.rate_limiting.retry import retry_with_backoff

__all__ = ["SlidingWindowLimiter", "get_rate_limiter", "retry_with_backoff"]
