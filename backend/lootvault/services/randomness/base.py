"""
Base class for randomness sources.

Randomness is two-phase: request_randomness() returns a request id right
away, and the value arrives later through the callback bound with bind().
Deliveries are matched to requests by id only, never by arrival order.
"""

import hashlib
import hmac
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional

from lootvault.core.config import settings
from lootvault.services.errors import InvalidSignature

logger = logging.getLogger(__name__)

RandomnessCallback = Callable[[str, int], Awaitable[None]]


class RandomnessProvider(ABC):
    """Abstract base for all randomness sources."""

    name: str = ""

    def __init__(self, secret: Optional[str] = None):
        self._callback: Optional[RandomnessCallback] = None
        self.secret = secret if secret is not None else settings.RANDOMNESS_ORACLE_SECRET

    def bind(self, callback: RandomnessCallback) -> None:
        """Register the consumer that receives (request_id, random_value)."""
        self._callback = callback

    @abstractmethod
    async def request_randomness(self) -> str:
        """Ask for one random word. Returns the request id."""
        ...

    async def deliver(self, request_id: str, random_value: int) -> None:
        if self._callback is None:
            raise RuntimeError(f"{self.name} randomness provider has no consumer bound")
        logger.debug("%s: delivering randomness for %s", self.name, request_id)
        await self._callback(request_id, random_value)

    def sign(self, request_id: str, random_value: int) -> str:
        """HMAC-SHA256 over "request_id:random_value" with the shared secret."""
        return hmac.new(
            self.secret.encode(),
            f"{request_id}:{random_value}".encode(),
            hashlib.sha256,
        ).hexdigest()

    def verify_signature(self, request_id: str, random_value: int, signature: str) -> bool:
        if not self.secret:
            return False
        return hmac.compare_digest(self.sign(request_id, random_value), signature or "")

    async def handle_callback(self, request_id: str, random_value: int, signature: str) -> None:
        """Entry point for deliveries arriving over HTTP."""
        if not self.verify_signature(request_id, random_value, signature):
            logger.warning("%s: rejected callback for %s (bad signature)", self.name, request_id)
            raise InvalidSignature("Invalid randomness callback signature")
        await self.deliver(request_id, random_value)

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass
