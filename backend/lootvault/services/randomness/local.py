"""
Provably fair local randomness.

    server_seed_hash = SHA-256(server_seed)          published up front
    random_value     = HMAC-SHA256(server_seed, request_id) as a 256-bit int

Values are delivered from a background task after a short delay, mimicking
an asynchronous oracle. Once the server seed is revealed anyone can re-derive
every delivered value with verify().
"""

import asyncio
import hashlib
import hmac
import logging
import os
import uuid
from typing import Optional

from lootvault.core.config import settings
from lootvault.services.errors import LootBoxError
from lootvault.services.randomness.base import RandomnessProvider

logger = logging.getLogger(__name__)


class LocalRandomnessProvider(RandomnessProvider):
    name = "local"

    def __init__(
        self,
        server_seed: Optional[str] = None,
        delay_sec: Optional[float] = None,
        secret: Optional[str] = None,
    ):
        super().__init__(secret=secret)
        self.server_seed = server_seed or settings.RANDOMNESS_SERVER_SEED or os.urandom(32).hex()
        self.server_seed_hash = hashlib.sha256(self.server_seed.encode()).hexdigest()
        self.delay_sec = settings.RANDOMNESS_LOCAL_DELAY_SEC if delay_sec is None else delay_sec
        self._tasks: set[asyncio.Task] = set()

    def derive(self, request_id: str) -> int:
        digest = hmac.new(
            self.server_seed.encode(),
            request_id.encode(),
            hashlib.sha256,
        ).hexdigest()
        return int(digest, 16)

    def verify(self, request_id: str, random_value: int) -> bool:
        return self.derive(request_id) == int(random_value)

    async def request_randomness(self) -> str:
        request_id = uuid.uuid4().hex
        task = asyncio.create_task(self._deliver_later(request_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug("local: randomness requested (%s)", request_id)
        return request_id

    async def _deliver_later(self, request_id: str) -> None:
        await asyncio.sleep(self.delay_sec)
        try:
            await self.deliver(request_id, self.derive(request_id))
        except LootBoxError as e:
            logger.error("local: fulfillment of %s failed: %s", request_id, e)
        except Exception:
            logger.exception("local: delivery of %s crashed", request_id)

    async def stop(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
