import itertools
import logging
from collections import deque

from lootvault.services.randomness.base import RandomnessProvider

logger = logging.getLogger(__name__)

# Most recent request ids kept for inspection
MAX_TRACKED_REQUESTS = 1000


class ManualRandomnessProvider(RandomnessProvider):
    """
    Records requests and delivers only when told to.

    Used by tests and by operators replaying oracle responses by hand.
    Only the latest MAX_TRACKED_REQUESTS ids are kept in `requested`.
    """

    name = "manual"

    def __init__(self, secret=None, max_tracked: int = MAX_TRACKED_REQUESTS):
        super().__init__(secret=secret)
        self.requested: deque[str] = deque(maxlen=max_tracked)
        self._ids = itertools.count(1)

    async def request_randomness(self) -> str:
        request_id = f"manual-{next(self._ids)}"
        self.requested.append(request_id)
        return request_id

    async def fulfill(self, request_id: str, random_value: int) -> None:
        await self.deliver(request_id, random_value)
