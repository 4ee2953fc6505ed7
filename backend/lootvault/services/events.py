"""
Structured loot box events.

Each state transition writes a LootBoxEvent row in the same transaction as
the change itself, so a rolled-back fulfillment leaves no event behind.
After commit the events are published to a Redis channel for indexers;
publishing is best-effort and never fails the operation.
"""

import json
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import redis.asyncio as redis
from sqlalchemy.ext.asyncio import AsyncSession

from lootvault.core.config import settings
from lootvault.models.event import LootBoxEvent

logger = logging.getLogger(__name__)

LOOT_BOX_CREATED = "LootBoxCreated"
LOOT_BOX_UPDATED = "LootBoxUpdated"
REWARD_ADDED = "RewardAdded"
RANDOMNESS_REQUESTED = "RandomnessRequested"
LOOT_BOX_OPENED = "LootBoxOpened"
FULFILLMENT_FAILED = "FulfillmentFailed"
REQUEST_EXPIRED = "RequestExpired"
ASSETS_WITHDRAWN = "AssetsWithdrawn"


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    return value


def record_event(
    session: AsyncSession, event_type: str, box_id: Optional[int] = None, **fields
) -> LootBoxEvent:
    """Stage an event row on the session; it is persisted with the next commit."""
    event = LootBoxEvent(
        event_type=event_type,
        box_id=box_id,
        payload=_jsonable({"box_id": box_id, **fields}),
        created_at=datetime.utcnow(),
    )
    session.add(event)
    return event


class EventPublisher:
    """Redis pub/sub publisher for committed events."""

    _redis: Optional[redis.Redis] = None

    @classmethod
    async def get_redis(cls) -> redis.Redis:
        """Get or create Redis connection."""
        if cls._redis is None:
            cls._redis = redis.from_url(
                settings.redis_url,
                decode_responses=True,
                socket_connect_timeout=5,
            )
        return cls._redis

    @classmethod
    async def close(cls):
        """Close Redis connection."""
        if cls._redis is not None:
            await cls._redis.close()
            cls._redis = None

    @classmethod
    async def publish(cls, events: list[LootBoxEvent]) -> int:
        """Publish committed events; returns how many were sent."""
        if not events or not settings.EVENTS_PUBLISH_ENABLED:
            return 0
        sent = 0
        try:
            r = await cls.get_redis()
            for event in events:
                message = json.dumps(
                    {
                        "id": event.id,
                        "event_type": event.event_type,
                        "created_at": _jsonable(event.created_at),
                        **event.payload,
                    }
                )
                await r.publish(settings.EVENTS_CHANNEL, message)
                sent += 1
        except Exception as e:
            logger.warning("Event publish failed after %d/%d: %s", sent, len(events), e)
        return sent

    @classmethod
    async def health_check(cls) -> bool:
        """Check if Redis is reachable."""
        try:
            r = await cls.get_redis()
            await r.ping()
            return True
        except Exception:
            return False
