import json
from datetime import datetime
from decimal import Decimal
from unittest.mock import AsyncMock, patch

from lootvault.core.config import settings
from lootvault.models.event import LootBoxEvent
from lootvault.services.events import EventPublisher, _jsonable


def _event(**payload):
    return LootBoxEvent(
        id=1,
        event_type="LootBoxOpened",
        box_id=0,
        payload={"box_id": 0, **payload},
        created_at=datetime(2026, 1, 1, 12, 0, 0),
    )


def test_jsonable_converts_decimals_and_dates():
    assert _jsonable({"amounts": [Decimal("1.5")], "at": datetime(2026, 1, 1)}) == {
        "amounts": ["1.5"],
        "at": "2026-01-01T00:00:00",
    }


async def test_publish_sends_to_channel(monkeypatch):
    monkeypatch.setattr(settings, "EVENTS_PUBLISH_ENABLED", True)
    redis_mock = AsyncMock()

    with patch.object(EventPublisher, "get_redis", AsyncMock(return_value=redis_mock)):
        sent = await EventPublisher.publish([_event(caller="alice", amounts=["100"])])

    assert sent == 1
    channel, message = redis_mock.publish.call_args.args
    assert channel == settings.EVENTS_CHANNEL
    body = json.loads(message)
    assert body["event_type"] == "LootBoxOpened"
    assert body["caller"] == "alice"
    assert body["created_at"] == "2026-01-01T12:00:00"


async def test_publish_failure_is_swallowed(monkeypatch):
    monkeypatch.setattr(settings, "EVENTS_PUBLISH_ENABLED", True)
    redis_mock = AsyncMock()
    redis_mock.publish.side_effect = ConnectionError("redis down")

    with patch.object(EventPublisher, "get_redis", AsyncMock(return_value=redis_mock)):
        sent = await EventPublisher.publish([_event(), _event()])

    assert sent == 0


async def test_publish_disabled():
    with patch.object(EventPublisher, "get_redis", AsyncMock()) as get_redis:
        assert await EventPublisher.publish([_event()]) == 0
    get_redis.assert_not_called()
