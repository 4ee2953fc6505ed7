import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import select

from conftest import ALICE, OWNER
from lootvault.models.event import LootBoxEvent
from lootvault.services import catalog
from lootvault.services.errors import InvalidBoxId, InvalidWeight, Unauthorized


async def _events(session_factory, event_type):
    async with session_factory() as session:
        result = await session.execute(
            select(LootBoxEvent).where(LootBoxEvent.event_type == event_type).order_by(LootBoxEvent.id)
        )
        return list(result.scalars().all())


async def test_create_loot_box_assigns_sequential_ids(session_factory):
    async with session_factory() as session:
        first = await catalog.create_loot_box(session, OWNER, "Bronze", "", Decimal("1"), 10)
        second = await catalog.create_loot_box(session, OWNER, "Silver", "", Decimal("2"), 0)

    assert (first.id, second.id) == (0, 1)
    assert first.is_active is True
    assert first.total_opened == 0

    events = await _events(session_factory, "LootBoxCreated")
    assert [e.box_id for e in events] == [0, 1]
    assert events[0].payload["name"] == "Bronze"
    assert events[0].payload["max_supply"] == 10


async def test_create_loot_box_requires_owner(session_factory):
    async with session_factory() as session:
        with pytest.raises(Unauthorized):
            await catalog.create_loot_box(session, ALICE, "Bronze", "", Decimal("1"), 10)
        assert await catalog.list_loot_boxes(session) == []


async def test_owner_check_ignores_case_and_whitespace(session_factory):
    async with session_factory() as session:
        box = await catalog.create_loot_box(session, "  OWNER ", "Bronze", "", Decimal("1"), 0)
    assert box.id == 0


async def test_add_reward_appends_in_order(make_box, session_factory):
    box_id = await make_box()
    async with session_factory() as session:
        await catalog.add_reward(session, OWNER, box_id, "fungible", "gold", 99, Decimal("100"), 30)
        await catalog.add_reward(session, OWNER, box_id, "unique", "relic", 7, Decimal("3"), 50)
        await catalog.add_reward(session, OWNER, box_id, "semi_fungible", "potion", 2, Decimal("5"), 20)

    async with session_factory() as session:
        rewards = await catalog.get_rewards(session, box_id)
        total = await catalog.get_total_weight(session, box_id)

    assert [r.position for r in rewards] == [0, 1, 2]
    assert [r.token_address for r in rewards] == ["gold", "relic", "potion"]
    # fungible ignores token_id, unique is always a single item
    assert rewards[0].token_id == 0
    assert rewards[1].amount == Decimal("1")
    assert rewards[2].token_id == 2 and rewards[2].amount == Decimal("5")
    assert total == 100


async def test_add_reward_zero_weight_leaves_table_unchanged(make_box, session_factory):
    box_id = await make_box(rewards=[("fungible", "gold", 0, "10", 5)])

    async with session_factory() as session:
        with pytest.raises(InvalidWeight):
            await catalog.add_reward(session, OWNER, box_id, "fungible", "silver", 0, Decimal("1"), 0)

    async with session_factory() as session:
        rewards = await catalog.get_rewards(session, box_id)
    assert [r.token_address for r in rewards] == ["gold"]
    assert len(await _events(session_factory, "RewardAdded")) == 1


async def test_add_reward_checks_owner_then_box(session_factory):
    async with session_factory() as session:
        with pytest.raises(Unauthorized):
            await catalog.add_reward(session, ALICE, 0, "fungible", "gold", 0, Decimal("1"), 1)
        with pytest.raises(InvalidBoxId):
            await catalog.add_reward(session, OWNER, 0, "fungible", "gold", 0, Decimal("1"), 1)


async def test_unknown_box_reads_raise(session_factory):
    async with session_factory() as session:
        with pytest.raises(InvalidBoxId):
            await catalog.get_config(session, 42)
        with pytest.raises(InvalidBoxId):
            await catalog.get_rewards(session, 42)
        with pytest.raises(InvalidBoxId):
            await catalog.get_user_opened_count(session, 42, ALICE)


async def test_get_reward_out_of_range_is_none(make_box, session_factory):
    box_id = await make_box(rewards=[("fungible", "gold", 0, "10", 5)])
    async with session_factory() as session:
        assert (await catalog.get_reward(session, box_id, 0)).token_address == "gold"
        assert await catalog.get_reward(session, box_id, 1) is None


async def test_update_price_and_set_active(make_box, session_factory):
    box_id = await make_box(price="1")
    async with session_factory() as session:
        await catalog.update_price(session, OWNER, box_id, Decimal("2.5"))
        await catalog.set_active(session, OWNER, box_id, False)

    async with session_factory() as session:
        box = await catalog.get_config(session, box_id)
        active = await catalog.list_loot_boxes(session, active_only=True)
    assert box.price == Decimal("2.5")
    assert box.is_active is False
    assert active == []

    updates = await _events(session_factory, "LootBoxUpdated")
    assert len(updates) == 2
    assert Decimal(updates[0].payload["price"]) == Decimal("2.5")
    assert updates[1].payload["is_active"] is False


async def test_mutations_require_owner(make_box, session_factory):
    box_id = await make_box()
    async with session_factory() as session:
        with pytest.raises(Unauthorized):
            await catalog.update_price(session, ALICE, box_id, Decimal("0"))
        with pytest.raises(Unauthorized):
            await catalog.set_active(session, ALICE, box_id, False)


async def test_user_opened_count_defaults_to_zero(make_box, session_factory):
    box_id = await make_box()
    async with session_factory() as session:
        assert await catalog.get_user_opened_count(session, box_id, ALICE) == 0


async def test_concurrent_creates_get_distinct_sequential_ids(session_factory):
    async def create(n):
        async with session_factory() as session:
            box = await catalog.create_loot_box(session, OWNER, f"Box {n}", "", Decimal("1"), 0)
        return box.id

    ids = await asyncio.gather(*(create(n) for n in range(5)))
    assert sorted(ids) == [0, 1, 2, 3, 4]

    async with session_factory() as session:
        assert [b.id for b in await catalog.list_loot_boxes(session)] == [0, 1, 2, 3, 4]
