"""
Catalog service: loot box definitions and their reward tables.

Boxes get sequential ids starting at 0 and are never deleted. Reward tables
are append-only: a reward's position is the order in which it was added.
All mutations are owner-only and record an event carrying the fields an
indexer needs to rebuild the catalog.
"""

import asyncio
import logging
import weakref
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from lootvault.models.loot_box import LootBox
from lootvault.models.open_request import UserOpenCount
from lootvault.models.reward import LootBoxReward
from lootvault.services.access import normalize_address, require_owner
from lootvault.services.custody import TOKEN_TYPES
from lootvault.services.errors import InvalidBoxId, InvalidWeight
from lootvault.services.events import (
    LOOT_BOX_CREATED,
    LOOT_BOX_UPDATED,
    REWARD_ADDED,
    EventPublisher,
    record_event,
)

logger = logging.getLogger(__name__)

BOX_ID_ADVISORY_LOCK = 0x4C4F4F54

_create_locks = weakref.WeakKeyDictionary()


def _create_lock() -> asyncio.Lock:
    """Per-loop lock: box ids are max(id) + 1, so allocation and insert must not interleave."""
    loop = asyncio.get_running_loop()
    lock = _create_locks.get(loop)
    if lock is None:
        lock = _create_locks[loop] = asyncio.Lock()
    return lock


async def get_box(
    session: AsyncSession, box_id: int, for_update: bool = False
) -> LootBox:
    """Load a box or raise InvalidBoxId."""
    stmt = select(LootBox).where(LootBox.id == box_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(stmt)
    box = result.scalar_one_or_none()
    if box is None:
        raise InvalidBoxId(box_id)
    return box


async def create_loot_box(
    session: AsyncSession,
    caller: str,
    name: str,
    description: str,
    price: Decimal,
    max_supply: int,
) -> LootBox:
    """Create a new active box. max_supply == 0 means unlimited."""
    require_owner(caller)

    async with _create_lock():
        if session.get_bind().dialect.name == "postgresql":
            # Other processes allocate from the same table
            await session.execute(
                text("SELECT pg_advisory_xact_lock(:key)"), {"key": BOX_ID_ADVISORY_LOCK}
            )
        result = await session.execute(select(func.max(LootBox.id)))
        last_id = result.scalar_one_or_none()
        box_id = 0 if last_id is None else last_id + 1

        box = LootBox(
            id=box_id,
            name=name,
            description=description,
            price=Decimal(price),
            max_supply=max_supply,
            total_opened=0,
            reserved_count=0,
            is_active=True,
            rewards=[],
        )
        session.add(box)
        event = record_event(
            session,
            LOOT_BOX_CREATED,
            box_id,
            name=name,
            price=box.price,
            max_supply=max_supply,
        )
        await session.commit()
    await EventPublisher.publish([event])

    logger.info("Loot box created: #%d %r (price=%s, max_supply=%d)", box_id, name, price, max_supply)
    return box


async def add_reward(
    session: AsyncSession,
    caller: str,
    box_id: int,
    token_type: str,
    token_address: str,
    token_id: int,
    amount: Decimal,
    weight: int,
) -> LootBoxReward:
    """Append a reward to a box's table."""
    require_owner(caller)
    box = await get_box(session, box_id, for_update=True)

    if weight <= 0:
        raise InvalidWeight(weight)
    if token_type not in TOKEN_TYPES:
        raise ValueError(f"Unknown token type: {token_type}")

    if token_type == "fungible":
        token_id = 0
    elif token_type == "unique":
        amount = Decimal("1")

    reward = LootBoxReward(
        position=len(box.rewards),
        token_type=token_type,
        token_address=token_address,
        token_id=token_id,
        amount=Decimal(amount),
        weight=weight,
    )
    box.rewards.append(reward)
    event = record_event(
        session,
        REWARD_ADDED,
        box_id,
        token_type=token_type,
        token_address=token_address,
        token_id=token_id,
        amount=reward.amount,
        weight=weight,
    )
    await session.commit()
    await EventPublisher.publish([event])

    logger.info(
        "Reward added to box #%d at position %d: %s %s#%s x%s (weight=%d)",
        box_id,
        reward.position,
        token_type,
        token_address,
        token_id,
        reward.amount,
        weight,
    )
    return reward


async def _record_update(session: AsyncSession, box: LootBox) -> None:
    event = record_event(
        session,
        LOOT_BOX_UPDATED,
        box.id,
        name=box.name,
        price=box.price,
        max_supply=box.max_supply,
        is_active=box.is_active,
    )
    await session.commit()
    await EventPublisher.publish([event])


async def update_price(
    session: AsyncSession, caller: str, box_id: int, new_price: Decimal
) -> LootBox:
    require_owner(caller)
    box = await get_box(session, box_id, for_update=True)
    box.price = Decimal(new_price)
    await _record_update(session, box)
    logger.info("Loot box #%d price set to %s", box_id, new_price)
    return box


async def set_active(
    session: AsyncSession, caller: str, box_id: int, active: bool
) -> LootBox:
    require_owner(caller)
    box = await get_box(session, box_id, for_update=True)
    box.is_active = active
    await _record_update(session, box)
    logger.info("Loot box #%d %s", box_id, "activated" if active else "deactivated")
    return box


async def get_config(session: AsyncSession, box_id: int) -> LootBox:
    return await get_box(session, box_id)


async def get_rewards(session: AsyncSession, box_id: int) -> list[LootBoxReward]:
    box = await get_box(session, box_id)
    return list(box.rewards)


async def get_reward(
    session: AsyncSession, box_id: int, index: int
) -> Optional[LootBoxReward]:
    """Reward at a position, or None when the index is out of range."""
    rewards = await get_rewards(session, box_id)
    if 0 <= index < len(rewards):
        return rewards[index]
    return None


async def get_total_weight(session: AsyncSession, box_id: int) -> int:
    box = await get_box(session, box_id)
    return box.total_weight


async def list_loot_boxes(session: AsyncSession, active_only: bool = False) -> list[LootBox]:
    stmt = select(LootBox).order_by(LootBox.id)
    if active_only:
        stmt = stmt.where(LootBox.is_active.is_(True))
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_user_opened_count(session: AsyncSession, box_id: int, user: str) -> int:
    """Successful opens of one box by one user."""
    await get_box(session, box_id)
    result = await session.execute(
        select(UserOpenCount.count).where(
            UserOpenCount.box_id == box_id,
            UserOpenCount.user_address == normalize_address(user),
        )
    )
    return result.scalar_one_or_none() or 0
