"""
Seed a demo loot box and stock the engine with its rewards.

Creates "Epic Treasure Chest" (price 0.01, max supply 100) with one reward of
each token type, then credits the engine holder with enough of every reward
for a full sell-out. Safe to re-run: a box with the same name is left alone.

Requires OWNER_ADDRESS to be set (catalog writes are owner-only).
"""

import asyncio
import logging
from decimal import Decimal

from sqlalchemy import select

from lootvault.core.config import settings
from lootvault.core.database import async_session
from lootvault.models.loot_box import LootBox
from lootvault.services import catalog
from lootvault.services.access import normalize_address
from lootvault.services.custody import custody

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_BOX = {
    "name": "Epic Treasure Chest",
    "description": "Contains epic rewards from the blockchain realm!",
    "price": Decimal("0.01"),
    "max_supply": 100,
}

# (token_type, token_address, token_id, amount, weight)
DEMO_REWARDS = [
    ("fungible", "demo-gold", 0, Decimal("100"), 50),
    ("unique", "demo-relics", 1, Decimal("1"), 10),
    ("semi_fungible", "demo-potions", 1, Decimal("5"), 40),
]


async def seed_loot_boxes():
    owner = settings.OWNER_ADDRESS
    if not owner:
        logger.error("OWNER_ADDRESS is not set; nothing seeded")
        return

    async with async_session() as session:
        result = await session.execute(select(LootBox).where(LootBox.name == DEMO_BOX["name"]))
        if result.scalar_one_or_none() is not None:
            logger.info("Demo box already present")
            return

        box = await catalog.create_loot_box(session, owner, **DEMO_BOX)
        for token_type, token_address, token_id, amount, weight in DEMO_REWARDS:
            await catalog.add_reward(
                session, owner, box.id, token_type, token_address, token_id, amount, weight
            )

        # Stock: a unique item can only be held once, the rest scale with supply
        for token_type, token_address, token_id, amount, _ in DEMO_REWARDS:
            stock = amount if token_type == "unique" else amount * box.max_supply
            await custody.credit(
                session, normalize_address(settings.ENGINE_ADDRESS), token_type, token_address, token_id, stock
            )
        await session.commit()

    logger.info("Seeded loot box #%d with %d rewards", box.id, len(DEMO_REWARDS))


if __name__ == "__main__":
    asyncio.run(seed_loot_boxes())
