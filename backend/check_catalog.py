"""Quick script to check loot box catalog contents and odds."""

import asyncio

from lootvault.core.database import async_session
from lootvault.services import catalog
from lootvault.services.selector import odds


async def main():
    async with async_session() as session:
        boxes = await catalog.list_loot_boxes(session)
        print(f"Total loot boxes: {len(boxes)}\n")

        for box in boxes:
            supply = "unlimited" if box.max_supply == 0 else box.max_supply
            state = "active" if box.is_active else "inactive"
            print(
                f"#{box.id} {box.name} [{state}] price={box.price} "
                f"opened={box.total_opened}/{supply} pending={box.reserved_count}"
            )
            chances = odds([r.weight for r in box.rewards])
            for reward, chance in zip(box.rewards, chances):
                print(
                    f"  - {reward.position}: {reward.token_type} {reward.token_address}"
                    f"#{reward.token_id} x{reward.amount} (weight {reward.weight}, {chance:.1%})"
                )


if __name__ == "__main__":
    asyncio.run(main())
