from lootvault.models.base import Base
from lootvault.models.loot_box import LootBox
from lootvault.models.reward import LootBoxReward
from lootvault.models.open_request import OpenRequest, UserOpenCount
from lootvault.models.holding import AssetHolding
from lootvault.models.event import LootBoxEvent

__all__ = [
    "Base",
    "LootBox",
    "LootBoxReward",
    "OpenRequest",
    "UserOpenCount",
    "AssetHolding",
    "LootBoxEvent",
]
