from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lootvault.models.base import Base


class LootBox(Base):
    """
    One catalog entry.

    Ids are assigned sequentially from 0 by the catalog service, never by the
    database. max_supply == 0 means the box can be opened without limit.
    reserved_count holds supply taken by requests still waiting for randomness.
    """

    __tablename__ = "loot_boxes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(100))
    description: Mapped[str] = mapped_column(Text, default="")
    price: Mapped[Decimal] = mapped_column(Numeric(38, 9))
    max_supply: Mapped[int] = mapped_column(Integer, default=0)
    total_opened: Mapped[int] = mapped_column(Integer, default=0)
    reserved_count: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, server_default="now()"
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, server_default="now()", onupdate=datetime.utcnow
    )

    rewards: Mapped[list["LootBoxReward"]] = relationship(
        back_populates="box",
        order_by="LootBoxReward.position",
        lazy="selectin",
    )

    @property
    def total_weight(self) -> int:
        return sum(r.weight for r in self.rewards)

    def has_supply(self) -> bool:
        if self.max_supply == 0:
            return True
        return self.total_opened + self.reserved_count < self.max_supply
