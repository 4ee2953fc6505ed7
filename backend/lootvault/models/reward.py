from decimal import Decimal

from sqlalchemy import BigInteger, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lootvault.models.base import Base


class LootBoxReward(Base):
    """
    One possible payout of a box. Append-only: position is the index of
    addition and never changes.
    """

    __tablename__ = "loot_box_rewards"

    id: Mapped[int] = mapped_column(primary_key=True)
    box_id: Mapped[int] = mapped_column(Integer, ForeignKey("loot_boxes.id"), index=True)
    position: Mapped[int] = mapped_column(Integer)
    token_type: Mapped[str] = mapped_column(String(20))  # fungible, unique, semi_fungible
    token_address: Mapped[str] = mapped_column(String(100))
    token_id: Mapped[int] = mapped_column(BigInteger, default=0)  # ignored for fungible
    amount: Mapped[Decimal] = mapped_column(Numeric(38, 9))
    weight: Mapped[int] = mapped_column(Integer)

    box: Mapped["LootBox"] = relationship(back_populates="rewards")

    __table_args__ = (
        UniqueConstraint("box_id", "position", name="uq_loot_box_rewards_box_position"),
    )
