from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from lootvault.models.base import Base


class OpenRequest(Base):
    """
    An open attempt that passed validation.

    Status transitions:
      requested  → fulfilled   randomness delivered, reward transferred
      requested  → failed      randomness delivered, transfer reverted
      requested  → expired     no randomness within the timeout, payment refunded
      failed     → fulfilled   owner retry after restocking
    """

    __tablename__ = "open_requests"

    request_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    box_id: Mapped[int] = mapped_column(Integer, ForeignKey("loot_boxes.id"), index=True)
    caller: Mapped[str] = mapped_column(String(100), index=True)
    payment: Mapped[Decimal] = mapped_column(Numeric(38, 9))
    status: Mapped[str] = mapped_column(String(20), default="requested")

    # uint256-sized values do not fit BIGINT, stored as decimal text
    random_value: Mapped[str | None] = mapped_column(String(80), nullable=True)
    reward_position: Mapped[int | None] = mapped_column(Integer, nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)

    requested_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, server_default="now()"
    )
    fulfilled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_open_requests_status_requested_at", "status", "requested_at"),
    )


class UserOpenCount(Base):
    __tablename__ = "user_open_counts"

    box_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("loot_boxes.id"), primary_key=True
    )
    user_address: Mapped[str] = mapped_column(String(100), primary_key=True)
    count: Mapped[int] = mapped_column(Integer, default=0)
