from decimal import Decimal

from sqlalchemy import BigInteger, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from lootvault.models.base import Base


class AssetHolding(Base):
    """
    Custody ledger row: how much of one asset one holder owns.

    token_type is fungible / unique / semi_fungible / native. For fungible and
    native assets token_id is always 0; a unique item is a row with amount 1.
    """

    __tablename__ = "asset_holdings"

    id: Mapped[int] = mapped_column(primary_key=True)
    holder: Mapped[str] = mapped_column(String(100), index=True)
    token_type: Mapped[str] = mapped_column(String(20))
    token_address: Mapped[str] = mapped_column(String(100))
    token_id: Mapped[int] = mapped_column(BigInteger, default=0)
    amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"))

    __table_args__ = (
        UniqueConstraint(
            "holder", "token_address", "token_id", name="uq_asset_holdings_holder_asset"
        ),
    )
