"""
Asset custody: who holds which reward tokens.

Three transfer protocols are supported, plus native currency:
  fungible     : interchangeable balance per token_address
  unique       : one-of-a-kind item identified by (token_address, token_id)
  semi_fungible: balance per (token_address, token_id)
  native       : payments collected by the engine

Every transfer either fully succeeds or raises TransferFailed before touching
any row, and all writes go through the caller's session, so a failure later
in the same transaction rolls the transfer back too.
"""

import logging
from abc import ABC, abstractmethod
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lootvault.models.holding import AssetHolding
from lootvault.services.errors import TransferFailed

logger = logging.getLogger(__name__)

NATIVE_ASSET = "native"

TOKEN_TYPES = ("fungible", "unique", "semi_fungible")


class AssetCustody(ABC):
    """Abstract custody backend used by the fulfillment engine."""

    @abstractmethod
    async def credit(
        self,
        session: AsyncSession,
        holder: str,
        token_type: str,
        token_address: str,
        token_id: int,
        amount: Decimal,
    ) -> None:
        """Add assets to a holder (deposit/mint from outside the system)."""
        ...

    @abstractmethod
    async def balance_of(
        self, session: AsyncSession, holder: str, token_address: str, token_id: int = 0
    ) -> Decimal:
        ...

    @abstractmethod
    async def transfer_fungible(
        self, session: AsyncSession, token_address: str, sender: str, recipient: str, amount: Decimal
    ) -> None:
        ...

    @abstractmethod
    async def transfer_unique(
        self, session: AsyncSession, token_address: str, token_id: int, sender: str, recipient: str
    ) -> None:
        ...

    @abstractmethod
    async def transfer_semi_fungible(
        self,
        session: AsyncSession,
        token_address: str,
        token_id: int,
        sender: str,
        recipient: str,
        amount: Decimal,
    ) -> None:
        ...

    @abstractmethod
    async def holding_type(
        self, session: AsyncSession, holder: str, token_address: str, token_id: int
    ) -> str | None:
        """Token type a holder keeps this asset under, None when never held."""
        ...

    async def transfer_native(
        self, session: AsyncSession, sender: str, recipient: str, amount: Decimal
    ) -> None:
        await self.transfer_fungible(session, NATIVE_ASSET, sender, recipient, amount)

    async def transfer(
        self,
        session: AsyncSession,
        token_type: str,
        token_address: str,
        token_id: int,
        sender: str,
        recipient: str,
        amount: Decimal,
    ) -> None:
        """Dispatch on token_type to the matching transfer protocol."""
        if token_type == "fungible":
            await self.transfer_fungible(session, token_address, sender, recipient, amount)
        elif token_type == "unique":
            await self.transfer_unique(session, token_address, token_id, sender, recipient)
        elif token_type == "semi_fungible":
            await self.transfer_semi_fungible(
                session, token_address, token_id, sender, recipient, amount
            )
        else:
            raise TransferFailed(f"Unsupported token type: {token_type}")


class LedgerCustody(AssetCustody):
    """Custody backed by the asset_holdings table."""

    async def _get_holding(
        self, session: AsyncSession, holder: str, token_address: str, token_id: int
    ) -> AssetHolding | None:
        result = await session.execute(
            select(AssetHolding)
            .where(
                AssetHolding.holder == holder,
                AssetHolding.token_address == token_address,
                AssetHolding.token_id == token_id,
            )
            .with_for_update()
        )
        return result.scalar_one_or_none()

    async def _add(
        self,
        session: AsyncSession,
        holder: str,
        token_type: str,
        token_address: str,
        token_id: int,
        amount: Decimal,
    ) -> None:
        holding = await self._get_holding(session, holder, token_address, token_id)
        if holding is None:
            holding = AssetHolding(
                holder=holder,
                token_type=token_type,
                token_address=token_address,
                token_id=token_id,
                amount=Decimal("0"),
            )
            session.add(holding)
        holding.amount = Decimal(holding.amount) + Decimal(amount)

    async def _take(
        self,
        session: AsyncSession,
        holder: str,
        token_type: str,
        token_address: str,
        token_id: int,
        amount: Decimal,
    ) -> None:
        holding = await self._get_holding(session, holder, token_address, token_id)
        available = Decimal(holding.amount) if holding is not None else Decimal("0")
        if holding is not None and holding.token_type != token_type:
            raise TransferFailed(
                f"{token_address}#{token_id} is held as {holding.token_type}, not {token_type}"
            )
        if available < amount:
            raise TransferFailed(
                f"{holder} holds {available} of {token_address}#{token_id}, needs {amount}"
            )
        holding.amount = available - Decimal(amount)

    async def credit(self, session, holder, token_type, token_address, token_id, amount):
        amount = Decimal(amount)
        if amount <= 0:
            raise ValueError("credit amount must be > 0")
        if token_type in ("fungible", NATIVE_ASSET):
            token_id = 0
        if token_type == "unique":
            if amount != 1:
                raise ValueError("a unique item is credited with amount 1")
            existing = await self._get_holding(session, holder, token_address, token_id)
            if existing is not None and existing.amount > 0:
                raise ValueError(f"{token_address}#{token_id} is already held by {holder}")
        await self._add(session, holder, token_type, token_address, token_id, amount)
        logger.debug("Credited %s %s#%s to %s", amount, token_address, token_id, holder)

    async def balance_of(self, session, holder, token_address, token_id=0):
        result = await session.execute(
            select(AssetHolding.amount).where(
                AssetHolding.holder == holder,
                AssetHolding.token_address == token_address,
                AssetHolding.token_id == token_id,
            )
        )
        amount = result.scalar_one_or_none()
        return Decimal(amount) if amount is not None else Decimal("0")

    async def transfer_fungible(self, session, token_address, sender, recipient, amount):
        amount = Decimal(amount)
        token_type = NATIVE_ASSET if token_address == NATIVE_ASSET else "fungible"
        await self._take(session, sender, token_type, token_address, 0, amount)
        await self._add(session, recipient, token_type, token_address, 0, amount)

    async def transfer_unique(self, session, token_address, token_id, sender, recipient):
        await self._take(session, sender, "unique", token_address, token_id, Decimal("1"))
        await self._add(session, recipient, "unique", token_address, token_id, Decimal("1"))

    async def transfer_semi_fungible(
        self, session, token_address, token_id, sender, recipient, amount
    ):
        amount = Decimal(amount)
        await self._take(session, sender, "semi_fungible", token_address, token_id, amount)
        await self._add(session, recipient, "semi_fungible", token_address, token_id, amount)

    async def holding_type(self, session, holder, token_address, token_id):
        holding = await self._get_holding(session, holder, token_address, token_id)
        return holding.token_type if holding is not None else None


custody = LedgerCustody()
