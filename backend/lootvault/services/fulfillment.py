"""
Fulfillment engine: turns a payment into a reward.

Flow per open attempt:
  requested   open_box() validates the box, reserves one unit of supply,
              keeps the payment and asks the randomness source for a value.
              Nothing is paid out yet.
  fulfilled   on_randomness_ready() picks the reward, bumps counters and
              transfers the asset, all in one transaction.
  failed      the transfer was refused; everything above was rolled back,
              the reservation released, and the owner may retry later.
  expired     no randomness arrived in time; reservation released and the
              payment refunded.

Supply is reserved when the request is accepted, so any number of requests
may be pending at once without total_opened ever passing max_supply.
All transitions touching one box run under that box's lock.
"""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lootvault.core.config import settings
from lootvault.core.database import async_session
from lootvault.models.loot_box import LootBox
from lootvault.models.open_request import OpenRequest, UserOpenCount
from lootvault.services import catalog, selector
from lootvault.services.access import normalize_address, require_owner
from lootvault.services.custody import NATIVE_ASSET, AssetCustody, custody as default_custody
from lootvault.services.errors import (
    BoxInactive,
    InsufficientPayment,
    MissingCaller,
    NoRewardsAvailable,
    RequestNotFound,
    RequestNotRetryable,
    SupplyExhausted,
    TransferFailed,
)
from lootvault.services.events import (
    ASSETS_WITHDRAWN,
    FULFILLMENT_FAILED,
    LOOT_BOX_OPENED,
    RANDOMNESS_REQUESTED,
    REQUEST_EXPIRED,
    EventPublisher,
    record_event,
)
from lootvault.services.randomness import RandomnessProvider, build_randomness_provider

logger = logging.getLogger(__name__)


def check_can_open(box: LootBox, payment: Decimal) -> None:
    """Raise the first validation error that stops payment from opening box."""
    if not box.is_active:
        raise BoxInactive(f"Loot box {box.id} is not active")
    if payment < box.price:
        raise InsufficientPayment(f"Insufficient payment: {payment} < {box.price}")
    if not box.has_supply():
        raise SupplyExhausted(f"Max supply reached for loot box {box.id}")
    if not box.rewards or box.total_weight <= 0:
        raise NoRewardsAvailable("No rewards available")


class FulfillmentEngine:
    """
    Owns the pending-request lifecycle.

    The randomness provider is bound to on_randomness_ready() at construction;
    every delivery is matched to its request by id.
    """

    def __init__(
        self,
        randomness: RandomnessProvider,
        session_factory: Optional[async_sessionmaker] = None,
        custody: Optional[AssetCustody] = None,
    ):
        self.randomness = randomness
        self.session_factory = session_factory or async_session
        self.custody = custody or default_custody

        self._box_locks: dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)
        # One event per open_box() call between asking for randomness and commit
        self._opening: set[asyncio.Event] = set()

        randomness.bind(self.on_randomness_ready)

    @property
    def engine_address(self) -> str:
        return normalize_address(settings.ENGINE_ADDRESS)

    async def start(self) -> None:
        await self.randomness.start()
        logger.info("FulfillmentEngine started (randomness=%s)", self.randomness.name)

    async def stop(self) -> None:
        await self.randomness.stop()
        logger.info("FulfillmentEngine stopped")

    # ------------------------------------------------------------------
    # Phase 1: request
    # ------------------------------------------------------------------

    async def open_box(self, caller: str, box_id: int, payment: Decimal) -> OpenRequest:
        """Validate, reserve supply and request randomness. Returns the pending request."""
        caller = normalize_address(caller)
        if not caller:
            raise MissingCaller("Opening a loot box requires a caller address")
        payment = Decimal(payment)

        # Unknown ids must not leave a lock behind
        async with self.session_factory() as session:
            await catalog.get_box(session, box_id)

        async with self._box_locks[box_id]:
            async with self.session_factory() as session:
                box = await catalog.get_box(session, box_id, for_update=True)
                check_can_open(box, payment)

                committed = asyncio.Event()
                self._opening.add(committed)
                try:
                    request_id = await self.randomness.request_randomness()

                    request = OpenRequest(
                        request_id=request_id,
                        box_id=box_id,
                        caller=caller,
                        payment=payment,
                        status="requested",
                        requested_at=datetime.utcnow(),
                    )
                    session.add(request)
                    box.reserved_count += 1
                    if payment > 0:
                        await self.custody.credit(
                            session, self.engine_address, NATIVE_ASSET, NATIVE_ASSET, 0, payment
                        )
                    event = record_event(
                        session,
                        RANDOMNESS_REQUESTED,
                        box_id,
                        request_id=request_id,
                        caller=caller,
                        payment=payment,
                    )
                    await session.commit()
                finally:
                    committed.set()
                    self._opening.discard(committed)

        await EventPublisher.publish([event])
        logger.info(
            "Open requested: box #%d by %s (request=%s, payment=%s)",
            box_id,
            caller,
            request_id,
            payment,
        )
        return request

    # ------------------------------------------------------------------
    # Phase 2: fulfillment
    # ------------------------------------------------------------------

    async def _pending_box_id(self, request_id: str) -> Optional[int]:
        async with self.session_factory() as session:
            request = await session.get(OpenRequest, request_id)
            if request is None or request.status != "requested":
                return None
            return request.box_id

    async def _wait_for_open_commits(self) -> None:
        waiting = list(self._opening)
        if waiting:
            await asyncio.gather(*(e.wait() for e in waiting))

    async def on_randomness_ready(self, request_id: str, random_value: int) -> Optional[OpenRequest]:
        """
        Randomness delivery callback.

        Unknown or already settled request ids are ignored, so duplicate
        deliveries are harmless. Raises TransferFailed when the payout could
        not be made (the request is then marked failed).
        """
        box_id = await self._pending_box_id(request_id)
        if box_id is None and self._opening:
            # The delivery may have overtaken the commit of its own request
            await self._wait_for_open_commits()
            box_id = await self._pending_box_id(request_id)
        if box_id is None:
            logger.debug("Ignoring randomness for unknown or settled request %s", request_id)
            return None

        async with self._box_locks[box_id]:
            return await self._fulfill(request_id, int(random_value), expected_status="requested")

    async def _increment_user_count(self, session: AsyncSession, box_id: int, user: str) -> None:
        row = await session.get(UserOpenCount, (box_id, user), with_for_update=True)
        if row is None:
            row = UserOpenCount(box_id=box_id, user_address=user, count=0)
            session.add(row)
        row.count += 1

    async def _fulfill(
        self, request_id: str, random_value: int, expected_status: str
    ) -> Optional[OpenRequest]:
        """Select and pay out; caller must hold the box lock."""
        async with self.session_factory() as session:
            request = await session.get(
                OpenRequest, request_id, with_for_update=True, populate_existing=True
            )
            if request is None or request.status != expected_status:
                return None
            box = await catalog.get_box(session, request.box_id, for_update=True)

            try:
                reward = selector.select_reward(box.rewards, random_value)

                box.total_opened += 1
                box.reserved_count -= 1
                await self._increment_user_count(session, box.id, request.caller)
                await self.custody.transfer(
                    session,
                    reward.token_type,
                    reward.token_address,
                    reward.token_id,
                    self.engine_address,
                    request.caller,
                    reward.amount,
                )

                request.status = "fulfilled"
                request.random_value = str(random_value)
                request.reward_position = reward.position
                request.failure_reason = None
                request.fulfilled_at = datetime.utcnow()

                event = record_event(
                    session,
                    LOOT_BOX_OPENED,
                    box.id,
                    caller=request.caller,
                    request_id=request_id,
                    token_addresses=[reward.token_address],
                    token_ids=[reward.token_id],
                    amounts=[reward.amount],
                )
                await session.commit()
            except TransferFailed as e:
                await session.rollback()
                failure = str(e)
            else:
                failure = None

        if failure is not None:
            await self._mark_failed(request_id, random_value, failure)
            raise TransferFailed(failure)

        await EventPublisher.publish([event])
        logger.info(
            "Loot box #%d opened by %s: %s %s#%s x%s (request=%s)",
            request.box_id,
            request.caller,
            reward.token_type,
            reward.token_address,
            reward.token_id,
            reward.amount,
            request_id,
        )
        return request

    async def _mark_failed(self, request_id: str, random_value: int, reason: str) -> None:
        async with self.session_factory() as session:
            request = await session.get(
                OpenRequest, request_id, with_for_update=True, populate_existing=True
            )
            box = await catalog.get_box(session, request.box_id, for_update=True)

            request.status = "failed"
            request.random_value = str(random_value)
            request.failure_reason = reason[:255]
            box.reserved_count = max(0, box.reserved_count - 1)

            event = record_event(
                session,
                FULFILLMENT_FAILED,
                box.id,
                request_id=request_id,
                caller=request.caller,
                reason=reason,
            )
            await session.commit()

        await EventPublisher.publish([event])
        logger.error("Fulfillment of %s failed, rolled back: %s", request_id, reason)

    # ------------------------------------------------------------------
    # Owner recovery paths
    # ------------------------------------------------------------------

    async def retry_failed_open(self, caller: str, request_id: str) -> Optional[OpenRequest]:
        """Re-run a failed fulfillment with its original random value."""
        require_owner(caller)
        request = await self.get_request(request_id)

        async with self._box_locks[request.box_id]:
            async with self.session_factory() as session:
                request = await session.get(
                    OpenRequest, request_id, with_for_update=True, populate_existing=True
                )
                if request.status != "failed":
                    raise RequestNotRetryable(
                        f"Request {request_id} is {request.status}, only failed requests can be retried"
                    )
                box = await catalog.get_box(session, request.box_id, for_update=True)
                if not box.has_supply():
                    raise SupplyExhausted(f"Max supply reached for loot box {box.id}")
                box.reserved_count += 1
                random_value = int(request.random_value)
                await session.commit()

            logger.info("Retrying failed fulfillment %s", request_id)
            return await self._fulfill(request_id, random_value, expected_status="failed")

    async def expire_stale_requests(self, max_age_sec: Optional[int] = None) -> int:
        """
        Expire requests that never received randomness and refund them.

        Returns the number of requests expired. A refund that cannot be paid
        leaves the request pending for the next run.
        """
        max_age_sec = settings.PENDING_REQUEST_TIMEOUT_SEC if max_age_sec is None else max_age_sec
        cutoff = datetime.utcnow() - timedelta(seconds=max_age_sec)

        async with self.session_factory() as session:
            result = await session.execute(
                select(OpenRequest.request_id, OpenRequest.box_id).where(
                    OpenRequest.status == "requested",
                    OpenRequest.requested_at < cutoff,
                )
            )
            stale = result.all()

        expired = 0
        for request_id, box_id in stale:
            async with self._box_locks[box_id]:
                async with self.session_factory() as session:
                    request = await session.get(
                        OpenRequest, request_id, with_for_update=True, populate_existing=True
                    )
                    if request is None or request.status != "requested":
                        continue
                    box = await catalog.get_box(session, box_id, for_update=True)

                    request.status = "expired"
                    request.failure_reason = f"No randomness within {max_age_sec}s"
                    box.reserved_count = max(0, box.reserved_count - 1)
                    try:
                        if request.payment > 0:
                            await self.custody.transfer_native(
                                session, self.engine_address, request.caller, request.payment
                            )
                    except TransferFailed as e:
                        await session.rollback()
                        logger.error("Cannot refund expired request %s: %s", request_id, e)
                        continue

                    event = record_event(
                        session,
                        REQUEST_EXPIRED,
                        box_id,
                        request_id=request_id,
                        caller=request.caller,
                        refund=request.payment,
                    )
                    await session.commit()

            await EventPublisher.publish([event])
            expired += 1
            logger.info("Request %s expired, refunded %s", request_id, request.payment)

        return expired

    # ------------------------------------------------------------------
    # Custody withdrawals
    # ------------------------------------------------------------------

    async def _withdraw(
        self,
        caller: str,
        token_type: str,
        token_address: str,
        token_id: int,
        amount: Decimal,
    ) -> None:
        require_owner(caller)
        owner = normalize_address(caller)
        amount = Decimal(amount)

        async with self.session_factory() as session:
            if token_type == "native":
                await self.custody.transfer_native(session, self.engine_address, owner, amount)
            else:
                await self.custody.transfer(
                    session, token_type, token_address, token_id, self.engine_address, owner, amount
                )
            event = record_event(
                session,
                ASSETS_WITHDRAWN,
                None,
                recipient=owner,
                token_type=token_type,
                token_address=token_address,
                token_id=token_id,
                amount=amount,
            )
            await session.commit()

        await EventPublisher.publish([event])
        logger.info("Withdrew %s %s#%s to %s", amount, token_address, token_id, owner)

    async def withdraw_fungible(self, caller: str, token_address: str, amount: Decimal) -> None:
        await self._withdraw(caller, "fungible", token_address, 0, amount)

    async def withdraw_unique_or_semi_fungible(
        self, caller: str, token_address: str, token_id: int, amount: Decimal
    ) -> None:
        require_owner(caller)
        async with self.session_factory() as session:
            token_type = await self.custody.holding_type(
                session, self.engine_address, token_address, token_id
            )
        if token_type not in ("unique", "semi_fungible"):
            raise TransferFailed(f"{token_address}#{token_id} is not held as an item")
        if token_type == "unique":
            amount = Decimal("1")
        await self._withdraw(caller, token_type, token_address, token_id, amount)

    async def withdraw_proceeds(self, caller: str, amount: Decimal) -> None:
        """Move collected payments to the owner."""
        await self._withdraw(caller, "native", NATIVE_ASSET, 0, amount)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_request(self, request_id: str) -> OpenRequest:
        async with self.session_factory() as session:
            request = await session.get(OpenRequest, request_id)
        if request is None:
            raise RequestNotFound(f"Open request {request_id} not found")
        return request

    async def list_requests(self, status: Optional[str] = None, limit: int = 100) -> list[OpenRequest]:
        async with self.session_factory() as session:
            stmt = select(OpenRequest).order_by(OpenRequest.requested_at.desc()).limit(limit)
            if status:
                stmt = stmt.where(OpenRequest.status == status)
            result = await session.execute(stmt)
            return list(result.scalars().all())


# Global engine instance
_engine: Optional[FulfillmentEngine] = None


def get_fulfillment_engine() -> FulfillmentEngine:
    """Get or create the global engine with the configured randomness source."""
    global _engine
    if _engine is None:
        _engine = FulfillmentEngine(build_randomness_provider())
    return _engine


def set_fulfillment_engine(engine: Optional[FulfillmentEngine]) -> None:
    global _engine
    _engine = engine
