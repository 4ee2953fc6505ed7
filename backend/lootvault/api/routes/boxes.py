from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lootvault.api.deps import get_caller, get_engine, http_error
from lootvault.core.database import get_session
from lootvault.schemas.loot_box import (
    AddRewardRequest,
    CreateLootBoxRequest,
    LootBoxResponse,
    RewardResponse,
    SetActiveRequest,
    TotalWeightResponse,
    UpdatePriceRequest,
    UserOpenedCountResponse,
)
from lootvault.schemas.open_request import OpenLootBoxRequest, OpenRequestResponse
from lootvault.services import catalog
from lootvault.services.errors import LootBoxError
from lootvault.services.fulfillment import FulfillmentEngine

router = APIRouter(prefix="/boxes", tags=["boxes"])


@router.get("", response_model=list[LootBoxResponse])
async def list_boxes_endpoint(
    active_only: bool = False,
    session: AsyncSession = Depends(get_session),
):
    boxes = await catalog.list_loot_boxes(session, active_only=active_only)
    return [LootBoxResponse.model_validate(b) for b in boxes]


@router.post("", response_model=LootBoxResponse, status_code=201)
async def create_box_endpoint(
    body: CreateLootBoxRequest,
    caller: str = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
):
    """Create a loot box (owner only). max_supply 0 = unlimited."""
    try:
        box = await catalog.create_loot_box(
            session, caller, body.name, body.description, body.price, body.max_supply
        )
    except LootBoxError as e:
        raise http_error(e)
    return LootBoxResponse.model_validate(box)


@router.get("/{box_id}", response_model=LootBoxResponse)
async def get_box_endpoint(box_id: int, session: AsyncSession = Depends(get_session)):
    try:
        box = await catalog.get_config(session, box_id)
    except LootBoxError as e:
        raise http_error(e)
    return LootBoxResponse.model_validate(box)


@router.get("/{box_id}/rewards", response_model=list[RewardResponse])
async def get_rewards_endpoint(box_id: int, session: AsyncSession = Depends(get_session)):
    try:
        rewards = await catalog.get_rewards(session, box_id)
    except LootBoxError as e:
        raise http_error(e)
    return [RewardResponse.model_validate(r) for r in rewards]


@router.post("/{box_id}/rewards", response_model=RewardResponse, status_code=201)
async def add_reward_endpoint(
    box_id: int,
    body: AddRewardRequest,
    caller: str = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
):
    """
    Append a reward (owner only).

    Example: { token_type: "semi_fungible", token_address: "EQ...", token_id: 1,
               amount: 5, weight: 25 }
    """
    try:
        reward = await catalog.add_reward(
            session,
            caller,
            box_id,
            body.token_type,
            body.token_address,
            body.token_id,
            body.amount,
            body.weight,
        )
    except LootBoxError as e:
        raise http_error(e)
    return RewardResponse.model_validate(reward)


@router.get("/{box_id}/total-weight", response_model=TotalWeightResponse)
async def total_weight_endpoint(box_id: int, session: AsyncSession = Depends(get_session)):
    try:
        total = await catalog.get_total_weight(session, box_id)
    except LootBoxError as e:
        raise http_error(e)
    return TotalWeightResponse(box_id=box_id, total_weight=total)


@router.patch("/{box_id}/price", response_model=LootBoxResponse)
async def update_price_endpoint(
    box_id: int,
    body: UpdatePriceRequest,
    caller: str = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
):
    try:
        box = await catalog.update_price(session, caller, box_id, body.price)
    except LootBoxError as e:
        raise http_error(e)
    return LootBoxResponse.model_validate(box)


@router.patch("/{box_id}/active", response_model=LootBoxResponse)
async def set_active_endpoint(
    box_id: int,
    body: SetActiveRequest,
    caller: str = Depends(get_caller),
    session: AsyncSession = Depends(get_session),
):
    try:
        box = await catalog.set_active(session, caller, box_id, body.active)
    except LootBoxError as e:
        raise http_error(e)
    return LootBoxResponse.model_validate(box)


@router.post("/{box_id}/open", response_model=OpenRequestResponse, status_code=202)
async def open_box_endpoint(
    box_id: int,
    body: OpenLootBoxRequest,
    caller: str = Depends(get_caller),
    engine: FulfillmentEngine = Depends(get_engine),
):
    """
    Pay for and open a loot box.

    Returns 202 with a pending request; the reward is transferred once the
    randomness for that request arrives. Poll GET /opens/{request_id}.
    """
    try:
        request = await engine.open_box(caller, box_id, body.payment)
    except LootBoxError as e:
        raise http_error(e)
    return OpenRequestResponse.model_validate(request)


@router.get("/{box_id}/opened/{user}", response_model=UserOpenedCountResponse)
async def user_opened_count_endpoint(
    box_id: int,
    user: str,
    session: AsyncSession = Depends(get_session),
):
    try:
        opened = await catalog.get_user_opened_count(session, box_id, user)
    except LootBoxError as e:
        raise http_error(e)
    return UserOpenedCountResponse(box_id=box_id, user=user, opened=opened)
