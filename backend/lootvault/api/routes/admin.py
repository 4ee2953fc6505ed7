from typing import Literal, Optional

from fastapi import APIRouter, Depends

from lootvault.api.deps import get_caller, get_engine, http_error
from lootvault.schemas.admin import (
    ExpireResponse,
    WithdrawFungibleRequest,
    WithdrawItemRequest,
    WithdrawProceedsRequest,
    WithdrawResponse,
)
from lootvault.schemas.open_request import OpenRequestResponse
from lootvault.services.access import require_owner
from lootvault.services.custody import NATIVE_ASSET
from lootvault.services.errors import LootBoxError
from lootvault.services.fulfillment import FulfillmentEngine

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/withdraw/fungible", response_model=WithdrawResponse)
async def withdraw_fungible_endpoint(
    body: WithdrawFungibleRequest,
    caller: str = Depends(get_caller),
    engine: FulfillmentEngine = Depends(get_engine),
):
    try:
        await engine.withdraw_fungible(caller, body.token_address, body.amount)
    except LootBoxError as e:
        raise http_error(e)
    return WithdrawResponse(success=True, token_address=body.token_address, amount=body.amount)


@router.post("/withdraw/item", response_model=WithdrawResponse)
async def withdraw_item_endpoint(
    body: WithdrawItemRequest,
    caller: str = Depends(get_caller),
    engine: FulfillmentEngine = Depends(get_engine),
):
    """Withdraw a unique item or semi-fungible units held by the engine."""
    try:
        await engine.withdraw_unique_or_semi_fungible(
            caller, body.token_address, body.token_id, body.amount
        )
    except LootBoxError as e:
        raise http_error(e)
    return WithdrawResponse(
        success=True,
        token_address=body.token_address,
        token_id=body.token_id,
        amount=body.amount,
    )


@router.post("/withdraw/proceeds", response_model=WithdrawResponse)
async def withdraw_proceeds_endpoint(
    body: WithdrawProceedsRequest,
    caller: str = Depends(get_caller),
    engine: FulfillmentEngine = Depends(get_engine),
):
    try:
        await engine.withdraw_proceeds(caller, body.amount)
    except LootBoxError as e:
        raise http_error(e)
    return WithdrawResponse(success=True, token_address=NATIVE_ASSET, amount=body.amount)


@router.get("/opens", response_model=list[OpenRequestResponse])
async def list_opens_endpoint(
    status: Optional[Literal["requested", "fulfilled", "failed", "expired"]] = None,
    limit: int = 100,
    caller: str = Depends(get_caller),
    engine: FulfillmentEngine = Depends(get_engine),
):
    """Open requests, newest first. ?status=failed lists the retry queue."""
    try:
        require_owner(caller)
    except LootBoxError as e:
        raise http_error(e)
    requests = await engine.list_requests(status=status, limit=limit)
    return [OpenRequestResponse.model_validate(r) for r in requests]


@router.post("/opens/{request_id}/retry", response_model=OpenRequestResponse)
async def retry_open_endpoint(
    request_id: str,
    caller: str = Depends(get_caller),
    engine: FulfillmentEngine = Depends(get_engine),
):
    try:
        await engine.retry_failed_open(caller, request_id)
        request = await engine.get_request(request_id)
    except LootBoxError as e:
        raise http_error(e)
    return OpenRequestResponse.model_validate(request)


@router.post("/opens/expire", response_model=ExpireResponse)
async def expire_opens_endpoint(
    caller: str = Depends(get_caller),
    engine: FulfillmentEngine = Depends(get_engine),
):
    """Run the stale-request sweep now instead of waiting for the reaper."""
    try:
        require_owner(caller)
    except LootBoxError as e:
        raise http_error(e)
    expired = await engine.expire_stale_requests()
    return ExpireResponse(expired=expired)
