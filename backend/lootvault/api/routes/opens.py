from fastapi import APIRouter, Depends

from lootvault.api.deps import get_engine, http_error
from lootvault.schemas.open_request import OpenRequestResponse
from lootvault.services.errors import LootBoxError
from lootvault.services.fulfillment import FulfillmentEngine

router = APIRouter(prefix="/opens", tags=["opens"])


@router.get("/{request_id}", response_model=OpenRequestResponse)
async def get_open_request_endpoint(
    request_id: str,
    engine: FulfillmentEngine = Depends(get_engine),
):
    """Status of one open attempt (requested / fulfilled / failed / expired)."""
    try:
        request = await engine.get_request(request_id)
    except LootBoxError as e:
        raise http_error(e)
    return OpenRequestResponse.model_validate(request)
