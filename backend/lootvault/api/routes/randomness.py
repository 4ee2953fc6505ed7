import logging

from fastapi import APIRouter, Depends

from lootvault.api.deps import get_engine, http_error
from lootvault.schemas.open_request import RandomnessCallbackRequest, RandomnessCallbackResponse
from lootvault.services.errors import LootBoxError, RequestNotFound
from lootvault.services.fulfillment import FulfillmentEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/randomness", tags=["randomness"])


@router.post("/callback", response_model=RandomnessCallbackResponse)
async def randomness_callback_endpoint(
    body: RandomnessCallbackRequest,
    engine: FulfillmentEngine = Depends(get_engine),
):
    """
    Delivery endpoint for the external randomness oracle.

    The body must be signed: signature = HMAC-SHA256(secret, "request_id:random_value").
    Deliveries for unknown or already settled requests are accepted and ignored.
    A payout that fails answers 409; the request is left in status "failed".
    """
    try:
        await engine.randomness.handle_callback(body.request_id, body.random_value, body.signature)
    except LootBoxError as e:
        raise http_error(e)

    try:
        request = await engine.get_request(body.request_id)
        status = request.status
    except RequestNotFound:
        logger.info("Callback for unknown request %s ignored", body.request_id)
        status = None
    return RandomnessCallbackResponse(request_id=body.request_id, accepted=True, status=status)
