from fastapi import Header, HTTPException

from lootvault.services.errors import LootBoxError
from lootvault.services.fulfillment import FulfillmentEngine, get_fulfillment_engine


async def get_caller(x_caller_address: str = Header("", alias="X-Caller-Address")) -> str:
    """Caller identity as asserted by the gateway in front of the API."""
    return x_caller_address.strip().lower()


def get_engine() -> FulfillmentEngine:
    return get_fulfillment_engine()


def http_error(exc: LootBoxError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=str(exc))
