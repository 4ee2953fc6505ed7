from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class OpenLootBoxRequest(BaseModel):
    payment: Decimal = Field(ge=0, description="Native currency attached to the open")


class OpenRequestResponse(BaseModel):
    request_id: str
    box_id: int
    caller: str
    payment: Decimal
    status: str  # requested | fulfilled | failed | expired
    random_value: str | None = None
    reward_position: int | None = None
    failure_reason: str | None = None
    requested_at: datetime
    fulfilled_at: datetime | None = None

    model_config = {"from_attributes": True}


class RandomnessCallbackRequest(BaseModel):
    request_id: str
    random_value: int = Field(ge=0, lt=2**256)
    signature: str


class RandomnessCallbackResponse(BaseModel):
    request_id: str
    accepted: bool
    status: str | None = None
