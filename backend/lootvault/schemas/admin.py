from decimal import Decimal

from pydantic import BaseModel, Field


class WithdrawFungibleRequest(BaseModel):
    token_address: str
    amount: Decimal = Field(gt=0)


class WithdrawItemRequest(BaseModel):
    """Unique items ignore amount (always 1)."""

    token_address: str
    token_id: int = Field(ge=0)
    amount: Decimal = Field(Decimal("1"), gt=0)


class WithdrawProceedsRequest(BaseModel):
    amount: Decimal = Field(gt=0)


class WithdrawResponse(BaseModel):
    success: bool
    token_address: str
    token_id: int = 0
    amount: Decimal


class ExpireResponse(BaseModel):
    expired: int
