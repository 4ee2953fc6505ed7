from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field, model_validator


class CreateLootBoxRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = ""
    price: Decimal = Field(ge=0)
    max_supply: int = Field(0, ge=0, description="0 = unlimited")


class AddRewardRequest(BaseModel):
    """
    fungible:       token_address + amount (token_id ignored)
    unique:         token_address + token_id (amount forced to 1)
    semi_fungible:  token_address + token_id + amount
    """

    token_type: Literal["fungible", "unique", "semi_fungible"]
    token_address: str = Field(min_length=1, max_length=100)
    token_id: int = Field(0, ge=0)
    amount: Decimal = Field(Decimal("1"), gt=0)
    # Zero/negative weights are rejected by the catalog with InvalidWeight
    weight: int

    @model_validator(mode="after")
    def normalize_by_type(self):
        if self.token_type == "fungible":
            self.token_id = 0
        elif self.token_type == "unique":
            self.amount = Decimal("1")
        return self


class UpdatePriceRequest(BaseModel):
    price: Decimal = Field(ge=0)


class SetActiveRequest(BaseModel):
    active: bool


class RewardResponse(BaseModel):
    position: int
    token_type: str
    token_address: str
    token_id: int
    amount: Decimal
    weight: int

    model_config = {"from_attributes": True}


class LootBoxResponse(BaseModel):
    id: int
    name: str
    description: str
    price: Decimal
    max_supply: int
    total_opened: int
    reserved_count: int
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class TotalWeightResponse(BaseModel):
    box_id: int
    total_weight: int


class UserOpenedCountResponse(BaseModel):
    box_id: int
    user: str
    opened: int
