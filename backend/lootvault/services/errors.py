"""
Loot box error taxonomy.

Validation errors abort the triggering call before anything is written.
TransferFailed is raised after the failed fulfillment has been rolled back.
"""


class LootBoxError(Exception):
    """Base class for every error the loot box services raise."""

    status_code: int = 400

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)


class Unauthorized(LootBoxError):
    status_code = 403


class InvalidBoxId(LootBoxError):
    status_code = 404

    def __init__(self, box_id: int):
        self.box_id = box_id
        super().__init__(f"Invalid loot box ID: {box_id}")


class InvalidWeight(LootBoxError):
    def __init__(self, weight: int):
        self.weight = weight
        super().__init__(f"Weight must be greater than 0 (got {weight})")


class BoxInactive(LootBoxError):
    status_code = 409


class InsufficientPayment(LootBoxError):
    pass


class SupplyExhausted(LootBoxError):
    status_code = 409


class NoRewardsAvailable(LootBoxError):
    status_code = 409


class TransferFailed(LootBoxError):
    status_code = 409


class RequestNotFound(LootBoxError):
    status_code = 404


class RequestNotRetryable(LootBoxError):
    status_code = 409


class InvalidSignature(LootBoxError):
    status_code = 401


class MissingCaller(LootBoxError):
    status_code = 401
