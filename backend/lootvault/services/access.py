from lootvault.core.config import settings
from lootvault.services.errors import Unauthorized


def normalize_address(address: str) -> str:
    return (address or "").strip().lower()


def is_owner(caller: str) -> bool:
    owner = normalize_address(settings.OWNER_ADDRESS)
    return bool(owner) and normalize_address(caller) == owner


def require_owner(caller: str) -> None:
    """Raise Unauthorized unless caller is the configured owner."""
    if not is_owner(caller):
        raise Unauthorized(f"Caller {caller or '<anonymous>'} is not the owner")
