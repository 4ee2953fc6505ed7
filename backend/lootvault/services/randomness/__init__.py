"""
Randomness sources for loot box fulfillment.
"""

from typing import Optional

from lootvault.core.config import settings
from lootvault.services.randomness.base import RandomnessCallback, RandomnessProvider
from lootvault.services.randomness.local import LocalRandomnessProvider
from lootvault.services.randomness.manual import ManualRandomnessProvider
from lootvault.services.randomness.oracle import OracleRandomnessProvider

_PROVIDERS = {
    "local": LocalRandomnessProvider,
    "manual": ManualRandomnessProvider,
    "oracle": OracleRandomnessProvider,
}


def build_randomness_provider(name: Optional[str] = None) -> RandomnessProvider:
    """Instantiate the provider named in settings (or explicitly)."""
    name = (name or settings.RANDOMNESS_PROVIDER).lower()
    try:
        provider_cls = _PROVIDERS[name]
    except KeyError:
        raise ValueError(f"Unknown randomness provider: {name}") from None
    return provider_cls()


__all__ = [
    "RandomnessCallback",
    "RandomnessProvider",
    "LocalRandomnessProvider",
    "ManualRandomnessProvider",
    "OracleRandomnessProvider",
    "build_randomness_provider",
]
