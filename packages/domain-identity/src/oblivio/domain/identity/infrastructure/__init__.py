"""Infrastructure adapters for the identity domain."""

from oblivio.domain.identity.infrastructure.identity_provider_client import (
    IdentityProviderClient,
    IdentityProviderError,
)
from oblivio.domain.identity.infrastructure.identity_registry import (
    DEFAULT_REGISTRY_TABLE,
    IdentityRegistry,
)

__all__ = [
    "DEFAULT_REGISTRY_TABLE",
    "IdentityProviderClient",
    "IdentityProviderError",
    "IdentityRegistry",
]
