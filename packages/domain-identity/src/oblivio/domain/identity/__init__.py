"""Oblivio Domain Identity -- identity registry and identity provider client."""

from oblivio.domain.identity.infrastructure import (
    IdentityProviderClient,
    IdentityProviderError,
    IdentityRegistry,
)
from oblivio.domain.identity.settings import (
    IdentityProviderSettings,
    get_identity_provider_settings,
)

__all__ = [
    "IdentityProviderClient",
    "IdentityProviderError",
    "IdentityProviderSettings",
    "IdentityRegistry",
    "get_identity_provider_settings",
]
