"""Identity provider configuration settings.

Loaded from environment variables with IDP_ prefix.

Environment Variables:
    IDP_BASE_URL: Identity provider management API base URL
    IDP_SECRET_KEY: Management API secret key
    IDP_TIMEOUT: HTTP request timeout in seconds
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class IdentityProviderSettings(BaseSettings):
    """Identity provider management API settings.

    Example:
        >>> settings = IdentityProviderSettings()
        >>> settings.is_configured()
        False
    """

    model_config = SettingsConfigDict(
        env_prefix="IDP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str = Field(
        default="",
        description="Identity provider management API base URL",
    )
    secret_key: str = Field(
        default="",
        repr=False,  # Security: never log the management key
        description="Identity provider management API secret key",
    )
    timeout: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="HTTP request timeout in seconds",
    )

    def is_configured(self) -> bool:
        """Check if account deletion can be attempted (non-throwing)."""
        return bool(self.base_url) and bool(self.secret_key)


@lru_cache(maxsize=1)
def get_identity_provider_settings() -> IdentityProviderSettings:
    """Get cached IdentityProviderSettings instance."""
    return IdentityProviderSettings()
