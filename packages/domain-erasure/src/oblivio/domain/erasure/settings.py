"""Erasure cascade configuration settings.

Loaded from environment variables with CASCADE_ prefix.

Environment Variables:
    CASCADE_STALE_AFTER_SECONDS: Age after which a pending tombstone may be resumed
    CASCADE_DEFAULT_BATCH_SIZE: Documents per batch when the manifest sets none
    CASCADE_USERS_TABLE: Table holding user records
    CASCADE_JOURNAL_TABLE: Table holding audit journal entries
    CASCADE_REGISTRY_TABLE: Table holding identity mappings
    CASCADE_ANONYMIZED_PLACEHOLDER: Value written over anonymized user references
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CascadeSettings(BaseSettings):
    """Erasure cascade settings.

    Example:
        >>> settings = CascadeSettings()
        >>> settings.stale_after
        datetime.timedelta(seconds=300)
    """

    model_config = SettingsConfigDict(
        env_prefix="CASCADE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    stale_after_seconds: int = Field(
        default=300,
        ge=1,
        le=86400,
        description="Seconds after which a pending tombstone is treated as crashed",
    )
    default_batch_size: int = Field(
        default=200,
        ge=1,
        le=10000,
        description="Documents per batch when the manifest gives no override",
    )
    users_table: str = Field(default="users", description="User records table")
    journal_table: str = Field(
        default="deletion_journal", description="Audit journal table"
    )
    registry_table: str = Field(
        default="identity_registry", description="Identity mapping table"
    )
    anonymized_placeholder: str = Field(
        default="deleted-user",
        min_length=1,
        description="Sentinel written over anonymized user references",
    )

    @property
    def stale_after(self) -> timedelta:
        return timedelta(seconds=self.stale_after_seconds)


@lru_cache(maxsize=1)
def get_cascade_settings() -> CascadeSettings:
    """Get cached CascadeSettings instance.

    Clear cache with ``get_cascade_settings.cache_clear()`` for testing.
    """
    return CascadeSettings()
