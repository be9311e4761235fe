"""Port interfaces for the identity provider integration.

Authentication is handled by an external identity provider (IdP). The
erasure engine only needs to translate an internal user id to the IdP's
external id, sever that mapping, and ask the IdP to drop the account.

Example:
    >>> from oblivio.foundation.domain.ports import IdentityRegistryPort
    >>> def forget(registry: IdentityRegistryPort, user_id: str) -> str | None:
    ...     external_id = registry.resolve_external_id(user_id)
    ...     registry.sever_mapping(user_id)
    ...     return external_id
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@runtime_checkable
class IdentityRegistryPort(Protocol):
    """Port for the internal user id <-> external identity mapping."""

    def resolve_external_id(self, user_id: str) -> str | None:
        """Return the external identity id mapped to ``user_id``, if any."""
        ...

    def sever_mapping(self, user_id: str) -> bool:
        """Remove the mapping for ``user_id``.

        Returns:
            True if a mapping was removed, False if none existed.
        """
        ...


@dataclass(frozen=True, slots=True)
class AccountDeletionResult:
    """Outcome of an identity-provider account deletion.

    Attributes:
        deleted: True when the account is gone (including already gone).
        already_absent: True when the IdP reported the account missing.
        error: Provider error message when deletion failed.
    """

    deleted: bool
    already_absent: bool = False
    error: str | None = None


@runtime_checkable
class IdentityProviderPort(Protocol):
    """Port for deleting the user's account at the identity provider."""

    async def delete_account(self, external_id: str) -> AccountDeletionResult:
        """Delete the external account identified by ``external_id``."""
        ...
