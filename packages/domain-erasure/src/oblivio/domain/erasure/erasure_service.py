"""Application service for the two erasure entry points.

Self-service deletion and admin deletion both run the same cascade. The
service adds what the cascade deliberately leaves to its callers: rank
checks, the identity-provider account deletion once the cascade succeeds,
and the admin-only journal maintenance operations.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING

from oblivio.domain.erasure.cascade import CascadeOptions
from oblivio.foundation.domain.exceptions import (
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from oblivio.foundation.domain.user_value_objects import UserRank
from oblivio.infra.observability import cascade_context

if TYPE_CHECKING:
    from oblivio.domain.erasure.cascade import CascadeResult, UserDeletionCascade
    from oblivio.domain.erasure.journal import DeletionJournal
    from oblivio.foundation.domain.ports import (
        AccountDeletionResult,
        Document,
        DocumentStorePort,
        IdentityProviderPort,
    )

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ErasureOutcome:
    """Cascade result plus the identity-provider step.

    Attributes:
        cascade: Result of the cascade.
        external_identity: Identity-provider outcome, None when the step
            was skipped or never reached.
    """

    cascade: CascadeResult
    external_identity: AccountDeletionResult | None = None

    @property
    def success(self) -> bool:
        return self.cascade.success


class UserErasureService:
    """Erasure use cases for the account owner and for admirals.

    Args:
        cascade: Configured cascade orchestrator.
        store: Document store holding user records.
        journal: Audit journal (usually ``cascade.journal``).
        identity_provider: Identity-provider client. When None the external
            account is left in place and the journal says so.
    """

    def __init__(
        self,
        cascade: UserDeletionCascade,
        store: DocumentStorePort,
        journal: DeletionJournal,
        identity_provider: IdentityProviderPort | None = None,
    ) -> None:
        self._cascade = cascade
        self._store = store
        self._journal = journal
        self._identity_provider = identity_provider

    async def delete_own_account(
        self,
        user_id: str,
        *,
        reason: str | None = None,
    ) -> ErasureOutcome:
        """Erase the calling user's own account."""
        options = CascadeOptions(reason=reason)
        return await self._run(user_id, user_id, options)

    async def delete_user_as_admin(
        self,
        admin_id: str,
        target_user_id: str,
        *,
        reason: str,
        reassign_to: str | None = None,
    ) -> ErasureOutcome:
        """Erase another user's account on behalf of an admiral.

        Raises:
            AuthorizationError: Caller is not an admiral, or target is one.
            ValidationError: ``reason`` is blank.
            NotFoundError: Target user does not exist.
        """
        self._require_admiral(admin_id)
        if not reason or not reason.strip():
            raise ValidationError("reason", "Reason is required for admin deletion")

        target = self._store.get(self._cascade.users_table, target_user_id)
        if target is None:
            raise NotFoundError("user", target_user_id)
        if target.get("rank") == UserRank.ADMIRAL:
            raise AuthorizationError(
                "Cannot delete an admiral account",
                {"admin_id": admin_id, "target_user_id": target_user_id},
            )

        options = CascadeOptions(reason=reason, new_owner_id=reassign_to)
        return await self._run(target_user_id, admin_id, options)

    def list_journal(self, admin_id: str) -> list[Document]:
        """Every journal entry, newest first. Admirals only."""
        self._require_admiral(admin_id)
        return self._journal.list_entries()

    def delete_journal_entry(self, admin_id: str, entry_id: str) -> Document:
        """Permanently remove a journal entry. Admirals only.

        Raises:
            AuthorizationError: Caller is not an admiral.
            NotFoundError: Entry does not exist.
        """
        self._require_admiral(admin_id)
        entry = self._journal.delete_entry(entry_id)
        logger.warning(
            "journal_entry_removed_by_admin",
            extra={"admin_id": admin_id, "entry_id": entry_id, "user_id": entry.get("user_id")},
        )
        return entry

    def _require_admiral(self, admin_id: str) -> Document:
        caller = self._store.get(self._cascade.users_table, admin_id)
        rank = caller.get("rank") if caller is not None else None
        if rank != UserRank.ADMIRAL:
            raise AuthorizationError(
                f"Admiral rank required (current rank: {rank or 'none'})",
                {"admin_id": admin_id},
            )
        return caller

    async def _run(
        self,
        user_id: str,
        initiator_id: str,
        options: CascadeOptions,
    ) -> ErasureOutcome:
        with cascade_context(user_id=user_id, initiator_id=initiator_id):
            result = await asyncio.to_thread(
                partial(self._cascade.execute, user_id, initiator_id, options)
            )
            if not result.success or options.skip_external_identity_deletion:
                return ErasureOutcome(cascade=result)
            identity = await self._delete_external_identity(user_id, result)
            return ErasureOutcome(cascade=result, external_identity=identity)

    async def _delete_external_identity(
        self,
        user_id: str,
        result: CascadeResult,
    ) -> AccountDeletionResult | None:
        if self._identity_provider is None or not result.external_id:
            logger.warning(
                "external_identity_deletion_skipped",
                extra={
                    "user_id": user_id,
                    "has_provider": self._identity_provider is not None,
                    "has_external_id": bool(result.external_id),
                },
            )
            return None

        outcome = await self._identity_provider.delete_account(result.external_id)
        if not outcome.deleted:
            logger.error(
                "external_identity_deletion_failed",
                extra={"user_id": user_id, "error": outcome.error},
            )
        await asyncio.to_thread(
            partial(
                self._journal.record_external_identity_deletion,
                user_id,
                deleted=outcome.deleted,
                error=outcome.error,
                entry_id=result.journal_entry_id,
            )
        )
        return outcome


__all__ = ["ErasureOutcome", "UserErasureService"]
