"""Unit tests for UserErasureService."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
import structlog

from oblivio.domain.erasure.cascade import UserDeletionCascade
from oblivio.domain.erasure.erasure_service import ErasureOutcome, UserErasureService
from oblivio.foundation.domain.exceptions import (
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from oblivio.foundation.domain.ports import AccountDeletionResult


@pytest.fixture()
def identity_provider() -> AsyncMock:
    provider = AsyncMock()
    provider.delete_account.return_value = AccountDeletionResult(deleted=True)
    return provider


@pytest.fixture()
def service(cascade: UserDeletionCascade, store, identity_provider: AsyncMock) -> UserErasureService:
    return UserErasureService(cascade, store, cascade.journal, identity_provider)


@pytest.mark.unit
class TestDeleteOwnAccount:
    @pytest.mark.asyncio
    async def test_runs_cascade_and_deletes_external_account(
        self, service: UserErasureService, identity_provider: AsyncMock, store
    ) -> None:
        outcome = await service.delete_own_account("user-42")

        assert isinstance(outcome, ErasureOutcome)
        assert outcome.success is True
        assert outcome.external_identity == AccountDeletionResult(deleted=True)
        identity_provider.delete_account.assert_awaited_once_with("ext_42")
        assert store.get("users", "user-42") is None

    @pytest.mark.asyncio
    async def test_journal_records_external_deletion(
        self, service: UserErasureService, cascade: UserDeletionCascade
    ) -> None:
        outcome = await service.delete_own_account("user-42", reason="Leaving")
        entry = cascade.journal.get(outcome.cascade.journal_entry_id)
        assert entry["scope"]["external_identity_deleted"] is True
        assert entry["external_deletion_error"] is None
        assert entry["reason"] == "Leaving"

    @pytest.mark.asyncio
    async def test_provider_failure_recorded(
        self, service: UserErasureService, identity_provider: AsyncMock, cascade: UserDeletionCascade
    ) -> None:
        identity_provider.delete_account.return_value = AccountDeletionResult(
            deleted=False, error="HTTP 500: upstream"
        )
        outcome = await service.delete_own_account("user-42")

        # Internal erasure stands even when the provider call fails
        assert outcome.success is True
        entry = cascade.journal.get(outcome.cascade.journal_entry_id)
        assert entry["scope"]["external_identity_deleted"] is False
        assert entry["external_deletion_error"] == "HTTP 500: upstream"

    @pytest.mark.asyncio
    async def test_failed_cascade_skips_provider(
        self, service: UserErasureService, identity_provider: AsyncMock
    ) -> None:
        outcome = await service.delete_own_account("ghost")
        assert outcome.success is False
        assert outcome.external_identity is None
        identity_provider.delete_account.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_without_provider(self, cascade: UserDeletionCascade, store) -> None:
        service = UserErasureService(cascade, store, cascade.journal)
        outcome = await service.delete_own_account("user-42")
        assert outcome.success is True
        assert outcome.external_identity is None

    @pytest.mark.asyncio
    async def test_log_context_unbound_afterwards(self, service: UserErasureService) -> None:
        await service.delete_own_account("user-42")
        assert "user_id" not in structlog.contextvars.get_contextvars()


@pytest.mark.unit
class TestDeleteUserAsAdmin:
    @pytest.mark.asyncio
    async def test_admiral_deletes_with_reassignment(
        self, service: UserErasureService, store, cascade: UserDeletionCascade
    ) -> None:
        outcome = await service.delete_user_as_admin(
            "admin-1", "user-42", reason="Account violation", reassign_to="user-7"
        )
        assert outcome.success is True
        assert outcome.cascade.records_reassigned == 1
        assert store.get("projects", "p1")["owner_id"] == "user-7"
        entry = cascade.journal.get(outcome.cascade.journal_entry_id)
        assert entry["initiator_id"] == "admin-1"
        assert entry["initiator_role"] == "admin"
        assert entry["reason"] == "Account violation"

    @pytest.mark.asyncio
    async def test_non_admiral_rejected(self, service: UserErasureService, store) -> None:
        with pytest.raises(AuthorizationError, match="current rank: crew"):
            await service.delete_user_as_admin("user-7", "user-42", reason="Spam")
        assert store.get("users", "user-42") is not None

    @pytest.mark.asyncio
    async def test_unknown_caller_rejected(self, service: UserErasureService) -> None:
        with pytest.raises(AuthorizationError, match="current rank: none"):
            await service.delete_user_as_admin("nobody", "user-42", reason="Spam")

    @pytest.mark.asyncio
    async def test_admiral_target_rejected(self, service: UserErasureService, store) -> None:
        with pytest.raises(AuthorizationError, match="admiral"):
            await service.delete_user_as_admin("admin-1", "admin-2", reason="Cleanup")
        assert store.get("users", "admin-2") is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reason", ["", "   "])
    async def test_blank_reason_rejected(self, service: UserErasureService, reason: str) -> None:
        with pytest.raises(ValidationError):
            await service.delete_user_as_admin("admin-1", "user-42", reason=reason)

    @pytest.mark.asyncio
    async def test_missing_target(self, service: UserErasureService) -> None:
        with pytest.raises(NotFoundError):
            await service.delete_user_as_admin("admin-1", "ghost", reason="Cleanup")


@pytest.mark.unit
class TestJournalMaintenance:
    @pytest.mark.asyncio
    async def test_list_and_delete_entries(self, service: UserErasureService) -> None:
        outcome = await service.delete_own_account("user-42")
        entries = service.list_journal("admin-1")
        assert [e["id"] for e in entries] == [outcome.cascade.journal_entry_id]

        removed = service.delete_journal_entry("admin-1", outcome.cascade.journal_entry_id)
        assert removed["user_id"] == "user-42"
        assert service.list_journal("admin-1") == []

    def test_non_admiral_cannot_list(self, service: UserErasureService) -> None:
        with pytest.raises(AuthorizationError):
            service.list_journal("user-7")

    def test_non_admiral_cannot_delete(self, service: UserErasureService) -> None:
        with pytest.raises(AuthorizationError):
            service.delete_journal_entry("user-7", "any")

    def test_unknown_entry(self, service: UserErasureService) -> None:
        with pytest.raises(NotFoundError):
            service.delete_journal_entry("admin-1", "missing")
