"""Append-then-patch audit journal for erasure attempts.

One entry is written per cascade attempt before any destructive work
starts, then patched as the attempt completes or fails. Entries are never
replaced. Once the user row is gone the journal is the only durable record
of who was erased, by whom and why, so a crash mid-cascade leaves an
``in_progress`` entry behind rather than nothing.
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from oblivio.foundation.domain.exceptions import NotFoundError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from datetime import datetime

    from oblivio.foundation.domain.ports import Document, DocumentStorePort

logger = logging.getLogger(__name__)

DEFAULT_JOURNAL_TABLE = "deletion_journal"

# Profile attributes copied into the entry for forensic review
SNAPSHOT_FIELDS: tuple[str, ...] = (
    "email",
    "first_name",
    "last_name",
    "rank",
    "setup_status",
    "subscription_status",
    "entity_name",
    "social_name",
)


class InitiatorRole(StrEnum):
    SELF = "self"
    ADMIN = "admin"


class JournalStatus(StrEnum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


def empty_scope() -> dict[str, Any]:
    return {
        "profile_deleted": False,
        "external_identity_deleted": False,
        "storage_files_deleted": [],
        "related_tables": [],
    }


class DeletionJournal:
    """Audit journal over a document store table.

    Args:
        store: Document store.
        table: Journal table name.
    """

    def __init__(self, store: DocumentStorePort, table: str = DEFAULT_JOURNAL_TABLE) -> None:
        self._store = store
        self._table = table

    @property
    def table(self) -> str:
        return self._table

    def _new_entry(
        self,
        user: Mapping[str, Any],
        *,
        external_id: str | None,
        initiator_id: str,
        reason: str | None,
        started_at: datetime,
    ) -> dict[str, Any]:
        user_id = str(user["id"])
        role = InitiatorRole.SELF if initiator_id == user_id else InitiatorRole.ADMIN
        entry: dict[str, Any] = {
            "user_id": user_id,
            "external_id": external_id or "",
            "initiator_id": initiator_id,
            "initiator_role": str(role),
            "reason": reason,
            "scope": empty_scope(),
            "status": str(JournalStatus.IN_PROGRESS),
            "chunks_cascaded": 0,
            "records_deleted": 0,
            "records_anonymized": 0,
            "records_preserved": 0,
            "records_reassigned": 0,
            "warnings": [],
            "started_at": started_at,
            "completed_at": None,
            "error_message": None,
            "external_deletion_error": None,
        }
        entry.update({name: user.get(name) for name in SNAPSHOT_FIELDS})
        return entry

    def open_entry(
        self,
        user: Mapping[str, Any],
        *,
        external_id: str | None,
        initiator_id: str,
        reason: str | None,
        started_at: datetime,
    ) -> str:
        """Create an ``in_progress`` entry with a profile snapshot.

        Returns:
            The new entry id.
        """
        entry = self._new_entry(
            user,
            external_id=external_id,
            initiator_id=initiator_id,
            reason=reason,
            started_at=started_at,
        )
        entry_id = self._store.insert(self._table, entry)
        logger.info(
            "journal_entry_opened",
            extra={"entry_id": entry_id, "user_id": entry["user_id"]},
        )
        return entry_id

    def complete(
        self,
        entry_id: str,
        *,
        scope: Mapping[str, Any],
        chunks_cascaded: int,
        records_deleted: int,
        records_anonymized: int,
        records_preserved: int,
        records_reassigned: int,
        warnings: Sequence[str],
        completed_at: datetime,
    ) -> None:
        self._store.patch(
            self._table,
            entry_id,
            {
                "scope": dict(scope),
                "status": str(JournalStatus.COMPLETED),
                "chunks_cascaded": chunks_cascaded,
                "records_deleted": records_deleted,
                "records_anonymized": records_anonymized,
                "records_preserved": records_preserved,
                "records_reassigned": records_reassigned,
                "warnings": list(warnings),
                "completed_at": completed_at,
            },
        )

    def fail(self, entry_id: str, *, error_message: str, completed_at: datetime) -> None:
        self._store.patch(
            self._table,
            entry_id,
            {
                "status": str(JournalStatus.FAILED),
                "error_message": error_message,
                "completed_at": completed_at,
            },
        )

    def record_failure_only(
        self,
        user: Mapping[str, Any],
        *,
        initiator_id: str,
        reason: str | None,
        error_message: str,
        external_id: str | None = None,
        started_at: datetime,
        completed_at: datetime,
    ) -> str:
        """Write a ``failed`` entry for an attempt that failed before one was opened."""
        entry = self._new_entry(
            user,
            external_id=external_id,
            initiator_id=initiator_id,
            reason=reason,
            started_at=started_at,
        )
        entry.update(
            status=str(JournalStatus.FAILED),
            error_message=error_message,
            completed_at=completed_at,
        )
        entry_id = self._store.insert(self._table, entry)
        logger.warning(
            "journal_failure_only_entry",
            extra={"entry_id": entry_id, "user_id": entry["user_id"]},
        )
        return entry_id

    def entries_for(self, user_id: str) -> list[Document]:
        """Entries for ``user_id``, newest first."""
        return self._newest_first(self._store.query(self._table, {"user_id": user_id}))

    def latest_for(self, user_id: str) -> Document | None:
        entries = self.entries_for(user_id)
        return entries[0] if entries else None

    def find_latest_in_progress(self, user_id: str) -> Document | None:
        entries = self._store.query(
            self._table,
            {"user_id": user_id, "status": str(JournalStatus.IN_PROGRESS)},
        )
        ordered = self._newest_first(entries)
        return ordered[0] if ordered else None

    def find_external_id(self, user_id: str) -> str | None:
        """External id captured by the newest entry for ``user_id`` that has one."""
        for entry in self.entries_for(user_id):
            if entry.get("external_id"):
                return str(entry["external_id"])
        return None

    def record_external_identity_deletion(
        self,
        user_id: str,
        *,
        deleted: bool,
        error: str | None = None,
        entry_id: str | None = None,
    ) -> str | None:
        """Patch an entry with the identity provider outcome.

        The entry is ``entry_id`` when given, else the newest entry for ``user_id``.

        Returns:
            The patched entry id, or None if the user has no entry.
        """
        entry = self.get(entry_id) if entry_id else self.latest_for(user_id)
        if entry is None:
            logger.warning("journal_entry_missing_for_idp_status", extra={"user_id": user_id})
            return None
        scope = {**empty_scope(), **(entry.get("scope") or {})}
        scope["external_identity_deleted"] = deleted
        self._store.patch(
            self._table,
            entry["id"],
            {"scope": scope, "external_deletion_error": error},
        )
        return str(entry["id"])

    def get(self, entry_id: str) -> Document | None:
        return self._store.get(self._table, entry_id)

    def list_entries(self) -> list[Document]:
        """Every entry, newest first."""
        return self._newest_first(self._store.query(self._table, {}))

    def delete_entry(self, entry_id: str) -> Document:
        """Permanently remove an entry.

        Returns:
            The removed entry.

        Raises:
            NotFoundError: If the entry does not exist.
        """
        entry = self.get(entry_id)
        if entry is None:
            raise NotFoundError(self._table, entry_id)
        self._store.delete(self._table, entry_id)
        logger.warning("journal_entry_deleted", extra={"entry_id": entry_id})
        return entry

    @staticmethod
    def _newest_first(entries: list[Document]) -> list[Document]:
        # Ties on started_at fall back to id so the order is stable across stores
        return sorted(
            entries,
            key=lambda e: (
                e.get("started_at") is not None,
                e.get("started_at"),
                str(e.get("id", "")),
            ),
            reverse=True,
        )
