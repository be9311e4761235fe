"""User deletion cascade orchestrator.

Walks the deletion manifest and disposes of every document that references
the user, in bounded batches that each commit on their own. There is no
transaction around the whole cascade: a crash leaves a tombstoned user and
an ``in_progress`` journal entry, and a later call resumes once the
tombstone is stale.

State machine::

    IDLE -> TOMBSTONE_MARKED -> SWEEPING -> CASCADING -> FINALIZING -> COMPLETED
                   |               |            |             |
                   +---------------+------------+-------------+----> FAILED

Error classes:
1. Guard refusal (already completed / in progress): ``success=False``, no writes.
2. Reassign without a target, or a manifest table or field missing from the
   store: warning recorded, field or table skipped.
3. Per-document failure: logged, counted in ``records_failed``.
4. Anything else after tombstoning: user marked ``failed``, journal entry
   patched to ``failed``, ``success=False`` with the error message.

Caller errors (admin deletion without a reason, reassigning to the subject)
are raised as ``ValidationError`` before any work is done.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, field_validator

from oblivio.domain.erasure.guard import evaluate_deletion_guard
from oblivio.domain.erasure.journal import DeletionJournal, empty_scope
from oblivio.domain.erasure.manifest import DEFAULT_MANIFEST, Disposition
from oblivio.domain.erasure.settings import get_cascade_settings
from oblivio.domain.erasure.strategies import (
    ReassignTargetMissingError,
    execute_batch_anonymize,
    execute_batch_delete,
    execute_batch_preserve,
    execute_batch_reassign,
)
from oblivio.domain.erasure.sweeper import StorageSweeper
from oblivio.foundation.domain.exceptions import (
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
)
from oblivio.foundation.domain.user_value_objects import DeletionStatus

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from oblivio.domain.erasure.manifest import DeletionManifest
    from oblivio.domain.erasure.settings import CascadeSettings
    from oblivio.foundation.domain.ports import (
        BlobStorePort,
        Document,
        DocumentStorePort,
        IdentityRegistryPort,
    )

logger = logging.getLogger(__name__)

USER_NOT_FOUND = "User not found"
INTERRUPTED_MESSAGE = "Interrupted; superseded by a resumed cascade"


class CascadeState(StrEnum):
    IDLE = "idle"
    TOMBSTONE_MARKED = "tombstone_marked"
    SWEEPING = "sweeping"
    CASCADING = "cascading"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    FAILED = "failed"


_TRANSITIONS: dict[CascadeState, frozenset[CascadeState]] = {
    CascadeState.IDLE: frozenset({CascadeState.TOMBSTONE_MARKED}),
    CascadeState.TOMBSTONE_MARKED: frozenset({CascadeState.SWEEPING, CascadeState.FAILED}),
    CascadeState.SWEEPING: frozenset({CascadeState.CASCADING, CascadeState.FAILED}),
    CascadeState.CASCADING: frozenset({CascadeState.FINALIZING, CascadeState.FAILED}),
    CascadeState.FINALIZING: frozenset({CascadeState.COMPLETED, CascadeState.FAILED}),
    CascadeState.COMPLETED: frozenset(),
    CascadeState.FAILED: frozenset(),
}


class CascadeOptions(BaseModel):
    """Caller-supplied options for one cascade.

    Attributes:
        new_owner_id: Target owner for ``reassign`` fields.
        delete_storage_files: Sweep the user's blobs before cascading.
        skip_external_identity_deletion: Leave the identity provider account alone.
        reason: Why the user is being erased. Required for admin-initiated
            deletions; never blank.
    """

    model_config = ConfigDict(frozen=True)

    new_owner_id: str | None = None
    delete_storage_files: bool = True
    skip_external_identity_deletion: bool = False
    reason: str | None = None

    @field_validator("reason")
    @classmethod
    def _reason_not_blank(cls, v: str | None) -> str | None:
        if v is None:
            return v
        stripped = v.strip()
        if not stripped:
            msg = "reason must not be empty"
            raise ValueError(msg)
        return stripped


@dataclass
class TableStats:
    """Per-table counters."""

    deleted: int = 0
    anonymized: int = 0
    preserved: int = 0
    reassigned: int = 0
    failed: int = 0
    chunks: int = 0

    @property
    def touched(self) -> int:
        return self.deleted + self.anonymized + self.preserved + self.reassigned

    def summary(self, table: str) -> str:
        return (
            f"{table}:{self.touched} (del:{self.deleted} anon:{self.anonymized} "
            f"pres:{self.preserved} reas:{self.reassigned})"
        )


@dataclass
class CascadeResult:
    """Outcome of one cascade invocation (returned, not persisted).

    Attributes:
        success: True only when the cascade reached COMPLETED.
        tables_processed: Tables in which at least one document was handled.
        records_deleted: Documents deleted, plus one for the user record.
        records_anonymized: Documents anonymized.
        records_preserved: Documents deliberately left in place.
        records_reassigned: Documents handed to the new owner.
        records_failed: Documents a strategy could not handle.
        files_deleted: Blob ids removed by the storage sweep.
        chunks_cascaded: Batches processed.
        duration_seconds: Wall-clock duration.
        error_message: Refusal or failure reason.
        warnings: Configuration warnings (e.g. reassign without target).
        journal_entry_id: Audit journal entry for this attempt, if any.
        external_id: Identity provider id captured before the mapping was severed.
        state: Final state-machine state.
    """

    success: bool
    tables_processed: list[str] = field(default_factory=list)
    records_deleted: int = 0
    records_anonymized: int = 0
    records_preserved: int = 0
    records_reassigned: int = 0
    records_failed: int = 0
    files_deleted: list[str] = field(default_factory=list)
    chunks_cascaded: int = 0
    duration_seconds: float = 0.0
    error_message: str | None = None
    warnings: list[str] = field(default_factory=list)
    journal_entry_id: str | None = None
    external_id: str | None = None
    state: CascadeState = CascadeState.IDLE


@dataclass
class _CascadeRun:
    """Mutable bookkeeping for one invocation."""

    user_id: str
    started: float
    state: CascadeState = CascadeState.IDLE
    entry_id: str | None = None
    external_id: str | None = None
    files_deleted: list[str] = field(default_factory=list)
    tables: dict[str, TableStats] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    user_row_deleted: bool = False

    def transition(self, target: CascadeState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise InvalidStateTransitionError(
                f"Cannot move cascade from {self.state} to {target}",
                current_state=str(self.state),
                target_state=str(target),
            )
        logger.debug(
            "cascade_state_changed",
            extra={"user_id": self.user_id, "from_state": str(self.state), "to_state": str(target)},
        )
        self.state = target

    def total(self, attr: str) -> int:
        return sum(getattr(stats, attr) for stats in self.tables.values())

    def result(self, *, success: bool, error_message: str | None = None) -> CascadeResult:
        return CascadeResult(
            success=success,
            tables_processed=[t for t, s in self.tables.items() if s.touched > 0],
            records_deleted=self.total("deleted") + int(self.user_row_deleted),
            records_anonymized=self.total("anonymized"),
            records_preserved=self.total("preserved"),
            records_reassigned=self.total("reassigned"),
            records_failed=self.total("failed"),
            files_deleted=list(self.files_deleted),
            chunks_cascaded=self.total("chunks"),
            duration_seconds=time.monotonic() - self.started,
            error_message=error_message,
            warnings=list(self.warnings),
            journal_entry_id=self.entry_id,
            external_id=self.external_id,
            state=self.state,
        )


def _utcnow() -> datetime:
    return datetime.now(UTC)


class UserDeletionCascade:
    """Erases one user across every table in the deletion manifest.

    Args:
        store: Document store holding users, related tables and the journal.
        blobs: Blob store for the storage sweep.
        registry: Identity registry to resolve and sever the external id.
        manifest: Deletion manifest. Defaults to ``DEFAULT_MANIFEST`` with
            the configured default batch size.
        settings: Cascade settings. Defaults to ``get_cascade_settings()``.
        clock: UTC clock used for tombstones and journal timestamps.
    """

    def __init__(
        self,
        store: DocumentStorePort,
        blobs: BlobStorePort,
        registry: IdentityRegistryPort,
        *,
        manifest: DeletionManifest | None = None,
        settings: CascadeSettings | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._blobs = blobs
        self._registry = registry
        self._settings = settings or get_cascade_settings()
        self._manifest = manifest or DEFAULT_MANIFEST.with_batch_size(
            self._settings.default_batch_size
        )
        self._clock = clock
        self._journal = DeletionJournal(store, self._settings.journal_table)
        self._sweeper = StorageSweeper(store, blobs, self._manifest, self._settings.users_table)

    @property
    def manifest(self) -> DeletionManifest:
        return self._manifest

    @property
    def journal(self) -> DeletionJournal:
        return self._journal

    @property
    def users_table(self) -> str:
        return self._settings.users_table

    def execute(
        self,
        user_id: str,
        initiator_id: str,
        options: CascadeOptions | None = None,
    ) -> CascadeResult:
        """Run (or resume) the cascade for ``user_id``.

        Args:
            user_id: Subject of the erasure.
            initiator_id: Internal id of whoever requested it. Authorization
                is the caller's job; the cascade only records it.
            options: Cascade options.

        Returns:
            CascadeResult. Refusals and failures are reported, not raised.

        Raises:
            ValidationError: Admin-initiated call without a reason, or a
                reassign target equal to the subject.
        """
        options = options or CascadeOptions()
        if initiator_id != user_id and not options.reason:
            raise ValidationError(
                "reason",
                "Reason is required for admin-initiated deletion",
                user_id=user_id,
            )
        if options.new_owner_id is not None and options.new_owner_id == user_id:
            raise ValidationError(
                "new_owner_id",
                "Cannot reassign records to the user being deleted",
                user_id=user_id,
            )

        run = _CascadeRun(user_id=user_id, started=time.monotonic())
        started_at = self._clock()
        user: Document | None = None
        logger.info(
            "cascade_requested",
            extra={"user_id": user_id, "initiator_id": initiator_id},
        )

        try:
            user = self._store.get(self.users_table, user_id)
            if user is None:
                logger.warning("cascade_user_not_found", extra={"user_id": user_id})
                return run.result(success=False, error_message=USER_NOT_FOUND)

            decision = evaluate_deletion_guard(
                user, now=started_at, stale_after=self._settings.stale_after
            )
            if not decision.proceed:
                logger.info(
                    "cascade_refused",
                    extra={"user_id": user_id, "reason": decision.reason},
                )
                return run.result(success=False, error_message=decision.reason)

            self._store.patch(
                self.users_table,
                user_id,
                {"deletion_status": str(DeletionStatus.PENDING), "deleted_at": started_at},
            )
            run.transition(CascadeState.TOMBSTONE_MARKED)

            carried_external_id = None
            if decision.resuming:
                # The mapping may already be gone if the crashed run reached it
                carried_external_id = self._journal.find_external_id(user_id)
                self._close_interrupted_entries(user_id, started_at)

            run.external_id = (
                self._registry.resolve_external_id(user_id) or carried_external_id
            )
            if run.external_id is None:
                logger.warning("cascade_external_identity_missing", extra={"user_id": user_id})
            run.entry_id = self._journal.open_entry(
                user,
                external_id=run.external_id,
                initiator_id=initiator_id,
                reason=options.reason,
                started_at=started_at,
            )

            run.transition(CascadeState.SWEEPING)
            if options.delete_storage_files:
                run.files_deleted = self._sweeper.sweep(user)

            run.transition(CascadeState.CASCADING)
            for table in self._manifest.cascade_tables():
                try:
                    run.tables[table] = self._cascade_table(run, table, options)
                except NotFoundError as err:
                    if err.resource_type != "table":
                        raise
                    logger.warning(
                        "cascade_table_missing",
                        extra={"user_id": user_id, "table": table},
                    )
                    run.warnings.append(f"Table {table} does not exist in the store")

            run.transition(CascadeState.FINALIZING)
            self._registry.sever_mapping(user_id)
            self._store.delete(self.users_table, user_id)
            run.user_row_deleted = True

            self._journal.complete(
                run.entry_id,
                scope={
                    **empty_scope(),
                    "profile_deleted": True,
                    "storage_files_deleted": list(run.files_deleted),
                    "related_tables": [
                        stats.summary(table)
                        for table, stats in run.tables.items()
                        if stats.touched > 0
                    ],
                },
                chunks_cascaded=run.total("chunks"),
                records_deleted=run.total("deleted") + 1,
                records_anonymized=run.total("anonymized"),
                records_preserved=run.total("preserved"),
                records_reassigned=run.total("reassigned"),
                warnings=run.warnings,
                completed_at=self._clock(),
            )
            run.transition(CascadeState.COMPLETED)
        except Exception as exc:
            return self._fail(run, user, initiator_id, options, exc, started_at)

        result = run.result(success=True)
        logger.info(
            "cascade_completed",
            extra={
                "user_id": user_id,
                "records_deleted": result.records_deleted,
                "records_anonymized": result.records_anonymized,
                "records_preserved": result.records_preserved,
                "records_reassigned": result.records_reassigned,
                "records_failed": result.records_failed,
                "files_deleted": len(result.files_deleted),
                "chunks_cascaded": result.chunks_cascaded,
                "duration_seconds": round(result.duration_seconds, 3),
            },
        )
        return result

    def _cascade_table(
        self,
        run: _CascadeRun,
        table: str,
        options: CascadeOptions,
    ) -> TableStats:
        """Apply every field disposition of ``table`` in bounded batches.

        Documents that still match after a batch (preserved or failed) move
        the offset forward, so every page is visited once and the loop ends.
        """
        stats = TableStats()
        batch_size = self._manifest.batch_size_for(table)
        user_id = run.user_id

        for field_name, disposition in self._manifest.fields_for(table):
            offset = 0
            while True:
                try:
                    docs = self._store.query(
                        table, {field_name: user_id}, limit=batch_size, offset=offset
                    )
                except NotFoundError as err:
                    if err.resource_type != "column":
                        raise
                    logger.warning(
                        "cascade_field_missing",
                        extra={"user_id": user_id, "table": table, "field": field_name},
                    )
                    run.warnings.append(f"Field {table}.{field_name} does not exist in the store")
                    break
                if not docs:
                    break

                if disposition is Disposition.REASSIGN:
                    try:
                        handled = execute_batch_reassign(
                            self._store,
                            table,
                            docs,
                            field_name,
                            options.new_owner_id,
                            now=self._clock,
                        )
                    except ReassignTargetMissingError as err:
                        logger.warning(
                            "cascade_reassign_target_missing",
                            extra={"user_id": user_id, "table": table, "field": field_name},
                        )
                        run.warnings.append(err.reason)
                        break
                    stats.reassigned += handled
                elif disposition is Disposition.DELETE:
                    handled = execute_batch_delete(self._store, table, docs)
                    stats.deleted += handled
                elif disposition is Disposition.ANONYMIZE:
                    handled = execute_batch_anonymize(
                        self._store,
                        table,
                        docs,
                        field_name,
                        placeholder=self._settings.anonymized_placeholder,
                        pii_fields=self._manifest.pii_fields_for(table),
                        now=self._clock,
                    )
                    stats.anonymized += handled
                else:
                    handled = execute_batch_preserve(docs)
                    stats.preserved += handled

                stats.chunks += 1
                if disposition is Disposition.PRESERVE:
                    offset += len(docs)
                elif handled < len(docs):
                    stuck = self._count_still_matching(table, field_name, user_id, docs)
                    stats.failed += stuck
                    offset += stuck

                if len(docs) < batch_size:
                    break

        if stats.touched or stats.failed:
            logger.info(
                "cascade_table_processed",
                extra={
                    "user_id": user_id,
                    "table": table,
                    "deleted": stats.deleted,
                    "anonymized": stats.anonymized,
                    "preserved": stats.preserved,
                    "reassigned": stats.reassigned,
                    "failed": stats.failed,
                    "chunks": stats.chunks,
                },
            )
        return stats

    def _count_still_matching(
        self,
        table: str,
        field_name: str,
        user_id: str,
        docs: Sequence[Document],
    ) -> int:
        """Count documents of a batch that a strategy left referencing the user."""
        count = 0
        for doc in docs:
            current = self._store.get(table, doc["id"])
            if current is not None and current.get(field_name) == user_id:
                count += 1
        return count

    def _close_interrupted_entries(self, user_id: str, now: datetime) -> None:
        while (entry := self._journal.find_latest_in_progress(user_id)) is not None:
            self._journal.fail(entry["id"], error_message=INTERRUPTED_MESSAGE, completed_at=now)
            logger.info(
                "journal_interrupted_entry_closed",
                extra={"user_id": user_id, "entry_id": entry["id"]},
            )

    def _fail(
        self,
        run: _CascadeRun,
        user: Document | None,
        initiator_id: str,
        options: CascadeOptions,
        exc: Exception,
        started_at: datetime,
    ) -> CascadeResult:
        error_message = str(exc) or exc.__class__.__name__
        logger.error(
            "cascade_failed",
            exc_info=exc,
            extra={"user_id": run.user_id, "state": str(run.state)},
        )
        if run.state is CascadeState.IDLE:
            # Nothing was written yet
            return run.result(success=False, error_message=error_message)

        run.transition(CascadeState.FAILED)
        if not run.user_row_deleted:
            try:
                self._store.patch(
                    self.users_table,
                    run.user_id,
                    {"deletion_status": str(DeletionStatus.FAILED)},
                )
            except Exception:
                logger.warning(
                    "cascade_mark_failed_error", exc_info=True, extra={"user_id": run.user_id}
                )

        completed_at = self._clock()
        try:
            entry_id = run.entry_id
            if entry_id is None:
                entry = self._journal.find_latest_in_progress(run.user_id)
                entry_id = entry["id"] if entry is not None else None
            if entry_id is not None:
                self._journal.fail(entry_id, error_message=error_message, completed_at=completed_at)
            elif user is not None:
                entry_id = self._journal.record_failure_only(
                    user,
                    external_id=run.external_id,
                    initiator_id=initiator_id,
                    reason=options.reason,
                    error_message=error_message,
                    started_at=started_at,
                    completed_at=completed_at,
                )
            run.entry_id = entry_id
        except Exception:
            logger.error(
                "cascade_journal_update_failed", exc_info=True, extra={"user_id": run.user_id}
            )
        return run.result(success=False, error_message=error_message)


def execute_user_deletion_cascade(
    store: DocumentStorePort,
    blobs: BlobStorePort,
    registry: IdentityRegistryPort,
    user_id: str,
    initiator_id: str,
    options: CascadeOptions | None = None,
    *,
    manifest: DeletionManifest | None = None,
    settings: CascadeSettings | None = None,
    clock: Callable[[], datetime] = _utcnow,
) -> CascadeResult:
    """Run the user deletion cascade once.

    Convenience wrapper around :class:`UserDeletionCascade`.

    Example:
        >>> result = execute_user_deletion_cascade(
        ...     store, blobs, registry, "user-42", "user-42",
        ...     CascadeOptions(reason="Closing my account"),
        ... )
        >>> result.success
        True
    """
    cascade = UserDeletionCascade(
        store,
        blobs,
        registry,
        manifest=manifest,
        settings=settings,
        clock=clock,
    )
    return cascade.execute(user_id, initiator_id, options)


__all__: list[str] = [
    "CascadeOptions",
    "CascadeResult",
    "CascadeState",
    "TableStats",
    "UserDeletionCascade",
    "execute_user_deletion_cascade",
]
