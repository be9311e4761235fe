"""Oblivio Domain Erasure -- user deletion cascade, manifest and audit journal."""

from oblivio.domain.erasure.cascade import (
    CascadeOptions,
    CascadeResult,
    CascadeState,
    TableStats,
    UserDeletionCascade,
    execute_user_deletion_cascade,
)
from oblivio.domain.erasure.coverage import CoverageReport, verify_manifest_coverage
from oblivio.domain.erasure.erasure_service import ErasureOutcome, UserErasureService
from oblivio.domain.erasure.guard import GuardDecision, evaluate_deletion_guard
from oblivio.domain.erasure.journal import DeletionJournal, InitiatorRole, JournalStatus
from oblivio.domain.erasure.manifest import (
    DEFAULT_MANIFEST,
    DeletionManifest,
    Disposition,
    TableDeletionConfig,
)
from oblivio.domain.erasure.settings import CascadeSettings, get_cascade_settings
from oblivio.domain.erasure.strategies import (
    ReassignTargetMissingError,
    execute_batch_anonymize,
    execute_batch_delete,
    execute_batch_preserve,
    execute_batch_reassign,
)
from oblivio.domain.erasure.sweeper import StorageSweeper
from oblivio.domain.erasure.verification import ErasureVerification, verify_erasure

__all__ = [
    "DEFAULT_MANIFEST",
    "CascadeOptions",
    "CascadeResult",
    "CascadeSettings",
    "CascadeState",
    "CoverageReport",
    "DeletionJournal",
    "DeletionManifest",
    "Disposition",
    "ErasureOutcome",
    "ErasureVerification",
    "GuardDecision",
    "InitiatorRole",
    "JournalStatus",
    "ReassignTargetMissingError",
    "StorageSweeper",
    "TableDeletionConfig",
    "TableStats",
    "UserDeletionCascade",
    "UserErasureService",
    "evaluate_deletion_guard",
    "execute_batch_anonymize",
    "execute_batch_delete",
    "execute_batch_preserve",
    "execute_batch_reassign",
    "execute_user_deletion_cascade",
    "get_cascade_settings",
    "verify_erasure",
    "verify_manifest_coverage",
]
