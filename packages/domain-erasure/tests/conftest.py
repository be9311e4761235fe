"""Shared fixtures for domain-erasure tests.

The seeded store models a small team:

- ``user-42`` (crew) is the subject: three tasks, two invoices, one
  compliance log, one project, an avatar blob and an external identity.
- ``user-7`` (crew) owns one task and receives reassigned projects.
- ``admin-1`` and ``admin-2`` are admirals.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from oblivio.domain.erasure.cascade import UserDeletionCascade
from oblivio.domain.erasure.manifest import DeletionManifest, TableDeletionConfig
from oblivio.domain.erasure.settings import CascadeSettings
from oblivio.domain.identity.infrastructure.identity_registry import IdentityRegistry
from oblivio.infra.persistence.memory_store import InMemoryBlobStore, InMemoryDocumentStore

START = datetime(2026, 1, 1, 9, 0, tzinfo=UTC)


class StepClock:
    """UTC clock that advances one second per call."""

    def __init__(self, start: datetime = START, step: timedelta = timedelta(seconds=1)) -> None:
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        now = self.current
        self.current += self.step
        return now


def build_manifest(batch_size: int = 2) -> DeletionManifest:
    return DeletionManifest(
        cascade={
            "tasks": TableDeletionConfig(fields={"created_by": "delete"}),
            "invoices": TableDeletionConfig(
                fields={"created_by": "anonymize"},
                pii_fields=("billing_name",),
            ),
            "compliance_logs": TableDeletionConfig(fields={"user_id": "preserve"}),
            "projects": TableDeletionConfig(fields={"owner_id": "reassign"}),
        },
        preserve=["deletion_journal"],
        storage_fields={
            "users": ["avatar_url", "brand_logo_url"],
            "tasks": ["attachment_id"],
        },
        default_batch_size=batch_size,
    )


def seed_tables() -> dict[str, list[dict]]:
    return {
        "users": [
            {
                "id": "user-42",
                "email": "alice@example.com",
                "first_name": "Alice",
                "last_name": "Moreau",
                "rank": "crew",
                "avatar_url": "blob-avatar-42",
                "brand_logo_url": "https://cdn.example.com/logo.png",
            },
            {"id": "user-7", "email": "bob@example.com", "rank": "crew"},
            {"id": "admin-1", "email": "root@example.com", "rank": "admiral"},
            {"id": "admin-2", "email": "ops@example.com", "rank": "admiral"},
        ],
        "tasks": [
            {"id": "t1", "created_by": "user-42", "title": "Draft", "attachment_id": "blob-t1"},
            {"id": "t2", "created_by": "user-42", "title": "Review"},
            {"id": "t3", "created_by": "user-42", "title": "Ship"},
            {"id": "t4", "created_by": "user-7", "title": "Unrelated"},
        ],
        "invoices": [
            {
                "id": "i1",
                "created_by": "user-42",
                "amount": 120,
                "email": "alice@example.com",
                "billing_name": "Alice Moreau",
            },
            {"id": "i2", "created_by": "user-42", "amount": 80, "email": None},
        ],
        "compliance_logs": [{"id": "c1", "user_id": "user-42", "event": "consent"}],
        "projects": [{"id": "p1", "owner_id": "user-42", "name": "Atlas"}],
    }


@pytest.fixture()
def clock() -> StepClock:
    return StepClock()


@pytest.fixture()
def settings() -> CascadeSettings:
    return CascadeSettings(_env_file=None, stale_after_seconds=300, default_batch_size=2)


@pytest.fixture()
def manifest() -> DeletionManifest:
    return build_manifest()


@pytest.fixture()
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore(seed_tables())


@pytest.fixture()
def blobs() -> InMemoryBlobStore:
    return InMemoryBlobStore(["blob-avatar-42", "blob-t1", "blob-other"])


@pytest.fixture()
def registry(store: InMemoryDocumentStore) -> IdentityRegistry:
    reg = IdentityRegistry(store)
    reg.register("ext_42", "user-42")
    reg.register("ext_7", "user-7")
    return reg


@pytest.fixture()
def cascade(
    store: InMemoryDocumentStore,
    blobs: InMemoryBlobStore,
    registry: IdentityRegistry,
    manifest: DeletionManifest,
    settings: CascadeSettings,
    clock: StepClock,
) -> UserDeletionCascade:
    return UserDeletionCascade(
        store,
        blobs,
        registry,
        manifest=manifest,
        settings=settings,
        clock=clock,
    )
