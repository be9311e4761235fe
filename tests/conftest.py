"""Shared fixtures for end-to-end tests on SQLite."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
)
from sqlalchemy.pool import StaticPool

from oblivio.domain.erasure import DeletionManifest, TableDeletionConfig
from oblivio.domain.erasure.journal import SNAPSHOT_FIELDS
from oblivio.domain.identity import IdentityRegistry
from oblivio.infra.persistence import InMemoryBlobStore, SqlDocumentStore

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy import Engine


def build_schema() -> MetaData:
    md = MetaData()
    Table(
        "users",
        md,
        Column("id", String, primary_key=True),
        Column("email", String),
        Column("first_name", String),
        Column("last_name", String),
        Column("rank", String),
        Column("avatar_url", String),
        Column("brand_logo_url", String),
        Column("deletion_status", String),
        Column("deleted_at", DateTime(timezone=True)),
    )
    Table(
        "tasks",
        md,
        Column("id", String, primary_key=True),
        Column("created_by", String, ForeignKey("users.id"), index=True),
        Column("title", String),
    )
    Table(
        "invoices",
        md,
        Column("id", String, primary_key=True),
        Column("created_by", String, ForeignKey("users.id"), index=True),
        Column("amount", Integer),
        Column("email", String),
        Column("anonymized_at", DateTime(timezone=True)),
        Column("anonymized_reason", String),
    )
    Table(
        "compliance_logs",
        md,
        Column("id", String, primary_key=True),
        Column("user_id", String, ForeignKey("users.id"), index=True),
        Column("event", String),
    )
    Table(
        "projects",
        md,
        Column("id", String, primary_key=True),
        Column("owner_id", String, ForeignKey("users.id"), index=True),
        Column("name", String),
        Column("previous_owner", String),
        Column("reassigned_at", DateTime(timezone=True)),
        Column("reassigned_reason", String),
    )
    Table(
        "identity_registry",
        md,
        Column("id", String, primary_key=True),
        Column("external_id", String, unique=True),
        Column("user_id", String, index=True),
        Column("provider", String),
        Column("created_at", DateTime(timezone=True)),
    )
    Table(
        "deletion_journal",
        md,
        Column("id", String, primary_key=True),
        Column("user_id", String, index=True),
        Column("external_id", String),
        Column("initiator_id", String),
        Column("initiator_role", String),
        Column("reason", String),
        Column("scope", JSON),
        Column("status", String),
        Column("chunks_cascaded", Integer),
        Column("records_deleted", Integer),
        Column("records_anonymized", Integer),
        Column("records_preserved", Integer),
        Column("records_reassigned", Integer),
        Column("warnings", JSON),
        Column("started_at", DateTime(timezone=True)),
        Column("completed_at", DateTime(timezone=True)),
        Column("error_message", String),
        Column("external_deletion_error", String),
        *(Column(name, String) for name in SNAPSHOT_FIELDS),
    )
    return md


@pytest.fixture()
def engine() -> Iterator[Engine]:
    eng = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    yield eng
    eng.dispose()


@pytest.fixture()
def metadata(engine: Engine) -> MetaData:
    md = build_schema()
    md.create_all(engine)
    return md


@pytest.fixture()
def sql_store(engine: Engine, metadata: MetaData) -> SqlDocumentStore:
    """Store seeded with user-42, user 7 and user-42's related records."""
    store = SqlDocumentStore(engine, metadata)
    store.insert(
        "users",
        {
            "id": "user-42",
            "email": "alice@example.com",
            "first_name": "Alice",
            "last_name": "Moreau",
            "rank": "crew",
            "avatar_url": "blob-avatar-42",
        },
    )
    store.insert("users", {"id": "7", "email": "bob@example.com", "rank": "captain"})
    for n in range(1, 4):
        store.insert("tasks", {"id": f"task-{n}", "created_by": "user-42", "title": f"Task {n}"})
    store.insert("tasks", {"id": "task-9", "created_by": "7", "title": "Bob's task"})
    store.insert("invoices", {"id": "inv-1", "created_by": "user-42", "amount": 100, "email": "alice@example.com"})
    store.insert("invoices", {"id": "inv-2", "created_by": "user-42", "amount": 250})
    store.insert("compliance_logs", {"id": "log-1", "user_id": "user-42", "event": "consent_given"})
    store.insert("projects", {"id": "proj-1", "owner_id": "user-42", "name": "Atlas"})
    return store


@pytest.fixture()
def registry(sql_store: SqlDocumentStore) -> IdentityRegistry:
    reg = IdentityRegistry(sql_store)
    reg.register("ext_42", "user-42")
    return reg


@pytest.fixture()
def blobs() -> InMemoryBlobStore:
    return InMemoryBlobStore(["blob-avatar-42"])


@pytest.fixture()
def manifest() -> DeletionManifest:
    return DeletionManifest(
        cascade={
            "tasks": TableDeletionConfig(fields={"created_by": "delete"}),
            "invoices": TableDeletionConfig(fields={"created_by": "anonymize"}),
            "compliance_logs": TableDeletionConfig(fields={"user_id": "preserve"}),
            "projects": TableDeletionConfig(fields={"owner_id": "reassign"}),
        },
        preserve=["deletion_journal"],
        storage_fields={"users": ["avatar_url", "brand_logo_url"]},
        default_batch_size=2,
    )


@pytest.fixture()
def fixed_now() -> datetime:
    return datetime(2026, 5, 1, 10, 0, tzinfo=UTC)
