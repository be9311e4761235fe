"""Oblivio Infra Persistence -- database engine and document store adapters."""

from __future__ import annotations

from oblivio.infra.persistence.database import (
    DatabaseManager,
    DatabaseSettings,
    dispose_engine,
    get_database_manager,
    get_sync_engine,
)
from oblivio.infra.persistence.memory_store import InMemoryBlobStore, InMemoryDocumentStore
from oblivio.infra.persistence.sql_document_store import SqlDocumentStore

__all__ = [
    "DatabaseManager",
    "DatabaseSettings",
    "InMemoryBlobStore",
    "InMemoryDocumentStore",
    "SqlDocumentStore",
    "dispose_engine",
    "get_database_manager",
    "get_sync_engine",
]
