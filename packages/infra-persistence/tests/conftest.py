"""Shared fixtures for infra-persistence tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import JSON, Column, MetaData, String, Table, create_engine
from sqlalchemy.pool import StaticPool

from oblivio.infra.persistence.sql_document_store import SqlDocumentStore

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy import Engine


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
    md = MetaData()
    Table(
        "tasks",
        md,
        Column("id", String, primary_key=True),
        Column("created_by", String, index=True),
        Column("title", String),
        Column("tags", JSON),
    )
    md.create_all(engine)
    return md


@pytest.fixture()
def sql_store(engine: Engine, metadata: MetaData) -> SqlDocumentStore:
    return SqlDocumentStore(engine, metadata)
