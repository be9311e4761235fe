"""Document store adapter over SQLAlchemy Core.

Each table is addressed by name and each row is exchanged as a plain dict
keyed by column name. Rows must carry a string primary key column ``id``.
Every operation runs in its own transaction (``engine.begin()``): the
erasure engine only needs per-document atomicity.

Tables declared on the supplied ``MetaData`` are used as-is; anything else
is reflected from the database on first use.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy import MetaData, Table, and_, delete, func, insert, select, update
from sqlalchemy.exc import NoSuchTableError

from oblivio.foundation.domain.exceptions import NotFoundError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy import Column, Engine

    from oblivio.foundation.domain.ports import Document

logger = logging.getLogger(__name__)


class SqlDocumentStore:
    """``DocumentStorePort`` implementation backed by a relational database.

    Args:
        engine: Sync SQLAlchemy engine.
        metadata: Schema to resolve tables against. Defaults to an empty
            ``MetaData`` populated by reflection.
    """

    def __init__(self, engine: Engine, metadata: MetaData | None = None) -> None:
        self._engine = engine
        self._metadata = metadata if metadata is not None else MetaData()

    @property
    def metadata(self) -> MetaData:
        return self._metadata

    def _table(self, name: str) -> Table:
        table = self._metadata.tables.get(name)
        if table is not None:
            return table
        try:
            return Table(name, self._metadata, autoload_with=self._engine)
        except NoSuchTableError as err:
            raise NotFoundError("table", name) from err

    @staticmethod
    def _column(table: Table, name: str) -> Column[Any]:
        column = table.c.get(name)
        if column is None:
            raise NotFoundError("column", f"{table.name}.{name}")
        return column

    def get(self, table: str, doc_id: str) -> Document | None:
        t = self._table(table)
        with self._engine.connect() as conn:
            row = conn.execute(select(t).where(t.c.id == doc_id)).mappings().first()
        return dict(row) if row is not None else None

    def query(
        self,
        table: str,
        filters: Mapping[str, Any],
        *,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Document]:
        """Rows matching every filter, ordered by id.

        Raises:
            NotFoundError: If the table, or a filtered column, does not exist.
        """
        t = self._table(table)
        stmt = select(t)
        if filters:
            stmt = stmt.where(
                and_(*(self._column(t, name) == value for name, value in filters.items()))
            )
        stmt = stmt.order_by(t.c.id).offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._engine.connect() as conn:
            return [dict(row) for row in conn.execute(stmt).mappings()]

    def patch(self, table: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        """Update a row in place.

        Fields the table has no column for are dropped: rows have a fixed
        shape, while callers may stamp optional bookkeeping fields.

        Raises:
            NotFoundError: If the row does not exist.
        """
        t = self._table(table)
        values = {name: value for name, value in fields.items() if name in t.c}
        dropped = sorted(set(fields) - set(values))
        if dropped:
            logger.debug(
                "document_patch_columns_dropped",
                extra={"table": table, "doc_id": doc_id, "columns": dropped},
            )
        with self._engine.begin() as conn:
            if values:
                matched = conn.execute(
                    update(t).where(t.c.id == doc_id).values(**values)
                ).rowcount
            else:
                matched = conn.execute(
                    select(func.count()).select_from(t).where(t.c.id == doc_id)
                ).scalar_one()
        if matched == 0:
            raise NotFoundError(table, doc_id)

    def delete(self, table: str, doc_id: str) -> None:
        t = self._table(table)
        with self._engine.begin() as conn:
            matched = conn.execute(delete(t).where(t.c.id == doc_id)).rowcount
        if matched == 0:
            raise NotFoundError(table, doc_id)

    def insert(self, table: str, fields: Mapping[str, Any]) -> str:
        t = self._table(table)
        values = dict(fields)
        doc_id = str(values.get("id") or uuid.uuid4().hex)
        values["id"] = doc_id
        with self._engine.begin() as conn:
            conn.execute(insert(t).values(**values))
        logger.debug("document_inserted", extra={"table": table, "doc_id": doc_id})
        return doc_id
