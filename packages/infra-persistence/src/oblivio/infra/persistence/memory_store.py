"""In-memory store adapters for tests and local runs.

Both stores keep their state in plain dicts/sets and return copies, so
callers can never mutate stored state by accident.
"""

from __future__ import annotations

import copy
import uuid
from typing import TYPE_CHECKING, Any

from oblivio.foundation.domain.exceptions import NotFoundError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from oblivio.foundation.domain.ports import Document


class InMemoryDocumentStore:
    """``DocumentStorePort`` over a dict of tables.

    Example:
        >>> store = InMemoryDocumentStore({"users": [{"id": "user-42"}]})
        >>> store.get("users", "user-42")
        {'id': 'user-42'}
    """

    def __init__(self, tables: Mapping[str, Iterable[Document]] | None = None) -> None:
        self._tables: dict[str, dict[str, Document]] = {}
        for table, docs in (tables or {}).items():
            for doc in docs:
                self.insert(table, doc)

    def tables(self) -> list[str]:
        return list(self._tables)

    def all(self, table: str) -> list[Document]:
        """Every document in ``table``, ordered by id."""
        return self.query(table, {})

    def get(self, table: str, doc_id: str) -> Document | None:
        doc = self._tables.get(table, {}).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    def query(
        self,
        table: str,
        filters: Mapping[str, Any],
        *,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Document]:
        rows = self._tables.get(table, {})
        matches = [
            rows[doc_id]
            for doc_id in sorted(rows)
            if all(rows[doc_id].get(k) == v for k, v in filters.items())
        ]
        end = None if limit is None else offset + limit
        return [copy.deepcopy(doc) for doc in matches[offset:end]]

    def patch(self, table: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        doc = self._tables.get(table, {}).get(doc_id)
        if doc is None:
            raise NotFoundError(table, doc_id)
        doc.update(copy.deepcopy(dict(fields)))

    def delete(self, table: str, doc_id: str) -> None:
        rows = self._tables.get(table, {})
        if doc_id not in rows:
            raise NotFoundError(table, doc_id)
        del rows[doc_id]

    def insert(self, table: str, fields: Mapping[str, Any]) -> str:
        doc = copy.deepcopy(dict(fields))
        doc_id = str(doc.get("id") or uuid.uuid4().hex)
        doc["id"] = doc_id
        self._tables.setdefault(table, {})[doc_id] = doc
        return doc_id


class InMemoryBlobStore:
    """``BlobStorePort`` over a set of blob ids.

    Args:
        blob_ids: Blobs that exist initially.
        failing_ids: Blobs whose deletion raises ``OSError`` (fault injection).
    """

    def __init__(
        self,
        blob_ids: Iterable[str] = (),
        *,
        failing_ids: Iterable[str] = (),
    ) -> None:
        self.blobs: set[str] = set(blob_ids)
        self.failing_ids: set[str] = set(failing_ids)
        self.deleted: list[str] = []

    def delete(self, blob_id: str) -> None:
        if blob_id in self.failing_ids:
            msg = f"blob store unavailable for {blob_id}"
            raise OSError(msg)
        # Missing blobs are tolerated
        self.blobs.discard(blob_id)
        self.deleted.append(blob_id)
