"""Port interface for the external document store.

The erasure engine does not own a storage engine. It consumes a store that
can read one document, filter a table by field equality, and write or
delete single documents. Each call is expected to commit independently;
the engine never needs a transaction spanning more than one call.

Example:
    >>> from oblivio.foundation.domain.ports import DocumentStorePort
    >>> def count_tasks(store: DocumentStorePort, user_id: str) -> int:
    ...     return len(store.query("tasks", {"created_by": user_id}))
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping

Document = dict[str, Any]


@runtime_checkable
class DocumentStorePort(Protocol):
    """Port for document/table store access.

    Documents are plain dicts carrying their identifier under ``"id"``.
    ``query`` results are ordered by id so that offset paging is stable
    while other documents are being removed from the result set.
    """

    def get(self, table: str, doc_id: str) -> Document | None:
        """Fetch one document by id.

        Args:
            table: Table (collection) name.
            doc_id: Document identifier.

        Returns:
            The document, or None if it does not exist.
        """
        ...

    def query(
        self,
        table: str,
        filters: Mapping[str, Any],
        *,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Document]:
        """Return documents whose fields equal every value in ``filters``.

        Args:
            table: Table (collection) name.
            filters: Field name to required value.
            limit: Maximum number of documents to return (None for all).
            offset: Number of matching documents to skip.

        Returns:
            A page of matching documents ordered by id.
        """
        ...

    def patch(self, table: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        """Update the given fields of one document.

        Raises:
            NotFoundError: If the document does not exist.
        """
        ...

    def delete(self, table: str, doc_id: str) -> None:
        """Delete one document.

        Raises:
            NotFoundError: If the document does not exist.
        """
        ...

    def insert(self, table: str, fields: Mapping[str, Any]) -> str:
        """Insert a document and return its id.

        An ``"id"`` key in ``fields`` is used as-is; otherwise the store
        assigns one.
        """
        ...
