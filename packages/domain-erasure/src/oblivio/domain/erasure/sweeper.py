"""Storage sweeper: removes blobs owned by a user before the cascade runs.

Blob references are collected from two places:
1. The user record's own storage fields (avatar, brand logo).
2. Storage fields of documents that reference the user through a field
   whose disposition is ``delete`` or ``anonymize``. Deleted documents take
   the last pointer to their blobs with them, and an anonymized document
   must not keep the person's uploads once the link to them is scrubbed.

Documents that are reassigned now belong to the new owner, and preserved
documents are retained as they are, so their blobs stay.

Historical records sometimes hold an externalized URL instead of a managed
blob id. Only managed ids are deleted.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from oblivio.domain.erasure.manifest import Disposition
from oblivio.foundation.domain.exceptions import NotFoundError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from oblivio.domain.erasure.manifest import DeletionManifest
    from oblivio.foundation.domain.ports import BlobStorePort, Document, DocumentStorePort

logger = logging.getLogger(__name__)

_EXTERNAL_PREFIXES = ("http://", "https://", "data:")

_SWEPT_DISPOSITIONS = frozenset({Disposition.DELETE, Disposition.ANONYMIZE})


def is_managed_blob_reference(value: Any) -> bool:
    """True if ``value`` looks like a managed blob id rather than a URL."""
    if not isinstance(value, str):
        return False
    ref = value.strip()
    return bool(ref) and not ref.lower().startswith(_EXTERNAL_PREFIXES)


def _references(value: Any) -> Iterator[str]:
    if isinstance(value, list | tuple):
        for item in value:
            yield from _references(item)
    elif is_managed_blob_reference(value):
        yield value.strip()


class StorageSweeper:
    """Collects and deletes a user's managed blobs.

    Args:
        store: Document store holding the user and related tables.
        blobs: Blob store to delete from.
        manifest: Deletion manifest naming the storage fields.
        users_table: Table holding user records.
    """

    def __init__(
        self,
        store: DocumentStorePort,
        blobs: BlobStorePort,
        manifest: DeletionManifest,
        users_table: str = "users",
    ) -> None:
        self._store = store
        self._blobs = blobs
        self._manifest = manifest
        self._users_table = users_table

    def collect(self, user: Document) -> list[str]:
        """Return managed blob ids owned by ``user``, deduplicated, in discovery order."""
        found: dict[str, None] = {}
        for name in self._manifest.storage_fields_for(self._users_table):
            found.update(dict.fromkeys(_references(user.get(name))))

        user_id = user["id"]
        for table in self._manifest.storage_tables():
            if table == self._users_table:
                continue
            storage_fields = self._manifest.storage_fields_for(table)
            for field, disposition in self._manifest.fields_for(table):
                if disposition not in _SWEPT_DISPOSITIONS:
                    continue
                try:
                    for doc in self._iter_matching(table, field, user_id):
                        for name in storage_fields:
                            found.update(dict.fromkeys(_references(doc.get(name))))
                except NotFoundError:
                    # Table or field missing from the store; the cascade reports it
                    logger.warning(
                        "storage_sweep_source_missing",
                        extra={"table": table, "field": field},
                    )
        return list(found)

    def sweep(self, user: Document) -> list[str]:
        """Delete every managed blob owned by ``user``.

        Per-blob failures are logged and skipped.

        Returns:
            Blob ids that were deleted.
        """
        deleted: list[str] = []
        for blob_id in self.collect(user):
            try:
                self._blobs.delete(blob_id)
            except Exception:
                logger.warning(
                    "storage_blob_delete_failed",
                    exc_info=True,
                    extra={"blob_id": blob_id},
                )
                continue
            deleted.append(blob_id)
        logger.info(
            "storage_sweep_completed",
            extra={"user_id": user["id"], "files_deleted": len(deleted)},
        )
        return deleted

    def _iter_matching(self, table: str, field: str, user_id: str) -> Iterator[Document]:
        batch_size = self._manifest.batch_size_for(table)
        offset = 0
        while True:
            page = self._store.query(table, {field: user_id}, limit=batch_size, offset=offset)
            yield from page
            if len(page) < batch_size:
                return
            offset += len(page)
