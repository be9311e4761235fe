"""Internal user id <-> external identity mapping.

The registry table is the only place where the identity provider's
external id is correlated with an internal user id. Domain tables never
carry the external id themselves, so erasing a user only needs one row
here to be severed.

Lifecycle:
1. register(external_id, user_id) -- Insert mapping at sign-up (idempotent)
2. lookup(external_id) -- Resolve internal user id at the auth boundary
3. resolve_external_id(user_id) -- Reverse lookup, erasure only
4. sever_mapping(user_id) -- Remove every mapping row for the user
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from oblivio.foundation.domain.exceptions import ConflictError, NotFoundError

if TYPE_CHECKING:
    from oblivio.foundation.domain.ports import DocumentStorePort

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_TABLE = "identity_registry"


class IdentityRegistry:
    """Document-store backed identity registry.

    Implements ``IdentityRegistryPort``.

    Attributes:
        _store: Document store holding the registry table.
        _table: Registry table name.
        _provider: Identity provider name stamped on new rows.
    """

    def __init__(
        self,
        store: DocumentStorePort,
        table: str = DEFAULT_REGISTRY_TABLE,
        provider: str = "idp",
    ) -> None:
        self._store = store
        self._table = table
        self._provider = provider

    @property
    def table(self) -> str:
        return self._table

    def register(self, external_id: str, user_id: str) -> str:
        """Register a mapping. Returns the registry row id.

        Registering the same pair twice returns the existing row.

        Raises:
            ConflictError: If ``external_id`` is already mapped to another user.
        """
        existing = self._store.query(self._table, {"external_id": external_id}, limit=1)
        if existing:
            row = existing[0]
            if row["user_id"] != user_id:
                raise ConflictError(
                    f"External id '{external_id}' is already registered",
                    external_id=external_id,
                )
            return str(row["id"])
        row_id = self._store.insert(
            self._table,
            {
                "external_id": external_id,
                "user_id": user_id,
                "provider": self._provider,
                "created_at": datetime.now(UTC),
            },
        )
        logger.info("identity_registered", extra={"user_id": user_id})
        return row_id

    def lookup(self, external_id: str) -> str | None:
        """Return the internal user id mapped to ``external_id``, if any."""
        rows = self._store.query(self._table, {"external_id": external_id}, limit=1)
        return str(rows[0]["user_id"]) if rows else None

    def resolve_external_id(self, user_id: str) -> str | None:
        rows = self._store.query(self._table, {"user_id": user_id}, limit=1)
        return str(rows[0]["external_id"]) if rows else None

    def sever_mapping(self, user_id: str) -> bool:
        """Delete every mapping row for ``user_id``.

        Returns:
            True if at least one row was removed.
        """
        removed = 0
        for row in self._store.query(self._table, {"user_id": user_id}):
            try:
                self._store.delete(self._table, row["id"])
            except NotFoundError:
                continue
            removed += 1
        if removed:
            logger.info("identity_mapping_severed", extra={"user_id": user_id, "rows": removed})
        return removed > 0
