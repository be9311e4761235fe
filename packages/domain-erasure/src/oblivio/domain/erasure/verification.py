"""Post-cascade verification that no references to an erased user remain."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from oblivio.domain.erasure.manifest import Disposition
from oblivio.foundation.domain.exceptions import NotFoundError

if TYPE_CHECKING:
    from oblivio.domain.erasure.manifest import DeletionManifest
    from oblivio.foundation.domain.ports import DocumentStorePort, IdentityRegistryPort

logger = logging.getLogger(__name__)


@dataclass
class ErasureVerification:
    """Result of :func:`verify_erasure`.

    Attributes:
        user_id: Subject that was checked.
        user_record_present: The user row still exists.
        identity_mapping_present: The registry still resolves an external id.
        residual: ``"table.field"`` to the number of documents still
            referencing the user through a non-preserved field.
    """

    user_id: str
    verified_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    user_record_present: bool = False
    identity_mapping_present: bool = False
    residual: dict[str, int] = field(default_factory=dict)

    @property
    def all_clear(self) -> bool:
        return not (
            self.user_record_present
            or self.identity_mapping_present
            or any(self.residual.values())
        )


def _count_matching(
    store: DocumentStorePort, table: str, field_name: str, user_id: str, batch_size: int
) -> int:
    total = 0
    offset = 0
    while True:
        page = store.query(table, {field_name: user_id}, limit=batch_size, offset=offset)
        total += len(page)
        if len(page) < batch_size:
            return total
        offset += len(page)


def verify_erasure(
    store: DocumentStorePort,
    manifest: DeletionManifest,
    user_id: str,
    *,
    users_table: str = "users",
    registry: IdentityRegistryPort | None = None,
) -> ErasureVerification:
    """Re-query every deleted, anonymized or reassigned field for ``user_id``.

    Preserved fields are skipped, since they keep the reference on purpose.

    Returns:
        ErasureVerification; ``all_clear`` is True when nothing is left.
    """
    result = ErasureVerification(user_id=user_id)
    result.user_record_present = store.get(users_table, user_id) is not None
    if registry is not None:
        result.identity_mapping_present = registry.resolve_external_id(user_id) is not None

    for table in manifest.cascade_tables():
        batch_size = manifest.batch_size_for(table)
        for field_name, disposition in manifest.fields_for(table):
            if disposition is Disposition.PRESERVE:
                continue
            try:
                residual = _count_matching(store, table, field_name, user_id, batch_size)
            except NotFoundError:
                # Nothing can reference the user through a table or column that is absent
                residual = 0
            result.residual[f"{table}.{field_name}"] = residual

    logger.info(
        "erasure_verified",
        extra={
            "user_id": user_id,
            "all_clear": result.all_clear,
            "residual": sum(result.residual.values()),
        },
    )
    return result


__all__ = ["ErasureVerification", "verify_erasure"]
