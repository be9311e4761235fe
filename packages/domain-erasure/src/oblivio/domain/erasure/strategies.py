"""Batch executors for the four disposition strategies.

Each executor takes one batch of documents that share a user-referencing
field and returns how many of them it handled. A failure on one document
is logged and left out of the count; the rest of the batch still runs.
A document that vanished in the meantime (``NotFoundError``) is neither
counted nor reported, since there is nothing left to dispose of.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from oblivio.foundation.domain.exceptions import NotFoundError, ValidationError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from oblivio.foundation.domain.ports import Document, DocumentStorePort

logger = logging.getLogger(__name__)

DELETED_USER_PLACEHOLDER = "deleted-user"
REDACTED = "[REDACTED]"
ANONYMIZED_REASON = "User deletion cascade"
REASSIGNED_REASON = "Previous owner deleted"

# Common PII fields scrubbed whenever a document is anonymized
PII_FIELDS: tuple[str, ...] = (
    "email",
    "first_name",
    "last_name",
    "full_name",
    "display_name",
    "phone_number",
    "address",
    "ip_address",
    "user_agent",
)


class ReassignTargetMissingError(ValidationError):
    """Raised when a reassign disposition runs without a new owner.

    The orchestrator turns this into a configuration warning for the
    affected field instead of failing the cascade.
    """

    error_code: str = "REASSIGN_TARGET_MISSING"

    def __init__(self, table: str, field: str) -> None:
        super().__init__(
            "new_owner_id",
            f"Reassign strategy requires new_owner_id for {table}.{field}",
            table=table,
        )
        self.table = table
        self.target_field = field


def _now() -> datetime:
    return datetime.now(UTC)


def _apply_each(
    table: str,
    docs: Sequence[Document],
    action: str,
    apply: Callable[[Document], None],
) -> int:
    handled = 0
    for doc in docs:
        try:
            apply(doc)
        except NotFoundError:
            continue
        except Exception:
            logger.exception(
                "strategy_document_failed",
                extra={"table": table, "doc_id": doc.get("id"), "action": action},
            )
            continue
        handled += 1
    return handled


def execute_batch_delete(
    store: DocumentStorePort,
    table: str,
    docs: Sequence[Document],
) -> int:
    """Delete every document in the batch.

    Returns:
        Number of documents deleted.
    """
    return _apply_each(table, docs, "delete", lambda doc: store.delete(table, doc["id"]))


def execute_batch_anonymize(
    store: DocumentStorePort,
    table: str,
    docs: Sequence[Document],
    field: str,
    *,
    placeholder: str = DELETED_USER_PLACEHOLDER,
    pii_fields: Iterable[str] = (),
    now: Callable[[], datetime] = _now,
) -> int:
    """Replace the user reference with ``placeholder`` and scrub PII.

    PII fields are only overwritten when the document carries a value for
    them. The ``anonymized_at`` and ``anonymized_reason`` stamps are
    bookkeeping: a store with a fixed schema keeps them only where the
    table has those columns.

    Args:
        store: Document store.
        table: Table the batch came from.
        docs: Batch of documents.
        field: User-referencing field to overwrite.
        placeholder: Sentinel written into ``field``.
        pii_fields: Table-specific PII fields scrubbed on top of ``PII_FIELDS``.
        now: Clock for the ``anonymized_at`` stamp.

    Returns:
        Number of documents anonymized.
    """
    scrub = tuple(dict.fromkeys((*PII_FIELDS, *pii_fields)))

    def anonymize(doc: Document) -> None:
        patch: dict[str, Any] = {field: placeholder}
        for name in scrub:
            if name != field and doc.get(name) is not None:
                patch[name] = REDACTED
        patch["anonymized_at"] = now()
        patch["anonymized_reason"] = ANONYMIZED_REASON
        store.patch(table, doc["id"], patch)

    return _apply_each(table, docs, "anonymize", anonymize)


def execute_batch_preserve(docs: Sequence[Document]) -> int:
    """Leave the batch untouched.

    Returns:
        Size of the batch.
    """
    return len(docs)


def execute_batch_reassign(
    store: DocumentStorePort,
    table: str,
    docs: Sequence[Document],
    field: str,
    new_owner_id: str | None,
    *,
    now: Callable[[], datetime] = _now,
) -> int:
    """Point ``field`` at ``new_owner_id``, keeping the previous owner on record.

    The ``previous_owner``, ``reassigned_at`` and ``reassigned_reason`` stamps
    are bookkeeping, kept only where the store has room for them.

    Raises:
        ReassignTargetMissingError: If ``new_owner_id`` is empty. Raised
            before any document is touched.

    Returns:
        Number of documents reassigned.
    """
    if not new_owner_id:
        raise ReassignTargetMissingError(table, field)

    def reassign(doc: Document) -> None:
        store.patch(
            table,
            doc["id"],
            {
                field: new_owner_id,
                "previous_owner": doc.get(field),
                "reassigned_at": now(),
                "reassigned_reason": REASSIGNED_REASON,
            },
        )

    return _apply_each(table, docs, "reassign", reassign)
