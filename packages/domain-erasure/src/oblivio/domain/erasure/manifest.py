"""Declarative deletion manifest.

Every table that references a user must be registered here, either with a
per-field disposition in ``cascade`` or wholesale in ``preserve``. The
cascade orchestrator walks ``cascade`` in declaration order, which is
stable across runs so resumed cascades and audit logs line up.

Rules:
1. Every table with user references is listed in ``cascade`` or ``preserve``.
2. Every user-referencing field has an explicit disposition.
3. Tables with several user fields declare a disposition per field.
4. Every user-referencing field is indexed (see ``coverage``).

Example:
    >>> manifest = DeletionManifest(
    ...     cascade={"tasks": TableDeletionConfig(fields={"created_by": "delete"})},
    ...     preserve=["deletion_journal"],
    ... )
    >>> manifest.strategy_for("tasks", "created_by")
    <Disposition.DELETE: 'delete'>
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

DEFAULT_BATCH_SIZE = 200
DEFAULT_INDEX_NAME = "by_user"


class Disposition(StrEnum):
    """Per-field policy applied to documents that reference the user.

    - DELETE: remove the document.
    - ANONYMIZE: keep the document, replace the reference and scrub PII.
    - PRESERVE: leave the document untouched.
    - REASSIGN: hand the document to another owner.
    """

    DELETE = "delete"
    ANONYMIZE = "anonymize"
    PRESERVE = "preserve"
    REASSIGN = "reassign"


@dataclass(frozen=True)
class TableDeletionConfig:
    """Cascade configuration for one table.

    Attributes:
        fields: User-referencing field name to disposition, in visit order.
            Plain strings are accepted and validated.
        batch_size: Documents per batch. None uses the manifest default.
        index_name: Index backing the user field lookups.
        pii_fields: Extra fields scrubbed when a document is anonymized.

    Raises:
        ValueError: On an unknown disposition, an empty field map or a
            non-positive batch size.
    """

    fields: Mapping[str, Disposition | str]
    batch_size: int | None = None
    index_name: str | None = None
    pii_fields: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.fields:
            msg = "TableDeletionConfig.fields must name at least one field"
            raise ValueError(msg)
        try:
            normalized = {name: Disposition(value) for name, value in self.fields.items()}
        except ValueError as err:
            msg = f"Unknown disposition in {dict(self.fields)!r}"
            raise ValueError(msg) from err
        if self.batch_size is not None and self.batch_size <= 0:
            msg = f"batch_size must be positive, got {self.batch_size}"
            raise ValueError(msg)
        object.__setattr__(self, "fields", normalized)
        object.__setattr__(self, "pii_fields", tuple(self.pii_fields))


@dataclass(frozen=True)
class DeletionManifest:
    """Registry of user-referencing tables and how to dispose of them.

    Attributes:
        cascade: Table name to its deletion config, in visit order.
        preserve: Tables kept wholesale (never touched by the cascade).
        storage_fields: Table name to blob-bearing fields swept before the
            cascade.
        default_batch_size: Batch size for tables without an override.
    """

    cascade: Mapping[str, TableDeletionConfig]
    preserve: Iterable[str] = ()
    storage_fields: Mapping[str, Iterable[str]] = field(default_factory=dict)
    default_batch_size: int = DEFAULT_BATCH_SIZE

    def __post_init__(self) -> None:
        if self.default_batch_size <= 0:
            msg = f"default_batch_size must be positive, got {self.default_batch_size}"
            raise ValueError(msg)
        object.__setattr__(self, "cascade", dict(self.cascade))
        object.__setattr__(self, "preserve", tuple(self.preserve))
        object.__setattr__(
            self,
            "storage_fields",
            {table: tuple(names) for table, names in self.storage_fields.items()},
        )
        overlap = set(self.cascade) & set(self.preserve)
        if overlap:
            msg = f"Tables both cascaded and preserved: {sorted(overlap)}"
            raise ValueError(msg)

    def strategy_for(self, table: str, field_name: str) -> Disposition | None:
        config = self.cascade.get(table)
        if config is None:
            return None
        return config.fields.get(field_name)  # type: ignore[return-value]

    def cascade_tables(self) -> list[str]:
        """Tables to visit, in declaration order."""
        return list(self.cascade)

    def fields_for(self, table: str) -> list[tuple[str, Disposition]]:
        """User-referencing fields of ``table`` with their disposition, in order."""
        config = self.cascade.get(table)
        if config is None:
            return []
        return [(name, Disposition(value)) for name, value in config.fields.items()]

    def batch_size_for(self, table: str) -> int:
        config = self.cascade.get(table)
        if config is not None and config.batch_size is not None:
            return config.batch_size
        return self.default_batch_size

    def index_name_for(self, table: str) -> str:
        config = self.cascade.get(table)
        if config is not None and config.index_name:
            return config.index_name
        return DEFAULT_INDEX_NAME

    def pii_fields_for(self, table: str) -> tuple[str, ...]:
        config = self.cascade.get(table)
        return config.pii_fields if config is not None else ()

    def storage_fields_for(self, table: str) -> tuple[str, ...]:
        return tuple(self.storage_fields.get(table, ()))

    def storage_tables(self) -> list[str]:
        return list(self.storage_fields)

    def is_preserved_table(self, table: str) -> bool:
        return table in self.preserve

    def is_registered(self, table: str) -> bool:
        """True if ``table`` is cascaded or preserved."""
        return table in self.cascade or table in self.preserve

    def with_batch_size(self, default_batch_size: int) -> DeletionManifest:
        """Copy of this manifest with a different default batch size."""
        return DeletionManifest(
            cascade=self.cascade,
            preserve=self.preserve,
            storage_fields=self.storage_fields,
            default_batch_size=default_batch_size,
        )


def _delete(*fields: str, index_name: str | None = None) -> TableDeletionConfig:
    return TableDeletionConfig(
        fields=dict.fromkeys(fields, Disposition.DELETE),
        index_name=index_name,
    )


DEFAULT_MANIFEST = DeletionManifest(
    cascade={
        # Identity and settings
        "identity_registry": _delete("user_id", index_name="by_user_id"),
        "account_settings": _delete("user_id"),
        # Clients
        "client_contacts": _delete("assigned_to", "created_by"),
        # Finance
        "finance_statements": _delete("created_by"),
        # Projects
        "project_schedule": _delete("assigned_to", "created_by"),
        "project_costs": _delete("created_by"),
        # Productivity
        "email_index": _delete("resolved_by", "promoted_by"),
        "email_accounts": _delete("user_id"),
        "email_sender_cache": _delete("confirmed_by", "user_id"),
        "email_messages": _delete("created_by"),
        "calendar_events": _delete("created_by"),
        "booking_forms": _delete("created_by"),
        "pipeline_prospects": _delete("created_by"),
    },
    preserve=["deletion_journal"],
    storage_fields={"users": ["avatar_url", "brand_logo_url"]},
)
