"""Static coverage check of a deletion manifest against a SQLAlchemy schema.

A table that holds a foreign key to the users table but is missing from
the manifest would silently survive every cascade. This module finds such
gaps before they ship, typically from a test or CI step::

    report = verify_manifest_coverage(metadata, DEFAULT_MANIFEST)
    assert report.success, report.violations()

Checks:
1. Every table referencing the users table is cascaded or preserved.
2. Every referencing column of a cascaded table has a disposition.
3. Every manifest field exists in the schema.
4. Every referencing column leads an index.
5. Blob-looking columns of cascaded tables are declared as storage fields.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sqlalchemy import MetaData, Table

    from oblivio.domain.erasure.manifest import DeletionManifest

logger = logging.getLogger(__name__)

_STORAGE_NAME_PATTERNS = (
    re.compile(r"url$", re.IGNORECASE),
    re.compile(r"^avatar", re.IGNORECASE),
    re.compile(r"^logo", re.IGNORECASE),
    re.compile(r"^image", re.IGNORECASE),
    re.compile(r"file", re.IGNORECASE),
    re.compile(r"attachment", re.IGNORECASE),
    re.compile(r"photo", re.IGNORECASE),
    re.compile(r"thumbnail", re.IGNORECASE),
)


def is_storage_column_name(name: str) -> bool:
    """True if a column name suggests it stores blob references."""
    return any(pattern.search(name) for pattern in _STORAGE_NAME_PATTERNS)


@dataclass(frozen=True, slots=True)
class FieldRef:
    table: str
    field: str

    def __str__(self) -> str:
        return f"{self.table}.{self.field}"


@dataclass
class CoverageReport:
    """Findings of :func:`verify_manifest_coverage`.

    ``missing_storage_fields`` is advisory and does not affect ``success``.
    """

    unregistered_tables: list[str] = field(default_factory=list)
    missing_strategies: list[FieldRef] = field(default_factory=list)
    unknown_fields: list[FieldRef] = field(default_factory=list)
    missing_indexes: list[FieldRef] = field(default_factory=list)
    missing_storage_fields: list[FieldRef] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not (
            self.unregistered_tables
            or self.missing_strategies
            or self.unknown_fields
            or self.missing_indexes
        )

    def violations(self) -> list[str]:
        """Human-readable list of blocking problems."""
        problems = [f"Table '{t}' references users but is not in the manifest" for t in self.unregistered_tables]
        problems += [f"No disposition for user reference {ref}" for ref in self.missing_strategies]
        problems += [f"Manifest field {ref} does not exist in the schema" for ref in self.unknown_fields]
        problems += [f"User reference {ref} is not indexed" for ref in self.missing_indexes]
        return problems


def _user_reference_columns(table: Table, users_table: str) -> list[str]:
    columns: list[str] = []
    for column in table.columns:
        for fk in column.foreign_keys:
            # target_fullname is "[schema.]table.column"
            if fk.target_fullname.split(".")[-2] == users_table:
                columns.append(column.name)
                break
    return columns


def _leading_index_columns(table: Table) -> set[str]:
    leading: set[str] = set()
    for index in table.indexes:
        expressions = list(index.columns)
        if expressions:
            leading.add(expressions[0].name)
    primary = list(table.primary_key.columns)
    if primary:
        leading.add(primary[0].name)
    return leading


def verify_manifest_coverage(
    metadata: MetaData,
    manifest: DeletionManifest,
    *,
    users_table: str = "users",
) -> CoverageReport:
    """Compare ``manifest`` against the tables registered on ``metadata``.

    Args:
        metadata: Schema to inspect. Reflect it first for a live database.
        manifest: Deletion manifest to verify.
        users_table: Name of the users table foreign keys point at.

    Returns:
        CoverageReport with every finding.
    """
    report = CoverageReport()

    for name, table in metadata.tables.items():
        if name == users_table:
            continue
        user_columns = _user_reference_columns(table, users_table)
        if user_columns and not manifest.is_registered(name):
            report.unregistered_tables.append(name)
            continue
        if manifest.is_preserved_table(name) or name not in manifest.cascade:
            continue

        declared = {field_name for field_name, _ in manifest.fields_for(name)}
        column_names = {column.name for column in table.columns}
        indexed = _leading_index_columns(table)
        storage = set(manifest.storage_fields_for(name))

        report.missing_strategies.extend(
            FieldRef(name, column) for column in user_columns if column not in declared
        )
        for field_name, _ in manifest.fields_for(name):
            if field_name not in column_names:
                report.unknown_fields.append(FieldRef(name, field_name))
            elif field_name not in indexed:
                report.missing_indexes.append(FieldRef(name, field_name))
        report.missing_storage_fields.extend(
            FieldRef(name, column)
            for column in sorted(column_names)
            if is_storage_column_name(column) and column not in storage
        )

    if report.success:
        logger.info("manifest_coverage_verified", extra={"tables": len(metadata.tables)})
    else:
        logger.warning(
            "manifest_coverage_violations",
            extra={"violations": len(report.violations())},
        )
    return report


__all__ = [
    "CoverageReport",
    "FieldRef",
    "is_storage_column_name",
    "verify_manifest_coverage",
]
