"""
VersionLedger - Data access for per-table schema versions.

The ledger keeps one row per managed table in ``_schema_versions``: a
version number that starts at 1 and increases with every successful
structural change, and the fingerprint of the current definition.

Responsibilities:
    - Report the current version of a table (0 when untracked)
    - Insert or bump a table's version together with its schema hash
    - Carry a table's row across a table rename
    - Answer "did this definition change since it was recorded?"

Usage:
    >>> ledger = VersionLedger(storage)
    >>> await ledger.ensure_table()
    >>> await ledger.current_version("users")
    0
    >>> await ledger.record_schema(users_schema)
    1
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from schemashift.migration.models import VersionRecord, utc_now
from schemashift.migration.repositories._rows import format_timestamp, parse_timestamp
from schemashift.migrations import VERSIONS_TABLE, BackendName, get_schema
from schemashift.observability import (
    ATTR_DB_SYSTEM,
    ATTR_OLD_TABLE_NAME,
    ATTR_SCHEMA_HASH,
    ATTR_SCHEMA_VERSION,
    ATTR_TABLE_NAME,
    Tracer,
    create_tracer,
    traced,
)
from schemashift.schema.table import TableSchema
from schemashift.stores.interface import Row, StorageExecutor

logger = logging.getLogger(__name__)


@runtime_checkable
class VersionRepository(Protocol):
    """Protocol for version ledger persistence."""

    async def current_version(self, table_name: str) -> int:
        """Current version of a table, 0 if it was never recorded."""
        ...

    async def record_version(self, table_name: str, schema_hash: str) -> int:
        """Insert at version 1 or bump the version; return the new version."""
        ...

    async def rename(self, old_name: str, new_name: str) -> bool:
        """Move a table's row to a new name; False if there was none."""
        ...


class VersionLedger:
    """
    Version ledger stored in the ``_schema_versions`` table.

    Example:
        >>> ledger = VersionLedger(storage)
        >>> await ledger.ensure_table()
        >>> await ledger.record_version("users", users.fingerprint())
        1
        >>> await ledger.record_version("users", new_users.fingerprint())
        2
    """

    def __init__(
        self,
        storage: StorageExecutor,
        *,
        backend: BackendName = "sqlite",
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ):
        """
        Initialize the ledger.

        Args:
            storage: Storage executor holding the metadata tables
            backend: Which DDL template to use for ensure_table()
            tracer: Optional custom Tracer instance.
            enable_tracing: Whether to enable OpenTelemetry tracing
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._storage = storage
        self._backend = backend

    async def ensure_table(self) -> None:
        """Create ``_schema_versions`` if it does not exist. Idempotent."""
        await self._storage.execute_update(get_schema("schema_versions", self._backend))

    @traced("schemashift.version_ledger.get", args={"table_name": ATTR_TABLE_NAME})
    async def get(self, table_name: str) -> VersionRecord | None:
        rows = await self._storage.execute_query(
            f"SELECT table_name, version, schema_hash, created_at, updated_at "
            f"FROM {VERSIONS_TABLE} WHERE table_name = ?",
            [table_name],
        )
        if not rows:
            return None
        return self._row_to_record(rows[0])

    async def current_version(self, table_name: str) -> int:
        with self._tracer.span(
            "schemashift.version_ledger.current_version",
            {ATTR_TABLE_NAME: table_name, ATTR_DB_SYSTEM: self._backend},
        ):
            record = await self.get(table_name)
            return record.version if record else 0

    async def record_version(self, table_name: str, schema_hash: str) -> int:
        """
        Record a structural change of ``table_name``.

        Inserts a row at version 1 on first sight of the table, otherwise
        increments the version and replaces the hash.

        Returns:
            The table's new version
        """
        with self._tracer.span(
            "schemashift.version_ledger.record_version",
            {ATTR_TABLE_NAME: table_name, ATTR_SCHEMA_HASH: schema_hash},
        ) as span:
            now = format_timestamp(utc_now())
            existing = await self.get(table_name)
            if existing is None:
                await self._storage.execute_insert(
                    f"INSERT INTO {VERSIONS_TABLE} "
                    f"(table_name, version, schema_hash, created_at, updated_at) "
                    f"VALUES (?, 1, ?, ?, ?)",
                    [table_name, schema_hash, now, now],
                )
                version = 1
            else:
                await self._storage.execute_update(
                    f"UPDATE {VERSIONS_TABLE} "
                    f"SET version = version + 1, schema_hash = ?, updated_at = ? "
                    f"WHERE table_name = ?",
                    [schema_hash, now, table_name],
                )
                version = existing.version + 1

            if span is not None:
                span.set_attribute(ATTR_SCHEMA_VERSION, version)
            logger.debug("Recorded %s at version %d", table_name, version)
            return version

    async def record_schema(self, schema: TableSchema) -> int:
        return await self.record_version(schema.name, schema.fingerprint())

    async def rename(self, old_name: str, new_name: str) -> bool:
        """
        Move the row of ``old_name`` to ``new_name``.

        A leftover row already stored under ``new_name`` is replaced.

        Returns:
            True if a row was moved
        """
        with self._tracer.span(
            "schemashift.version_ledger.rename",
            {ATTR_TABLE_NAME: new_name, ATTR_OLD_TABLE_NAME: old_name},
        ):
            if old_name == new_name or await self.get(old_name) is None:
                return False
            if await self.get(new_name) is not None:
                logger.warning(
                    "Replacing stale version row of %s while renaming %s",
                    new_name,
                    old_name,
                )
                await self._storage.execute_delete(
                    f"DELETE FROM {VERSIONS_TABLE} WHERE table_name = ?",
                    [new_name],
                )
            await self._storage.execute_update(
                f"UPDATE {VERSIONS_TABLE} SET table_name = ?, updated_at = ? WHERE table_name = ?",
                [new_name, format_timestamp(utc_now()), old_name],
            )
            return True

    async def has_changed(self, schema: TableSchema) -> bool:
        """
        True when the table is untracked or its stored hash differs.

        A False answer only means the fingerprints match.
        """
        record = await self.get(schema.name)
        return record is None or record.schema_hash != schema.fingerprint()

    @traced("schemashift.version_ledger.list_all")
    async def list_all(self) -> list[VersionRecord]:
        rows = await self._storage.execute_query(
            f"SELECT table_name, version, schema_hash, created_at, updated_at "
            f"FROM {VERSIONS_TABLE} ORDER BY table_name"
        )
        return [self._row_to_record(row) for row in rows]

    def _row_to_record(self, row: Row) -> VersionRecord:
        created_at = parse_timestamp(row["created_at"])
        updated_at = parse_timestamp(row["updated_at"])
        assert created_at is not None and updated_at is not None
        return VersionRecord(
            table_name=row["table_name"],
            version=int(row["version"]),
            schema_hash=row["schema_hash"],
            created_at=created_at,
            updated_at=updated_at,
        )


__all__ = ["VersionRepository", "VersionLedger"]
