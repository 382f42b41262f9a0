"""
MigrationHistoryRepository - Data access for migration run history.

Every migration run gets a row in ``_migration_history`` before its first
operation is applied; the row is finished as completed or failed when the
run ends. Operations are stored as a JSON list so a run can be inspected,
and reversed, later.

Responsibilities:
    - Record the start of a run (task id, table, version span, operations)
    - Record the terminal state of a run
    - Look runs up by task id or by table, newest first

Usage:
    >>> history = MigrationHistoryRepository(storage)
    >>> await history.ensure_table()
    >>> await history.start(status, from_version=0, to_version=1, operations=ops)
    >>> await history.finish(status.completed())
    >>> records = await history.list_for_table("users")
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from schemashift.migration.exceptions import MigrationNotFoundError
from schemashift.migration.models import MigrationRecord, MigrationState, MigrationStatus
from schemashift.migration.operations import MigrationOperation
from schemashift.migration.repositories._rows import format_timestamp, parse_timestamp
from schemashift.migrations import HISTORY_TABLE, BackendName, get_schema
from schemashift.observability import (
    ATTR_DB_SYSTEM,
    ATTR_MIGRATION_STATE,
    ATTR_TABLE_NAME,
    ATTR_TASK_ID,
    Tracer,
    create_tracer,
    traced,
)
from schemashift.stores.interface import Row, StorageExecutor

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, task_id, table_name, from_version, to_version, operations, "
    "state, started_at, completed_at, error_message"
)


@runtime_checkable
class HistoryRepository(Protocol):
    """Protocol for migration history persistence."""

    async def start(
        self,
        status: MigrationStatus,
        from_version: int | None,
        to_version: int,
        operations: Sequence[MigrationOperation],
    ) -> int | None:
        """Persist the start of a run; return the row id if the store reports one."""
        ...

    async def finish(self, status: MigrationStatus) -> None:
        """Persist the terminal state of a run."""
        ...


class MigrationHistoryRepository:
    """
    Migration history stored in the ``_migration_history`` table.

    Example:
        >>> history = MigrationHistoryRepository(storage)
        >>> record = await history.get("migration_1700000000000")
        >>> record.state
        <MigrationState.COMPLETED: 'completed'>
    """

    def __init__(
        self,
        storage: StorageExecutor,
        *,
        backend: BackendName = "sqlite",
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ):
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._storage = storage
        self._backend = backend

    async def ensure_table(self) -> None:
        """Create ``_migration_history`` and its index. Idempotent."""
        await self._storage.execute_update(get_schema("migration_history", self._backend))
        await self._storage.execute_update(get_schema("migration_history_index", self._backend))

    async def start(
        self,
        status: MigrationStatus,
        from_version: int | None,
        to_version: int,
        operations: Sequence[MigrationOperation],
    ) -> int | None:
        """
        Insert the history row of a run that is about to apply operations.

        Args:
            status: Initial status of the run
            from_version: Ledger version before the run
            to_version: Ledger version the run is meant to produce
            operations: Operations in application order

        Returns:
            The generated row id, if the store reports one
        """
        with self._tracer.span(
            "schemashift.history.start",
            {
                ATTR_TASK_ID: status.task_id,
                ATTR_TABLE_NAME: status.table_name,
                ATTR_DB_SYSTEM: self._backend,
            },
        ):
            row_id = await self._storage.execute_insert(
                f"INSERT INTO {HISTORY_TABLE} "
                f"(task_id, table_name, from_version, to_version, operations, state, started_at) "
                f"VALUES (?, ?, ?, ?, ?, ?, ?)",
                [
                    status.task_id,
                    status.table_name,
                    from_version,
                    to_version,
                    json.dumps([op.to_dict() for op in operations]),
                    status.state.value,
                    format_timestamp(status.started_at),
                ],
            )
            logger.debug(
                "Recorded start of migration %s on %s (v%s -> v%d)",
                status.task_id,
                status.table_name,
                from_version,
                to_version,
            )
            return row_id

    async def finish(self, status: MigrationStatus) -> None:
        """
        Update the run's row with its terminal state.

        Raises:
            MigrationNotFoundError: If the run was never started
        """
        with self._tracer.span(
            "schemashift.history.finish",
            {ATTR_TASK_ID: status.task_id, ATTR_MIGRATION_STATE: status.state.value},
        ):
            updated = await self._storage.execute_update(
                f"UPDATE {HISTORY_TABLE} "
                f"SET state = ?, completed_at = ?, error_message = ? WHERE task_id = ?",
                [
                    status.state.value,
                    format_timestamp(status.completed_at),
                    status.error_message,
                    status.task_id,
                ],
            )
            if updated == 0:
                raise MigrationNotFoundError(status.task_id)

    @traced("schemashift.history.get", args={"task_id": ATTR_TASK_ID})
    async def get(self, task_id: str) -> MigrationRecord | None:
        rows = await self._storage.execute_query(
            f"SELECT {_COLUMNS} FROM {HISTORY_TABLE} WHERE task_id = ?",
            [task_id],
        )
        if not rows:
            return None
        return self._row_to_record(rows[0])

    async def list_for_table(self, table_name: str) -> list[MigrationRecord]:
        """Runs for one table, newest first."""
        with self._tracer.span(
            "schemashift.history.list_for_table",
            {ATTR_TABLE_NAME: table_name},
        ):
            rows = await self._storage.execute_query(
                f"SELECT {_COLUMNS} FROM {HISTORY_TABLE} WHERE table_name = ? ORDER BY id DESC",
                [table_name],
            )
            return [self._row_to_record(row) for row in rows]

    @traced("schemashift.history.list_all")
    async def list_all(self) -> list[MigrationRecord]:
        rows = await self._storage.execute_query(
            f"SELECT {_COLUMNS} FROM {HISTORY_TABLE} ORDER BY id DESC"
        )
        return [self._row_to_record(row) for row in rows]

    def _row_to_record(self, row: Row) -> MigrationRecord:
        """
        Convert a history row to a MigrationRecord.

        The operations column holds the JSON list written by :meth:`start`.
        """
        raw_operations = row["operations"]
        if isinstance(raw_operations, str):
            raw_operations = json.loads(raw_operations)
        return MigrationRecord(
            id=row["id"],
            task_id=row["task_id"],
            table_name=row["table_name"],
            from_version=row["from_version"],
            to_version=int(row["to_version"]),
            operations=[MigrationOperation.from_dict(op) for op in raw_operations or []],
            state=MigrationState(row["state"]),
            started_at=parse_timestamp(row["started_at"]),
            completed_at=parse_timestamp(row["completed_at"]),
            error_message=row["error_message"],
        )


__all__ = ["HistoryRepository", "MigrationHistoryRepository"]
