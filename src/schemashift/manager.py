"""
SchemaManager - Facade over the schema migration engine.

Wires one storage executor to the catalog, change detector, operation
generator, migration executor, rewriter and the two metadata tables, and
exposes the caller-facing surface:

    - register_schema / register_schemas
    - detect_schema_changes / generate_migration
    - execute_migration / migrate_with_zero_downtime / migrate
    - rollback_migration
    - get_schema_version / get_migration_history
    - add_progress_callback / remove_progress_callback / stream_status
    - create_table / table_exists / get_all_table_names / has_schema_changed
    - diff_catalog

Usage:
    >>> async with SQLiteStorageExecutor("app.db") as storage:
    ...     manager = SchemaManager(storage)
    ...     await manager.initialize()
    ...     await manager.create_table(users_v1)
    ...     await manager.migrate(users_v1, users_v2)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from schemashift.config import SchemaManagerConfig
from schemashift.migration.changes import SchemaChange, SchemaChangeType
from schemashift.migration.detector import (
    SchemaChangeDetector,
    detect_table_added,
    diff_catalog,
)
from schemashift.migration.exceptions import (
    IrreversibleMigrationError,
    MigrationNotFoundError,
    MigrationStateError,
)
from schemashift.migration.executor import MigrationExecutor, operations_digest
from schemashift.migration.generator import MigrationGenerator, requires_rewrite
from schemashift.migration.models import MigrationRecord, MigrationState, MigrationStatus
from schemashift.migration.operations import MigrationOperation, MigrationOperationType
from schemashift.migration.progress import ProgressCallback, ProgressNotifier
from schemashift.migration.repositories import MigrationHistoryRepository, VersionLedger
from schemashift.migration.rewriter import RewriteResult, ZeroDowntimeRewriter
from schemashift.migration.status_streamer import StatusStreamer
from schemashift.observability import (
    ATTR_CHANGE_COUNT,
    ATTR_DB_SYSTEM,
    ATTR_OLD_TABLE_NAME,
    ATTR_OPERATION_COUNT,
    ATTR_TABLE_NAME,
    ATTR_TASK_ID,
    Tracer,
    create_tracer,
)
from schemashift.schema.catalog import SchemaCatalog
from schemashift.schema.table import TableSchema
from schemashift.sql.builder import StatementBuilder
from schemashift.stores.interface import StorageExecutor

logger = logging.getLogger(__name__)

_RENAMES = (SchemaChangeType.TABLE_RENAMED, SchemaChangeType.FIELD_RENAMED)


class SchemaManager:
    """
    Entry point for managing table definitions and their migrations.

    The manager assumes a single writer per table; it does not serialise
    concurrent migrations of the same table.

    Example:
        >>> manager = SchemaManager(storage, SchemaManagerConfig(strict_catalog=True))
        >>> await manager.initialize()
        >>> manager.register_schema(users)
        >>> changes = manager.detect_schema_changes(users, users_v2)
        >>> operations = manager.generate_migration(changes)
        >>> status = await manager.execute_migration("users", operations)
    """

    def __init__(
        self,
        storage: StorageExecutor,
        config: SchemaManagerConfig | None = None,
        catalog: SchemaCatalog | None = None,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ):
        """
        Args:
            storage: Store holding the managed tables and the metadata tables
            config: Manager policy (defaults to SchemaManagerConfig())
            catalog: Registered definitions (a fresh empty catalog if omitted)
            tracer: Optional custom Tracer instance, shared with the
                components the manager builds.
            enable_tracing: Whether to enable OpenTelemetry tracing
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._storage = storage
        self._config = config or SchemaManagerConfig()
        self._catalog = catalog if catalog is not None else SchemaCatalog()
        self._builder = StatementBuilder(self._config.dialect)
        self._initialized = False

        self._versions = VersionLedger(storage, backend=self._config.dialect, tracer=self._tracer)
        self._history = MigrationHistoryRepository(
            storage, backend=self._config.dialect, tracer=self._tracer
        )
        self._notifier = ProgressNotifier(isolate_errors=self._config.isolate_callback_errors)
        self._detector = SchemaChangeDetector()
        self._generator = MigrationGenerator(
            self._catalog, self._builder, strict=self._config.strict_catalog
        )
        self._executor = MigrationExecutor(
            storage,
            self._versions,
            self._history,
            self._notifier,
            catalog=self._catalog,
            tracer=self._tracer,
        )
        self._rewriter = ZeroDowntimeRewriter(
            storage,
            self._versions,
            builder=self._builder,
            config=self._config,
            tracer=self._tracer,
        )

    # -------------------------------------------------------------------------
    # Accessors
    # -------------------------------------------------------------------------

    @property
    def config(self) -> SchemaManagerConfig:
        return self._config

    @property
    def catalog(self) -> SchemaCatalog:
        return self._catalog

    @property
    def builder(self) -> StatementBuilder:
        return self._builder

    @property
    def versions(self) -> VersionLedger:
        return self._versions

    @property
    def history(self) -> MigrationHistoryRepository:
        return self._history

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Create the metadata tables if they are missing. Idempotent."""
        if self._initialized:
            return
        with self._tracer.span(
            "schemashift.manager.initialize",
            {ATTR_DB_SYSTEM: self._config.dialect},
        ):
            await self._versions.ensure_table()
            await self._history.ensure_table()
            self._initialized = True
            logger.info("Schema manager initialized (%s)", self._config.dialect)

    # -------------------------------------------------------------------------
    # Catalog
    # -------------------------------------------------------------------------

    def register_schema(self, schema: TableSchema) -> None:
        self._catalog.register(schema)

    def register_schemas(self, schemas: Iterable[TableSchema]) -> None:
        self._catalog.register_all(schemas)

    # -------------------------------------------------------------------------
    # Planning
    # -------------------------------------------------------------------------

    def detect_schema_changes(self, old: TableSchema, new: TableSchema) -> list[SchemaChange]:
        with self._tracer.span(
            "schemashift.manager.detect_schema_changes",
            {ATTR_TABLE_NAME: new.name, ATTR_OLD_TABLE_NAME: old.name},
        ) as span:
            changes = self._detector.detect(old, new)
            if span is not None:
                span.set_attribute(ATTR_CHANGE_COUNT, len(changes))
            return changes

    def generate_migration(self, changes: Iterable[SchemaChange]) -> list[MigrationOperation]:
        """
        Map changes onto operations, in change order.

        Raises:
            SchemaNotRegisteredError: For an unregistered new table when the
                config sets ``strict_catalog``
        """
        return self._generator.generate(changes)

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def execute_migration(
        self,
        table_name: str,
        operations: Sequence[MigrationOperation],
        task_id: str | None = None,
    ) -> MigrationStatus:
        """
        Apply operations in order, recording the run in the history table.

        Raises:
            RewriteRequiredError: If an operation needs a table rebuild
            MigrationOperationError: If the store rejects an operation
        """
        await self.initialize()
        return await self._executor.execute(table_name, operations, task_id)

    async def migrate_with_zero_downtime(
        self,
        old: TableSchema,
        new: TableSchema,
    ) -> RewriteResult:
        """
        Rebuild ``old`` as ``new`` through a shadow table.

        Raises:
            UnsafeRewriteError: If a new NOT NULL column has no default
            RewriteError: If a step of the rebuild fails
        """
        await self.initialize()
        return await self._rewriter.rewrite(old, new)

    async def migrate(
        self,
        old: TableSchema,
        new: TableSchema,
        *,
        task_id: str | None = None,
    ) -> MigrationStatus | RewriteResult | None:
        """
        Bring a table from ``old`` to ``new`` by whichever route fits.

        Changes the store can apply in place go through the executor.
        Anything needing a rebuild goes through the rewriter; table and
        field renames among those changes are applied in place first so
        their data is carried over by name.

        Returns:
            The executor status, the rewrite result, or None when the two
            definitions are identical
        """
        changes = self.detect_schema_changes(old, new)
        if not changes:
            logger.debug("No changes between definitions of %s", new.name)
            return None

        operations = self.generate_migration(changes)
        if not requires_rewrite(operations):
            return await self.execute_migration(new.name, operations, task_id)

        renames = [
            op
            for op in operations
            if op.type in (MigrationOperationType.RENAME_TABLE, MigrationOperationType.RENAME_COLUMN)
        ]
        source = old
        if renames:
            await self.execute_migration(new.name, renames, task_id)
            source = _apply_renames(old, [c for c in changes if c.type in _RENAMES])
        return await self.migrate_with_zero_downtime(source, new)

    async def create_table(self, schema: TableSchema) -> MigrationStatus | None:
        """
        Register ``schema`` and create its table and indexes.

        The creation runs as a migration, so it is recorded in the history
        and takes the table to version 1.

        Returns:
            The completed status, or None if the table already exists
        """
        self._catalog.register(schema)
        if await self.table_exists(schema.name):
            logger.debug("Table %s already exists; not creating", schema.name)
            return None
        operations = self._generator.generate([detect_table_added(schema.name)])
        status = await self.execute_migration(schema.name, operations)
        logger.info("Created table %s", schema.name)
        return status

    async def rollback_migration(self, task_id: str) -> MigrationStatus:
        """
        Undo a completed migration by applying the inverse of each of its
        operations in reverse order.

        The rollback is itself a migration run with task id
        ``rollback_<task_id>`` and bumps the table's version. A rollback that
        failed earlier can be retried; the retry runs as
        ``rollback_<task_id>_<n>`` with n counting up from 2.

        Raises:
            MigrationNotFoundError: If ``task_id`` has no history row
            MigrationStateError: If the run is not completed or was already
                rolled back
            IrreversibleMigrationError: If an operation has no inverse
        """
        await self.initialize()
        with self._tracer.span(
            "schemashift.manager.rollback_migration",
            {ATTR_TASK_ID: task_id},
        ) as span:
            record = await self._history.get(task_id)
            if record is None:
                raise MigrationNotFoundError(task_id)
            if record.state is not MigrationState.COMPLETED:
                raise MigrationStateError(
                    task_id,
                    record.state,
                    f"Migration {task_id} is {record.state.value}; only completed "
                    f"migrations can be rolled back",
                )

            rollback_id = await self._rollback_task_id(task_id, record.state)

            irreversible = [op for op in record.operations if not op.can_reverse]
            if irreversible:
                raise IrreversibleMigrationError(task_id, record.state, irreversible)

            inverse = [op.inverse() for op in reversed(record.operations)]
            table_name = _final_table_name(record.table_name, inverse)
            if span is not None:
                span.set_attribute(ATTR_OPERATION_COUNT, len(inverse))
            logger.info(
                "Rolling back migration %s on %s (%d operation(s))",
                task_id,
                record.table_name,
                len(inverse),
            )
            return await self._executor.execute(
                table_name,
                inverse,
                rollback_id,
                schema_hash=operations_digest(inverse),
            )

    async def _rollback_task_id(self, task_id: str, state: MigrationState) -> str:
        """First free rollback id for ``task_id``; raises if a rollback completed."""
        rollback_id = f"rollback_{task_id}"
        attempt = 1
        previous = await self._history.get(rollback_id)
        while previous is not None:
            if previous.state is MigrationState.COMPLETED:
                raise MigrationStateError(
                    task_id, state, f"Migration {task_id} was already rolled back"
                )
            attempt += 1
            rollback_id = f"rollback_{task_id}_{attempt}"
            previous = await self._history.get(rollback_id)
        if attempt > 1:
            logger.info("Retrying rollback of %s as %s", task_id, rollback_id)
        return rollback_id

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def get_schema_version(self, table_name: str) -> int:
        """Current version of a table; 0 if it was never migrated."""
        await self.initialize()
        return await self._versions.current_version(table_name)

    async def get_migration_history(self, table_name: str) -> list[MigrationRecord]:
        """Migration runs of a table, newest first."""
        await self.initialize()
        return await self._history.list_for_table(table_name)

    async def has_schema_changed(self, schema: TableSchema) -> bool:
        """
        Fingerprint check against the version ledger.

        True means the stored definition differs (or is missing); callers
        still diff explicitly before migrating.
        """
        await self.initialize()
        return await self._versions.has_changed(schema)

    async def table_exists(self, table_name: str) -> bool:
        rows = await self._storage.execute_query(self._builder.table_exists(), [table_name])
        return bool(rows)

    async def get_all_table_names(self) -> list[str]:
        """User tables, excluding those starting with the metadata prefix."""
        sql, params = self._builder.list_tables(self._config.metadata_prefix)
        rows = await self._storage.execute_query(sql, params)
        return [row["name"] for row in rows]

    async def diff_catalog(self) -> list[SchemaChange]:
        """
        Compare the store's user tables with the registered definitions.

        Registered tables missing from the store come back as TABLE_ADDED and
        unregistered store tables as TABLE_REMOVED. Feed the result to
        generate_migration() to bring the store in line with the catalog.
        """
        return diff_catalog(await self.get_all_table_names(), self._catalog)

    # -------------------------------------------------------------------------
    # Progress
    # -------------------------------------------------------------------------

    def add_progress_callback(self, callback: ProgressCallback) -> None:
        self._notifier.add(callback)

    def remove_progress_callback(self, callback: ProgressCallback) -> bool:
        return self._notifier.remove(callback)

    def stream_status(
        self,
        *,
        task_id: str | None = None,
        table_name: str | None = None,
        max_queue_size: int = 1000,
    ) -> StatusStreamer:
        """
        Subscribe to status updates now, for async iteration later.

        Example:
            >>> streamer = manager.stream_status(table_name="users")
            >>> run = asyncio.create_task(manager.execute_migration("users", ops))
            >>> async for status in streamer.stream_status():
            ...     print(status.progress_percent)
        """
        return StatusStreamer(
            self._notifier,
            task_id=task_id,
            table_name=table_name,
            max_queue_size=max_queue_size,
            tracer=self._tracer,
        )

    @property
    def notifier(self) -> ProgressNotifier:
        return self._notifier


def _apply_renames(schema: TableSchema, changes: Sequence[SchemaChange]) -> TableSchema:
    """``schema`` as it stands after the given rename changes were applied."""
    renamed = schema
    field_renames = {
        c.old_field_name: c.field_name
        for c in changes
        if c.type is SchemaChangeType.FIELD_RENAMED and c.old_field_name and c.field_name
    }
    if field_renames:
        fields = tuple(f.renamed(field_renames.get(f.name, f.name)) for f in schema.fields)
        renamed = renamed.model_copy(update={"fields": fields})
    for change in changes:
        if change.type is SchemaChangeType.TABLE_RENAMED:
            renamed = renamed.renamed(change.table_name)
    return renamed


def _final_table_name(table_name: str, operations: Sequence[MigrationOperation]) -> str:
    name = table_name
    for op in operations:
        if op.type is MigrationOperationType.RENAME_TABLE and op.old_name == name:
            assert op.new_name is not None
            name = op.new_name
    return name


__all__ = ["SchemaManager"]
