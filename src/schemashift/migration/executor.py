"""
MigrationExecutor - Applies migration operations to a live store.

A run applies its operations strictly in order, one at a time:

1. allocate a task id and publish an IN_PROGRESS status at 0%
2. write the history row (version span, operations, start time)
3. apply each operation; after each one publish the new progress
4. on success: bump the version ledger, finish the history row as
   COMPLETED and publish the 100% status
5. on the first failure: finish the history row as FAILED, publish the
   failed status and raise. Operations already applied stay applied.

Operation lists containing table-rebuild placeholders are refused before
anything is written. A history row that cannot be written (for example a
reused task id) fails the run with a published FAILED status.

With a notifier that propagates subscriber errors, a raising subscriber
stops the run after the operation it was told about. The run is still
settled first: COMPLETED (and the ledger bumped) when every operation had
been applied, FAILED otherwise. Then the subscriber's exception is re-raised.
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from collections.abc import Sequence

from schemashift.migration.exceptions import (
    MigrationError,
    MigrationOperationError,
    RewriteRequiredError,
)
from schemashift.migration.generator import rewrite_operations
from schemashift.migration.models import MigrationStatus
from schemashift.migration.operations import MigrationOperation, MigrationOperationType
from schemashift.migration.progress import ProgressNotifier
from schemashift.migration.repositories.history import HistoryRepository
from schemashift.migration.repositories.version import VersionRepository
from schemashift.observability import (
    ATTR_OPERATION_COUNT,
    ATTR_OPERATION_TYPE,
    ATTR_TABLE_NAME,
    ATTR_TASK_ID,
    Tracer,
    create_tracer,
)
from schemashift.schema.catalog import SchemaCatalog
from schemashift.stores.interface import StorageExecutor

logger = logging.getLogger(__name__)


class MigrationExecutor:
    """
    Runs ordered migration operations with progress reporting and history.

    The executor performs no locking; callers must not run two migrations
    against the same table at the same time.

    Example:
        >>> executor = MigrationExecutor(storage, versions, history, notifier)
        >>> status = await executor.execute("users", operations)
        >>> status.state
        <MigrationState.COMPLETED: 'completed'>
    """

    def __init__(
        self,
        storage: StorageExecutor,
        versions: VersionRepository,
        history: HistoryRepository,
        notifier: ProgressNotifier | None = None,
        *,
        catalog: SchemaCatalog | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ):
        """
        Args:
            storage: Store the operations are applied to
            versions: Version ledger bumped after a successful run
            history: History ledger receiving one row per run
            notifier: Progress subscribers (a private one if omitted)
            catalog: Registered schemas; their fingerprint becomes the
                recorded hash of a migrated table
            tracer: Optional custom Tracer instance.
            enable_tracing: Whether to enable OpenTelemetry tracing
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._storage = storage
        self._versions = versions
        self._history = history
        self._notifier = notifier if notifier is not None else ProgressNotifier()
        self._catalog = catalog
        self._last_task_ms = 0

    @property
    def notifier(self) -> ProgressNotifier:
        return self._notifier

    def new_task_id(self) -> str:
        """``migration_<epoch ms>``, unique within this executor."""
        now_ms = int(time.time() * 1000)
        if now_ms <= self._last_task_ms:
            now_ms = self._last_task_ms + 1
        self._last_task_ms = now_ms
        return f"migration_{now_ms}"

    async def execute(
        self,
        table_name: str,
        operations: Sequence[MigrationOperation],
        task_id: str | None = None,
        *,
        schema_hash: str | None = None,
    ) -> MigrationStatus:
        """
        Apply ``operations`` to ``table_name`` in order.

        Args:
            table_name: Table being migrated (its final name for renames)
            operations: Operations in application order
            task_id: Run id; generated from the clock if omitted
            schema_hash: Hash to record in the version ledger; defaults to
                the registered schema's fingerprint, else a digest of the
                operations

        Returns:
            The final COMPLETED status

        Raises:
            RewriteRequiredError: If an operation needs a table rebuild
            MigrationOperationError: If the store rejects an operation
            MigrationError: If the history row cannot be written or the
                version ledger cannot be updated
        """
        ops = list(operations)
        placeholders = rewrite_operations(ops)
        if placeholders:
            raise RewriteRequiredError(table_name, placeholders)

        task_id = task_id or self.new_task_id()
        with self._tracer.span(
            "schemashift.executor.execute",
            {
                ATTR_TABLE_NAME: table_name,
                ATTR_TASK_ID: task_id,
                ATTR_OPERATION_COUNT: len(ops),
            },
        ):
            from_version = await self._current_version(table_name, ops)
            to_version = from_version + 1 if ops else from_version

            status = MigrationStatus.started(task_id, table_name)
            self._notifier.notify(status)
            try:
                await self._history.start(status, from_version, to_version, ops)
            except Exception as e:
                failed = status.failed(f"Could not record migration start: {e}")
                self._notify_quietly(failed)
                logger.error("Migration %s on %s could not be recorded: %s", task_id, table_name, e)
                raise MigrationError(
                    f"Could not record the start of the migration (task id in use?): {e}",
                    table_name=table_name,
                    task_id=task_id,
                ) from e
            logger.info(
                "Migration %s started on %s: %d operation(s), v%d -> v%d",
                task_id,
                table_name,
                len(ops),
                from_version,
                to_version,
            )

            total = len(ops)
            applied = 0
            callback_error: Exception | None = None
            for index, operation in enumerate(ops):
                try:
                    await self._apply(task_id, operation)
                except Exception as e:
                    failed = status.failed(str(e))
                    await self._history.finish(failed)
                    self._notify_quietly(failed)
                    logger.error(
                        "Migration %s failed at operation %d/%d (%s): %s",
                        task_id,
                        index + 1,
                        total,
                        operation,
                        e,
                    )
                    raise MigrationOperationError(
                        table_name, task_id, index, operation, str(e)
                    ) from e
                applied += 1
                status = status.with_progress(applied / total * 100.0)
                try:
                    self._notifier.notify(status)
                except Exception as e:
                    # Only reachable when the notifier propagates subscriber errors.
                    callback_error = e
                    break

            if callback_error is not None and applied < total:
                failed = status.failed(
                    f"Progress callback failed after operation {applied}/{total}: "
                    f"{callback_error}"
                )
                await self._history.finish(failed)
                self._notify_quietly(failed)
                logger.error(
                    "Migration %s on %s interrupted by a progress callback after %d/%d",
                    task_id,
                    table_name,
                    applied,
                    total,
                )
                raise callback_error

            if ops:
                try:
                    await self._bump_version(table_name, ops, schema_hash)
                except Exception as e:
                    failed = status.failed(f"Version ledger update failed: {e}")
                    await self._history.finish(failed)
                    self._notify_quietly(failed)
                    raise MigrationError(
                        f"Operations applied but version ledger update failed: {e}",
                        table_name=table_name,
                        task_id=task_id,
                    ) from e

            completed = status.completed()
            await self._history.finish(completed)
            logger.info("Migration %s completed on %s", task_id, table_name)
            if callback_error is not None:
                self._notify_quietly(completed)
                raise callback_error
            self._notifier.notify(completed)
            return completed

    def _notify_quietly(self, status: MigrationStatus) -> None:
        """Publish a terminal status while another error is on its way to the caller."""
        try:
            self._notifier.notify(status)
        except Exception:
            logger.exception(
                "Progress callback failed on %s status of %s",
                status.state.value,
                status.task_id,
            )

    async def _apply(self, task_id: str, operation: MigrationOperation) -> None:
        with self._tracer.span(
            "schemashift.executor.apply_operation",
            {ATTR_TASK_ID: task_id, ATTR_OPERATION_TYPE: operation.type.value},
        ):
            logger.debug("Migration %s applying: %s", task_id, operation.sql)
            await self._storage.execute_update(operation.sql)

    async def _current_version(
        self,
        table_name: str,
        operations: Sequence[MigrationOperation],
    ) -> int:
        version = await self._versions.current_version(table_name)
        if version:
            return version
        # A run that renames a table is tracked under the old name until it succeeds.
        for op in operations:
            if op.type is MigrationOperationType.RENAME_TABLE and op.new_name == table_name:
                assert op.old_name is not None
                return await self._versions.current_version(op.old_name)
        return 0

    async def _bump_version(
        self,
        table_name: str,
        operations: Sequence[MigrationOperation],
        schema_hash: str | None,
    ) -> int:
        for op in operations:
            if op.type is MigrationOperationType.RENAME_TABLE:
                assert op.old_name is not None and op.new_name is not None
                await self._versions.rename(op.old_name, op.new_name)

        if schema_hash is None:
            schema = self._catalog.get(table_name) if self._catalog is not None else None
            schema_hash = schema.fingerprint() if schema else operations_digest(operations)

        with self._tracer.span(
            "schemashift.executor.bump_version",
            {ATTR_TABLE_NAME: table_name},
        ):
            return await self._versions.record_version(table_name, schema_hash)


def operations_digest(operations: Sequence[MigrationOperation]) -> str:
    """Stable digest of an operation list."""
    canonical = json.dumps(
        [op.to_dict() for op in operations], sort_keys=True, separators=(",", ":")
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


__all__ = ["MigrationExecutor", "operations_digest"]
