"""
ZeroDowntimeRewriter - Shadow-table rebuild of a table.

Changes the store cannot apply in place (dropping, retyping or constraining
a column, adding or removing a foreign key) are applied by rebuilding the
table:

1. create ``<new name><shadow suffix>`` with the full new definition
2. copy the columns both definitions share in one bulk INSERT ... SELECT
3. drop the old table
4. rename the shadow table to the new name
5. create the new definition's indexes under their final names
6. record the new definition in the version ledger

Columns only present in the old definition are dropped with their data.
Columns only present in the new definition start out NULL (or at their
default) for copied rows.

When the store offers ``transaction()`` the whole sequence is one atomic
unit; otherwise a failure leaves the state reached by the last completed
step, which :class:`RewriteError` names.

On SQLite with foreign key enforcement on, enforcement is switched off
around the rebuild (before the transaction opens) so that dropping the old
table does not cascade into child tables. ``PRAGMA foreign_key_check`` runs
before the version step and any violation fails the rewrite. Enforcement is
switched back on whatever the outcome. A rewrite started inside an already
open transaction cannot switch enforcement off and is refused.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from schemashift.config import SchemaManagerConfig
from schemashift.exceptions import StorageError
from schemashift.migration.exceptions import RewriteError, UnsafeRewriteError
from schemashift.migration.repositories.version import VersionRepository
from schemashift.observability import (
    ATTR_FIELD_COUNT,
    ATTR_OLD_TABLE_NAME,
    ATTR_ROWS_COPIED,
    ATTR_SCHEMA_VERSION,
    ATTR_TABLE_NAME,
    Tracer,
    create_tracer,
)
from schemashift.schema.table import TableSchema
from schemashift.sql.builder import StatementBuilder
from schemashift.stores.interface import StorageExecutor, TransactionalStorageExecutor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RewriteResult:
    """
    Outcome of a completed rewrite.

    Attributes:
        table_name: Final table name
        old_table_name: Name of the table before the rewrite
        shadow_table: Name of the (now renamed) shadow table
        copied_columns: Columns whose data was carried over
        dropped_columns: Columns of the old definition that were discarded
        added_columns: Columns of the new definition that received no data
        rows_copied: Rows present in the rebuilt table
        new_version: Version recorded in the ledger
        transactional: Whether the rewrite ran as a single transaction
    """

    table_name: str
    old_table_name: str
    shadow_table: str
    copied_columns: tuple[str, ...]
    dropped_columns: tuple[str, ...]
    added_columns: tuple[str, ...]
    rows_copied: int
    new_version: int
    transactional: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "table_name": self.table_name,
            "old_table_name": self.old_table_name,
            "shadow_table": self.shadow_table,
            "copied_columns": list(self.copied_columns),
            "dropped_columns": list(self.dropped_columns),
            "added_columns": list(self.added_columns),
            "rows_copied": self.rows_copied,
            "new_version": self.new_version,
            "transactional": self.transactional,
        }


class ZeroDowntimeRewriter:
    """
    Rebuilds a table under a new definition through a shadow table.

    Example:
        >>> rewriter = ZeroDowntimeRewriter(storage, ledger)
        >>> result = await rewriter.rewrite(old_users, new_users)
        >>> result.dropped_columns
        ('legacy_flag',)
    """

    def __init__(
        self,
        storage: StorageExecutor,
        versions: VersionRepository,
        *,
        builder: StatementBuilder | None = None,
        config: SchemaManagerConfig | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ):
        """
        Args:
            storage: Store holding the table
            versions: Version ledger updated after the rebuild
            builder: Statement builder (defaults to the config's dialect)
            config: Shadow suffix, transaction and NOT NULL policy
            tracer: Optional custom Tracer instance.
            enable_tracing: Whether to enable OpenTelemetry tracing
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._storage = storage
        self._versions = versions
        self._config = config or SchemaManagerConfig()
        self._builder = builder or StatementBuilder(self._config.dialect)

    def shadow_table_name(self, schema: TableSchema) -> str:
        return f"{schema.name}{self._config.shadow_suffix}"

    @staticmethod
    def copy_columns(old: TableSchema, new: TableSchema) -> list[str]:
        """
        Columns carried over by the bulk copy, in the new definition's order.

        Fields match by name. The primary key column is included when both
        definitions use the same primary key name.
        """
        old_names = set(old.field_names)
        columns = [name for name in new.field_names if name in old_names]
        if old.primary_key.name == new.primary_key.name:
            columns.insert(0, new.primary_key.name)
        return columns

    @staticmethod
    def unsafe_columns(old: TableSchema, new: TableSchema) -> list[str]:
        """New NOT NULL columns without default; existing rows cannot fill them."""
        old_names = set(old.field_names)
        return [
            f.name
            for f in new.fields
            if f.name not in old_names and not f.nullable and f.default is None
        ]

    async def rewrite(self, old: TableSchema, new: TableSchema) -> RewriteResult:
        """
        Rebuild ``old`` as ``new``.

        Raises:
            UnsafeRewriteError: If a new NOT NULL column has no default
                (checked before anything is written)
            RewriteError: If a step fails; ``step`` names it and
                ``rolled_back`` tells whether the store undid the partial work
        """
        if self._config.reject_unsafe_not_null:
            unsafe = self.unsafe_columns(old, new)
            if unsafe:
                raise UnsafeRewriteError(new.name, unsafe)

        shadow = self.shadow_table_name(new)
        columns = self.copy_columns(old, new)
        transactional = self._config.use_transactions and isinstance(
            self._storage, TransactionalStorageExecutor
        )

        with self._tracer.span(
            "schemashift.rewriter.rewrite",
            {
                ATTR_TABLE_NAME: new.name,
                ATTR_OLD_TABLE_NAME: old.name,
                ATTR_FIELD_COUNT: len(new.fields),
            },
        ) as span:
            logger.info(
                "Rewriting %s as %s via %s (%d column(s) copied, transactional=%s)",
                old.name,
                new.name,
                shadow,
                len(columns),
                transactional,
            )
            foreign_keys_suspended = await self._suspend_foreign_keys(new.name)
            steps: list[str] = []
            try:
                if transactional:
                    assert isinstance(self._storage, TransactionalStorageExecutor)
                    async with self._storage.transaction():
                        rows, version = await self._run(
                            old, new, shadow, columns, steps, foreign_keys_suspended
                        )
                else:
                    rows, version = await self._run(
                        old, new, shadow, columns, steps, foreign_keys_suspended
                    )
            except Exception as e:
                step = steps[-1] if steps else "start"
                logger.error(
                    "Rewrite of %s failed during %s (rolled back: %s): %s",
                    new.name,
                    step,
                    transactional,
                    e,
                )
                raise RewriteError(new.name, step, str(e), rolled_back=transactional) from e
            finally:
                if foreign_keys_suspended:
                    await self._resume_foreign_keys()

            if span is not None:
                span.set_attribute(ATTR_ROWS_COPIED, rows)
                span.set_attribute(ATTR_SCHEMA_VERSION, version)

        old_only = [name for name in old.field_names if not new.has_field(name)]
        new_only = [name for name in new.field_names if not old.has_field(name)]
        logger.info(
            "Rewrote %s: %d row(s), dropped %s, added %s, now v%d",
            new.name,
            rows,
            old_only or "nothing",
            new_only or "nothing",
            version,
        )
        return RewriteResult(
            table_name=new.name,
            old_table_name=old.name,
            shadow_table=shadow,
            copied_columns=tuple(columns),
            dropped_columns=tuple(old_only),
            added_columns=tuple(new_only),
            rows_copied=rows,
            new_version=version,
            transactional=transactional,
        )

    async def _run(
        self,
        old: TableSchema,
        new: TableSchema,
        shadow: str,
        columns: list[str],
        steps: list[str],
        check_foreign_keys: bool = False,
    ) -> tuple[int, int]:
        build = self._builder

        steps.append("create_shadow")
        await self._execute(build.create_table(new, table_name=shadow, if_not_exists=False))

        steps.append("copy_rows")
        if columns:
            await self._execute(build.copy_rows(old.name, shadow, columns))
        count = await self._storage.execute_query(build.count_rows(shadow))
        rows = int(count[0]["row_count"]) if count else 0

        steps.append("drop_old")
        await self._execute(build.drop_table(old.name))

        steps.append("rename_shadow")
        await self._execute(build.rename_table(shadow, new.name))

        steps.append("create_indexes")
        for index in new.indexes:
            await self._execute(build.create_index_for(new.name, index))

        if check_foreign_keys:
            steps.append("check_foreign_keys")
            check_sql = build.foreign_key_check()
            assert check_sql is not None
            violations = await self._storage.execute_query(check_sql)
            if violations:
                first = violations[0]
                raise StorageError(
                    f"{len(violations)} foreign key violation(s), first in "
                    f"{first.get('table')} referencing {first.get('parent')}",
                    check_sql,
                )

        steps.append("update_version")
        if old.name != new.name:
            await self._versions.rename(old.name, new.name)
        version = await self._versions.record_version(new.name, new.fingerprint())
        return rows, version

    async def _suspend_foreign_keys(self, table_name: str) -> bool:
        """
        Switch foreign key enforcement off for the rebuild.

        Returns:
            True if enforcement was on and is now off; the caller turns it
            back on afterwards

        Raises:
            RewriteError: If enforcement stays on (an outer transaction is
                open), since dropping the old table would then cascade
        """
        build = self._builder
        enabled_sql = build.foreign_keys_enabled()
        disable_sql = build.disable_foreign_keys()
        if enabled_sql is None or disable_sql is None:
            return False
        try:
            if not await self._foreign_keys_on(enabled_sql):
                return False
            await self._execute(disable_sql)
            still_on = await self._foreign_keys_on(enabled_sql)
        except Exception as e:
            raise RewriteError(table_name, "disable_foreign_keys", str(e)) from e
        if still_on:
            raise RewriteError(
                table_name,
                "disable_foreign_keys",
                "foreign key enforcement cannot be switched off inside an open transaction",
            )
        logger.debug("Foreign key enforcement off for the rewrite of %s", table_name)
        return True

    async def _resume_foreign_keys(self) -> None:
        enable_sql = self._builder.enable_foreign_keys()
        if enable_sql is not None:
            await self._execute(enable_sql)

    async def _foreign_keys_on(self, sql: str) -> bool:
        rows = await self._storage.execute_query(sql)
        return bool(rows) and bool(next(iter(rows[0].values()), 0))

    async def _execute(self, sql: str) -> None:
        logger.debug("Rewrite statement: %s", sql)
        await self._storage.execute_update(sql)


__all__ = ["RewriteResult", "ZeroDowntimeRewriter"]
