"""
Integration tests for SchemaManager over in-memory SQLite.

Tests cover:
- Table creation and versioning
- Direct migrations (added columns, renamed tables)
- Zero-downtime rewrites and data preservation, including cascading child tables
- migrate() routing, including renames combined with a rebuild
- Failed runs and their history
- Rollback of completed runs, and retries of a failed rollback
- Progress callbacks and status streaming
- Table listing and the catalog diff
"""

import asyncio

import pytest

from schemashift.manager import SchemaManager
from schemashift.migration import (
    IrreversibleMigrationError,
    MigrationNotFoundError,
    MigrationOperation,
    MigrationOperationError,
    MigrationState,
    MigrationStateError,
    MigrationStatus,
    RewriteRequiredError,
    RewriteResult,
    SchemaChangeType,
)
from schemashift.schema import FieldSchema
from schemashift.stores import SQLiteStorageExecutor
from tests.fixtures import (
    app_users,
    column_names,
    fetch_all,
    posts,
    users_renamed_field,
    users_v1,
    users_with_email,
    users_with_index,
)

pytestmark = pytest.mark.integration


async def _insert_users(storage: SQLiteStorageExecutor, *names: str) -> None:
    for name in names:
        await storage.execute_insert('INSERT INTO "users" ("username") VALUES (?)', [name])


class TestCreateTable:
    """Tests for create_table() and versioning."""

    @pytest.mark.asyncio
    async def test_version_zero_then_one(self, manager: SchemaManager) -> None:
        """An unknown table is at version 0; creation takes it to 1."""
        assert await manager.get_schema_version("users") == 0
        status = await manager.create_table(users_v1())
        assert status is not None
        assert status.state is MigrationState.COMPLETED
        assert await manager.get_schema_version("users") == 1
        assert await manager.table_exists("users")

    @pytest.mark.asyncio
    async def test_creation_is_recorded(self, manager: SchemaManager) -> None:
        await manager.create_table(users_with_index())
        history = await manager.get_migration_history("users")
        assert len(history) == 1
        assert history[0].state is MigrationState.COMPLETED
        assert [op.type.value for op in history[0].operations] == ["create_table", "create_index"]

    @pytest.mark.asyncio
    async def test_existing_table_not_recreated(self, manager: SchemaManager) -> None:
        await manager.create_table(users_v1())
        assert await manager.create_table(users_v1()) is None
        assert await manager.get_schema_version("users") == 1

    @pytest.mark.asyncio
    async def test_table_names_exclude_metadata(self, manager: SchemaManager) -> None:
        """_schema_versions, _migration_history and sqlite_ tables are hidden."""
        await manager.create_table(users_v1())
        await manager.create_table(app_users().model_copy(update={"table_id": "t-app"}))
        assert await manager.get_all_table_names() == ["app_users", "users"]

    @pytest.mark.asyncio
    async def test_has_schema_changed(self, manager: SchemaManager) -> None:
        assert await manager.has_schema_changed(users_v1())
        await manager.create_table(users_v1())
        assert not await manager.has_schema_changed(users_v1())
        assert await manager.has_schema_changed(users_with_email())

    @pytest.mark.asyncio
    async def test_diff_catalog(self, manager: SchemaManager) -> None:
        """Registered-but-missing tables are added; unregistered ones are removed."""
        await manager.create_table(users_v1())
        manager.register_schema(posts())
        manager.catalog.unregister("users")

        changes = await manager.diff_catalog()
        assert [(c.type, c.table_name) for c in changes] == [
            (SchemaChangeType.TABLE_ADDED, "posts"),
            (SchemaChangeType.TABLE_REMOVED, "users"),
        ]

        operations = manager.generate_migration(changes[:1])
        await manager.execute_migration("posts", operations)
        assert await manager.table_exists("posts")
        assert await manager.get_schema_version("posts") == 1


class TestDirectMigrations:
    """Changes applied in place by the executor."""

    @pytest.mark.asyncio
    async def test_add_column_keeps_rows(
        self, manager: SchemaManager, sqlite_storage: SQLiteStorageExecutor
    ) -> None:
        await manager.create_table(users_v1())
        await _insert_users(sqlite_storage, "alice")
        manager.register_schema(users_with_email())

        result = await manager.migrate(users_v1(), users_with_email())

        assert isinstance(result, MigrationStatus)
        assert result.is_complete
        assert await column_names(sqlite_storage, "users") == ["id", "username", "email"]
        assert await fetch_all(sqlite_storage, 'SELECT username, email FROM "users"') == [
            ("alice", None)
        ]
        assert await manager.get_schema_version("users") == 2

    @pytest.mark.asyncio
    async def test_identical_definitions_do_nothing(self, manager: SchemaManager) -> None:
        await manager.create_table(users_v1())
        assert await manager.migrate(users_v1(), users_v1()) is None
        assert await manager.get_schema_version("users") == 1

    @pytest.mark.asyncio
    async def test_table_rename_moves_version(
        self, manager: SchemaManager, sqlite_storage: SQLiteStorageExecutor
    ) -> None:
        """After users -> app_users the version lives under the new name."""
        await manager.create_table(users_v1())
        await _insert_users(sqlite_storage, "alice")

        await manager.migrate(users_v1(), app_users())

        assert await manager.get_all_table_names() == ["app_users"]
        assert await manager.get_schema_version("app_users") == 2
        assert await manager.get_schema_version("users") == 0
        assert await fetch_all(sqlite_storage, 'SELECT username FROM "app_users"') == [("alice",)]

    @pytest.mark.asyncio
    async def test_placeholders_refused(self, manager: SchemaManager) -> None:
        await manager.create_table(users_with_email())
        operations = manager.generate_migration(
            manager.detect_schema_changes(users_with_email(), users_v1())
        )
        with pytest.raises(RewriteRequiredError):
            await manager.execute_migration("users", operations)
        # Only the creation run was recorded.
        assert len(await manager.get_migration_history("users")) == 1


class TestFailedRun:
    """A run rejected part way through."""

    @pytest.mark.asyncio
    async def test_partial_application_and_history(
        self, manager: SchemaManager, sqlite_storage: SQLiteStorageExecutor
    ) -> None:
        """The first operation stays applied; history says FAILED."""
        await manager.create_table(users_v1())
        operations = [
            MigrationOperation.add_column("users", FieldSchema.text("email")),
            MigrationOperation.add_column("users", FieldSchema.text("username")),
        ]
        with pytest.raises(MigrationOperationError) as exc_info:
            await manager.execute_migration("users", operations, "migration_failing")

        assert exc_info.value.operation_index == 1
        assert "duplicate column" in exc_info.value.error
        assert await column_names(sqlite_storage, "users") == ["id", "username", "email"]

        latest = (await manager.get_migration_history("users"))[0]
        assert latest.task_id == "migration_failing"
        assert latest.state is MigrationState.FAILED
        assert latest.error_message
        assert await manager.get_schema_version("users") == 1


class TestZeroDowntime:
    """Shadow-table rebuilds on real tables."""

    @pytest.mark.asyncio
    async def test_rewrite_keeps_data(
        self, manager: SchemaManager, sqlite_storage: SQLiteStorageExecutor
    ) -> None:
        """Usernames survive, the new column is NULL, the shadow is gone."""
        await manager.create_table(users_v1())
        await _insert_users(sqlite_storage, "alice", "bob")

        result = await manager.migrate_with_zero_downtime(users_v1(), users_with_email())

        assert result.rows_copied == 2
        assert result.transactional
        assert await fetch_all(
            sqlite_storage, 'SELECT id, username, email FROM "users" ORDER BY id'
        ) == [(1, "alice", None), (2, "bob", None)]
        assert not await manager.table_exists("users_temp")
        assert await manager.get_schema_version("users") == 2

    @pytest.mark.asyncio
    async def test_migrate_routes_removal_to_rewrite(
        self, manager: SchemaManager, sqlite_storage: SQLiteStorageExecutor
    ) -> None:
        await manager.create_table(users_with_email())
        await sqlite_storage.execute_insert(
            'INSERT INTO "users" ("username", "email") VALUES (?, ?)', ["alice", "a@example.com"]
        )

        result = await manager.migrate(users_with_email(), users_v1())

        assert isinstance(result, RewriteResult)
        assert result.dropped_columns == ("email",)
        assert await column_names(sqlite_storage, "users") == ["id", "username"]
        assert await fetch_all(sqlite_storage, 'SELECT username FROM "users"') == [("alice",)]

    @pytest.mark.asyncio
    async def test_rewrite_recreates_indexes(
        self, manager: SchemaManager, sqlite_storage: SQLiteStorageExecutor
    ) -> None:
        await manager.create_table(users_v1())
        await manager.migrate_with_zero_downtime(users_v1(), users_with_index())
        rows = await sqlite_storage.execute_query(
            "SELECT name FROM sqlite_master WHERE type = 'index' AND tbl_name = ?", ["users"]
        )
        assert "users_email_idx" in [row["name"] for row in rows]

    @pytest.mark.asyncio
    async def test_field_rename_with_removal_keeps_data(
        self, manager: SchemaManager, sqlite_storage: SQLiteStorageExecutor
    ) -> None:
        """The rename runs in place first, so the rebuild copies the renamed column."""
        await manager.create_table(users_with_email())
        await _insert_users(sqlite_storage, "alice")

        result = await manager.migrate(users_with_email(), users_renamed_field())

        assert isinstance(result, RewriteResult)
        assert result.copied_columns == ("id", "user_name")
        assert await column_names(sqlite_storage, "users") == ["id", "user_name"]
        assert await fetch_all(sqlite_storage, 'SELECT user_name FROM "users"') == [("alice",)]
        assert await manager.get_schema_version("users") == 3

    @pytest.mark.asyncio
    async def test_table_rename_with_removal(
        self, manager: SchemaManager, sqlite_storage: SQLiteStorageExecutor
    ) -> None:
        await manager.create_table(users_with_email())
        await _insert_users(sqlite_storage, "alice")

        await manager.migrate(users_with_email(), app_users())

        assert await manager.get_all_table_names() == ["app_users"]
        assert await fetch_all(sqlite_storage, 'SELECT username FROM "app_users"') == [("alice",)]
        assert await manager.get_schema_version("app_users") == 3

    @pytest.mark.asyncio
    async def test_rebuilding_parent_keeps_cascading_children(
        self, manager: SchemaManager, sqlite_storage: SQLiteStorageExecutor
    ) -> None:
        """Dropping the old parent table does not cascade into posts."""
        await manager.create_table(users_with_email())
        await manager.create_table(posts())
        await _insert_users(sqlite_storage, "alice", "bob")
        await sqlite_storage.execute_insert(
            'INSERT INTO "posts" ("title", "author_id") VALUES (?, ?), (?, ?)',
            ["hello", 1, "again", 2],
        )

        result = await manager.migrate(users_with_email(), users_v1())

        assert isinstance(result, RewriteResult)
        assert await fetch_all(
            sqlite_storage, 'SELECT title, author_id FROM "posts" ORDER BY id'
        ) == [("hello", 1), ("again", 2)]
        assert await fetch_all(sqlite_storage, "PRAGMA foreign_keys") == [(1,)]

        # Enforcement is back on and still points at the rebuilt table.
        await sqlite_storage.execute_delete('DELETE FROM "users" WHERE "id" = ?', [1])
        assert await fetch_all(sqlite_storage, 'SELECT title FROM "posts"') == [("again",)]


class TestRollback:
    """Tests for rollback_migration()."""

    @pytest.mark.asyncio
    async def test_rollback_add_column(
        self, manager: SchemaManager, sqlite_storage: SQLiteStorageExecutor
    ) -> None:
        await manager.create_table(users_v1())
        status = await manager.migrate(users_v1(), users_with_email(), task_id="migration_email")
        assert isinstance(status, MigrationStatus)

        rollback = await manager.rollback_migration("migration_email")

        assert rollback.task_id == "rollback_migration_email"
        assert rollback.is_complete
        assert await column_names(sqlite_storage, "users") == ["id", "username"]
        assert await manager.get_schema_version("users") == 3

    @pytest.mark.asyncio
    async def test_rollback_table_rename(self, manager: SchemaManager) -> None:
        await manager.create_table(users_v1())
        await manager.migrate(users_v1(), app_users(), task_id="migration_rename")

        await manager.rollback_migration("migration_rename")

        assert await manager.get_all_table_names() == ["users"]
        assert await manager.get_schema_version("users") == 3
        assert await manager.get_schema_version("app_users") == 0

    @pytest.mark.asyncio
    async def test_second_rollback_refused(self, manager: SchemaManager) -> None:
        await manager.create_table(users_v1())
        await manager.migrate(users_v1(), users_with_email(), task_id="migration_email")
        await manager.rollback_migration("migration_email")
        with pytest.raises(MigrationStateError, match="already rolled back"):
            await manager.rollback_migration("migration_email")

    @pytest.mark.asyncio
    async def test_failed_rollback_can_be_retried(
        self, manager: SchemaManager, sqlite_storage: SQLiteStorageExecutor
    ) -> None:
        """A rollback blocked by a later index succeeds once that index is rolled back."""
        await manager.create_table(users_v1())
        await manager.migrate(users_v1(), users_with_email(), task_id="migration_email")
        await manager.migrate(users_with_email(), users_with_index(), task_id="migration_index")

        with pytest.raises(MigrationOperationError):
            await manager.rollback_migration("migration_email")
        failed = await manager.history.get("rollback_migration_email")
        assert failed is not None
        assert failed.state is MigrationState.FAILED

        await manager.rollback_migration("migration_index")
        retry = await manager.rollback_migration("migration_email")

        assert retry.task_id == "rollback_migration_email_2"
        assert retry.is_complete
        assert await column_names(sqlite_storage, "users") == ["id", "username"]
        with pytest.raises(MigrationStateError, match="already rolled back"):
            await manager.rollback_migration("migration_email")

    @pytest.mark.asyncio
    async def test_unknown_task(self, manager: SchemaManager) -> None:
        with pytest.raises(MigrationNotFoundError):
            await manager.rollback_migration("migration_404")

    @pytest.mark.asyncio
    async def test_failed_run_refused(self, manager: SchemaManager) -> None:
        await manager.create_table(users_v1())
        with pytest.raises(MigrationOperationError):
            await manager.execute_migration(
                "users",
                [MigrationOperation.add_column("users", FieldSchema.text("username"))],
                "migration_failing",
            )
        with pytest.raises(MigrationStateError, match="failed"):
            await manager.rollback_migration("migration_failing")

    @pytest.mark.asyncio
    async def test_irreversible_refused(self, manager: SchemaManager) -> None:
        await manager.create_table(users_v1())
        await manager.execute_migration(
            "users", [MigrationOperation.drop_table("users")], "migration_drop"
        )
        with pytest.raises(IrreversibleMigrationError):
            await manager.rollback_migration("migration_drop")


class TestProgress:
    """Progress callbacks and streaming through the manager."""

    @pytest.mark.asyncio
    async def test_callbacks(self, manager: SchemaManager) -> None:
        seen: list[MigrationStatus] = []
        manager.add_progress_callback(seen.append)
        await manager.create_table(users_v1())
        assert seen[0].progress_percent == 0.0
        assert seen[-1].state is MigrationState.COMPLETED

        assert manager.remove_progress_callback(seen.append)
        assert not manager.remove_progress_callback(seen.append)
        count = len(seen)
        await manager.migrate(users_v1(), users_with_email())
        assert len(seen) == count

    @pytest.mark.asyncio
    async def test_broken_callback_does_not_fail_run(self, manager: SchemaManager) -> None:
        def broken(status: MigrationStatus) -> None:
            raise RuntimeError("dashboard offline")

        manager.add_progress_callback(broken)
        status = await manager.create_table(users_v1())
        assert status is not None
        assert status.is_complete

    @pytest.mark.asyncio
    async def test_stream_status(self, manager: SchemaManager) -> None:
        streamer = manager.stream_status(table_name="users")
        run = asyncio.create_task(manager.create_table(users_v1()))
        states = [status.state async for status in streamer.stream_status(timeout=5.0)]
        await run
        assert states[0] is MigrationState.IN_PROGRESS
        assert states[-1] is MigrationState.COMPLETED
