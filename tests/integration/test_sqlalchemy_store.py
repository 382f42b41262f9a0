"""
Integration tests for SQLAlchemyStorageExecutor over sqlite+aiosqlite.

Tests cover:
- Positional parameters, row mappings and row counts
- StorageError wrapping
- transaction() commit and rollback of data changes
- A full manager workflow through SQLAlchemy
"""

import pytest

from schemashift.exceptions import StorageError
from schemashift.manager import SchemaManager
from schemashift.migration import MigrationState, RewriteResult
from schemashift.stores import (
    SQLAlchemyStorageExecutor,
    StorageExecutor,
    TransactionalStorageExecutor,
)
from tests.fixtures import column_names, fetch_all, users_v1, users_with_email

pytestmark = [pytest.mark.integration, pytest.mark.sqlalchemy]


async def _create_items(storage: SQLAlchemyStorageExecutor) -> None:
    await storage.execute_update("CREATE TABLE items (id INTEGER PRIMARY KEY, name TEXT)")


class TestStatements:
    """Statement execution through SQLAlchemy."""

    def test_protocols_and_dialect(self, sqlalchemy_storage: SQLAlchemyStorageExecutor) -> None:
        assert isinstance(sqlalchemy_storage, StorageExecutor)
        assert isinstance(sqlalchemy_storage, TransactionalStorageExecutor)
        assert sqlalchemy_storage.dialect_name == "sqlite"

    @pytest.mark.asyncio
    async def test_insert_query_update_delete(
        self, sqlalchemy_storage: SQLAlchemyStorageExecutor
    ) -> None:
        await _create_items(sqlalchemy_storage)
        row_id = await sqlalchemy_storage.execute_insert(
            "INSERT INTO items (name) VALUES (?)", ["a"]
        )
        await sqlalchemy_storage.execute_insert("INSERT INTO items (name) VALUES (?)", ["b"])
        assert row_id == 1

        rows = await sqlalchemy_storage.execute_query(
            "SELECT id, name FROM items WHERE name = ?", ["a"]
        )
        assert rows == [{"id": 1, "name": "a"}]

        assert await sqlalchemy_storage.execute_update("UPDATE items SET name = ?", ["z"]) == 2
        assert await sqlalchemy_storage.execute_delete("DELETE FROM items WHERE id = ?", [1]) == 1

    @pytest.mark.asyncio
    async def test_literal_colons_survive(
        self, sqlalchemy_storage: SQLAlchemyStorageExecutor
    ) -> None:
        rows = await sqlalchemy_storage.execute_query("SELECT '12:30' AS t, ? AS p", ["x"])
        assert rows == [{"t": "12:30", "p": "x"}]

    @pytest.mark.asyncio
    async def test_error_wrapped(self, sqlalchemy_storage: SQLAlchemyStorageExecutor) -> None:
        with pytest.raises(StorageError, match="no such table"):
            await sqlalchemy_storage.execute_query("SELECT * FROM missing")


class TestTransactions:
    """Tests for transaction() on an engine."""

    @pytest.mark.asyncio
    async def test_commit(self, sqlalchemy_storage: SQLAlchemyStorageExecutor) -> None:
        await _create_items(sqlalchemy_storage)
        async with sqlalchemy_storage.transaction():
            assert sqlalchemy_storage.in_transaction
            await sqlalchemy_storage.execute_insert("INSERT INTO items (name) VALUES (?)", ["a"])
        assert not sqlalchemy_storage.in_transaction
        assert await fetch_all(sqlalchemy_storage, "SELECT name FROM items") == [("a",)]

    @pytest.mark.asyncio
    async def test_rollback(self, sqlalchemy_storage: SQLAlchemyStorageExecutor) -> None:
        await _create_items(sqlalchemy_storage)
        with pytest.raises(RuntimeError):
            async with sqlalchemy_storage.transaction():
                await sqlalchemy_storage.execute_insert(
                    "INSERT INTO items (name) VALUES (?)", ["a"]
                )
                async with sqlalchemy_storage.transaction():
                    await sqlalchemy_storage.execute_insert(
                        "INSERT INTO items (name) VALUES (?)", ["b"]
                    )
                raise RuntimeError("abort")
        assert await fetch_all(sqlalchemy_storage, "SELECT name FROM items") == []


class TestManagerWorkflow:
    """The manager end to end through SQLAlchemy."""

    @pytest.mark.asyncio
    async def test_create_migrate_and_rewrite(
        self,
        sqlalchemy_manager: SchemaManager,
        sqlalchemy_storage: SQLAlchemyStorageExecutor,
    ) -> None:
        await sqlalchemy_manager.create_table(users_v1())
        await sqlalchemy_storage.execute_insert(
            'INSERT INTO "users" ("username") VALUES (?)', ["alice"]
        )

        status = await sqlalchemy_manager.migrate(users_v1(), users_with_email())
        assert status is not None and not isinstance(status, RewriteResult)
        assert status.state is MigrationState.COMPLETED

        result = await sqlalchemy_manager.migrate(users_with_email(), users_v1())
        assert isinstance(result, RewriteResult)
        assert result.rows_copied == 1

        assert await column_names(sqlalchemy_storage, "users") == ["id", "username"]
        assert await fetch_all(sqlalchemy_storage, 'SELECT username FROM "users"') == [("alice",)]
        assert await sqlalchemy_manager.get_all_table_names() == ["users"]
        assert await sqlalchemy_manager.get_schema_version("users") == 3
        assert len(await sqlalchemy_manager.get_migration_history("users")) == 2
