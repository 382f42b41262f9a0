"""
Unit tests for SQLiteStorageExecutor.

Tests cover:
- Connection lifecycle
- Query, insert, update and delete results
- StorageError wrapping
- transaction() commit, rollback and nesting
"""

import aiosqlite
import pytest

from schemashift.exceptions import NotConnectedError, StorageError
from schemashift.observability import MockTracer
from schemashift.stores import SQLiteStorageExecutor, StorageExecutor, TransactionalStorageExecutor


async def _create_items(storage: SQLiteStorageExecutor) -> None:
    await storage.execute_update("CREATE TABLE items (id INTEGER PRIMARY KEY, name TEXT)")


class TestLifecycle:
    """Tests for connect/close."""

    @pytest.mark.asyncio
    async def test_context_manager(self) -> None:
        async with SQLiteStorageExecutor(enable_tracing=False) as storage:
            assert storage.is_connected
            assert storage.database == ":memory:"
        assert not storage.is_connected

    @pytest.mark.asyncio
    async def test_not_connected(self) -> None:
        storage = SQLiteStorageExecutor(enable_tracing=False)
        with pytest.raises(NotConnectedError, match="Not connected"):
            await storage.execute_query("SELECT 1")

    @pytest.mark.asyncio
    async def test_close_twice(self) -> None:
        storage = SQLiteStorageExecutor(enable_tracing=False)
        await storage.connect()
        await storage.close()
        await storage.close()

    @pytest.mark.asyncio
    async def test_wrapped_connection_not_closed(self) -> None:
        """close() detaches a caller-supplied connection without closing it."""
        async with aiosqlite.connect(":memory:") as conn:
            storage = SQLiteStorageExecutor.from_connection(conn, enable_tracing=False)
            await _create_items(storage)
            await storage.close()
            async with conn.execute("SELECT COUNT(*) FROM items") as cursor:
                assert (await cursor.fetchone())[0] == 0

    def test_satisfies_protocols(self) -> None:
        storage = SQLiteStorageExecutor(enable_tracing=False)
        assert isinstance(storage, StorageExecutor)
        assert isinstance(storage, TransactionalStorageExecutor)


class TestStatements:
    """Statement execution."""

    @pytest.mark.asyncio
    async def test_insert_returns_row_id(self, sqlite_storage: SQLiteStorageExecutor) -> None:
        await _create_items(sqlite_storage)
        first = await sqlite_storage.execute_insert("INSERT INTO items (name) VALUES (?)", ["a"])
        second = await sqlite_storage.execute_insert("INSERT INTO items (name) VALUES (?)", ["b"])
        assert (first, second) == (1, 2)

    @pytest.mark.asyncio
    async def test_query_returns_mappings(self, sqlite_storage: SQLiteStorageExecutor) -> None:
        await _create_items(sqlite_storage)
        await sqlite_storage.execute_insert("INSERT INTO items (name) VALUES (?)", ["a"])
        rows = await sqlite_storage.execute_query("SELECT id, name FROM items")
        assert rows == [{"id": 1, "name": "a"}]
        assert list(rows[0]) == ["id", "name"]

    @pytest.mark.asyncio
    async def test_update_and_delete_counts(self, sqlite_storage: SQLiteStorageExecutor) -> None:
        await _create_items(sqlite_storage)
        for name in ("a", "b", "c"):
            await sqlite_storage.execute_insert("INSERT INTO items (name) VALUES (?)", [name])
        assert await sqlite_storage.execute_update("UPDATE items SET name = ?", ["z"]) == 3
        assert await sqlite_storage.execute_delete("DELETE FROM items WHERE id > ?", [1]) == 2

    @pytest.mark.asyncio
    async def test_store_error_wrapped(self, sqlite_storage: SQLiteStorageExecutor) -> None:
        """Driver errors become StorageError carrying the statement."""
        with pytest.raises(StorageError, match="no such table") as exc_info:
            await sqlite_storage.execute_update('DROP TABLE "missing"')
        assert exc_info.value.sql == 'DROP TABLE "missing"'

    @pytest.mark.asyncio
    async def test_spans(self) -> None:
        tracer = MockTracer()
        async with SQLiteStorageExecutor(tracer=tracer) as storage:
            await storage.execute_query("SELECT 1")
            await _create_items(storage)
        assert tracer.span_names == [
            "schemashift.sqlite.execute_query",
            "schemashift.sqlite.execute_update",
        ]


class TestTransactions:
    """Tests for transaction()."""

    @pytest.mark.asyncio
    async def test_commit(self, sqlite_storage: SQLiteStorageExecutor) -> None:
        async with sqlite_storage.transaction():
            assert sqlite_storage.in_transaction
            await _create_items(sqlite_storage)
        assert not sqlite_storage.in_transaction
        assert await sqlite_storage.execute_query("SELECT * FROM items") == []

    @pytest.mark.asyncio
    async def test_rollback_undoes_ddl(self, sqlite_storage: SQLiteStorageExecutor) -> None:
        """SQLite DDL inside a failed block is undone."""
        with pytest.raises(RuntimeError):
            async with sqlite_storage.transaction():
                await _create_items(sqlite_storage)
                raise RuntimeError("abort")
        rows = await sqlite_storage.execute_query(
            "SELECT name FROM sqlite_master WHERE name = ?", ["items"]
        )
        assert rows == []

    @pytest.mark.asyncio
    async def test_nested_blocks_join_outer(self, sqlite_storage: SQLiteStorageExecutor) -> None:
        await _create_items(sqlite_storage)
        with pytest.raises(RuntimeError):
            async with sqlite_storage.transaction():
                async with sqlite_storage.transaction():
                    await sqlite_storage.execute_insert(
                        "INSERT INTO items (name) VALUES (?)", ["a"]
                    )
                raise RuntimeError("abort")
        assert await sqlite_storage.execute_query("SELECT * FROM items") == []
