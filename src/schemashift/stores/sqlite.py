"""
SQLite storage executor.

Runs migration statements through aiosqlite. The connection is opened in
autocommit mode, so DDL and metadata writes take effect immediately unless
they run inside :meth:`SQLiteStorageExecutor.transaction`.

SQLite is the reference target of the migration engine: it supports table
rename and column add/rename, but not in-place column drop, retype or
constraint changes.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import aiosqlite

from schemashift.exceptions import NotConnectedError, StorageError
from schemashift.observability import (
    ATTR_DB_NAME,
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    Tracer,
    create_tracer,
)
from schemashift.stores.interface import Row

logger = logging.getLogger(__name__)


class SQLiteStorageExecutor:
    """
    Storage executor backed by an aiosqlite connection.

    Attributes:
        _database: Path to the database file or ':memory:'
        _connection: The aiosqlite connection (set after connect)
        _owns_connection: False when wrapping a caller-supplied connection

    Example:
        >>> async with SQLiteStorageExecutor(":memory:") as storage:
        ...     await storage.execute_update("CREATE TABLE t (id INTEGER)")
        ...     await storage.execute_insert("INSERT INTO t (id) VALUES (?)", [1])
        ...     rows = await storage.execute_query("SELECT id FROM t")
    """

    def __init__(
        self,
        database: str = ":memory:",
        *,
        busy_timeout: int = 5000,
        foreign_keys: bool = True,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Args:
            database: Path to SQLite database file or ':memory:'
            busy_timeout: Timeout in milliseconds when database is locked
            foreign_keys: If True, enforce foreign key constraints
            tracer: Optional custom Tracer
            enable_tracing: If True and OpenTelemetry is available, emit traces
        """
        self._database = database
        self._busy_timeout = busy_timeout
        self._foreign_keys = foreign_keys
        self._connection: aiosqlite.Connection | None = None
        self._owns_connection = True
        self._transaction_depth = 0

        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled

    @classmethod
    def from_connection(
        cls,
        connection: aiosqlite.Connection,
        *,
        database: str = "<external>",
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> SQLiteStorageExecutor:
        """
        Wrap an already open aiosqlite connection.

        The executor never closes a wrapped connection; :meth:`close` only
        detaches it.
        """
        executor = cls(database, tracer=tracer, enable_tracing=enable_tracing)
        executor._connection = connection
        executor._owns_connection = False
        return executor

    async def __aenter__(self) -> SQLiteStorageExecutor:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()

    async def connect(self) -> None:
        """Open the database connection. No-op when already connected."""
        if self._connection is not None:
            return

        self._connection = await aiosqlite.connect(self._database, isolation_level=None)
        if self._foreign_keys:
            await self._connection.execute("PRAGMA foreign_keys = ON")
        await self._connection.execute(f"PRAGMA busy_timeout = {int(self._busy_timeout)}")
        self._owns_connection = True

        logger.debug(
            "Connected to SQLite database: %s (foreign_keys=%s, busy_timeout=%d)",
            self._database,
            self._foreign_keys,
            self._busy_timeout,
        )

    async def close(self) -> None:
        """Close the connection. Safe to call multiple times."""
        if self._connection is None:
            return
        if self._owns_connection:
            await self._connection.close()
            logger.debug("Closed SQLite database connection: %s", self._database)
        self._connection = None

    @property
    def database(self) -> str:
        return self._database

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    @property
    def in_transaction(self) -> bool:
        return self._transaction_depth > 0

    def _ensure_connected(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise NotConnectedError(self._database)
        return self._connection

    # -------------------------------------------------------------------------
    # StorageExecutor
    # -------------------------------------------------------------------------

    async def execute_query(self, sql: str, params: list[Any] | None = None) -> list[Row]:
        with self._tracer.span(
            "schemashift.sqlite.execute_query",
            {ATTR_DB_SYSTEM: "sqlite", ATTR_DB_NAME: self._database, ATTR_DB_OPERATION: "query"},
        ):
            conn = self._ensure_connected()
            try:
                async with conn.execute(sql, params or []) as cursor:
                    rows = await cursor.fetchall()
                    if cursor.description is None:
                        return []
                    columns = [column[0] for column in cursor.description]
            except sqlite3.Error as e:
                raise StorageError(str(e), sql) from e
            return [dict(zip(columns, row, strict=True)) for row in rows]

    async def execute_insert(self, sql: str, params: list[Any] | None = None) -> int | None:
        lastrowid, _ = await self._write(sql, params, "insert")
        return lastrowid

    async def execute_update(self, sql: str, params: list[Any] | None = None) -> int:
        _, rowcount = await self._write(sql, params, "update")
        return rowcount

    async def execute_delete(self, sql: str, params: list[Any] | None = None) -> int:
        _, rowcount = await self._write(sql, params, "delete")
        return rowcount

    async def _write(
        self,
        sql: str,
        params: list[Any] | None,
        operation: str,
    ) -> tuple[int | None, int]:
        with self._tracer.span(
            f"schemashift.sqlite.execute_{operation}",
            {ATTR_DB_SYSTEM: "sqlite", ATTR_DB_NAME: self._database, ATTR_DB_OPERATION: operation},
        ):
            conn = self._ensure_connected()
            logger.debug("SQLite %s: %s", operation, sql)
            try:
                cursor = await conn.execute(sql, params or [])
                lastrowid = cursor.lastrowid
                rowcount = max(cursor.rowcount, 0)
                await cursor.close()
                # Wrapped connections may use implicit transactions.
                if self._transaction_depth == 0 and conn.in_transaction:
                    await conn.commit()
            except sqlite3.Error as e:
                raise StorageError(str(e), sql) from e
            return lastrowid, rowcount

    # -------------------------------------------------------------------------
    # TransactionalStorageExecutor
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """
        Run the enclosed statements atomically.

        SQLite DDL is transactional, so a rolled-back block also undoes
        CREATE/DROP/ALTER statements. Nested blocks join the outer one.
        """
        conn = self._ensure_connected()
        if self._transaction_depth > 0:
            self._transaction_depth += 1
            try:
                yield
            finally:
                self._transaction_depth -= 1
            return

        try:
            await conn.execute("BEGIN")
        except sqlite3.Error as e:
            raise StorageError(str(e), "BEGIN") from e
        self._transaction_depth = 1
        try:
            yield
        except BaseException:
            self._transaction_depth = 0
            await conn.rollback()
            logger.debug("Rolled back SQLite transaction: %s", self._database)
            raise
        self._transaction_depth = 0
        try:
            await conn.commit()
        except sqlite3.Error as e:
            raise StorageError(str(e), "COMMIT") from e


__all__ = ["SQLiteStorageExecutor"]
