"""
SQLAlchemy storage executor.

Runs migration statements through SQLAlchemy's asyncio extension, so any
dialect with an async driver (``sqlite+aiosqlite``, ``postgresql+asyncpg``,
...) can be migrated.

Statements arrive with positional ``?`` placeholders. They are rewritten to
named binds (``:p0``, ``:p1``, ...) for ``sqlalchemy.text``; question marks
and colons inside quoted literals or identifiers are left untouched.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from schemashift.exceptions import StorageError
from schemashift.observability import (
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    Tracer,
    create_tracer,
)
from schemashift.stores._connection import execute_with_connection
from schemashift.stores.interface import Row

logger = logging.getLogger(__name__)


class SQLAlchemyStorageExecutor:
    """
    Storage executor over an AsyncEngine or AsyncConnection.

    With an engine, each statement runs in its own short transaction unless
    it is inside :meth:`transaction`. With a connection, the caller owns
    commit/rollback outside :meth:`transaction`.

    Example:
        >>> engine = create_async_engine("sqlite+aiosqlite:///:memory:")
        >>> storage = SQLAlchemyStorageExecutor(engine)
        >>> await storage.execute_update("CREATE TABLE t (id INTEGER)")
    """

    def __init__(
        self,
        conn: AsyncEngine | AsyncConnection,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._conn = conn
        self._active: AsyncConnection | None = None

        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled

    @property
    def dialect_name(self) -> str:
        """SQLAlchemy dialect name, e.g. ``sqlite`` or ``postgresql``."""
        return self._conn.dialect.name

    @property
    def in_transaction(self) -> bool:
        return self._active is not None

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[AsyncConnection]:
        if self._active is not None:
            yield self._active
            return
        async with execute_with_connection(self._conn, transactional=True) as conn:
            yield conn

    async def _run(self, sql: str, params: list[Any] | None, operation: str) -> Any:
        statement, bound = to_named_params(sql, params or [])
        with self._tracer.span(
            f"schemashift.sqlalchemy.execute_{operation}",
            {ATTR_DB_SYSTEM: self.dialect_name, ATTR_DB_OPERATION: operation},
        ):
            logger.debug("SQLAlchemy %s: %s", operation, sql)
            try:
                async with self._connection() as conn:
                    result = await conn.execute(text(statement), bound)
                    if operation == "query":
                        if not result.returns_rows:
                            return []
                        return [dict(row) for row in result.mappings().all()]
                    if operation == "insert":
                        return _lastrowid(result)
                    return max(result.rowcount, 0)
            except SQLAlchemyError as e:
                raise StorageError(str(getattr(e, "orig", None) or e), sql) from e

    async def execute_query(self, sql: str, params: list[Any] | None = None) -> list[Row]:
        rows: list[Row] = await self._run(sql, params, "query")
        return rows

    async def execute_insert(self, sql: str, params: list[Any] | None = None) -> int | None:
        row_id: int | None = await self._run(sql, params, "insert")
        return row_id

    async def execute_update(self, sql: str, params: list[Any] | None = None) -> int:
        count: int = await self._run(sql, params, "update")
        return count

    async def execute_delete(self, sql: str, params: list[Any] | None = None) -> int:
        count: int = await self._run(sql, params, "delete")
        return count

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """
        Run the enclosed statements in one transaction.

        Nested blocks join the outer transaction. On a caller-supplied
        connection that is already in a transaction a SAVEPOINT is used.
        """
        if self._active is not None:
            yield
            return

        if isinstance(self._conn, AsyncEngine):
            async with self._conn.begin() as conn:
                self._active = conn
                try:
                    yield
                finally:
                    self._active = None
            return

        conn = self._conn
        scope = conn.begin_nested() if conn.in_transaction() else conn.begin()
        async with scope:
            self._active = conn
            try:
                yield
            finally:
                self._active = None


def to_named_params(sql: str, params: list[Any]) -> tuple[str, dict[str, Any]]:
    """
    Convert ``?`` placeholders to ``:pN`` binds for ``sqlalchemy.text``.

    Colons that ``text()`` would read as a bind marker are escaped.

    Raises:
        ValueError: If the number of placeholders and parameters differ
    """
    out: list[str] = []
    bound: dict[str, Any] = {}
    quote: str | None = None
    index = 0
    length = len(sql)
    for pos, char in enumerate(sql):
        if quote is not None:
            if char == quote:
                quote = None
            elif char == ":" and pos + 1 < length and _is_word(sql[pos + 1]):
                out.append("\\")
            out.append(char)
            continue
        if char in ("'", '"'):
            quote = char
            out.append(char)
        elif char == "?":
            if index >= len(params):
                raise ValueError(f"Statement has more placeholders than parameters: {sql}")
            name = f"p{index}"
            bound[name] = params[index]
            out.append(f":{name}")
            index += 1
        elif char == ":" and pos + 1 < length and _is_word(sql[pos + 1]):
            out.append("\\:")
        else:
            out.append(char)
    if index != len(params):
        raise ValueError(
            f"Statement has {index} placeholder(s) but {len(params)} parameter(s): {sql}"
        )
    return "".join(out), bound


def _lastrowid(result: Any) -> int | None:
    # Not every async driver exposes lastrowid.
    with contextlib.suppress(AttributeError, NotImplementedError):
        return result.lastrowid or None
    return None


def _is_word(char: str) -> bool:
    return char.isalnum() or char == "_"


__all__ = ["SQLAlchemyStorageExecutor", "to_named_params"]
