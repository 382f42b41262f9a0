"""
Storage executor interface.

The migration engine talks to the database only through these four
asynchronous calls. Every call takes a statement string plus a list of
positional parameters (``?`` placeholders).

This module provides:
- StorageExecutor: The minimal protocol every store must implement
- TransactionalStorageExecutor: Adds an atomic ``transaction()`` scope
- Row: Type alias for a fetched row
"""

from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol, runtime_checkable

Row = dict[str, Any]


@runtime_checkable
class StorageExecutor(Protocol):
    """
    Protocol for executing statements against a store.

    Implementations:
    - SQLiteStorageExecutor: aiosqlite connection
    - SQLAlchemyStorageExecutor: SQLAlchemy AsyncEngine / AsyncConnection

    Implementations raise :class:`schemashift.exceptions.StorageError` when
    the store rejects a statement.
    """

    async def execute_query(self, sql: str, params: list[Any] | None = None) -> list[Row]:
        """Run a query and return rows as column-name mappings, in column order."""
        ...

    async def execute_insert(self, sql: str, params: list[Any] | None = None) -> int | None:
        """Run an INSERT and return the generated row id, if the store reports one."""
        ...

    async def execute_update(self, sql: str, params: list[Any] | None = None) -> int:
        """Run an UPDATE (or DDL) and return the affected row count."""
        ...

    async def execute_delete(self, sql: str, params: list[Any] | None = None) -> int:
        """Run a DELETE and return the affected row count."""
        ...


@runtime_checkable
class TransactionalStorageExecutor(StorageExecutor, Protocol):
    """
    Storage executor that can group statements into one atomic unit.

    ``transaction()`` commits when the block exits normally and rolls back
    when it raises. Nested calls join the outer transaction.
    """

    def transaction(self) -> AbstractAsyncContextManager[None]: ...


__all__ = [
    "Row",
    "StorageExecutor",
    "TransactionalStorageExecutor",
]
