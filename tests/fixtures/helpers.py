"""
Small query helpers for tests that inspect a real database.
"""

from __future__ import annotations

from typing import Any

from schemashift.stores.interface import StorageExecutor


async def column_names(storage: StorageExecutor, table: str) -> list[str]:
    """Columns of a SQLite table in declaration order."""
    rows = await storage.execute_query(f'PRAGMA table_info("{table}")')
    return [row["name"] for row in rows]


async def fetch_all(
    storage: StorageExecutor, sql: str, params: list[Any] | None = None
) -> list[tuple[Any, ...]]:
    """Rows of a query as tuples, for compact assertions."""
    return [tuple(row.values()) for row in await storage.execute_query(sql, params)]
