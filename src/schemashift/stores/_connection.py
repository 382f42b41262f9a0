"""
Connection handling helper for the SQLAlchemy storage executor.

`execute_with_connection` accepts either an AsyncEngine or an AsyncConnection
so the executor can be built from whichever the caller already holds.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine


@asynccontextmanager
async def execute_with_connection(
    conn: AsyncConnection | AsyncEngine,
    transactional: bool = True,
) -> AsyncIterator[AsyncConnection]:
    """
    Yield a connection ready for ``execute()`` calls.

    Args:
        conn: Database connection or engine
        transactional: If True, an engine connection is opened with
            ``begin()`` and committed on exit; otherwise with ``connect()``.
            Has no effect when ``conn`` is already an AsyncConnection.

    Note:
        When an AsyncConnection is passed the caller owns its transaction.
    """
    if isinstance(conn, AsyncEngine):
        if transactional:
            async with conn.begin() as connection:
                yield connection
        else:
            async with conn.connect() as connection:
                yield connection
    else:
        yield conn
