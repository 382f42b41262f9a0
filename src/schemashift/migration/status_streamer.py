"""
StatusStreamer - Async iteration over migration status updates.

Bridges the synchronous :class:`ProgressNotifier` to an async iterator, so a
monitoring task can follow a migration run while it executes in another
task.

Usage:
    >>> streamer = StatusStreamer(notifier, table_name="users")
    >>> run = asyncio.create_task(executor.execute("users", operations))
    >>> async for status in streamer.stream_status():
    ...     print(f"{status.state.value}: {status.progress_percent:.0f}%")
    >>> await run
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from typing import Any

from schemashift.migration.models import MigrationStatus
from schemashift.migration.progress import ProgressNotifier
from schemashift.observability import ATTR_TABLE_NAME, ATTR_TASK_ID, Tracer, create_tracer

logger = logging.getLogger(__name__)


class StatusStreamer:
    """
    Streams MigrationStatus updates for one task or one table.

    The streamer subscribes to the notifier when it is created and
    unsubscribes when the stream ends or :meth:`close` is called. Updates
    published before the first iteration are buffered.

    Thread Safety:
        Designed for asyncio; not thread-safe.

    Attributes:
        _task_id: Only statuses of this task are streamed, if set.
        _table_name: Only statuses of this table are streamed, if set.
        _queue: Buffered statuses waiting to be yielded.
    """

    def __init__(
        self,
        notifier: ProgressNotifier,
        *,
        task_id: str | None = None,
        table_name: str | None = None,
        max_queue_size: int = 1000,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ):
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._notifier = notifier
        self._task_id = task_id
        self._table_name = table_name
        self._queue: asyncio.Queue[MigrationStatus | None] = asyncio.Queue(maxsize=max_queue_size)
        self._closed = False
        self._notifier.add(self._on_status)

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _matches(self, status: MigrationStatus) -> bool:
        if self._task_id is not None and status.task_id != self._task_id:
            return False
        return self._table_name is None or status.table_name == self._table_name

    def _on_status(self, status: MigrationStatus) -> None:
        if self._closed or not self._matches(status):
            return
        try:
            self._queue.put_nowait(status)
        except asyncio.QueueFull:
            logger.warning(
                "Status queue full for migration %s; dropping %s update",
                status.task_id,
                status.state.value,
            )

    async def stream_status(self, *, timeout: float | None = None) -> AsyncIterator[MigrationStatus]:
        """
        Yield status updates until a terminal status has been yielded.

        Args:
            timeout: Seconds to wait for each update (None waits forever)

        Raises:
            TimeoutError: If no update arrives within ``timeout``
            RuntimeError: If the streamer has been closed
        """
        if self._closed:
            raise RuntimeError("StatusStreamer has been closed")

        with self._tracer.span(
            "schemashift.status_streamer.stream_status",
            {ATTR_TASK_ID: self._task_id or "", ATTR_TABLE_NAME: self._table_name or ""},
        ):
            try:
                while True:
                    status = await asyncio.wait_for(self._queue.get(), timeout=timeout)
                    if status is None:
                        return
                    yield status
                    if status.state.is_terminal:
                        logger.debug(
                            "Migration %s reached %s, stopping stream",
                            status.task_id,
                            status.state.value,
                        )
                        return
            finally:
                self.close()

    def close(self) -> None:
        """Unsubscribe and end any active stream."""
        if self._closed:
            return
        self._closed = True
        self._notifier.remove(self._on_status)
        with contextlib.suppress(asyncio.QueueFull):
            self._queue.put_nowait(None)

    async def __aenter__(self) -> StatusStreamer:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()


__all__ = ["StatusStreamer"]
