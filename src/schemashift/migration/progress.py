"""
Progress notification for migration runs.

The executor publishes a :class:`MigrationStatus` at every transition of a
run. Subscribers are plain callables kept in registration order and called
synchronously, so a slow subscriber delays the run.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from schemashift.migration.models import MigrationStatus

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[MigrationStatus], None]


class ProgressNotifier:
    """
    Ordered, dynamic set of progress subscribers.

    Args:
        isolate_errors: When True (default) an exception raised by a
            subscriber is logged and the remaining subscribers still run.
            When False it propagates into the migration run.

    Example:
        >>> notifier = ProgressNotifier()
        >>> notifier.add(lambda status: print(status.progress_percent))
        >>> len(notifier)
        1
    """

    def __init__(self, *, isolate_errors: bool = True) -> None:
        self._callbacks: list[ProgressCallback] = []
        self._isolate_errors = isolate_errors

    @property
    def isolate_errors(self) -> bool:
        return self._isolate_errors

    def add(self, callback: ProgressCallback) -> None:
        """Register a subscriber. Registering the same callable twice is a no-op."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def remove(self, callback: ProgressCallback) -> bool:
        """Deregister a subscriber; False if it was not registered."""
        try:
            self._callbacks.remove(callback)
        except ValueError:
            return False
        return True

    def clear(self) -> None:
        self._callbacks.clear()

    def notify(self, status: MigrationStatus) -> None:
        # Snapshot so subscribers may (de)register during delivery.
        for callback in list(self._callbacks):
            try:
                callback(status)
            except Exception:
                if not self._isolate_errors:
                    raise
                logger.exception(
                    "Progress callback %r failed for migration %s (%s)",
                    callback,
                    status.task_id,
                    status.state.value,
                )

    def __len__(self) -> int:
        return len(self._callbacks)

    def __contains__(self, callback: object) -> bool:
        return callback in self._callbacks


__all__ = ["ProgressCallback", "ProgressNotifier"]
