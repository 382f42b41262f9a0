"""
Data models for migration runs and the metadata ledgers.

Enums:
    - MigrationState: Lifecycle of one migration run

Core Models:
    - MigrationStatus: Point-in-time snapshot of a run, handed to subscribers
    - MigrationRecord: One row of the migration history
    - VersionRecord: One row of the version ledger
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from schemashift.migration.operations import MigrationOperation


class MigrationState(Enum):
    """
    Lifecycle of a migration run.

    State machine transitions:
        PENDING -> IN_PROGRESS -> COMPLETED
                       |
                       +-------> FAILED

    IN_PROGRESS may repeat (one status per completed operation).

    Attributes:
        PENDING: Run created, nothing applied yet.
        IN_PROGRESS: Operations are being applied.
        COMPLETED: Every operation was applied.
        FAILED: An operation was rejected; earlier ones stay applied.
    """

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """COMPLETED and FAILED are final."""
        return self in (MigrationState.COMPLETED, MigrationState.FAILED)

    def can_transition_to(self, target: MigrationState) -> bool:
        if self.is_terminal:
            return False
        valid_transitions: dict[MigrationState, tuple[MigrationState, ...]] = {
            MigrationState.PENDING: (MigrationState.IN_PROGRESS, MigrationState.FAILED),
            MigrationState.IN_PROGRESS: (
                MigrationState.IN_PROGRESS,
                MigrationState.COMPLETED,
                MigrationState.FAILED,
            ),
        }
        return target in valid_transitions.get(self, ())


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class MigrationStatus:
    """
    Snapshot of a migration run.

    Immutable: the executor creates a new snapshot at every transition and
    hands the same object to history and to progress subscribers.

    Attributes:
        task_id: Unique id of the run.
        table_name: Table being migrated.
        state: Current lifecycle state.
        progress_percent: 0-100, non-decreasing while IN_PROGRESS.
        started_at: When the run started.
        completed_at: When the run reached a terminal state.
        error_message: Store error text; present exactly when FAILED.
    """

    task_id: str
    table_name: str
    state: MigrationState
    progress_percent: float = 0.0
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error_message: str | None = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.progress_percent <= 100.0:
            raise ValueError(f"progress_percent must be within 0-100, got {self.progress_percent}")
        if self.state is MigrationState.FAILED and not self.error_message:
            raise ValueError("A failed migration status needs an error_message")
        if self.state is not MigrationState.FAILED and self.error_message is not None:
            raise ValueError("error_message is only allowed on failed migration status")

    @property
    def is_complete(self) -> bool:
        return self.state is MigrationState.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.state is MigrationState.FAILED

    @property
    def duration(self) -> timedelta | None:
        if self.started_at is None or self.completed_at is None:
            return None
        return self.completed_at - self.started_at

    def with_progress(self, progress_percent: float) -> MigrationStatus:
        """IN_PROGRESS snapshot at a new progress value (never lower)."""
        return self._transition(
            MigrationState.IN_PROGRESS,
            progress_percent=max(self.progress_percent, progress_percent),
        )

    def completed(self, at: datetime | None = None) -> MigrationStatus:
        return self._transition(
            MigrationState.COMPLETED,
            progress_percent=100.0,
            completed_at=at or utc_now(),
        )

    def failed(self, error_message: str, at: datetime | None = None) -> MigrationStatus:
        """FAILED snapshot; progress stays at the last value reached."""
        return self._transition(
            MigrationState.FAILED,
            error_message=error_message or "unknown error",
            completed_at=at or utc_now(),
        )

    def _transition(self, state: MigrationState, **changes: Any) -> MigrationStatus:
        if not self.state.can_transition_to(state):
            raise ValueError(
                f"Invalid migration state transition {self.state.value} -> {state.value}"
            )
        return replace(self, state=state, **changes)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "task_id": self.task_id,
            "table_name": self.table_name,
            "state": self.state.value,
            "progress_percent": self.progress_percent,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "error_message": self.error_message,
        }

    @classmethod
    def started(
        cls,
        task_id: str,
        table_name: str,
        at: datetime | None = None,
    ) -> MigrationStatus:
        """Initial IN_PROGRESS snapshot at 0%."""
        return cls(
            task_id=task_id,
            table_name=table_name,
            state=MigrationState.IN_PROGRESS,
            progress_percent=0.0,
            started_at=at or utc_now(),
        )


@dataclass(frozen=True)
class MigrationRecord:
    """
    One row of the migration history.

    Attributes:
        id: Row id assigned by the store.
        task_id: Unique id of the run.
        table_name: Table that was migrated.
        from_version: Ledger version before the run.
        to_version: Ledger version the run was meant to produce.
        operations: Operations of the run, in application order.
        state: Final (or current) state of the run.
        started_at: When the run started.
        completed_at: When the run finished, if it did.
        error_message: Store error text for failed runs.
    """

    task_id: str
    table_name: str
    to_version: int
    state: MigrationState
    operations: list[MigrationOperation] = field(default_factory=list)
    from_version: int | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error_message: str | None = None
    id: int | None = None

    @property
    def is_reversible(self) -> bool:
        return bool(self.operations) and all(op.can_reverse for op in self.operations)

    def to_status(self) -> MigrationStatus:
        return MigrationStatus(
            task_id=self.task_id,
            table_name=self.table_name,
            state=self.state,
            progress_percent=100.0 if self.state is MigrationState.COMPLETED else 0.0,
            started_at=self.started_at,
            completed_at=self.completed_at,
            error_message=self.error_message if self.state is MigrationState.FAILED else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "task_id": self.task_id,
            "table_name": self.table_name,
            "from_version": self.from_version,
            "to_version": self.to_version,
            "operations": [op.to_dict() for op in self.operations],
            "state": self.state.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "error_message": self.error_message,
        }


@dataclass(frozen=True)
class VersionRecord:
    """
    One row of the version ledger.

    Attributes:
        table_name: Managed table (unique).
        version: Starts at 1, increments on every structural change.
        schema_hash: Fingerprint of the current definition.
        created_at: When the table was first recorded.
        updated_at: When the version last changed.
    """

    table_name: str
    version: int
    schema_hash: str
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "table_name": self.table_name,
            "version": self.version,
            "schema_hash": self.schema_hash,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


__all__ = [
    "MigrationState",
    "MigrationStatus",
    "MigrationRecord",
    "VersionRecord",
    "utc_now",
]
