"""
Migration-specific exceptions.

Exception Hierarchy:
    MigrationError (base)
    +-- SchemaNotRegisteredError      caller error
    +-- RewriteRequiredError          caller error
    +-- UnsafeRewriteError            caller error
    +-- MigrationOperationError       store rejected an operation
    +-- RewriteError                  shadow-table sequence failed part way
    +-- MigrationNotFoundError
    +-- MigrationStateError
        +-- IrreversibleMigrationError

Every MigrationError carries an :class:`ErrorClassification` describing how
severe it is and whether retrying can help.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from schemashift.exceptions import SchemaShiftError

if TYPE_CHECKING:
    from schemashift.migration.models import MigrationState
    from schemashift.migration.operations import MigrationOperation


class ErrorSeverity(Enum):
    """
    Severity level of migration errors.

    Attributes:
        CRITICAL: Data or schema may be left in an unexpected state.
        ERROR: The requested migration did not happen.
        WARNING: Worth surfacing, nothing was changed.
    """

    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"

    @property
    def log_level(self) -> int:
        """Corresponding Python logging level."""
        level_map = {
            ErrorSeverity.CRITICAL: logging.CRITICAL,
            ErrorSeverity.ERROR: logging.ERROR,
            ErrorSeverity.WARNING: logging.WARNING,
        }
        return level_map[self]


class ErrorRecoverability(Enum):
    """
    How a caller can recover from a migration error.

    Attributes:
        CALLER_ERROR: The request itself is wrong; fix it and call again.
        RECOVERABLE: Fix the underlying cause (data, locks) and retry.
        MANUAL: Partial state was left behind and needs inspection.
    """

    CALLER_ERROR = "caller_error"
    RECOVERABLE = "recoverable"
    MANUAL = "manual"


@dataclass(frozen=True)
class ErrorClassification:
    """
    Metadata attached to every migration error type.

    Attributes:
        severity: The severity level of the error.
        recoverability: How the error can be recovered from.
        error_code: Unique error code for programmatic handling.
        category: Error category for grouping related errors.
        suggested_action: Human-readable guidance for operators.
    """

    severity: ErrorSeverity
    recoverability: ErrorRecoverability
    error_code: str
    category: str
    suggested_action: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "severity": self.severity.value,
            "recoverability": self.recoverability.value,
            "error_code": self.error_code,
            "category": self.category,
            "suggested_action": self.suggested_action,
        }


class MigrationError(SchemaShiftError):
    """
    Base exception for all migration-related errors.

    Attributes:
        message: Human-readable error description.
        table_name: The table involved, if applicable.
        task_id: The migration task involved, if applicable.
    """

    _default_classification: ErrorClassification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="MIGRATION_ERROR",
        category="general",
        suggested_action="Review migration logs and history for details",
    )

    def __init__(
        self,
        message: str,
        *,
        table_name: str | None = None,
        task_id: str | None = None,
    ) -> None:
        self.message = message
        self.table_name = table_name
        self.task_id = task_id
        super().__init__(message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.table_name:
            parts.append(f"table={self.table_name}")
        if self.task_id:
            parts.append(f"task_id={self.task_id}")
        return " ".join(parts)

    @property
    def classification(self) -> ErrorClassification:
        return self._default_classification

    @property
    def severity(self) -> ErrorSeverity:
        return self.classification.severity

    @property
    def recoverability(self) -> ErrorRecoverability:
        return self.classification.recoverability

    @property
    def error_code(self) -> str:
        return self.classification.error_code

    @property
    def is_caller_error(self) -> bool:
        return self.recoverability is ErrorRecoverability.CALLER_ERROR

    def to_dict(self) -> dict[str, Any]:
        """Dictionary form for logs and API responses."""
        return {
            "message": self.message,
            "table_name": self.table_name,
            "task_id": self.task_id,
            "error_code": self.error_code,
            "classification": self.classification.to_dict(),
        }


class SchemaNotRegisteredError(MigrationError):
    """Raised when a table definition is needed but was never registered."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.CALLER_ERROR,
        error_code="SCHEMA_NOT_REGISTERED",
        category="catalog",
        suggested_action="Register the table schema before generating its migration",
    )

    def __init__(self, table_name: str) -> None:
        super().__init__(
            f"No schema registered for table '{table_name}'",
            table_name=table_name,
        )


class RewriteRequiredError(MigrationError):
    """
    Raised when operations that need a table rebuild reach the direct executor.

    Field removal, retype, constraint and foreign key changes cannot be applied
    in place and must go through the zero-downtime rewriter.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.CALLER_ERROR,
        error_code="REWRITE_REQUIRED",
        category="routing",
        suggested_action="Use migrate_with_zero_downtime(old, new) for this change",
    )

    def __init__(self, table_name: str, operations: list[MigrationOperation]) -> None:
        self.operations = operations
        described = "; ".join(op.description or op.type.value for op in operations)
        super().__init__(
            f"Operations require table recreation: {described}",
            table_name=table_name,
        )


class UnsafeRewriteError(MigrationError):
    """Raised before a rewrite that would copy rows into NOT NULL columns with no default."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.CALLER_ERROR,
        error_code="UNSAFE_REWRITE",
        category="rewrite",
        suggested_action="Give the new column a default value or make it nullable",
    )

    def __init__(self, table_name: str, columns: list[str]) -> None:
        self.columns = columns
        super().__init__(
            "New NOT NULL column(s) without default cannot be filled for existing rows: "
            + ", ".join(columns),
            table_name=table_name,
        )


class MigrationOperationError(MigrationError):
    """
    Raised when the store rejects one operation of a migration run.

    Operations before ``operation_index`` stay applied; the history row of
    the run is marked failed.
    """

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.RECOVERABLE,
        error_code="MIGRATION_OPERATION_FAILED",
        category="execution",
        suggested_action=(
            "Inspect the migration history; earlier operations of the run remain applied"
        ),
    )

    def __init__(
        self,
        table_name: str,
        task_id: str,
        operation_index: int,
        operation: MigrationOperation,
        error: str,
    ) -> None:
        self.operation_index = operation_index
        self.operation = operation
        self.error = error
        super().__init__(
            f"Operation {operation_index + 1} ({operation}) failed: {error}",
            table_name=table_name,
            task_id=task_id,
        )


class RewriteError(MigrationError):
    """Raised when the shadow-table rewrite fails at ``step``."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.CRITICAL,
        recoverability=ErrorRecoverability.MANUAL,
        error_code="REWRITE_FAILED",
        category="rewrite",
        suggested_action=(
            "Check whether the original and shadow tables still exist before retrying"
        ),
    )

    def __init__(
        self,
        table_name: str,
        step: str,
        error: str,
        *,
        rolled_back: bool = False,
    ) -> None:
        self.step = step
        self.error = error
        self.rolled_back = rolled_back
        outcome = "rolled back" if rolled_back else "partial state retained"
        super().__init__(
            f"Rewrite failed during {step} ({outcome}): {error}",
            table_name=table_name,
        )


class MigrationNotFoundError(MigrationError):
    """Raised when a migration task id has no history row."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.WARNING,
        recoverability=ErrorRecoverability.CALLER_ERROR,
        error_code="MIGRATION_NOT_FOUND",
        category="lookup",
        suggested_action="Verify the task id against get_migration_history()",
    )

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Migration not found: {task_id}", task_id=task_id)


class MigrationStateError(MigrationError):
    """Raised when a migration is not in a state that allows the request."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.CALLER_ERROR,
        error_code="MIGRATION_STATE_INVALID",
        category="state",
        suggested_action="Only completed migrations can be rolled back",
    )

    def __init__(
        self,
        task_id: str,
        state: MigrationState,
        message: str | None = None,
    ) -> None:
        self.state = state
        super().__init__(
            message or f"Migration {task_id} is {state.value}",
            task_id=task_id,
        )


class IrreversibleMigrationError(MigrationStateError):
    """Raised when a completed migration contains operations with no inverse."""

    _default_classification = ErrorClassification(
        severity=ErrorSeverity.ERROR,
        recoverability=ErrorRecoverability.CALLER_ERROR,
        error_code="MIGRATION_IRREVERSIBLE",
        category="rollback",
        suggested_action="Restore from backup or write a forward migration instead",
    )

    def __init__(
        self,
        task_id: str,
        state: MigrationState,
        operations: list[MigrationOperation],
    ) -> None:
        self.operations = operations
        described = ", ".join(str(op) for op in operations)
        super().__init__(
            task_id,
            state,
            f"Migration {task_id} cannot be rolled back; no inverse for: {described}",
        )


__all__ = [
    "ErrorSeverity",
    "ErrorRecoverability",
    "ErrorClassification",
    "MigrationError",
    "SchemaNotRegisteredError",
    "RewriteRequiredError",
    "UnsafeRewriteError",
    "MigrationOperationError",
    "RewriteError",
    "MigrationNotFoundError",
    "MigrationStateError",
    "IrreversibleMigrationError",
]
