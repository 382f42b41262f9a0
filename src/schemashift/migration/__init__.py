"""
Schema migration engine for schemashift.

Diffs two table definitions, turns the differences into ordered storage
statements and applies them with progress reporting and a durable audit
trail.

Key Components:
    - SchemaChangeDetector: Structural diff of two TableSchema snapshots
    - MigrationGenerator: Maps schema changes onto MigrationOperations
    - MigrationExecutor: Applies operations in order, with history and progress
    - ZeroDowntimeRewriter: Shadow-table rebuild for changes the store
      cannot apply in place
    - VersionLedger / MigrationHistoryRepository: The two metadata tables

Migration States:
    1. PENDING: Known but not started
    2. IN_PROGRESS: Operations being applied
    3. COMPLETED: Every operation applied and the version bumped
    4. FAILED: An operation was rejected; earlier ones stay applied

Usage:
    >>> from schemashift.migration import (
    ...     MigrationExecutor,
    ...     MigrationGenerator,
    ...     detect_schema_changes,
    ... )
    >>>
    >>> changes = detect_schema_changes(old_users, new_users)
    >>> operations = MigrationGenerator(catalog).generate(changes)
    >>> status = await executor.execute("users", operations)
"""

from schemashift.migration.changes import SchemaChange, SchemaChangeType
from schemashift.migration.detector import (
    SchemaChangeDetector,
    detect_schema_changes,
    detect_table_added,
    detect_table_removed,
    diff_catalog,
)
from schemashift.migration.exceptions import (
    ErrorClassification,
    ErrorRecoverability,
    ErrorSeverity,
    IrreversibleMigrationError,
    MigrationError,
    MigrationNotFoundError,
    MigrationOperationError,
    MigrationStateError,
    RewriteError,
    RewriteRequiredError,
    SchemaNotRegisteredError,
    UnsafeRewriteError,
)
from schemashift.migration.executor import MigrationExecutor, operations_digest
from schemashift.migration.generator import (
    MigrationGenerator,
    requires_rewrite,
    rewrite_operations,
)
from schemashift.migration.models import (
    MigrationRecord,
    MigrationState,
    MigrationStatus,
    VersionRecord,
)
from schemashift.migration.operations import MigrationOperation, MigrationOperationType
from schemashift.migration.progress import ProgressCallback, ProgressNotifier
from schemashift.migration.repositories import (
    HistoryRepository,
    MigrationHistoryRepository,
    VersionLedger,
    VersionRepository,
)
from schemashift.migration.rewriter import RewriteResult, ZeroDowntimeRewriter
from schemashift.migration.status_streamer import StatusStreamer

__all__ = [
    # Changes
    "SchemaChange",
    "SchemaChangeType",
    "SchemaChangeDetector",
    "detect_schema_changes",
    "detect_table_added",
    "detect_table_removed",
    "diff_catalog",
    # Operations
    "MigrationOperation",
    "MigrationOperationType",
    "MigrationGenerator",
    "requires_rewrite",
    "rewrite_operations",
    # Execution
    "MigrationExecutor",
    "operations_digest",
    "ZeroDowntimeRewriter",
    "RewriteResult",
    "ProgressCallback",
    "ProgressNotifier",
    "StatusStreamer",
    # Models
    "MigrationState",
    "MigrationStatus",
    "MigrationRecord",
    "VersionRecord",
    # Repositories
    "VersionRepository",
    "HistoryRepository",
    "VersionLedger",
    "MigrationHistoryRepository",
    # Exceptions
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
