"""
schemashift - Schema diffing and migration engine for Python.

This library provides:
- Immutable table definitions with stable identity tokens for renames
- Structural diffing of two definitions into typed schema changes
- Operation generation for SQLite and PostgreSQL
- An ordered migration executor with progress callbacks and a history ledger
- Shadow-table rewrites for changes a store cannot apply in place
- Storage executors over aiosqlite and SQLAlchemy async
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("schemashift")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

# Configuration
from schemashift.config import SchemaManagerConfig

# Exceptions
from schemashift.exceptions import (
    InvalidIdentifierError,
    NotConnectedError,
    SchemaShiftError,
    StorageError,
)

# Facade
from schemashift.manager import SchemaManager

# Migration engine
from schemashift.migration import (
    IrreversibleMigrationError,
    MigrationError,
    MigrationExecutor,
    MigrationGenerator,
    MigrationHistoryRepository,
    MigrationNotFoundError,
    MigrationOperation,
    MigrationOperationError,
    MigrationOperationType,
    MigrationRecord,
    MigrationState,
    MigrationStateError,
    MigrationStatus,
    ProgressCallback,
    ProgressNotifier,
    RewriteError,
    RewriteRequiredError,
    RewriteResult,
    SchemaChange,
    SchemaChangeDetector,
    SchemaChangeType,
    SchemaNotRegisteredError,
    StatusStreamer,
    UnsafeRewriteError,
    VersionLedger,
    VersionRecord,
    ZeroDowntimeRewriter,
    detect_schema_changes,
)

# Schema model
from schemashift.schema import (
    DataType,
    FieldSchema,
    ForeignKeyAction,
    ForeignKeySchema,
    IndexSchema,
    PrimaryKeyConfig,
    PrimaryKeyType,
    SchemaCatalog,
    TableSchema,
    VectorFieldConfig,
    VectorPrecision,
)

# Statement building
from schemashift.sql import StatementBuilder

# Storage executors
from schemashift.stores import (
    SQLAlchemyStorageExecutor,
    SQLiteStorageExecutor,
    StorageExecutor,
    TransactionalStorageExecutor,
)

# Validation
from schemashift.validation import (
    FieldValidator,
    FunctionValidator,
    RecordValidator,
    ValidationFailure,
    ValidationResult,
    ValidationType,
    ValidatorRegistry,
)

__all__ = [
    "__version__",
    # Facade and configuration
    "SchemaManager",
    "SchemaManagerConfig",
    # Schema model
    "DataType",
    "FieldSchema",
    "VectorFieldConfig",
    "VectorPrecision",
    "ForeignKeyAction",
    "ForeignKeySchema",
    "IndexSchema",
    "PrimaryKeyConfig",
    "PrimaryKeyType",
    "TableSchema",
    "SchemaCatalog",
    # Diffing and generation
    "SchemaChange",
    "SchemaChangeType",
    "SchemaChangeDetector",
    "detect_schema_changes",
    "MigrationOperation",
    "MigrationOperationType",
    "MigrationGenerator",
    "StatementBuilder",
    # Execution
    "MigrationExecutor",
    "ZeroDowntimeRewriter",
    "RewriteResult",
    "ProgressCallback",
    "ProgressNotifier",
    "StatusStreamer",
    "MigrationState",
    "MigrationStatus",
    "MigrationRecord",
    "VersionRecord",
    "VersionLedger",
    "MigrationHistoryRepository",
    # Storage
    "StorageExecutor",
    "TransactionalStorageExecutor",
    "SQLiteStorageExecutor",
    "SQLAlchemyStorageExecutor",
    # Validation
    "FieldValidator",
    "FunctionValidator",
    "ValidatorRegistry",
    "RecordValidator",
    "ValidationResult",
    "ValidationFailure",
    "ValidationType",
    # Exceptions
    "SchemaShiftError",
    "StorageError",
    "NotConnectedError",
    "InvalidIdentifierError",
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
