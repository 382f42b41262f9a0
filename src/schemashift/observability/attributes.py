"""
Standard span attributes for schemashift.

Attribute names shared by every component so spans from the executor, the
rewriter and the ledgers can be filtered the same way. Database attributes
follow the OpenTelemetry semantic conventions.

Example:
    >>> from schemashift.observability.attributes import ATTR_TABLE_NAME, ATTR_TASK_ID
    >>>
    >>> with tracer.span(
    ...     "schemashift.executor.execute",
    ...     {ATTR_TABLE_NAME: "users", ATTR_TASK_ID: task_id},
    ... ):
    ...     pass
"""

# =============================================================================
# Schema Attributes
# =============================================================================

ATTR_TABLE_NAME = "schemashift.table.name"
"""Name of the table being inspected or altered."""

ATTR_OLD_TABLE_NAME = "schemashift.table.old_name"
"""Previous table name when a rename or rewrite is involved."""

ATTR_FIELD_COUNT = "schemashift.table.field_count"
"""Number of fields declared by a schema (integer)."""

ATTR_SCHEMA_HASH = "schemashift.schema.hash"
"""Content hash of a schema."""

ATTR_SCHEMA_VERSION = "schemashift.schema.version"
"""Ledger version of a table (integer)."""

ATTR_CHANGE_COUNT = "schemashift.schema.change_count"
"""Number of schema changes detected (integer)."""

# =============================================================================
# Migration Attributes
# =============================================================================

ATTR_TASK_ID = "schemashift.migration.task_id"
"""Task identifier of a migration run."""

ATTR_MIGRATION_STATE = "schemashift.migration.state"
"""State of a migration run (pending, in_progress, completed, failed)."""

ATTR_OPERATION_COUNT = "schemashift.migration.operation_count"
"""Number of operations in a migration run (integer)."""

ATTR_OPERATION_TYPE = "schemashift.migration.operation_type"
"""Type of a single migration operation."""

ATTR_PROGRESS_PERCENT = "schemashift.migration.progress_percent"
"""Progress of a migration run, 0-100 (float)."""

ATTR_ROWS_COPIED = "schemashift.rewrite.rows_copied"
"""Rows copied into a shadow table (integer)."""

# =============================================================================
# Database Attributes (OpenTelemetry semantic conventions)
# =============================================================================

ATTR_DB_SYSTEM = "db.system"
"""Database system identifier (e.g., 'sqlite', 'postgresql')."""

ATTR_DB_NAME = "db.name"
"""Database name or file path."""

ATTR_DB_OPERATION = "db.operation"
"""Statement kind (e.g., 'query', 'insert', 'update', 'delete')."""


__all__ = [
    "ATTR_TABLE_NAME",
    "ATTR_OLD_TABLE_NAME",
    "ATTR_FIELD_COUNT",
    "ATTR_SCHEMA_HASH",
    "ATTR_SCHEMA_VERSION",
    "ATTR_CHANGE_COUNT",
    "ATTR_TASK_ID",
    "ATTR_MIGRATION_STATE",
    "ATTR_OPERATION_COUNT",
    "ATTR_OPERATION_TYPE",
    "ATTR_PROGRESS_PERCENT",
    "ATTR_ROWS_COPIED",
    "ATTR_DB_SYSTEM",
    "ATTR_DB_NAME",
    "ATTR_DB_OPERATION",
]
