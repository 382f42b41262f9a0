"""
Observability utilities for schemashift.

Tracing helpers and the standard attribute names used across the library.
OpenTelemetry is optional; every helper here degrades to a no-op when it is
not installed.

Example:
    >>> from schemashift.observability import create_tracer
    >>>
    >>> class HistoryReader:
    ...     def __init__(self, enable_tracing: bool = True):
    ...         self._tracer = create_tracer(__name__, enable_tracing)
    ...         self._enable_tracing = self._tracer.enabled
"""

from schemashift.observability.attributes import (
    ATTR_CHANGE_COUNT,
    ATTR_DB_NAME,
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_FIELD_COUNT,
    ATTR_MIGRATION_STATE,
    ATTR_OLD_TABLE_NAME,
    ATTR_OPERATION_COUNT,
    ATTR_OPERATION_TYPE,
    ATTR_PROGRESS_PERCENT,
    ATTR_ROWS_COPIED,
    ATTR_SCHEMA_HASH,
    ATTR_SCHEMA_VERSION,
    ATTR_TABLE_NAME,
    ATTR_TASK_ID,
)
from schemashift.observability.tracer import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)
from schemashift.observability.tracing import (
    OTEL_AVAILABLE,
    get_tracer,
    should_trace,
    traced,
)

__all__ = [
    # Tracing utilities
    "OTEL_AVAILABLE",
    "get_tracer",
    "should_trace",
    "traced",
    # Tracer (composition-based API)
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
    # Attributes
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
