"""SQL statement building for schemashift."""

from schemashift.sql.builder import (
    POSTGRESQL_TYPE_MAP,
    SQLITE_TYPE_MAP,
    Dialect,
    StatementBuilder,
)

__all__ = [
    "Dialect",
    "StatementBuilder",
    "SQLITE_TYPE_MAP",
    "POSTGRESQL_TYPE_MAP",
]
