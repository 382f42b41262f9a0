"""
Repositories for the migration metadata tables.

Provides:
    - VersionLedger: per-table version and schema hash (``_schema_versions``)
    - MigrationHistoryRepository: one row per migration run (``_migration_history``)
"""

from schemashift.migration.repositories.history import (
    HistoryRepository,
    MigrationHistoryRepository,
)
from schemashift.migration.repositories.version import VersionLedger, VersionRepository

__all__ = [
    # Protocols
    "VersionRepository",
    "HistoryRepository",
    # Implementations
    "VersionLedger",
    "MigrationHistoryRepository",
]
