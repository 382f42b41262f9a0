"""
Metadata table schemas for schemashift.

The engine owns two durable tables, created on first use:

Tables:
    - _schema_versions: version number and content hash per managed table
    - _migration_history: one row per attempted migration run

Each template holds exactly one statement so it can be passed straight to a
storage executor.

Supported backends:
    - sqlite (default)
    - postgresql

Usage:
    from schemashift.migrations import get_schema, list_schemas

    versions_sql = get_schema("schema_versions")
    history_sql = get_schema("migration_history", backend="postgresql")
"""

from pathlib import Path
from typing import Literal

SchemaName = Literal[
    "schema_versions",
    "migration_history",
    "migration_history_index",
]

BackendName = Literal["sqlite", "postgresql"]

VERSIONS_TABLE = "_schema_versions"
HISTORY_TABLE = "_migration_history"

_TEMPLATES_DIR = Path(__file__).parent / "templates"


def get_template_path(name: SchemaName, backend: BackendName = "sqlite") -> Path:
    """
    Get the path to a SQL template file.

    Raises:
        ValueError: If the backend or schema is unknown
    """
    backend_dir = _TEMPLATES_DIR / backend
    if not backend_dir.is_dir():
        raise ValueError(f"Unknown backend '{backend}'")
    path = backend_dir / f"{name}.sql"
    if not path.exists():
        raise ValueError(
            f"Schema '{name}' is not available for backend '{backend}'. "
            f"Available schemas: {list_schemas(backend)}"
        )
    return path


def get_schema(name: SchemaName, backend: BackendName = "sqlite") -> str:
    """
    Load a metadata table statement by name and backend.

    Example:
        >>> from schemashift.migrations import get_schema
        >>> "CREATE TABLE IF NOT EXISTS _schema_versions" in get_schema("schema_versions")
        True
    """
    return get_template_path(name, backend).read_text().strip()


def list_schemas(backend: BackendName = "sqlite") -> list[str]:
    """List schema template names available for a backend."""
    backend_dir = _TEMPLATES_DIR / backend
    if not backend_dir.is_dir():
        return []
    return sorted(p.stem for p in backend_dir.glob("*.sql"))


def list_backends() -> list[str]:
    return sorted(p.name for p in _TEMPLATES_DIR.iterdir() if p.is_dir())


__all__ = [
    "SchemaName",
    "BackendName",
    "VERSIONS_TABLE",
    "HISTORY_TABLE",
    "get_schema",
    "get_template_path",
    "list_schemas",
    "list_backends",
]
