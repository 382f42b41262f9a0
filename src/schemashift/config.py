"""
Configuration for the schema manager.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, get_args

from schemashift.sql.builder import Dialect

_DIALECTS: tuple[str, ...] = get_args(Dialect)


@dataclass(frozen=True)
class SchemaManagerConfig:
    """
    Configuration for a :class:`~schemashift.manager.SchemaManager`.

    This class is immutable (frozen) so a running manager cannot have its
    policy changed underneath it.

    Attributes:
        dialect: Statement dialect, ``sqlite`` or ``postgresql`` (default sqlite).
        metadata_prefix: Tables whose name starts with this prefix are owned
            by the engine and hidden from get_all_table_names() (default "_").
        shadow_suffix: Suffix of the shadow table built during a rewrite
            (default "_temp").
        use_transactions: Run a rewrite as one transaction when the store
            supports it (default True).
        isolate_callback_errors: Log and skip a raising progress callback
            instead of failing the run (default True).
        strict_catalog: Raise instead of warn when a created table has no
            registered schema (default False).
        reject_unsafe_not_null: Refuse a rewrite that adds a NOT NULL column
            without default (default True).

    Example:
        >>> config = SchemaManagerConfig(dialect="postgresql", strict_catalog=True)
        >>> config.shadow_suffix
        '_temp'
    """

    dialect: Dialect = "sqlite"
    metadata_prefix: str = "_"
    shadow_suffix: str = "_temp"
    use_transactions: bool = True
    isolate_callback_errors: bool = True
    strict_catalog: bool = False
    reject_unsafe_not_null: bool = True

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.dialect not in _DIALECTS:
            raise ValueError(f"dialect must be one of {', '.join(_DIALECTS)}, got {self.dialect!r}")

        if not self.metadata_prefix:
            raise ValueError("metadata_prefix must not be empty")

        if not self.shadow_suffix or not self.shadow_suffix.strip():
            raise ValueError(f"shadow_suffix must not be blank, got {self.shadow_suffix!r}")

    def to_dict(self) -> dict[str, Any]:
        """
        Convert to dictionary for JSON storage.

        Returns:
            Dictionary representation suitable for JSON serialization.
        """
        return {
            "dialect": self.dialect,
            "metadata_prefix": self.metadata_prefix,
            "shadow_suffix": self.shadow_suffix,
            "use_transactions": self.use_transactions,
            "isolate_callback_errors": self.isolate_callback_errors,
            "strict_catalog": self.strict_catalog,
            "reject_unsafe_not_null": self.reject_unsafe_not_null,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SchemaManagerConfig:
        """
        Create from dictionary. Missing keys take their defaults.

        Args:
            data: Dictionary containing configuration values.
        """
        return cls(
            dialect=data.get("dialect", "sqlite"),
            metadata_prefix=data.get("metadata_prefix", "_"),
            shadow_suffix=data.get("shadow_suffix", "_temp"),
            use_transactions=data.get("use_transactions", True),
            isolate_callback_errors=data.get("isolate_callback_errors", True),
            strict_catalog=data.get("strict_catalog", False),
            reject_unsafe_not_null=data.get("reject_unsafe_not_null", True),
        )


__all__ = ["SchemaManagerConfig"]
