"""
Table-level schema definitions.

:class:`TableSchema` is the unit the change detector compares and the
operation generator and rewriter build statements from. It is an immutable
pydantic model; invariants are checked on construction and violations raise
``pydantic.ValidationError``.
"""

from __future__ import annotations

import hashlib
import json
from enum import Enum
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from schemashift.schema.fields import FieldSchema


class PrimaryKeyType(Enum):
    """
    Primary key generation strategies.

    Only AUTO_INCREMENT is generated by the store; every other strategy means
    the caller supplies the key and the column is stored as text.
    """

    AUTO_INCREMENT = "auto_increment"
    UUID = "uuid"
    SEQUENTIAL = "sequential"
    TIMESTAMP_BASED = "timestamp_based"
    DATE_PREFIXED = "date_prefixed"
    SHORT_CODE = "short_code"

    @property
    def is_store_generated(self) -> bool:
        return self is PrimaryKeyType.AUTO_INCREMENT


class PrimaryKeyConfig(BaseModel):
    """Name and generation strategy of a table's primary key."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(default="id", min_length=1)
    type: PrimaryKeyType = PrimaryKeyType.AUTO_INCREMENT

    @classmethod
    def auto_increment(cls, name: str = "id") -> PrimaryKeyConfig:
        return cls(name=name, type=PrimaryKeyType.AUTO_INCREMENT)

    @classmethod
    def uuid(cls, name: str = "id") -> PrimaryKeyConfig:
        return cls(name=name, type=PrimaryKeyType.UUID)


class IndexSchema(BaseModel):
    """
    Secondary index over an ordered list of columns.

    Two indexes are the same for diff purposes when they cover the same
    ordered columns; see :attr:`key`.
    """

    model_config = ConfigDict(frozen=True)

    fields: tuple[str, ...] = Field(..., min_length=1)
    unique: bool = False
    name: str | None = None

    @property
    def key(self) -> str:
        """Comma-joined ordered column list."""
        return ",".join(self.fields)

    def resolved_name(self, table_name: str) -> str:
        """Explicit name, or ``<table>_<field1>_<field2>_idx``."""
        return self.name or index_name_for(table_name, self.fields)


def index_name_for(table_name: str, fields: tuple[str, ...] | list[str]) -> str:
    """Deterministic index name derived from table and ordered columns."""
    return f"{table_name}_{'_'.join(fields)}_idx"


class ForeignKeyAction(Enum):
    """Referential actions for ON DELETE / ON UPDATE."""

    NO_ACTION = "no_action"
    RESTRICT = "restrict"
    SET_NULL = "set_null"
    SET_DEFAULT = "set_default"
    CASCADE = "cascade"

    @property
    def sql(self) -> str:
        return self.value.replace("_", " ").upper()


class ForeignKeySchema(BaseModel):
    """Reference from a local column to a column of another table."""

    model_config = ConfigDict(frozen=True)

    field: str = Field(..., min_length=1)
    reference_table: str = Field(..., min_length=1)
    reference_field: str = Field(..., min_length=1)
    on_delete: ForeignKeyAction = ForeignKeyAction.NO_ACTION
    on_update: ForeignKeyAction = ForeignKeyAction.NO_ACTION

    @property
    def key(self) -> tuple[str, str, str, str, str]:
        """Identity of the constraint for diff purposes."""
        return (
            self.field,
            self.reference_table,
            self.reference_field,
            self.on_delete.value,
            self.on_update.value,
        )

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class TableSchema(BaseModel):
    """
    Complete definition of a table.

    Attributes:
        name: Table name. May change between schema versions.
        fields: Ordered column definitions (primary key excluded).
        table_id: Optional stable identity token. Equal tokens under
            different names are detected as a table rename.
        indexes: Secondary indexes.
        foreign_keys: Foreign key constraints.
        primary_key: Primary key column name and generation strategy.
        is_global: Marks the table as shared by every tenancy space.

    Example:
        >>> users = TableSchema(
        ...     name="users",
        ...     table_id="t-users",
        ...     fields=[
        ...         FieldSchema.text("username", field_id="f-username", nullable=False),
        ...         FieldSchema.text("email", unique=True),
        ...     ],
        ...     indexes=[IndexSchema(fields=("email",))],
        ... )
        >>> users.field_names
        ['username', 'email']
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    fields: tuple[FieldSchema, ...]
    table_id: str | None = None
    indexes: tuple[IndexSchema, ...] = ()
    foreign_keys: tuple[ForeignKeySchema, ...] = ()
    primary_key: PrimaryKeyConfig = Field(default_factory=PrimaryKeyConfig)
    is_global: bool = False

    @model_validator(mode="after")
    def _check_invariants(self) -> Self:
        seen_names: set[str] = set()
        seen_ids: set[str] = set()
        for field in self.fields:
            if field.name in seen_names:
                raise ValueError(f"Table '{self.name}': duplicate field name '{field.name}'")
            seen_names.add(field.name)
            if field.field_id is not None:
                if field.field_id in seen_ids:
                    raise ValueError(
                        f"Table '{self.name}': field id '{field.field_id}' used more than once"
                    )
                seen_ids.add(field.field_id)

        if self.primary_key.name in seen_names:
            raise ValueError(
                f"Table '{self.name}': field '{self.primary_key.name}' clashes with the primary key"
            )

        columns = seen_names | {self.primary_key.name}
        for index in self.indexes:
            missing = [f for f in index.fields if f not in columns]
            if missing:
                raise ValueError(
                    f"Table '{self.name}': index on unknown column(s) {', '.join(missing)}"
                )
        for fk in self.foreign_keys:
            if fk.field not in columns:
                raise ValueError(
                    f"Table '{self.name}': foreign key on unknown column '{fk.field}'"
                )
        return self

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def all_field_names(self) -> list[str]:
        """Primary key column followed by the declared fields."""
        return [self.primary_key.name, *self.field_names]

    def get_field(self, name: str) -> FieldSchema | None:
        for field in self.fields:
            if field.name == name:
                return field
        return None

    def has_field(self, name: str) -> bool:
        return self.get_field(name) is not None

    def renamed(self, name: str) -> TableSchema:
        """Return a copy under a new table name, keeping identity tokens."""
        return self.model_copy(update={"name": name})

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        return self.model_dump(mode="json")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TableSchema:
        return cls.model_validate(data)

    def fingerprint(self) -> str:
        """
        Stable content hash of the schema.

        Used only as a cheap "did anything change" check; equal hashes are
        never taken as proof that no migration is needed.
        """
        canonical = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


__all__ = [
    "PrimaryKeyType",
    "PrimaryKeyConfig",
    "IndexSchema",
    "index_name_for",
    "ForeignKeyAction",
    "ForeignKeySchema",
    "TableSchema",
]
