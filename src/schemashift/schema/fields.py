"""
Field-level schema definitions.

A :class:`FieldSchema` describes one column of a table: its storage type,
constraints, and an optional identity token (``field_id``) that survives
renames. Schemas are plain data; executable validators are registered
separately (see :mod:`schemashift.validation`) so a schema can be hashed,
serialized into history and compared across processes.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator


class DataType(Enum):
    """
    Storage types a field can declare.

    Attributes:
        TEXT: Unicode text.
        INTEGER: Whole numbers.
        REAL: Floating point numbers.
        BOOLEAN: True/False, stored as 0/1 where the store has no boolean.
        DATETIME: Timestamps, stored as ISO 8601 text in SQLite.
        BLOB: Raw binary payloads.
        JSON: Structured documents serialized as JSON text.
        VECTOR: Fixed-dimension float vectors, stored as binary.
    """

    TEXT = "text"
    INTEGER = "integer"
    REAL = "real"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    BLOB = "blob"
    JSON = "json"
    VECTOR = "vector"

    @property
    def is_numeric(self) -> bool:
        """True for INTEGER and REAL."""
        return self in (DataType.INTEGER, DataType.REAL)

    @property
    def is_textual(self) -> bool:
        """True for TEXT and JSON."""
        return self in (DataType.TEXT, DataType.JSON)


class VectorPrecision(Enum):
    """Element precision of a vector field."""

    FLOAT16 = "float16"
    FLOAT32 = "float32"
    FLOAT64 = "float64"


class VectorFieldConfig(BaseModel):
    """Dimensions and precision of a vector field."""

    model_config = ConfigDict(frozen=True)

    dimensions: int = Field(..., ge=1)
    precision: VectorPrecision = VectorPrecision.FLOAT32


class FieldSchema(BaseModel):
    """
    Definition of a single table column.

    Attributes:
        name: Column name. May change between schema versions.
        field_id: Optional stable identity token. When both the old and the
            new definition carry the same token under different names the
            change is detected as a rename instead of a remove + add.
        type: Storage type.
        nullable: Whether NULL is accepted.
        unique: Whether values must be unique across rows.
        default: Default value used by the store for new rows.
        min_length: Minimum length for text values.
        max_length: Maximum length for text values.
        pattern: Regular expression text values must match.
        min_value: Lower bound for numeric values.
        max_value: Upper bound for numeric values.
        encrypted: Marks the field for encryption by an outer layer.
        vector_config: Dimensions of a vector field.

    Example:
        >>> email = FieldSchema.text("email", field_id="f-email", unique=True)
        >>> email.renamed("email_address").field_id
        'f-email'
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    type: DataType
    field_id: str | None = None
    nullable: bool = True
    unique: bool = False
    default: Any = None
    min_length: int | None = Field(default=None, ge=0)
    max_length: int | None = Field(default=None, ge=0)
    pattern: str | None = None
    min_value: float | None = None
    max_value: float | None = None
    encrypted: bool = False
    vector_config: VectorFieldConfig | None = None

    @model_validator(mode="after")
    def _check_constraints(self) -> Self:
        if (
            self.min_length is not None
            and self.max_length is not None
            and self.min_length > self.max_length
        ):
            raise ValueError(
                f"Field '{self.name}': min_length ({self.min_length}) "
                f"exceeds max_length ({self.max_length})"
            )
        if (
            self.min_value is not None
            and self.max_value is not None
            and self.min_value > self.max_value
        ):
            raise ValueError(
                f"Field '{self.name}': min_value ({self.min_value}) "
                f"exceeds max_value ({self.max_value})"
            )
        if self.pattern is not None:
            try:
                re.compile(self.pattern)
            except re.error as e:
                raise ValueError(f"Field '{self.name}': invalid pattern: {e}") from e
        if self.vector_config is not None and self.type is not DataType.VECTOR:
            raise ValueError(f"Field '{self.name}': vector_config requires type 'vector'")
        return self

    @classmethod
    def text(
        cls,
        name: str,
        *,
        field_id: str | None = None,
        nullable: bool = True,
        unique: bool = False,
        default: str | None = None,
        min_length: int | None = None,
        max_length: int | None = None,
        pattern: str | None = None,
        encrypted: bool = False,
    ) -> FieldSchema:
        """Create a TEXT field."""
        return cls(
            name=name,
            type=DataType.TEXT,
            field_id=field_id,
            nullable=nullable,
            unique=unique,
            default=default,
            min_length=min_length,
            max_length=max_length,
            pattern=pattern,
            encrypted=encrypted,
        )

    @classmethod
    def integer(
        cls,
        name: str,
        *,
        field_id: str | None = None,
        nullable: bool = True,
        unique: bool = False,
        default: int | None = None,
        min_value: float | None = None,
        max_value: float | None = None,
    ) -> FieldSchema:
        """Create an INTEGER field."""
        return cls(
            name=name,
            type=DataType.INTEGER,
            field_id=field_id,
            nullable=nullable,
            unique=unique,
            default=default,
            min_value=min_value,
            max_value=max_value,
        )

    @classmethod
    def real(
        cls,
        name: str,
        *,
        field_id: str | None = None,
        nullable: bool = True,
        unique: bool = False,
        default: float | None = None,
        min_value: float | None = None,
        max_value: float | None = None,
    ) -> FieldSchema:
        """Create a REAL field."""
        return cls(
            name=name,
            type=DataType.REAL,
            field_id=field_id,
            nullable=nullable,
            unique=unique,
            default=default,
            min_value=min_value,
            max_value=max_value,
        )

    @classmethod
    def boolean(
        cls,
        name: str,
        *,
        field_id: str | None = None,
        nullable: bool = True,
        default: bool | None = None,
    ) -> FieldSchema:
        """Create a BOOLEAN field."""
        return cls(
            name=name,
            type=DataType.BOOLEAN,
            field_id=field_id,
            nullable=nullable,
            default=default,
        )

    @classmethod
    def datetime(
        cls,
        name: str,
        *,
        field_id: str | None = None,
        nullable: bool = True,
        default: Any = None,
    ) -> FieldSchema:
        """Create a DATETIME field."""
        return cls(
            name=name,
            type=DataType.DATETIME,
            field_id=field_id,
            nullable=nullable,
            default=default,
        )

    @classmethod
    def blob(
        cls,
        name: str,
        *,
        field_id: str | None = None,
        nullable: bool = True,
    ) -> FieldSchema:
        """Create a BLOB field."""
        return cls(name=name, type=DataType.BLOB, field_id=field_id, nullable=nullable)

    @classmethod
    def json_object(
        cls,
        name: str,
        *,
        field_id: str | None = None,
        nullable: bool = True,
        default: str | None = None,
    ) -> FieldSchema:
        """Create a JSON field. Defaults are given as serialized JSON text."""
        return cls(
            name=name,
            type=DataType.JSON,
            field_id=field_id,
            nullable=nullable,
            default=default,
        )

    @classmethod
    def vector(
        cls,
        name: str,
        dimensions: int,
        *,
        field_id: str | None = None,
        nullable: bool = True,
        precision: VectorPrecision = VectorPrecision.FLOAT32,
    ) -> FieldSchema:
        """Create a VECTOR field of the given dimensions."""
        return cls(
            name=name,
            type=DataType.VECTOR,
            field_id=field_id,
            nullable=nullable,
            vector_config=VectorFieldConfig(dimensions=dimensions, precision=precision),
        )

    @property
    def constraints(self) -> dict[str, bool]:
        """The nullability/uniqueness pair compared by the change detector."""
        return {"nullable": self.nullable, "unique": self.unique}

    def renamed(self, name: str) -> FieldSchema:
        """Return a copy under a new name, keeping the identity token."""
        return self.model_copy(update={"name": name})

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        return self.model_dump(mode="json", exclude_none=True)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FieldSchema:
        """Rebuild a field from :meth:`to_dict` output."""
        return cls.model_validate(data)


__all__ = [
    "DataType",
    "VectorPrecision",
    "VectorFieldConfig",
    "FieldSchema",
]
