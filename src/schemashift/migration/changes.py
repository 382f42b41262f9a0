"""
Schema change records.

A :class:`SchemaChange` describes one structural difference between two
table definitions. Changes are produced by the change detector and consumed
by the operation generator; they are never persisted themselves.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel


class SchemaChangeType(Enum):
    """Kinds of structural difference between two table definitions."""

    TABLE_ADDED = "table_added"
    TABLE_REMOVED = "table_removed"
    TABLE_RENAMED = "table_renamed"
    FIELD_ADDED = "field_added"
    FIELD_REMOVED = "field_removed"
    FIELD_RENAMED = "field_renamed"
    FIELD_TYPE_CHANGED = "field_type_changed"
    FIELD_CONSTRAINT_CHANGED = "field_constraint_changed"
    INDEX_ADDED = "index_added"
    INDEX_REMOVED = "index_removed"
    FOREIGN_KEY_ADDED = "foreign_key_added"
    FOREIGN_KEY_REMOVED = "foreign_key_removed"

    @property
    def requires_table_rebuild(self) -> bool:
        """True when the change cannot be applied with ALTER TABLE."""
        return self in _REBUILD_TYPES


_REBUILD_TYPES = frozenset(
    {
        SchemaChangeType.FIELD_REMOVED,
        SchemaChangeType.FIELD_TYPE_CHANGED,
        SchemaChangeType.FIELD_CONSTRAINT_CHANGED,
        SchemaChangeType.FOREIGN_KEY_ADDED,
        SchemaChangeType.FOREIGN_KEY_REMOVED,
    }
)


@dataclass(frozen=True)
class SchemaChange:
    """
    One structural difference between two table definitions.

    Attributes:
        type: Kind of change
        table_name: Table the change applies to (the new name after a rename)
        old_table_name: Previous table name, for TABLE_RENAMED
        field_name: Affected field (the new name after a rename)
        old_field_name: Previous field name, for FIELD_RENAMED
        old_value: Payload before the change (removed field or index,
            old type, old constraint values)
        new_value: Payload after the change (added field or index,
            new type, new constraint values)
        details: Free-form extra information
    """

    type: SchemaChangeType
    table_name: str
    old_table_name: str | None = None
    field_name: str | None = None
    old_field_name: str | None = None
    old_value: Any = None
    new_value: Any = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def requires_table_rebuild(self) -> bool:
        return self.type.requires_table_rebuild

    @property
    def requires_data_migration(self) -> bool:
        """True when existing rows have to be carried across."""
        return self.type in (
            SchemaChangeType.FIELD_TYPE_CHANGED,
            SchemaChangeType.FIELD_RENAMED,
            SchemaChangeType.TABLE_RENAMED,
        )

    @property
    def is_destructive(self) -> bool:
        """True when applying the change can lose data."""
        return self.type in (SchemaChangeType.TABLE_REMOVED, SchemaChangeType.FIELD_REMOVED)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "table_name": self.table_name,
            "old_table_name": self.old_table_name,
            "field_name": self.field_name,
            "old_field_name": self.old_field_name,
            "old_value": _payload(self.old_value),
            "new_value": _payload(self.new_value),
            "details": dict(self.details),
        }

    def __str__(self) -> str:
        target = self.table_name
        if self.field_name:
            target = f"{target}.{self.field_name}"
        return f"{self.type.value}({target})"


def _payload(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, Enum):
        return value.value
    return value


__all__ = ["SchemaChangeType", "SchemaChange"]
