"""
Migration operations.

A :class:`MigrationOperation` is one directly applicable storage statement.
Operations are ordered and serialised into the migration history, so each one
carries everything needed to apply it (and, where one exists, its inverse).

Operations whose ``requires_rewrite`` flag is set are placeholders for
changes the store cannot apply in place; they hold an SQL comment only and
are refused by the migration executor.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from schemashift.migration.changes import SchemaChange
from schemashift.schema.fields import FieldSchema
from schemashift.schema.table import TableSchema, index_name_for
from schemashift.sql.builder import StatementBuilder

_DEFAULT_BUILDER = StatementBuilder("sqlite")


class MigrationOperationType(Enum):
    """Kinds of migration operation."""

    CREATE_TABLE = "create_table"
    DROP_TABLE = "drop_table"
    RENAME_TABLE = "rename_table"
    ADD_COLUMN = "add_column"
    RENAME_COLUMN = "rename_column"
    CREATE_INDEX = "create_index"
    DROP_INDEX = "drop_index"
    CUSTOM_SQL = "custom_sql"


@dataclass(frozen=True)
class MigrationOperation:
    """
    One ordered step of a migration.

    Attributes:
        type: Kind of operation
        sql: Statement to execute
        table_name: Table the operation applies to
        column_name: Affected column, for column operations
        old_name: Previous name, for renames
        new_name: New name, for renames
        index_name: Affected index, for index operations
        description: Human-readable summary
        reversible: Whether ``reverse_sql`` undoes the operation
        reverse_sql: Statement that undoes the operation, if any
        requires_rewrite: Placeholder for a change that needs a table rebuild
    """

    type: MigrationOperationType
    sql: str
    table_name: str
    column_name: str | None = None
    old_name: str | None = None
    new_name: str | None = None
    index_name: str | None = None
    description: str | None = None
    reversible: bool = True
    reverse_sql: str | None = None
    requires_rewrite: bool = False

    def __str__(self) -> str:
        return self.description or f"{self.type.value} {self.table_name}"

    @property
    def can_reverse(self) -> bool:
        return self.reversible and bool(self.reverse_sql)

    # -------------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------------

    @classmethod
    def create_table(
        cls,
        schema: TableSchema,
        *,
        builder: StatementBuilder | None = None,
    ) -> MigrationOperation:
        builder = builder or _DEFAULT_BUILDER
        return cls(
            type=MigrationOperationType.CREATE_TABLE,
            sql=builder.create_table(schema),
            table_name=schema.name,
            description=f"Create table {schema.name}",
            reverse_sql=builder.drop_table(schema.name),
        )

    @classmethod
    def drop_table(
        cls,
        table_name: str,
        *,
        builder: StatementBuilder | None = None,
    ) -> MigrationOperation:
        builder = builder or _DEFAULT_BUILDER
        return cls(
            type=MigrationOperationType.DROP_TABLE,
            sql=builder.drop_table(table_name),
            table_name=table_name,
            description=f"Drop table {table_name}",
            reversible=False,
        )

    @classmethod
    def rename_table(
        cls,
        old_name: str,
        new_name: str,
        *,
        builder: StatementBuilder | None = None,
    ) -> MigrationOperation:
        builder = builder or _DEFAULT_BUILDER
        return cls(
            type=MigrationOperationType.RENAME_TABLE,
            sql=builder.rename_table(old_name, new_name),
            table_name=new_name,
            old_name=old_name,
            new_name=new_name,
            description=f"Rename table {old_name} to {new_name}",
            reverse_sql=builder.rename_table(new_name, old_name),
        )

    @classmethod
    def add_column(
        cls,
        table_name: str,
        field: FieldSchema,
        *,
        builder: StatementBuilder | None = None,
    ) -> MigrationOperation:
        """
        ``ALTER TABLE ... ADD COLUMN`` for ``field``.

        The inverse is ``DROP COLUMN``, which SQLite refuses while the column
        is covered by an index. Roll back index migrations on the column
        before the migration that added it. UNIQUE columns carry an implicit
        index, so on SQLite their addition is irreversible.
        """
        builder = builder or _DEFAULT_BUILDER
        reverse_sql = (
            builder.drop_column(table_name, field.name)
            if builder.can_drop_column(field)
            else None
        )
        return cls(
            type=MigrationOperationType.ADD_COLUMN,
            sql=builder.add_column(table_name, field),
            table_name=table_name,
            column_name=field.name,
            description=f"Add column {field.name} to {table_name}",
            reverse_sql=reverse_sql,
            reversible=reverse_sql is not None,
        )

    @classmethod
    def rename_column(
        cls,
        table_name: str,
        old_name: str,
        new_name: str,
        *,
        builder: StatementBuilder | None = None,
    ) -> MigrationOperation:
        builder = builder or _DEFAULT_BUILDER
        return cls(
            type=MigrationOperationType.RENAME_COLUMN,
            sql=builder.rename_column(table_name, old_name, new_name),
            table_name=table_name,
            column_name=new_name,
            old_name=old_name,
            new_name=new_name,
            description=f"Rename column {old_name} to {new_name} in {table_name}",
            reverse_sql=builder.rename_column(table_name, new_name, old_name),
        )

    @classmethod
    def create_index(
        cls,
        table_name: str,
        columns: Sequence[str],
        *,
        index_name: str | None = None,
        unique: bool = False,
        builder: StatementBuilder | None = None,
    ) -> MigrationOperation:
        builder = builder or _DEFAULT_BUILDER
        name = index_name or index_name_for(table_name, list(columns))
        return cls(
            type=MigrationOperationType.CREATE_INDEX,
            sql=builder.create_index(table_name, columns, index_name=name, unique=unique),
            table_name=table_name,
            index_name=name,
            description=f"Create index {name} on {table_name}",
            reverse_sql=builder.drop_index(name),
        )

    @classmethod
    def drop_index(
        cls,
        table_name: str,
        index_name: str,
        *,
        builder: StatementBuilder | None = None,
    ) -> MigrationOperation:
        builder = builder or _DEFAULT_BUILDER
        return cls(
            type=MigrationOperationType.DROP_INDEX,
            sql=builder.drop_index(index_name),
            table_name=table_name,
            index_name=index_name,
            description=f"Drop index {index_name}",
            reversible=False,
        )

    @classmethod
    def custom_sql(
        cls,
        table_name: str,
        sql: str,
        *,
        description: str | None = None,
        reverse_sql: str | None = None,
    ) -> MigrationOperation:
        return cls(
            type=MigrationOperationType.CUSTOM_SQL,
            sql=sql,
            table_name=table_name,
            description=description or "Custom SQL",
            reversible=reverse_sql is not None,
            reverse_sql=reverse_sql,
        )

    @classmethod
    def rewrite_placeholder(cls, change: SchemaChange) -> MigrationOperation:
        """Non-executable marker for a change that needs a table rebuild."""
        summary = " ".join(str(change).split())
        return cls(
            type=MigrationOperationType.CUSTOM_SQL,
            sql=f"-- {summary} (requires table recreation)",
            table_name=change.table_name,
            column_name=change.field_name,
            description=f"{summary} requires table recreation",
            reversible=False,
            requires_rewrite=True,
        )

    def inverse(self) -> MigrationOperation:
        """
        Operation that undoes this one.

        Raises:
            ValueError: If the operation has no reverse statement
        """
        if not self.can_reverse:
            raise ValueError(f"Operation has no inverse: {self}")
        assert self.reverse_sql is not None
        inverse_type = _INVERSE_TYPES.get(self.type, MigrationOperationType.CUSTOM_SQL)
        is_table_rename = self.type is MigrationOperationType.RENAME_TABLE
        column_name = self.column_name
        if self.type is MigrationOperationType.RENAME_COLUMN:
            column_name = self.old_name
        return MigrationOperation(
            type=inverse_type,
            sql=self.reverse_sql,
            table_name=(self.old_name or self.table_name) if is_table_rename else self.table_name,
            column_name=column_name,
            old_name=self.new_name,
            new_name=self.old_name,
            index_name=self.index_name,
            description=f"Revert: {self}",
            reversible=True,
            reverse_sql=self.sql,
        )

    # -------------------------------------------------------------------------
    # Serialisation
    # -------------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "sql": self.sql,
            "table_name": self.table_name,
            "column_name": self.column_name,
            "old_name": self.old_name,
            "new_name": self.new_name,
            "index_name": self.index_name,
            "description": self.description,
            "reversible": self.reversible,
            "reverse_sql": self.reverse_sql,
            "requires_rewrite": self.requires_rewrite,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MigrationOperation:
        return cls(
            type=MigrationOperationType(data["type"]),
            sql=data["sql"],
            table_name=data["table_name"],
            column_name=data.get("column_name"),
            old_name=data.get("old_name"),
            new_name=data.get("new_name"),
            index_name=data.get("index_name"),
            description=data.get("description"),
            reversible=data.get("reversible", True),
            reverse_sql=data.get("reverse_sql"),
            requires_rewrite=data.get("requires_rewrite", False),
        )


_INVERSE_TYPES = {
    MigrationOperationType.CREATE_TABLE: MigrationOperationType.DROP_TABLE,
    MigrationOperationType.RENAME_TABLE: MigrationOperationType.RENAME_TABLE,
    MigrationOperationType.RENAME_COLUMN: MigrationOperationType.RENAME_COLUMN,
    MigrationOperationType.CREATE_INDEX: MigrationOperationType.DROP_INDEX,
}


__all__ = ["MigrationOperationType", "MigrationOperation"]
