"""
SQL statement builder.

Turns schema objects into DDL/DML text for a target dialect. All identifiers
go through :meth:`StatementBuilder.quote` and all default values through
:meth:`StatementBuilder.literal`; no other module formats SQL by hand.

Supported dialects:
    - sqlite (default): the reference target. Lacks in-place column drop,
      retype and constraint changes, which is why the rewriter exists.
    - postgresql: same statement set with PostgreSQL types.

Example:
    >>> builder = StatementBuilder("sqlite")
    >>> builder.rename_column("users", "username", "user_name")
    'ALTER TABLE "users" RENAME COLUMN "username" TO "user_name"'
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Literal

from schemashift.exceptions import InvalidIdentifierError
from schemashift.schema.fields import DataType, FieldSchema
from schemashift.schema.table import (
    ForeignKeyAction,
    ForeignKeySchema,
    IndexSchema,
    PrimaryKeyConfig,
    TableSchema,
)

Dialect = Literal["sqlite", "postgresql"]

SQLITE_TYPE_MAP: dict[DataType, str] = {
    DataType.TEXT: "TEXT",
    DataType.INTEGER: "INTEGER",
    DataType.REAL: "REAL",
    DataType.BOOLEAN: "INTEGER",
    DataType.DATETIME: "TEXT",
    DataType.BLOB: "BLOB",
    DataType.JSON: "TEXT",
    DataType.VECTOR: "BLOB",
}

POSTGRESQL_TYPE_MAP: dict[DataType, str] = {
    DataType.TEXT: "TEXT",
    DataType.INTEGER: "BIGINT",
    DataType.REAL: "DOUBLE PRECISION",
    DataType.BOOLEAN: "BOOLEAN",
    DataType.DATETIME: "TIMESTAMP WITH TIME ZONE",
    DataType.BLOB: "BYTEA",
    DataType.JSON: "JSONB",
    DataType.VECTOR: "BYTEA",
}

_TYPE_MAPS: dict[str, dict[DataType, str]] = {
    "sqlite": SQLITE_TYPE_MAP,
    "postgresql": POSTGRESQL_TYPE_MAP,
}


class StatementBuilder:
    """
    Builds dialect-specific SQL statements from schema objects.

    Statements that take values use ``?`` positional placeholders; storage
    executors translate them where the driver needs another style.
    """

    def __init__(self, dialect: Dialect = "sqlite") -> None:
        if dialect not in _TYPE_MAPS:
            raise ValueError(
                f"Unsupported dialect {dialect!r}; expected one of {sorted(_TYPE_MAPS)}"
            )
        self._dialect = dialect
        self._type_map = _TYPE_MAPS[dialect]

    @property
    def dialect(self) -> Dialect:
        return self._dialect

    # -------------------------------------------------------------------------
    # Quoting and literals
    # -------------------------------------------------------------------------

    def quote(self, identifier: str) -> str:
        """
        Quote a table, column or index name.

        Raises:
            InvalidIdentifierError: If the name is empty or contains NUL
        """
        if not identifier:
            raise InvalidIdentifierError(identifier, "identifier is empty")
        if "\x00" in identifier:
            raise InvalidIdentifierError(identifier, "identifier contains NUL")
        return '"' + identifier.replace('"', '""') + '"'

    def quote_list(self, identifiers: Sequence[str]) -> str:
        return ", ".join(self.quote(i) for i in identifiers)

    def literal(self, value: Any) -> str:
        """Format a Python default value as an SQL literal."""
        if value is None:
            return "NULL"
        if isinstance(value, bool):
            if self._dialect == "sqlite":
                return "1" if value else "0"
            return "TRUE" if value else "FALSE"
        if isinstance(value, (int, float, Decimal)):
            return str(value)
        if isinstance(value, (datetime, date)):
            return self._string_literal(value.isoformat())
        if isinstance(value, Enum):
            return self.literal(value.value)
        if isinstance(value, (dict, list, tuple)):
            return self._string_literal(json.dumps(value, sort_keys=True))
        return self._string_literal(str(value))

    @staticmethod
    def _string_literal(text: str) -> str:
        return "'" + text.replace("'", "''") + "'"

    # -------------------------------------------------------------------------
    # Column and constraint fragments
    # -------------------------------------------------------------------------

    def column_type(self, data_type: DataType) -> str:
        return self._type_map[data_type]

    def column_definition(self, field: FieldSchema) -> str:
        """``"name" TYPE [NOT NULL] [UNIQUE] [DEFAULT x]`` for one field."""
        parts = [self.quote(field.name), self.column_type(field.type)]
        if not field.nullable:
            parts.append("NOT NULL")
        if field.unique:
            parts.append("UNIQUE")
        if field.default is not None:
            parts.append(f"DEFAULT {self.literal(field.default)}")
        return " ".join(parts)

    def primary_key_definition(self, primary_key: PrimaryKeyConfig) -> str:
        name = self.quote(primary_key.name)
        if primary_key.type.is_store_generated:
            if self._dialect == "sqlite":
                return f"{name} INTEGER PRIMARY KEY AUTOINCREMENT"
            return f"{name} BIGINT GENERATED BY DEFAULT AS IDENTITY PRIMARY KEY"
        return f"{name} TEXT PRIMARY KEY"

    def foreign_key_clause(self, fk: ForeignKeySchema) -> str:
        clause = (
            f"FOREIGN KEY ({self.quote(fk.field)}) "
            f"REFERENCES {self.quote(fk.reference_table)}({self.quote(fk.reference_field)})"
        )
        if fk.on_update is not ForeignKeyAction.NO_ACTION:
            clause += f" ON UPDATE {fk.on_update.sql}"
        if fk.on_delete is not ForeignKeyAction.NO_ACTION:
            clause += f" ON DELETE {fk.on_delete.sql}"
        return clause

    # -------------------------------------------------------------------------
    # DDL
    # -------------------------------------------------------------------------

    def create_table(
        self,
        schema: TableSchema,
        *,
        table_name: str | None = None,
        if_not_exists: bool = True,
    ) -> str:
        """
        CREATE TABLE statement for a schema.

        Args:
            schema: Table definition (fields, primary key, foreign keys)
            table_name: Create under this name instead of ``schema.name``
            if_not_exists: Include IF NOT EXISTS clause (default True)
        """
        name = table_name or schema.name
        columns = [self.primary_key_definition(schema.primary_key)]
        columns.extend(self.column_definition(f) for f in schema.fields)
        columns.extend(self.foreign_key_clause(fk) for fk in schema.foreign_keys)
        exists_clause = "IF NOT EXISTS " if if_not_exists else ""
        return f"CREATE TABLE {exists_clause}{self.quote(name)} ({', '.join(columns)})"

    def drop_table(self, table_name: str) -> str:
        return f"DROP TABLE IF EXISTS {self.quote(table_name)}"

    def rename_table(self, old_name: str, new_name: str) -> str:
        return f"ALTER TABLE {self.quote(old_name)} RENAME TO {self.quote(new_name)}"

    def add_column(self, table_name: str, field: FieldSchema) -> str:
        return f"ALTER TABLE {self.quote(table_name)} ADD COLUMN {self.column_definition(field)}"

    def drop_column(self, table_name: str, column_name: str) -> str:
        return f"ALTER TABLE {self.quote(table_name)} DROP COLUMN {self.quote(column_name)}"

    def rename_column(self, table_name: str, old_name: str, new_name: str) -> str:
        return (
            f"ALTER TABLE {self.quote(table_name)} "
            f"RENAME COLUMN {self.quote(old_name)} TO {self.quote(new_name)}"
        )

    def create_index(
        self,
        table_name: str,
        columns: Sequence[str],
        *,
        index_name: str,
        unique: bool = False,
        if_not_exists: bool = False,
    ) -> str:
        unique_keyword = "UNIQUE " if unique else ""
        exists_clause = "IF NOT EXISTS " if if_not_exists else ""
        return (
            f"CREATE {unique_keyword}INDEX {exists_clause}{self.quote(index_name)} "
            f"ON {self.quote(table_name)} ({self.quote_list(columns)})"
        )

    def create_index_for(
        self,
        table_name: str,
        index: IndexSchema,
        *,
        if_not_exists: bool = True,
    ) -> str:
        """CREATE INDEX for a declared :class:`IndexSchema` of ``table_name``."""
        return self.create_index(
            table_name,
            index.fields,
            index_name=index.resolved_name(table_name),
            unique=index.unique,
            if_not_exists=if_not_exists,
        )

    def drop_index(self, index_name: str) -> str:
        return f"DROP INDEX IF EXISTS {self.quote(index_name)}"

    def can_drop_column(self, field: FieldSchema) -> bool:
        """Whether ``DROP COLUMN`` can remove ``field`` (SQLite refuses UNIQUE columns)."""
        return self._dialect != "sqlite" or not field.unique

    def can_add_column(self, field: FieldSchema) -> bool:
        """
        Whether ``ADD COLUMN`` accepts ``field`` on a table that may hold rows.

        SQLite refuses UNIQUE columns and NOT NULL columns without a default
        in ``ALTER TABLE ... ADD COLUMN``; those need a table rebuild.
        """
        if self._dialect != "sqlite":
            return True
        return not field.unique and (field.nullable or field.default is not None)

    # -------------------------------------------------------------------------
    # Foreign key enforcement
    #
    # SQLite switches enforcement per connection. A table rebuild turns it off
    # so dropping the old table does not cascade into child tables, then checks
    # the result before committing. The switch is ignored inside an open
    # transaction. Dialects without a switch return None.
    # -------------------------------------------------------------------------

    def foreign_keys_enabled(self) -> str | None:
        """Query returning one row whose only value is 1 while enforcement is on."""
        if self._dialect == "sqlite":
            return "PRAGMA foreign_keys"
        return None

    def disable_foreign_keys(self) -> str | None:
        if self._dialect == "sqlite":
            return "PRAGMA foreign_keys = OFF"
        return None

    def enable_foreign_keys(self) -> str | None:
        if self._dialect == "sqlite":
            return "PRAGMA foreign_keys = ON"
        return None

    def foreign_key_check(self) -> str | None:
        """Query returning one row per foreign key violation in the database."""
        if self._dialect == "sqlite":
            return "PRAGMA foreign_key_check"
        return None

    # -------------------------------------------------------------------------
    # DML and catalog queries
    # -------------------------------------------------------------------------

    def copy_rows(self, source: str, target: str, columns: Sequence[str]) -> str:
        """Bulk copy of ``columns`` from ``source`` into ``target``."""
        column_list = self.quote_list(columns)
        return (
            f"INSERT INTO {self.quote(target)} ({column_list}) "
            f"SELECT {column_list} FROM {self.quote(source)}"
        )

    def count_rows(self, table_name: str) -> str:
        return f"SELECT COUNT(*) AS row_count FROM {self.quote(table_name)}"

    def table_exists(self) -> str:
        """Query returning one row when the table named by the single parameter exists."""
        if self._dialect == "sqlite":
            return "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?"
        return (
            "SELECT table_name AS name FROM information_schema.tables "
            "WHERE table_schema = current_schema() AND table_name = ?"
        )

    def list_tables(self, exclude_prefix: str = "") -> tuple[str, list[Any]]:
        """
        Query listing user tables, skipping names that start with ``exclude_prefix``.

        Returns:
            Tuple of (sql, params)
        """
        pattern = _escape_like(exclude_prefix) + "%"
        if self._dialect == "sqlite":
            sql = (
                "SELECT name FROM sqlite_master WHERE type = 'table' "
                "AND name NOT LIKE 'sqlite\\_%' ESCAPE '\\'"
            )
            name_column = "name"
        else:
            sql = (
                "SELECT table_name AS name FROM information_schema.tables "
                "WHERE table_schema = current_schema() AND table_type = 'BASE TABLE'"
            )
            name_column = "table_name"
        params: list[Any] = []
        if exclude_prefix:
            sql += f" AND {name_column} NOT LIKE ? ESCAPE '\\'"
            params.append(pattern)
        return f"{sql} ORDER BY {name_column}", params


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


__all__ = [
    "Dialect",
    "StatementBuilder",
    "SQLITE_TYPE_MAP",
    "POSTGRESQL_TYPE_MAP",
]
