"""
Operation generation.

Maps schema changes one-to-one (table creation: one-to-many) onto migration
operations. The generator never reorders or merges; the output follows the
input order exactly.

An added column the dialect cannot add in place (on SQLite: UNIQUE, or NOT
NULL without a default) becomes a table-rebuild placeholder, like a removal.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from schemashift.migration.changes import SchemaChange, SchemaChangeType
from schemashift.migration.exceptions import SchemaNotRegisteredError
from schemashift.migration.operations import MigrationOperation
from schemashift.schema.catalog import SchemaCatalog
from schemashift.schema.fields import FieldSchema
from schemashift.schema.table import IndexSchema, index_name_for
from schemashift.sql.builder import StatementBuilder

logger = logging.getLogger(__name__)


class MigrationGenerator:
    """
    Turns schema changes into migration operations.

    Table creation is resolved through the catalog, so the result depends
    only on the changes and the catalog passed in.

    Args:
        catalog: Registered table definitions, used for TABLE_ADDED
        builder: Statement builder for the target dialect
        strict: Raise SchemaNotRegisteredError for TABLE_ADDED on an
            unregistered table instead of skipping it

    Example:
        >>> generator = MigrationGenerator(catalog)
        >>> operations = generator.generate(changes)
        >>> requires_rewrite(operations)
        False
    """

    def __init__(
        self,
        catalog: SchemaCatalog,
        builder: StatementBuilder | None = None,
        *,
        strict: bool = False,
    ) -> None:
        self._catalog = catalog
        self._builder = builder or StatementBuilder()
        self._strict = strict

    @property
    def builder(self) -> StatementBuilder:
        return self._builder

    def generate(self, changes: Iterable[SchemaChange]) -> list[MigrationOperation]:
        operations: list[MigrationOperation] = []
        for change in changes:
            operations.extend(self._operations_for(change))
        return operations

    def _operations_for(self, change: SchemaChange) -> list[MigrationOperation]:
        builder = self._builder
        table = change.table_name

        if change.type is SchemaChangeType.TABLE_ADDED:
            schema = self._catalog.get(table)
            if schema is None:
                if self._strict:
                    raise SchemaNotRegisteredError(table)
                logger.warning("No schema registered for table %s; skipping create", table)
                return []
            operations = [MigrationOperation.create_table(schema, builder=builder)]
            operations.extend(
                MigrationOperation.create_index(
                    table,
                    index.fields,
                    index_name=index.resolved_name(table),
                    unique=index.unique,
                    builder=builder,
                )
                for index in schema.indexes
            )
            return operations

        if change.type is SchemaChangeType.TABLE_REMOVED:
            return [MigrationOperation.drop_table(table, builder=builder)]

        if change.type is SchemaChangeType.TABLE_RENAMED:
            if change.old_table_name is None:
                raise ValueError(f"Table rename change for {table} has no old table name")
            return [
                MigrationOperation.rename_table(change.old_table_name, table, builder=builder)
            ]

        if change.type is SchemaChangeType.FIELD_ADDED:
            field = change.new_value
            if isinstance(field, dict):
                field = FieldSchema.from_dict(field)
            if not isinstance(field, FieldSchema):
                raise ValueError(f"Field addition on {table} carries no field definition")
            if not builder.can_add_column(field):
                logger.debug("Column %s of %s cannot be added in place", field.name, table)
                return [MigrationOperation.rewrite_placeholder(change)]
            return [MigrationOperation.add_column(table, field, builder=builder)]

        if change.type is SchemaChangeType.FIELD_RENAMED:
            if change.old_field_name is None or change.field_name is None:
                raise ValueError(f"Field rename change on {table} is missing a name")
            return [
                MigrationOperation.rename_column(
                    table, change.old_field_name, change.field_name, builder=builder
                )
            ]

        if change.type is SchemaChangeType.INDEX_ADDED:
            index = _index_payload(change.new_value)
            return [
                MigrationOperation.create_index(
                    table,
                    index.fields,
                    index_name=change.details.get("index_name") or index.resolved_name(table),
                    unique=index.unique,
                    builder=builder,
                )
            ]

        if change.type is SchemaChangeType.INDEX_REMOVED:
            index = _index_payload(change.old_value)
            name = change.details.get("index_name") or index.name
            return [
                MigrationOperation.drop_index(
                    table,
                    name or index_name_for(table, index.fields),
                    builder=builder,
                )
            ]

        # Field removal, retype, constraint and foreign key changes.
        return [MigrationOperation.rewrite_placeholder(change)]


def _index_payload(value: object) -> IndexSchema:
    if isinstance(value, IndexSchema):
        return value
    if isinstance(value, dict):
        return IndexSchema.model_validate(value)
    raise ValueError(f"Expected an index definition, got {type(value).__name__}")


def requires_rewrite(operations: Sequence[MigrationOperation]) -> bool:
    """True when any operation is a table-rebuild placeholder."""
    return any(op.requires_rewrite for op in operations)


def rewrite_operations(operations: Sequence[MigrationOperation]) -> list[MigrationOperation]:
    return [op for op in operations if op.requires_rewrite]


__all__ = ["MigrationGenerator", "requires_rewrite", "rewrite_operations"]
