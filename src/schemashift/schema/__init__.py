"""
Schema model for schemashift.

Immutable value objects describing tables, their fields, indexes and
foreign keys, plus the catalog used to look definitions up by name.
"""

from schemashift.schema.catalog import SchemaCatalog
from schemashift.schema.fields import (
    DataType,
    FieldSchema,
    VectorFieldConfig,
    VectorPrecision,
)
from schemashift.schema.table import (
    ForeignKeyAction,
    ForeignKeySchema,
    IndexSchema,
    PrimaryKeyConfig,
    PrimaryKeyType,
    TableSchema,
    index_name_for,
)

__all__ = [
    "DataType",
    "FieldSchema",
    "VectorFieldConfig",
    "VectorPrecision",
    "ForeignKeyAction",
    "ForeignKeySchema",
    "IndexSchema",
    "PrimaryKeyConfig",
    "PrimaryKeyType",
    "TableSchema",
    "index_name_for",
    "SchemaCatalog",
]
