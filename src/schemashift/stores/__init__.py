"""
Storage executors for schemashift.

The migration engine only needs four asynchronous calls from a store
(query, insert, update, delete); see :class:`StorageExecutor`.
"""

from schemashift.stores.interface import (
    Row,
    StorageExecutor,
    TransactionalStorageExecutor,
)
from schemashift.stores.sqlalchemy import SQLAlchemyStorageExecutor, to_named_params
from schemashift.stores.sqlite import SQLiteStorageExecutor

__all__ = [
    # Interfaces
    "Row",
    "StorageExecutor",
    "TransactionalStorageExecutor",
    # Implementations
    "SQLiteStorageExecutor",
    "SQLAlchemyStorageExecutor",
    "to_named_params",
]
