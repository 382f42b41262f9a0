"""
Explicit catalog of registered table schemas.

The operation generator resolves full table definitions (for create-table
operations) through a catalog passed to it, so its output depends only on
its inputs. A catalog is usually owned by one :class:`~schemashift.SchemaManager`
but can be shared or scoped per session by the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from schemashift.schema.table import TableSchema

logger = logging.getLogger(__name__)


class SchemaCatalog:
    """
    Name-keyed collection of :class:`TableSchema` objects.

    Registering a schema under an existing name replaces the previous entry.

    Example:
        >>> catalog = SchemaCatalog()
        >>> catalog.register(users_schema)
        >>> "users" in catalog
        True
        >>> catalog.require("users").field_names
        ['username', 'email']
    """

    def __init__(self, schemas: Iterable[TableSchema] | None = None) -> None:
        self._schemas: dict[str, TableSchema] = {}
        if schemas is not None:
            self.register_all(schemas)

    def register(self, schema: TableSchema) -> None:
        if schema.name in self._schemas:
            logger.debug("Replacing registered schema for table %s", schema.name)
        self._schemas[schema.name] = schema

    def register_all(self, schemas: Iterable[TableSchema]) -> None:
        for schema in schemas:
            self.register(schema)

    def get(self, name: str) -> TableSchema | None:
        return self._schemas.get(name)

    def require(self, name: str) -> TableSchema:
        """
        Get a registered schema or raise.

        Raises:
            SchemaNotRegisteredError: If no schema is registered under ``name``
        """
        schema = self._schemas.get(name)
        if schema is None:
            from schemashift.migration.exceptions import SchemaNotRegisteredError

            raise SchemaNotRegisteredError(name)
        return schema

    def unregister(self, name: str) -> TableSchema | None:
        return self._schemas.pop(name, None)

    def clear(self) -> None:
        self._schemas.clear()

    def names(self) -> list[str]:
        return list(self._schemas)

    def __contains__(self, name: object) -> bool:
        return name in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)

    def __iter__(self) -> Iterator[TableSchema]:
        return iter(list(self._schemas.values()))


__all__ = ["SchemaCatalog"]
