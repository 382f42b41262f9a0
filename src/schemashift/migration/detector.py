"""
Change detection between two table definitions.

The detector is a pure function of its two inputs. Renames are recognised
only through identity tokens (``table_id`` / ``field_id``); a field renamed
without a token is reported as a removal plus an addition.

Changes are returned in discovery order:

1. table rename
2. field additions and renames (new-field order)
3. per old field, in old-field order: its removal, or its type change
   followed by its constraint change
4. index additions, then index removals
5. foreign key additions, then foreign key removals

A field renamed through its ``field_id`` is compared with the field it was
renamed to, so a rename that also retypes or reconstrains the column yields
the rename plus the type or constraint change.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from schemashift.migration.changes import SchemaChange, SchemaChangeType
from schemashift.schema.catalog import SchemaCatalog
from schemashift.schema.fields import FieldSchema
from schemashift.schema.table import ForeignKeySchema, IndexSchema, TableSchema

logger = logging.getLogger(__name__)


class SchemaChangeDetector:
    """
    Compares two versions of a table definition.

    Example:
        >>> detector = SchemaChangeDetector()
        >>> changes = detector.detect(old_users, new_users)
        >>> [c.type for c in changes]
        [<SchemaChangeType.FIELD_ADDED: 'field_added'>]
    """

    def detect(self, old: TableSchema, new: TableSchema) -> list[SchemaChange]:
        """
        Changes turning ``old`` into ``new``, in discovery order.

        Type and constraint changes are reported for fields matched by name
        and also for fields matched through a rename, under the new name.
        """
        changes: list[SchemaChange] = []

        if (
            old.table_id is not None
            and old.table_id == new.table_id
            and old.name != new.name
        ):
            changes.append(
                SchemaChange(
                    type=SchemaChangeType.TABLE_RENAMED,
                    table_name=new.name,
                    old_table_name=old.name,
                    details={"table_id": new.table_id},
                )
            )

        changes.extend(self._diff_fields(old, new))
        changes.extend(self._diff_indexes(old, new))
        changes.extend(self._diff_foreign_keys(old, new))

        logger.debug(
            "Detected %d change(s) between %s and %s",
            len(changes),
            old.name,
            new.name,
        )
        return changes

    def _diff_fields(self, old: TableSchema, new: TableSchema) -> list[SchemaChange]:
        old_by_name = {f.name: f for f in old.fields}
        new_by_name = {f.name: f for f in new.fields}
        old_by_id = {f.field_id: f for f in old.fields if f.field_id is not None}

        changes: list[SchemaChange] = []
        # new field name -> old field it was renamed from
        renamed_from: dict[str, FieldSchema] = {}

        for field in new.fields:
            if field.name in old_by_name:
                continue
            source = old_by_id.get(field.field_id) if field.field_id is not None else None
            if source is not None and source.name not in new_by_name:
                renamed_from[field.name] = source
                changes.append(
                    SchemaChange(
                        type=SchemaChangeType.FIELD_RENAMED,
                        table_name=new.name,
                        field_name=field.name,
                        old_field_name=source.name,
                        old_value=source,
                        new_value=field,
                        details={"field_id": field.field_id},
                    )
                )
            else:
                changes.append(
                    SchemaChange(
                        type=SchemaChangeType.FIELD_ADDED,
                        table_name=new.name,
                        field_name=field.name,
                        new_value=field,
                    )
                )

        renamed_to = {source.name: new_by_name[name] for name, source in renamed_from.items()}
        for before in old.fields:
            field = new_by_name.get(before.name) or renamed_to.get(before.name)
            if field is None:
                changes.append(
                    SchemaChange(
                        type=SchemaChangeType.FIELD_REMOVED,
                        table_name=new.name,
                        field_name=before.name,
                        old_value=before,
                    )
                )
                continue
            if before.type != field.type:
                changes.append(
                    SchemaChange(
                        type=SchemaChangeType.FIELD_TYPE_CHANGED,
                        table_name=new.name,
                        field_name=field.name,
                        old_value=before.type,
                        new_value=field.type,
                    )
                )
            if before.constraints != field.constraints:
                changes.append(
                    SchemaChange(
                        type=SchemaChangeType.FIELD_CONSTRAINT_CHANGED,
                        table_name=new.name,
                        field_name=field.name,
                        old_value=before.constraints,
                        new_value=field.constraints,
                    )
                )
        return changes

    def _diff_indexes(self, old: TableSchema, new: TableSchema) -> list[SchemaChange]:
        old_indexes = _by_key(old.indexes)
        new_indexes = _by_key(new.indexes)

        changes = [
            SchemaChange(
                type=SchemaChangeType.INDEX_ADDED,
                table_name=new.name,
                new_value=index,
                details={"index_name": index.resolved_name(new.name)},
            )
            for key, index in new_indexes.items()
            if key not in old_indexes
        ]
        changes.extend(
            SchemaChange(
                type=SchemaChangeType.INDEX_REMOVED,
                table_name=new.name,
                old_value=index,
                details={"index_name": index.resolved_name(old.name)},
            )
            for key, index in old_indexes.items()
            if key not in new_indexes
        )
        return changes

    def _diff_foreign_keys(self, old: TableSchema, new: TableSchema) -> list[SchemaChange]:
        old_keys = {fk.key: fk for fk in old.foreign_keys}
        new_keys = {fk.key: fk for fk in new.foreign_keys}

        changes = [
            _foreign_key_change(SchemaChangeType.FOREIGN_KEY_ADDED, new.name, fk)
            for key, fk in new_keys.items()
            if key not in old_keys
        ]
        changes.extend(
            _foreign_key_change(SchemaChangeType.FOREIGN_KEY_REMOVED, new.name, fk)
            for key, fk in old_keys.items()
            if key not in new_keys
        )
        return changes


def _by_key(indexes: Iterable[IndexSchema]) -> dict[str, IndexSchema]:
    result: dict[str, IndexSchema] = {}
    for index in indexes:
        result.setdefault(index.key, index)
    return result


def _foreign_key_change(
    change_type: SchemaChangeType,
    table_name: str,
    fk: ForeignKeySchema,
) -> SchemaChange:
    added = change_type is SchemaChangeType.FOREIGN_KEY_ADDED
    return SchemaChange(
        type=change_type,
        table_name=table_name,
        field_name=fk.field,
        old_value=None if added else fk.to_dict(),
        new_value=fk.to_dict() if added else None,
    )


_default_detector = SchemaChangeDetector()


def detect_schema_changes(old: TableSchema, new: TableSchema) -> list[SchemaChange]:
    """Module-level shortcut for :meth:`SchemaChangeDetector.detect`."""
    return _default_detector.detect(old, new)


def detect_table_added(table_name: str) -> SchemaChange:
    """Change record for a table that should be created from the catalog."""
    return SchemaChange(type=SchemaChangeType.TABLE_ADDED, table_name=table_name)


def detect_table_removed(table_name: str) -> SchemaChange:
    return SchemaChange(type=SchemaChangeType.TABLE_REMOVED, table_name=table_name)


def diff_catalog(
    existing_tables: Iterable[str],
    catalog: SchemaCatalog,
) -> list[SchemaChange]:
    """
    Compare the tables present in a store with the tables of a catalog.

    Catalog tables missing from the store become TABLE_ADDED (catalog order),
    store tables the catalog does not know become TABLE_REMOVED (store
    order). Metadata tables should be filtered out by the caller.
    """
    existing = list(existing_tables)
    present = set(existing)
    changes = [detect_table_added(name) for name in catalog.names() if name not in present]
    changes.extend(detect_table_removed(name) for name in existing if name not in catalog)
    return changes


__all__ = [
    "SchemaChangeDetector",
    "detect_schema_changes",
    "detect_table_added",
    "detect_table_removed",
    "diff_catalog",
]
