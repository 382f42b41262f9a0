"""
Unit tests for TableSchema, IndexSchema, ForeignKeySchema and SchemaCatalog.
"""

import pytest
from pydantic import ValidationError

from schemashift.migration.exceptions import SchemaNotRegisteredError
from schemashift.schema import (
    FieldSchema,
    ForeignKeyAction,
    ForeignKeySchema,
    IndexSchema,
    PrimaryKeyConfig,
    PrimaryKeyType,
    SchemaCatalog,
    TableSchema,
    index_name_for,
)
from tests.fixtures import posts, users_v1, users_with_email, users_with_index


class TestTableInvariants:
    """Tests for TableSchema validation."""

    def test_duplicate_field_names_rejected(self) -> None:
        """Two fields with the same name are rejected."""
        with pytest.raises(ValidationError, match="duplicate field name"):
            TableSchema(name="t", fields=(FieldSchema.text("a"), FieldSchema.integer("a")))

    def test_duplicate_field_ids_rejected(self) -> None:
        """Two fields sharing an identity token are rejected."""
        with pytest.raises(ValidationError, match="used more than once"):
            TableSchema(
                name="t",
                fields=(FieldSchema.text("a", field_id="x"), FieldSchema.text("b", field_id="x")),
            )

    def test_field_named_like_primary_key_rejected(self) -> None:
        """A field cannot shadow the primary key column."""
        with pytest.raises(ValidationError, match="clashes with the primary key"):
            TableSchema(name="t", fields=(FieldSchema.text("id"),))

    def test_index_on_unknown_column_rejected(self) -> None:
        """Indexes must reference declared columns."""
        with pytest.raises(ValidationError, match="unknown column"):
            TableSchema(
                name="t",
                fields=(FieldSchema.text("a"),),
                indexes=(IndexSchema(fields=("missing",)),),
            )

    def test_foreign_key_on_unknown_column_rejected(self) -> None:
        """Foreign keys must reference declared columns."""
        with pytest.raises(ValidationError, match="foreign key"):
            TableSchema(
                name="t",
                fields=(FieldSchema.text("a"),),
                foreign_keys=(
                    ForeignKeySchema(field="b", reference_table="o", reference_field="id"),
                ),
            )

    def test_index_on_primary_key_allowed(self) -> None:
        """The primary key column counts as declared."""
        schema = TableSchema(
            name="t",
            fields=(FieldSchema.text("a"),),
            indexes=(IndexSchema(fields=("id", "a")),),
        )
        assert schema.indexes[0].key == "id,a"


class TestTableHelpers:
    """Tests for TableSchema accessors."""

    def test_field_names_in_declaration_order(self) -> None:
        assert users_with_email().field_names == ["username", "email"]

    def test_all_field_names_start_with_primary_key(self) -> None:
        """all_field_names puts the primary key first."""
        assert users_with_email().all_field_names == ["id", "username", "email"]

    def test_get_and_has_field(self) -> None:
        schema = users_with_email()
        assert schema.get_field("email") is not None
        assert schema.get_field("missing") is None
        assert schema.has_field("username")
        assert not schema.has_field("id")

    def test_renamed_keeps_table_id(self) -> None:
        """renamed() changes the name only."""
        renamed = users_v1().renamed("app_users")
        assert renamed.name == "app_users"
        assert renamed.table_id == "t-users"
        assert renamed.fields == users_v1().fields

    def test_round_trip(self) -> None:
        """from_dict(to_dict()) rebuilds an equal schema."""
        schema = posts()
        assert TableSchema.from_dict(schema.to_dict()) == schema


class TestFingerprint:
    """Tests for TableSchema.fingerprint()."""

    def test_stable_for_equal_schemas(self) -> None:
        """Equal definitions have equal fingerprints."""
        assert users_v1().fingerprint() == users_v1().fingerprint()

    def test_changes_with_definition(self) -> None:
        """Any structural difference changes the fingerprint."""
        assert users_v1().fingerprint() != users_with_email().fingerprint()
        assert users_with_email().fingerprint() != users_with_index().fingerprint()

    def test_is_sha256_hex(self) -> None:
        assert len(users_v1().fingerprint()) == 64


class TestIndexAndForeignKey:
    """Tests for IndexSchema and ForeignKeySchema helpers."""

    def test_index_name_for(self) -> None:
        """Derived names follow <table>_<fields>_idx."""
        assert index_name_for("users", ["email", "username"]) == "users_email_username_idx"

    def test_resolved_name_prefers_explicit_name(self) -> None:
        assert IndexSchema(fields=("email",), name="by_email").resolved_name("users") == "by_email"
        assert IndexSchema(fields=("email",)).resolved_name("users") == "users_email_idx"

    def test_index_requires_fields(self) -> None:
        with pytest.raises(ValidationError):
            IndexSchema(fields=())

    def test_foreign_key_action_sql(self) -> None:
        """Actions render as SQL keywords."""
        assert ForeignKeyAction.SET_NULL.sql == "SET NULL"
        assert ForeignKeyAction.NO_ACTION.sql == "NO ACTION"

    def test_foreign_key_identity(self) -> None:
        """The key includes both referential actions."""
        fk = posts().foreign_keys[0]
        assert fk.key == ("author_id", "users", "id", "cascade", "no_action")

    def test_primary_key_factories(self) -> None:
        assert PrimaryKeyConfig.auto_increment().type.is_store_generated
        uuid_key = PrimaryKeyConfig.uuid("uid")
        assert uuid_key.name == "uid"
        assert uuid_key.type is PrimaryKeyType.UUID
        assert not uuid_key.type.is_store_generated


class TestSchemaCatalog:
    """Tests for SchemaCatalog."""

    def test_register_and_get(self) -> None:
        catalog = SchemaCatalog()
        catalog.register(users_v1())
        assert "users" in catalog
        assert catalog.get("users") == users_v1()
        assert len(catalog) == 1

    def test_register_replaces(self) -> None:
        """Registering under an existing name replaces the entry."""
        catalog = SchemaCatalog([users_v1()])
        catalog.register(users_with_email())
        assert catalog.require("users").field_names == ["username", "email"]
        assert len(catalog) == 1

    def test_require_unknown_raises(self) -> None:
        with pytest.raises(SchemaNotRegisteredError) as exc_info:
            SchemaCatalog().require("ghost")
        assert exc_info.value.table_name == "ghost"

    def test_names_and_iteration_keep_order(self) -> None:
        catalog = SchemaCatalog([users_v1(), posts()])
        assert catalog.names() == ["users", "posts"]
        assert [s.name for s in catalog] == ["users", "posts"]

    def test_unregister_and_clear(self) -> None:
        catalog = SchemaCatalog([users_v1(), posts()])
        assert catalog.unregister("users") is not None
        assert catalog.unregister("users") is None
        catalog.clear()
        assert len(catalog) == 0
