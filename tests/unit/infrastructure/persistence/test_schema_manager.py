"""Unit tests for SchemaManager."""

import pytest
from sqlalchemy import text

from sqimo.core.exceptions import (
    InvalidCollectionName,
    InvalidFieldDefinition,
    InvalidFieldName,
    StructuralChangeRejected,
)
from sqimo.domain.entities import Field, Index
from sqimo.infrastructure.persistence.database import DatabaseManager
from sqimo.infrastructure.persistence.schema_manager import ID_COLUMN_DEF, SchemaManager

INJECTION = "'; DROP TABLE users; --"


@pytest.fixture
def manager(settings):
    db = DatabaseManager(None, settings)
    yield SchemaManager(db)
    db.dispose()


# =========================================================================
# DDL Builders
# =========================================================================


def test_build_create_table_ddl():
    ddl = SchemaManager.build_create_table_ddl("users")
    assert ddl == f'CREATE TABLE IF NOT EXISTS "users" ({ID_COLUMN_DEF})'
    assert '"_id" TEXT NOT NULL PRIMARY KEY' in ddl


def test_build_column_def_untyped():
    """A field without a type leaves the type to the engine."""
    assert SchemaManager.build_column_def(Field(name="name")) == '"name"'


def test_build_column_def_full():
    field = Field(name="views", type="INTEGER", not_null=True, default=0)
    assert SchemaManager.build_column_def(field) == '"views" INTEGER NOT NULL DEFAULT 0'


def test_build_column_def_omits_unique():
    """SQLite cannot add UNIQUE columns; uniqueness goes to an index."""
    assert SchemaManager.build_column_def(Field(name="slug", type="TEXT", unique=True)) == '"slug" TEXT'


@pytest.mark.parametrize("type_name", ["TEXT", "VARCHAR(255)", "DECIMAL(10, 2)", "DOUBLE PRECISION"])
def test_build_column_def_accepts_type_names(type_name):
    assert SchemaManager.build_column_def(Field(name="x", type=type_name)) == f'"x" {type_name}'


@pytest.mark.parametrize("type_name", ["TEXT; DROP TABLE users", "TEXT)", "", "1NT", 5])
def test_build_column_def_rejects_bad_types(type_name):
    with pytest.raises(InvalidFieldDefinition):
        SchemaManager.build_column_def(Field(name="x", type=type_name))


@pytest.mark.parametrize(
    "default,literal",
    [
        (True, "1"),
        (False, "0"),
        (3, "3"),
        (1.5, "1.5"),
        ("42", "42"),
        ("-0.5e3", "-0.5e3"),
        ("'guest'", "'guest'"),
        ("'it''s'", "'it''s'"),
        ("NULL", "NULL"),
        ("current_timestamp", "current_timestamp"),
    ],
)
def test_render_default(default, literal):
    assert SchemaManager.render_default(default) == literal


@pytest.mark.parametrize("default", ["guest", "'a' || 'b'", "'x'); DROP TABLE users; --", "(1)", [1]])
def test_render_default_rejects_expressions(default):
    with pytest.raises(InvalidFieldDefinition):
        SchemaManager.render_default(default)


def test_build_index_ddl():
    assert SchemaManager.build_index_ddl("users", ["last", "first"]) == (
        'CREATE INDEX IF NOT EXISTS "users_last_first_index" ON "users" ("last", "first")'
    )
    assert SchemaManager.build_index_ddl("users", ["email"], unique=True, name="users_email_unique") == (
        'CREATE UNIQUE INDEX IF NOT EXISTS "users_email_unique" ON "users" ("email")'
    )


# =========================================================================
# Structural Operations
# =========================================================================


def test_create_collection_is_idempotent(manager):
    """Creating twice yields one table with one extra column."""
    manager.create_collection("users", [{"name": "name"}])
    collection = manager.create_collection("users", [{"name": "name"}])

    assert collection.field_names == ["_id", "name"]
    assert [c.name for c in manager.list_collections()] == ["users"]


def test_create_collection_without_fields(manager):
    collection = manager.create_collection("events")
    assert collection.field_names == ["_id"]
    id_field = collection.get_field("_id")
    assert id_field.primary_key is True
    assert id_field.not_null is True
    assert id_field.type == "TEXT"


def test_create_collection_adds_new_fields_later(manager):
    manager.create_collection("users", [{"name": "name"}])
    collection = manager.create_collection("users", [{"name": "name"}, {"name": "email"}])
    assert collection.field_names == ["_id", "name", "email"]


def test_create_collection_invalid_name(manager):
    with pytest.raises(InvalidCollectionName):
        manager.create_collection(INJECTION)
    assert manager.list_collections() == []


def test_create_collection_validates_fields_before_any_change(manager):
    """An invalid field leaves no table behind."""
    with pytest.raises(InvalidFieldName):
        manager.create_collection("users", [{"name": "name"}, {"name": INJECTION}])
    assert manager.collection_exists("users") is False


def test_create_collection_rejects_non_mapping_field(manager):
    with pytest.raises(InvalidFieldDefinition):
        manager.create_collection("users", ["name"])


def test_add_field_twice_is_a_noop(manager):
    manager.create_collection("users")
    assert manager.add_field("users", Field(name="email", type="TEXT")) is True
    assert manager.add_field("users", Field(name="email", type="TEXT")) is False

    names = [f.name for f in manager.list_fields("users")]
    assert names.count("email") == 1


def test_add_field_never_alters_existing_column(manager):
    """Re-declaring with different attributes keeps the original definition."""
    manager.create_collection("users", [Field(name="age", type="INTEGER")])
    assert manager.add_field("users", Field(name="age", type="TEXT", indexed=True)) is False

    age = next(f for f in manager.list_fields("users") if f.name == "age")
    assert age.type == "INTEGER"
    assert age.indexed is False


def test_add_reserved_id_field_is_a_noop(manager):
    manager.create_collection("users")
    assert manager.add_field("users", {"name": "_id"}) is False


def test_add_field_with_constraints(manager):
    manager.create_collection("users")
    manager.add_field(
        "users",
        Field(name="email", type="TEXT", unique=True, indexed=True),
    )
    manager.add_field("users", Field(name="role", type="TEXT", not_null=True, default="'member'"))

    fields = {f.name: f for f in manager.list_fields("users")}
    assert fields["email"].unique is True
    assert fields["email"].indexed is True
    assert fields["role"].not_null is True
    assert fields["role"].default == "'member'"

    index_names = {i.name for i in manager.list_indexes("users")}
    assert "users_email_unique" in index_names
    assert "users_email_index" in index_names


def test_add_field_not_null_without_default_is_rejected(manager):
    manager.create_collection("users")
    with pytest.raises(StructuralChangeRejected):
        manager.add_field("users", Field(name="email", not_null=True))
    assert "email" not in [f.name for f in manager.list_fields("users")]


def test_add_field_to_missing_collection_is_rejected(manager):
    with pytest.raises(StructuralChangeRejected):
        manager.add_field("ghosts", Field(name="name"))


def test_add_field_injection_is_rejected(manager):
    manager.create_collection("users")
    with pytest.raises(InvalidFieldName):
        manager.add_field("users", {"name": INJECTION})
    assert [f.name for f in manager.list_fields("users")] == ["_id"]
    assert manager.collection_exists("users") is True


def test_add_field_unique_index_failure_leaves_no_column(manager):
    """A rejected unique index takes the new column back out with it."""
    manager.create_collection("users", [{"name": "name"}])
    with manager.db.begin() as conn:
        conn.execute(text("INSERT INTO users (_id, name) VALUES ('a', 'Bill'), ('b', 'Amy')"))

    with pytest.raises(StructuralChangeRejected):
        manager.add_field("users", {"name": "code", "default": "'x'", "unique": True})

    assert [f.name for f in manager.list_fields("users")] == ["_id", "name"]
    assert "users_code_unique" not in {i.name for i in manager.list_indexes("users")}

    # Still rejected on retry rather than reported as already present
    with pytest.raises(StructuralChangeRejected):
        manager.add_field("users", {"name": "code", "default": "'x'", "unique": True})


def test_add_field_name_differing_in_case_is_a_noop(manager):
    manager.create_collection("users", [{"name": "name"}])
    assert manager.add_field("users", {"name": "Name"}) is False
    assert manager.add_field("users", {"name": "NAME", "type": "TEXT"}) is False
    assert [f.name for f in manager.list_fields("users")] == ["_id", "name"]


def test_ensure_index_is_idempotent(manager):
    manager.create_collection("users", [{"name": "first"}, {"name": "last"}])
    first = manager.ensure_index("users", ["last", "first"])
    second = manager.ensure_index("users", ["last", "first"])

    assert first == second == Index(
        name="users_last_first_index", collection="users", fields=("last", "first")
    )
    matching = [i for i in manager.list_indexes("users") if i.name == "users_last_first_index"]
    assert len(matching) == 1
    assert matching[0].fields == ("last", "first")


def test_ensure_index_accepts_single_name(manager):
    manager.create_collection("users", [{"name": "name"}])
    assert manager.ensure_index("users", "name").name == "users_name_index"


def test_ensure_unique_index(manager):
    manager.create_collection("users", [{"name": "email"}])
    index = manager.ensure_index("users", ["email"], unique=True)
    assert index.unique is True
    assert next(f for f in manager.list_fields("users") if f.name == "email").unique is True


def test_ensure_index_requires_fields(manager):
    manager.create_collection("users")
    with pytest.raises(InvalidFieldName):
        manager.ensure_index("users", [])


def test_ensure_index_on_unknown_column_is_rejected(manager):
    manager.create_collection("users")
    with pytest.raises(StructuralChangeRejected):
        manager.ensure_index("users", ["missing"])


def test_ensure_index_name_taken_by_another_collection(manager):
    """Index names are global; a clash with another table is not a no-op."""
    manager.create_collection("user", [{"name": "s_name"}])
    manager.create_collection("user_s", [{"name": "name"}])
    manager.ensure_index("user", ["s_name"])

    with pytest.raises(StructuralChangeRejected):
        manager.ensure_index("user_s", ["name"])

    assert "user_s_name_index" not in {i.name for i in manager.list_indexes("user_s")}
    assert "user_s_name_index" in {i.name for i in manager.list_indexes("user")}


def test_ensure_index_with_different_uniqueness_is_rejected(manager):
    manager.create_collection("users", [{"name": "email"}])
    manager.ensure_index("users", ["email"])
    with pytest.raises(StructuralChangeRejected):
        manager.ensure_index("users", ["email"], unique=True)


def test_add_indexed_field_clashing_with_existing_index(manager):
    manager.create_collection("user", [{"name": "s_name"}])
    manager.ensure_index("user", ["s_name"])
    manager.create_collection("user_s")

    with pytest.raises(StructuralChangeRejected):
        manager.add_field("user_s", {"name": "name", "index": True})
    assert [f.name for f in manager.list_fields("user_s")] == ["_id"]


def test_ensure_index_rejects_injection(manager):
    manager.create_collection("users")
    with pytest.raises(InvalidFieldName):
        manager.ensure_index("users", [INJECTION])


# =========================================================================
# Introspection
# =========================================================================


def test_list_fields_of_missing_collection(manager):
    assert manager.list_fields("ghosts") == []


def test_list_collections_sorted_with_fields(manager):
    manager.create_collection("posts", [{"name": "title"}])
    manager.create_collection("authors")
    collections = manager.list_collections()
    assert [c.name for c in collections] == ["authors", "posts"]
    assert collections[1].field_names == ["_id", "title"]


def test_list_indexes_includes_primary_key_index(manager):
    manager.create_collection("users")
    indexes = manager.list_indexes("users")
    assert len(indexes) == 1
    assert indexes[0].fields == ("_id",)
    assert indexes[0].unique is True


def test_collection_exists(manager):
    assert manager.collection_exists("users") is False
    manager.create_collection("users")
    assert manager.collection_exists("users") is True
