"""Schema manager for collection tables.

Creates collection tables, adds columns and indexes, and introspects the
SQLite catalog. Every structural operation is idempotent: it checks the
catalog (or uses IF NOT EXISTS) so repeating it changes nothing.
"""

import re
from collections.abc import Iterable, Mapping
from typing import Any

from sqlalchemy import Connection, text
from sqlalchemy.exc import DBAPIError

from sqimo.core.exceptions import (
    InvalidFieldDefinition,
    InvalidFieldName,
    ReadError,
    StructuralChangeRejected,
)
from sqimo.core.logging import get_logger
from sqimo.domain.entities import ID_FIELD, Collection, Field, Index
from sqimo.domain.services.name_validator import DEFAULT_MAX_LENGTH, NameValidator
from sqimo.infrastructure.persistence.database import DatabaseManager

logger = get_logger(__name__)

# The only column a collection table is created with
ID_COLUMN_DEF = f'"{ID_FIELD}" TEXT NOT NULL PRIMARY KEY'

# Type names such as TEXT, INTEGER, VARCHAR(255), DOUBLE PRECISION, DECIMAL(10, 2)
TYPE_PATTERN = re.compile(
    r"^[A-Za-z][A-Za-z0-9_]*(?: [A-Za-z][A-Za-z0-9_]*)*(?:\(\s*\d+\s*(?:,\s*\d+\s*)?\))?$"
)

NUMERIC_LITERAL = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")
STRING_LITERAL = re.compile(r"^'(?:[^']|'')*'$")
KEYWORD_LITERALS = frozenset(
    {"NULL", "TRUE", "FALSE", "CURRENT_TIME", "CURRENT_DATE", "CURRENT_TIMESTAMP"}
)

UNIQUE_INDEX_SUFFIX = "_unique"


class SchemaManager:
    """Creates and introspects collection tables."""

    def __init__(self, db: DatabaseManager, max_identifier_length: int = DEFAULT_MAX_LENGTH) -> None:
        """Initialize the schema manager.

        Args:
            db: Database manager owning the store's connection.
            max_identifier_length: Longest accepted collection or field name.
        """
        self.db = db
        self.max_identifier_length = max_identifier_length

    # =========================================================================
    # DDL Builders
    # =========================================================================

    @classmethod
    def render_default(cls, default: Any) -> str:
        """Render a field default as a SQL literal.

        Python bools become 1/0 and numbers their decimal form. Strings must
        already be SQL literals: a number, a single-quoted string, NULL,
        TRUE, FALSE or CURRENT_TIME/DATE/TIMESTAMP.

        Raises:
            InvalidFieldDefinition: If the default is not an accepted literal.
        """
        if isinstance(default, bool):
            return "1" if default else "0"
        if isinstance(default, (int, float)):
            return repr(default)
        if isinstance(default, str):
            literal = default.strip()
            if (
                NUMERIC_LITERAL.match(literal)
                or STRING_LITERAL.match(literal)
                or literal.upper() in KEYWORD_LITERALS
            ):
                return literal
        raise InvalidFieldDefinition(f"Invalid default literal {default!r}")

    @classmethod
    def build_column_def(cls, field: Field) -> str:
        """Build the column definition used by ALTER TABLE ADD COLUMN.

        Uniqueness is not part of the column definition since SQLite cannot
        add a UNIQUE column; it is enforced with a unique index instead.

        Raises:
            InvalidFieldDefinition: If the type name or default is malformed.
        """
        parts = [NameValidator.quote(field.name)]

        if field.type is not None:
            if not isinstance(field.type, str) or not TYPE_PATTERN.match(field.type):
                raise InvalidFieldDefinition(f"Invalid type {field.type!r} for field '{field.name}'")
            parts.append(field.type)

        if field.not_null:
            parts.append("NOT NULL")

        if field.default is not None:
            parts.append(f"DEFAULT {cls.render_default(field.default)}")

        return " ".join(parts)

    @classmethod
    def build_create_table_ddl(cls, collection: str) -> str:
        return f"CREATE TABLE IF NOT EXISTS {NameValidator.quote(collection)} ({ID_COLUMN_DEF})"

    @classmethod
    def build_add_column_ddl(cls, collection: str, field: Field) -> str:
        return f"ALTER TABLE {NameValidator.quote(collection)} ADD COLUMN {cls.build_column_def(field)}"

    @classmethod
    def build_index_ddl(
        cls, collection: str, field_names: Iterable[str], unique: bool = False, name: str | None = None
    ) -> str:
        """Build a CREATE INDEX IF NOT EXISTS statement.

        Args:
            collection: The collection name.
            field_names: Indexed columns, in order.
            unique: Whether to create a unique index.
            name: Index name; defaults to the deterministic index name.
        """
        field_names = list(field_names)
        index_name = name or Index.build_name(collection, field_names)
        columns = ", ".join(NameValidator.quote(f) for f in field_names)
        kind = "UNIQUE INDEX" if unique else "INDEX"
        return (
            f"CREATE {kind} IF NOT EXISTS {NameValidator.quote(index_name)} "
            f"ON {NameValidator.quote(collection)} ({columns})"
        )

    def validate_field(self, field: Field | Mapping[str, Any]) -> Field:
        """Coerce a field definition and validate its name, type and default.

        Raises:
            InvalidFieldName: If the field name fails the allow-list.
            InvalidFieldDefinition: If the definition is not a field or its
                type or default is malformed.
        """
        try:
            field = Field.coerce(field)
        except TypeError as exc:
            raise InvalidFieldDefinition(str(exc)) from None
        NameValidator.validate_field_name(field.name, self.max_identifier_length)
        self.build_column_def(field)
        return field

    # =========================================================================
    # Structural Operations
    # =========================================================================

    def create_collection(
        self, name: str, fields: Iterable[Field | Mapping[str, Any]] = ()
    ) -> Collection:
        """Create a collection table if absent, then add each declared field.

        All field definitions are validated before any statement runs.

        Args:
            name: The collection name.
            fields: Field definitions (Field instances or mappings).

        Returns:
            The collection as it exists after the call.

        Raises:
            InvalidCollectionName: If the name fails the allow-list.
            InvalidFieldName: If a field name fails the allow-list.
            InvalidFieldDefinition: If a field type or default is malformed.
            StructuralChangeRejected: If the engine refuses a change.
        """
        NameValidator.validate_collection_name(name, self.max_identifier_length)
        declared = [self.validate_field(f) for f in fields]

        ddl = self.build_create_table_ddl(name)
        with self.db.begin() as conn:
            existed = self._table_exists(conn, name)
            self._execute_ddl(conn, ddl, collection=name)

        if not existed:
            logger.info("Collection created", collection=name)

        for field in declared:
            self.add_field(name, field)

        return Collection(name=name, fields=self.list_fields(name))

    def add_field(self, collection: str, field: Field | Mapping[str, Any]) -> bool:
        """Add a column to a collection if no column of that name exists.

        Args:
            collection: The collection name.
            field: The field definition.

        Returns:
            True if the column was added, False if it already existed.

        Raises:
            InvalidCollectionName: If the collection name fails the allow-list.
            InvalidFieldName: If the field name fails the allow-list.
            InvalidFieldDefinition: If the type or default is malformed.
            StructuralChangeRejected: If the engine refuses the change, e.g.
                NOT NULL without a default or a missing table.
        """
        NameValidator.validate_collection_name(collection, self.max_identifier_length)
        field = self.validate_field(field)

        # SQLite column names are case-insensitive
        existing = {f.name.lower() for f in self.list_fields(collection)}
        if field.name.lower() in existing:
            logger.debug("Field already exists", collection=collection, field=field.name)
            return False

        indexes = []
        if field.unique:
            indexes.append(
                Index(
                    name=f"{collection}_{field.name}{UNIQUE_INDEX_SUFFIX}",
                    collection=collection,
                    fields=(field.name,),
                    unique=True,
                )
            )
        if field.indexed:
            indexes.append(
                Index(
                    name=Index.build_name(collection, [field.name]),
                    collection=collection,
                    fields=(field.name,),
                )
            )

        with self.db.begin() as conn:
            self._execute_ddl(
                conn, self.build_add_column_ddl(collection, field), collection=collection, field=field.name
            )
            for index in indexes:
                self._create_index(conn, index)

        logger.info(
            "Field added",
            collection=collection,
            field=field.name,
            type=field.type,
            unique=field.unique,
            indexed=field.indexed,
        )
        return True

    def ensure_index(self, collection: str, field_names: Iterable[str], unique: bool = False) -> Index:
        """Create an index over the given fields if it does not exist.

        Args:
            collection: The collection name.
            field_names: Indexed fields, in order.
            unique: Whether the index enforces uniqueness.

        Returns:
            The index descriptor.

        Raises:
            InvalidCollectionName: If the collection name fails the allow-list.
            InvalidFieldName: If no fields are given or a name is invalid.
            StructuralChangeRejected: If the engine refuses the index, or an
                index of the same name already covers another table, other
                columns or has a different uniqueness.
        """
        NameValidator.validate_collection_name(collection, self.max_identifier_length)
        if isinstance(field_names, str):
            field_names = [field_names]
        field_names = list(field_names)
        if not field_names:
            raise InvalidFieldName(field_names, "at least one field is required for an index")
        for name in field_names:
            NameValidator.validate_field_name(name, self.max_identifier_length)

        index = Index(
            name=Index.build_name(collection, field_names),
            collection=collection,
            fields=tuple(field_names),
            unique=unique,
        )
        with self.db.begin() as conn:
            self._create_index(conn, index)

        logger.info("Index ensured", collection=collection, index=index.name)
        return index

    # =========================================================================
    # Introspection
    # =========================================================================

    def collection_exists(self, name: str) -> bool:
        NameValidator.validate_collection_name(name, self.max_identifier_length)
        with self.db.begin() as conn:
            return self._table_exists(conn, name)

    def list_collections(self) -> list[Collection]:
        """List collection tables with their fields, ordered by name."""
        sql = text(
            "SELECT name FROM sqlite_master "
            "WHERE type = 'table' AND name NOT LIKE 'sqlite\\_%' ESCAPE '\\' "
            "ORDER BY name"
        )
        with self.db.begin() as conn:
            try:
                names = list(conn.execute(sql).scalars())
                return [Collection(name=n, fields=self._fetch_fields(conn, n)) for n in names]
            except DBAPIError as exc:
                raise self._read_error("list collections", exc) from exc

    def list_fields(self, collection: str) -> list[Field]:
        """List the columns of a collection in table order.

        Returns an empty list when the collection does not exist.
        """
        NameValidator.validate_collection_name(collection, self.max_identifier_length)
        with self.db.begin() as conn:
            try:
                return self._fetch_fields(conn, collection)
            except DBAPIError as exc:
                raise self._read_error("list fields", exc, collection=collection) from exc

    def list_indexes(self, collection: str) -> list[Index]:
        """List the indexes of a collection, including engine-created ones."""
        NameValidator.validate_collection_name(collection, self.max_identifier_length)
        with self.db.begin() as conn:
            try:
                return self._fetch_indexes(conn, collection)
            except DBAPIError as exc:
                raise self._read_error("list indexes", exc, collection=collection) from exc

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _table_exists(conn: Connection, name: str) -> bool:
        result = conn.execute(
            text("SELECT name FROM sqlite_master WHERE type = 'table' AND name = :name"),
            {"name": name},
        )
        return result.scalar_one_or_none() is not None

    def _fetch_indexes(self, conn: Connection, collection: str) -> list[Index]:
        index_rows = conn.execute(
            text("SELECT * FROM pragma_index_list(:table) ORDER BY name"),
            {"table": collection},
        ).mappings().all()

        indexes = []
        for row in index_rows:
            columns = conn.execute(
                text("SELECT name FROM pragma_index_info(:index) ORDER BY seqno"),
                {"index": row["name"]},
            ).scalars().all()
            indexes.append(
                Index(
                    name=row["name"],
                    collection=collection,
                    fields=tuple(columns),
                    unique=bool(row["unique"]),
                )
            )
        return indexes

    def _fetch_fields(self, conn: Connection, collection: str) -> list[Field]:
        columns = conn.execute(
            text("SELECT * FROM pragma_table_info(:table) ORDER BY cid"),
            {"table": collection},
        ).mappings().all()
        if not columns:
            return []

        unique_columns: set[str] = set()
        indexed_columns: set[str] = set()
        index_rows = conn.execute(
            text("SELECT * FROM pragma_index_list(:table)"), {"table": collection}
        ).mappings().all()
        for row in index_rows:
            if row["origin"] == "pk":
                continue
            index_columns = conn.execute(
                text("SELECT name FROM pragma_index_info(:index)"), {"index": row["name"]}
            ).scalars().all()
            if len(index_columns) != 1:
                continue
            if row["unique"]:
                unique_columns.add(index_columns[0])
            else:
                indexed_columns.add(index_columns[0])

        return [
            Field(
                name=col["name"],
                type=col["type"] or None,
                unique=col["name"] in unique_columns,
                indexed=col["name"] in indexed_columns,
                not_null=bool(col["notnull"]),
                default=col["dflt_value"],
                primary_key=bool(col["pk"]),
            )
            for col in columns
        ]

    def _create_index(self, conn: Connection, index: Index) -> None:
        """Create an index and check that the index under its name is this one.

        Index names are global to the database, so IF NOT EXISTS may keep an
        index that belongs to another table or covers other columns.
        """
        ddl = self.build_index_ddl(
            index.collection, list(index.fields), unique=index.unique, name=index.name
        )
        self._execute_ddl(conn, ddl, collection=index.collection, index=index.name)

        owner = conn.execute(
            text("SELECT tbl_name FROM sqlite_master WHERE type = 'index' AND name = :name"),
            {"name": index.name},
        ).scalar_one_or_none()
        existing = next(
            (i for i in self._fetch_indexes(conn, owner or index.collection) if i.name == index.name),
            None,
        )

        matches = (
            existing is not None
            and (owner or "").lower() == index.collection.lower()
            and [f.lower() for f in existing.fields] == [f.lower() for f in index.fields]
            and existing.unique == index.unique
        )
        if not matches:
            logger.warning(
                "Index name already taken",
                collection=index.collection,
                index=index.name,
                owner=owner,
            )
            raise StructuralChangeRejected(
                f"Index {index.name!r} already exists on {owner!r} "
                f"with a different definition"
            )

    @staticmethod
    def _execute_ddl(conn: Connection, ddl: str, **log_context: Any) -> None:
        logger.debug("Executing DDL", ddl=ddl, **log_context)
        try:
            conn.execute(text(ddl))
        except DBAPIError as exc:
            logger.warning("Structural change rejected", error=str(exc.orig), **log_context)
            raise StructuralChangeRejected(str(exc.orig)) from exc

    @staticmethod
    def _read_error(action: str, exc: DBAPIError, **log_context: Any) -> ReadError:
        logger.warning("Catalog query failed", action=action, error=str(exc.orig), **log_context)
        return ReadError(f"Failed to {action}: {exc.orig}")
