"""Repository for document operations on collection tables.

Uses raw SQL since collection tables are created dynamically and are not
mapped to ORM models. Every value travels as a bound parameter; every
identifier is validated and quoted before it reaches statement text.
"""

import copy
from collections.abc import Mapping
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, IntegrityError

from sqimo.core.exceptions import DuplicateKey, ReadError, UnsupportedValueKind, WriteError
from sqimo.core.logging import get_logger
from sqimo.core.query import FilterCompiler
from sqimo.domain.entities import ID_FIELD
from sqimo.domain.services.id_generator import IdGenerator
from sqimo.domain.services.name_validator import DEFAULT_MAX_LENGTH, NameValidator
from sqimo.domain.services.value_normalizer import ValueNormalizer
from sqimo.infrastructure.persistence.database import DatabaseManager

logger = get_logger(__name__)

UNIQUE_VIOLATION_CODES = frozenset({"SQLITE_CONSTRAINT_UNIQUE", "SQLITE_CONSTRAINT_PRIMARYKEY"})


def is_unique_violation(exc: IntegrityError) -> bool:
    """Check whether an integrity error is a primary key or unique collision."""
    error_name = getattr(exc.orig, "sqlite_errorname", None)
    if error_name is not None:
        return error_name in UNIQUE_VIOLATION_CODES
    return "UNIQUE constraint failed" in str(exc.orig)


class DocumentRepository:
    """Repository for document database operations."""

    def __init__(
        self,
        db: DatabaseManager,
        id_generator: IdGenerator | None = None,
        max_identifier_length: int = DEFAULT_MAX_LENGTH,
    ) -> None:
        """Initialize the repository.

        Args:
            db: Database manager owning the store's connection.
            id_generator: Generator for missing ``_id`` values.
            max_identifier_length: Longest accepted collection or field name.
        """
        self.db = db
        self.id_generator = id_generator or IdGenerator()
        self.max_identifier_length = max_identifier_length

    def insert(self, collection: str, document: Mapping[str, Any]) -> dict[str, Any]:
        """Insert a document into a collection table.

        Assigns ``_id`` when the document has none, normalizes every value and
        executes a single INSERT. Nothing is written unless every name and
        value is acceptable.

        Args:
            collection: The collection name.
            document: The document to insert. Not modified.

        Returns:
            A copy of the document with ``_id`` first.

        Raises:
            InvalidCollectionName: If the collection name is invalid.
            InvalidFieldName: If a document key is invalid.
            UnsupportedValueKind: If a value has no storable representation.
            DuplicateKey: If ``_id`` or a unique field collides.
            WriteError: If the engine rejects the insert for another reason.
        """
        NameValidator.validate_collection_name(collection, self.max_identifier_length)
        if not isinstance(document, Mapping):
            raise UnsupportedValueKind(document)

        for key in document:
            NameValidator.validate_field_name(key, self.max_identifier_length)

        document_id = document.get(ID_FIELD)
        if document_id is None or document_id == "":
            document_id = self.id_generator.next()
        elif not isinstance(document_id, str):
            raise UnsupportedValueKind(document_id, ID_FIELD)

        fields = {key: value for key, value in document.items() if key != ID_FIELD}
        sql_values = {ID_FIELD: document_id, **ValueNormalizer.normalize_document(fields)}

        # Positional parameter names; field names may collide with bind syntax
        columns = ", ".join(NameValidator.quote(k) for k in sql_values)
        placeholders = ", ".join(f":p{i}" for i in range(len(sql_values)))
        params = {f"p{i}": value for i, value in enumerate(sql_values.values())}

        insert_sql = (
            f"INSERT INTO {NameValidator.quote(collection)} ({columns}) VALUES ({placeholders})"
        )

        logger.debug("Inserting document", collection=collection, document_id=document_id)

        try:
            with self.db.begin() as conn:
                conn.execute(text(insert_sql), params)
        except IntegrityError as exc:
            logger.warning(
                "Insert rejected", collection=collection, document_id=document_id, error=str(exc.orig)
            )
            if is_unique_violation(exc):
                raise DuplicateKey(str(exc.orig)) from exc
            raise WriteError(str(exc.orig)) from exc
        except DBAPIError as exc:
            logger.warning(
                "Insert rejected", collection=collection, document_id=document_id, error=str(exc.orig)
            )
            raise WriteError(str(exc.orig)) from exc

        logger.info("Document inserted", collection=collection, document_id=document_id)

        # Return the caller's values (not SQL-converted), detached from the caller's object
        return {ID_FIELD: document_id, **copy.deepcopy(fields)}

    def find(
        self,
        collection: str,
        filter: Mapping[str, Any] | None = None,
        skip: int = 0,
        limit: int | None = None,
        sort_by: str | None = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        """Find documents matching a filter.

        Serialized structured values are returned as the stored JSON text.

        Args:
            collection: The collection name.
            filter: Equality filter; keys prefixed with ``!`` negate.
            skip: Number of documents to skip.
            limit: Maximum number of documents to return, None for all.
            sort_by: Field to sort by. Unsorted when None.
            descending: Whether to sort in descending order.

        Returns:
            Matching documents; empty when nothing matches.

        Raises:
            InvalidCollectionName: If the collection name is invalid.
            InvalidFieldName: If a filter key or ``sort_by`` is invalid.
            ReadError: If the engine rejects the query.
        """
        NameValidator.validate_collection_name(collection, self.max_identifier_length)
        if skip < 0:
            raise ValueError("skip must not be negative")
        if limit is not None and limit < 0:
            raise ValueError("limit must not be negative")

        where_clause, params = FilterCompiler(self.max_identifier_length).compile(filter)

        select_sql = f"SELECT * FROM {NameValidator.quote(collection)}"
        if where_clause:
            select_sql += f" WHERE {where_clause}"

        if sort_by is not None:
            NameValidator.validate_field_name(sort_by, self.max_identifier_length)
            select_sql += f" ORDER BY {NameValidator.quote(sort_by)} {'DESC' if descending else 'ASC'}"

        if limit is not None or skip:
            # SQLite only accepts OFFSET after LIMIT; -1 means no limit
            select_sql += " LIMIT :limit OFFSET :skip"
            params["limit"] = -1 if limit is None else limit
            params["skip"] = skip

        logger.debug("Finding documents", collection=collection, sql=select_sql)

        try:
            with self.db.begin() as conn:
                rows = conn.execute(text(select_sql), params).mappings().all()
        except DBAPIError as exc:
            logger.warning("Find rejected", collection=collection, error=str(exc.orig))
            raise ReadError(str(exc.orig)) from exc

        return [dict(row) for row in rows]

    def find_one(self, collection: str, filter: Mapping[str, Any] | None = None) -> dict[str, Any] | None:
        """Find the first document matching a filter, or None."""
        documents = self.find(collection, filter, limit=1)
        return documents[0] if documents else None

    def count(self, collection: str, filter: Mapping[str, Any] | None = None) -> int:
        """Count documents matching a filter."""
        NameValidator.validate_collection_name(collection, self.max_identifier_length)
        where_clause, params = FilterCompiler(self.max_identifier_length).compile(filter)

        count_sql = f"SELECT COUNT(*) FROM {NameValidator.quote(collection)}"
        if where_clause:
            count_sql += f" WHERE {where_clause}"

        try:
            with self.db.begin() as conn:
                return conn.execute(text(count_sql), params).scalar_one()
        except DBAPIError as exc:
            logger.warning("Count rejected", collection=collection, error=str(exc.orig))
            raise ReadError(str(exc.orig)) from exc

    def execute_raw(self, sql: str, params: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        """Execute caller-supplied SQL with named bound parameters.

        Returns:
            Result rows as dicts; empty for statements without result rows.

        Raises:
            ReadError: If the engine rejects the statement.
        """
        logger.debug("Executing raw query", sql=sql)
        try:
            with self.db.begin() as conn:
                result = conn.execute(text(sql), dict(params or {}))
                if not result.returns_rows:
                    return []
                return [dict(row) for row in result.mappings().all()]
        except DBAPIError as exc:
            logger.warning("Raw query rejected", error=str(exc.orig))
            raise ReadError(str(exc.orig)) from exc
