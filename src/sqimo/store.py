"""Collection store facade.

Sqimo presents SQLite tables as document collections. It composes the
schema manager, the document repository, the filter compiler and the value
normalizer over a single database connection.

Example:
    with Sqimo() as db:
        db.create_collection("users", [{"name": "name", "index": True}])
        db.insert("users", {"name": "Bill", "tags": ["admin"]})
        db.find("users", {"!name": "Amy"})
"""

from collections.abc import Iterable, Mapping
from typing import Any

from sqimo.core.config import Settings, get_settings
from sqimo.core.logging import ensure_logging_configured, get_logger
from sqimo.domain.entities import Collection, Field, Index
from sqimo.domain.services.id_generator import IdGenerator
from sqimo.infrastructure.persistence.database import DatabaseManager
from sqimo.infrastructure.persistence.repositories import DocumentRepository
from sqimo.infrastructure.persistence.schema_manager import SchemaManager

logger = get_logger(__name__)


class Sqimo:
    """Document store over a single SQLite connection.

    Every method is one synchronous round-trip to the engine. No locking is
    added; share an instance across threads only behind your own lock.
    """

    def __init__(
        self,
        connection_string: str | None = None,
        settings: Settings | None = None,
        id_generator: IdGenerator | None = None,
    ) -> None:
        """Open a store.

        Logging is configured from ``settings`` unless structlog has already
        been configured, e.g. by the host application or the CLI.

        Args:
            connection_string: Path to a database file, a ``sqlite`` URL, or
                None for an in-memory database (or ``settings.database_path``
                when configured).
            settings: Optional settings instance.
            id_generator: Optional generator for document identifiers.
        """
        self.settings = settings or get_settings()
        ensure_logging_configured(self.settings)
        self.db = DatabaseManager(connection_string, self.settings)
        max_length = self.settings.max_identifier_length
        self.schema = SchemaManager(self.db, max_identifier_length=max_length)
        self.documents = DocumentRepository(
            self.db, id_generator=id_generator, max_identifier_length=max_length
        )
        logger.info("Store opened", in_memory=self.db.is_in_memory)

    def __enter__(self) -> "Sqimo":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        """Release the underlying connection."""
        self.db.dispose()

    # =========================================================================
    # Schema
    # =========================================================================

    def create_collection(
        self, name: str, fields: Iterable[Field | Mapping[str, Any]] = ()
    ) -> Collection:
        """Create a collection if absent and add any missing declared fields."""
        return self.schema.create_collection(name, fields)

    def add_field(self, collection: str, field: Field | Mapping[str, Any]) -> bool:
        """Add a field if absent. Returns False when it already existed."""
        return self.schema.add_field(collection, field)

    def ensure_index(
        self, collection: str, fields: Iterable[str], unique: bool = False
    ) -> Index:
        """Create ``<collection>_<fields>_index`` if absent."""
        return self.schema.ensure_index(collection, fields, unique=unique)

    def list_collections(self) -> list[Collection]:
        return self.schema.list_collections()

    def list_fields(self, collection: str) -> list[Field]:
        return self.schema.list_fields(collection)

    def list_indexes(self, collection: str) -> list[Index]:
        return self.schema.list_indexes(collection)

    def collection_exists(self, name: str) -> bool:
        return self.schema.collection_exists(name)

    # =========================================================================
    # Documents
    # =========================================================================

    def insert(self, collection: str, document: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Insert a document, assigning ``_id`` when absent.

        Returns:
            The persisted document: the caller's fields plus ``_id``.
        """
        return self.documents.insert(collection, document if document is not None else {})

    def find(
        self,
        collection: str,
        filter: Mapping[str, Any] | None = None,
        *,
        skip: int = 0,
        limit: int | None = None,
        sort_by: str | None = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        """Find documents matching an equality filter.

        Keys prefixed with ``!`` compare with ``!=``. An empty filter matches
        every document.
        """
        return self.documents.find(
            collection,
            filter,
            skip=skip,
            limit=limit,
            sort_by=sort_by,
            descending=descending,
        )

    def find_one(self, collection: str, filter: Mapping[str, Any] | None = None) -> dict[str, Any] | None:
        return self.documents.find_one(collection, filter)

    def count(self, collection: str, filter: Mapping[str, Any] | None = None) -> int:
        return self.documents.count(collection, filter)

    def query(self, sql: str, params: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        """Run caller-supplied SQL with named bound parameters.

        The caller is responsible for the statement text; only values passed
        in ``params`` are bound safely.
        """
        return self.documents.execute_raw(sql, params)
