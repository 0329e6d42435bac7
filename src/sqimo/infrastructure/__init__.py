"""Infrastructure layer - Storage engine adapters.

This layer contains everything that talks to SQLite through SQLAlchemy:
engine management, schema management and document repositories.
"""

from sqimo.infrastructure.persistence.database import DatabaseManager, build_database_url
from sqimo.infrastructure.persistence.repositories import DocumentRepository
from sqimo.infrastructure.persistence.schema_manager import SchemaManager

__all__ = [
    "DatabaseManager",
    "DocumentRepository",
    "SchemaManager",
    "build_database_url",
]
