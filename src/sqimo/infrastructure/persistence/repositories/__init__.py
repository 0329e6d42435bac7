"""Persistence repositories for database operations."""

from sqimo.infrastructure.persistence.repositories.document_repository import (
    DocumentRepository,
)

__all__ = [
    "DocumentRepository",
]
