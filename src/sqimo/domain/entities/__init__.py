"""Domain entities for Sqimo.

Entities are plain dataclasses describing collections and their columns.
They have no dependencies on the storage engine.
"""

from sqimo.domain.entities.collection import ID_FIELD, Collection, Field, Index

__all__ = [
    "Collection",
    "Field",
    "ID_FIELD",
    "Index",
]
