"""Sqimo - document collections on top of SQLite.

Presents SQLite tables as loosely-typed document collections, queried with
a small Mongo-like equality filter language compiled to parameterized SQL.
"""

__version__ = "0.1.0"

from sqimo.core.exceptions import (
    DuplicateKey,
    InvalidCollectionName,
    InvalidFieldDefinition,
    InvalidFieldName,
    ReadError,
    SqimoError,
    StructuralChangeRejected,
    UnsupportedValueKind,
    ValidationError,
    WriteError,
)
from sqimo.domain.entities import Collection, Field, Index
from sqimo.domain.services import IdGenerator, generate_id
from sqimo.store import Sqimo

__all__ = [
    "Collection",
    "DuplicateKey",
    "Field",
    "IdGenerator",
    "Index",
    "InvalidCollectionName",
    "InvalidFieldDefinition",
    "InvalidFieldName",
    "ReadError",
    "Sqimo",
    "SqimoError",
    "StructuralChangeRejected",
    "UnsupportedValueKind",
    "ValidationError",
    "WriteError",
    "__version__",
    "generate_id",
]
