"""Value normalization for document fields.

Converts in-memory document values into scalars SQLite can store. Scalars
pass through, booleans become 0/1, temporal values become ISO-8601 text and
nested structures are serialized to JSON text.
"""

import json
from collections.abc import Mapping
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Union

from sqimo.core.exceptions import UnsupportedValueKind

StorableScalar = Union[None, int, float, str, bytes]


class ValueKind(str, Enum):
    """Kinds of document values with a defined storable representation."""

    NULL = "null"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    REAL = "real"
    TEXT = "text"
    BLOB = "blob"
    TEMPORAL = "temporal"
    STRUCTURED = "structured"


class ValueNormalizer:
    """Normalizes document values into storable scalars."""

    @classmethod
    def classify(cls, value: Any) -> ValueKind:
        """Determine the kind of a value.

        Args:
            value: Any document value.

        Returns:
            The value's kind.

        Raises:
            UnsupportedValueKind: If the value has no storable representation.
        """
        if value is None:
            return ValueKind.NULL
        # bool is a subclass of int, check it first
        if isinstance(value, bool):
            return ValueKind.BOOLEAN
        if isinstance(value, int):
            return ValueKind.INTEGER
        if isinstance(value, float):
            return ValueKind.REAL
        if isinstance(value, str):
            return ValueKind.TEXT
        if isinstance(value, (bytes, bytearray, memoryview)):
            return ValueKind.BLOB
        if isinstance(value, (date, time)):
            return ValueKind.TEMPORAL
        if isinstance(value, (Mapping, list, tuple)):
            return ValueKind.STRUCTURED
        raise UnsupportedValueKind(value)

    @classmethod
    def normalize(cls, value: Any, path: str | None = None) -> StorableScalar:
        """Convert a value into a storable scalar.

        Args:
            value: The value to convert.
            path: Optional field name, used in error messages.

        Returns:
            The storable representation.

        Raises:
            UnsupportedValueKind: If the value, or anything nested in it, has
                no storable representation.
        """
        try:
            kind = cls.classify(value)
        except UnsupportedValueKind:
            raise UnsupportedValueKind(value, path) from None

        if kind is ValueKind.BOOLEAN:
            return 1 if value else 0
        if kind is ValueKind.BLOB:
            return bytes(value)
        if kind is ValueKind.TEMPORAL:
            return value.isoformat()
        if kind is ValueKind.STRUCTURED:
            return cls._serialize(value, path)
        return value

    @classmethod
    def normalize_document(cls, document: Mapping[str, Any]) -> dict[str, StorableScalar]:
        """Normalize every value of a document."""
        return {key: cls.normalize(value, path=key) for key, value in document.items()}

    @classmethod
    def _serialize(cls, value: Any, path: str | None) -> str:
        rejected: list[Any] = []

        def encode_nested(obj: Any) -> Any:
            if isinstance(obj, (date, time)):
                return obj.isoformat()
            if isinstance(obj, Mapping):
                return dict(obj)
            rejected.append(obj)
            raise TypeError(type(obj).__name__)

        try:
            return json.dumps(value, default=encode_nested, ensure_ascii=False)
        except (TypeError, ValueError):
            # ValueError covers circular references; TypeError covers bad keys
            offending = rejected[-1] if rejected else value
            raise UnsupportedValueKind(offending, path) from None
