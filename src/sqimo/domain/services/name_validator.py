"""Identifier validation for collection and field names.

Names end up in SQL identifier positions, which cannot be bound as
parameters. Every name is checked against an allow-list before it is placed
into statement text, and then double-quoted.
"""

import re

from sqimo.core.exceptions import InvalidCollectionName, InvalidFieldName

# Letters, digits and underscores; must not start with a digit
NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# SQLite reserves this prefix for its own catalog tables
RESERVED_TABLE_PREFIX = "sqlite_"

DEFAULT_MAX_LENGTH = 64


class NameValidator:
    """Validator for identifiers used as table, column and index names."""

    @classmethod
    def is_valid(cls, name: object, max_length: int = DEFAULT_MAX_LENGTH) -> bool:
        """Check a name against the identifier allow-list without raising."""
        return (
            isinstance(name, str)
            and 0 < len(name) <= max_length
            and NAME_PATTERN.match(name) is not None
        )

    @classmethod
    def validate_collection_name(cls, name: object, max_length: int = DEFAULT_MAX_LENGTH) -> str:
        """Validate a collection name.

        Args:
            name: The collection name to validate.
            max_length: Maximum accepted length.

        Returns:
            The name, unchanged.

        Raises:
            InvalidCollectionName: If the name is empty, too long, contains
                characters outside the allow-list or uses the reserved prefix.
        """
        reason = cls._check(name, max_length)
        if reason is None and name.lower().startswith(RESERVED_TABLE_PREFIX):
            reason = f"names starting with '{RESERVED_TABLE_PREFIX}' are reserved"
        if reason is not None:
            raise InvalidCollectionName(name, reason)
        return name

    @classmethod
    def validate_field_name(cls, name: object, max_length: int = DEFAULT_MAX_LENGTH) -> str:
        """Validate a field name.

        Raises:
            InvalidFieldName: If the name fails the allow-list.
        """
        reason = cls._check(name, max_length)
        if reason is not None:
            raise InvalidFieldName(name, reason)
        return name

    @classmethod
    def quote(cls, name: str) -> str:
        """Quote an already validated identifier for use in SQL text."""
        return f'"{name}"'

    @classmethod
    def _check(cls, name: object, max_length: int) -> str | None:
        if not isinstance(name, str):
            return "must be a string"
        if not name:
            return "must not be empty"
        if len(name) > max_length:
            return f"must be at most {max_length} characters"
        if not NAME_PATTERN.match(name):
            return "must start with a letter or underscore and contain only letters, digits and underscores"
        return None
