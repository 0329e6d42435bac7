"""Exceptions raised by the document store.

Every failure surfaced to callers derives from SqimoError. Engine errors are
wrapped (with the original exception chained) so callers never need to import
SQLAlchemy to handle them.
"""


class SqimoError(Exception):
    """Base class for all store errors."""
    pass


class ValidationError(SqimoError):
    """Raised before any statement runs when caller input is unusable."""
    pass


class InvalidCollectionName(ValidationError):
    """Raised when a collection name fails the identifier allow-list."""

    def __init__(self, name: object, reason: str | None = None):
        self.name = name
        message = f"Invalid collection name {name!r}"
        super().__init__(f"{message}: {reason}" if reason else message)


class InvalidFieldName(ValidationError):
    """Raised when a field name or filter key fails the identifier allow-list."""

    def __init__(self, name: object, reason: str | None = None):
        self.name = name
        message = f"Invalid field name {name!r}"
        super().__init__(f"{message}: {reason}" if reason else message)


class InvalidFieldDefinition(ValidationError):
    """Raised when a field's type name or default literal is not acceptable."""
    pass


class UnsupportedValueKind(ValidationError):
    """Raised when a value has no storable representation."""

    def __init__(self, value: object, path: str | None = None):
        self.value_type = type(value).__name__
        self.path = path
        location = f" at {path!r}" if path else ""
        super().__init__(f"Unsupported value of type {self.value_type}{location}")


class StructuralChangeRejected(SqimoError):
    """Raised when the engine refuses a schema change."""
    pass


class WriteError(SqimoError):
    """Raised when the engine rejects a data modification statement."""
    pass


class DuplicateKey(WriteError):
    """Raised when an insert collides on the identifier or a unique field."""
    pass


class ReadError(SqimoError):
    """Raised when the engine rejects a query."""
    pass
