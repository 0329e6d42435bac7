"""Collection, field and index entities.

A collection is a table presented as a document collection. Its fields are
columns; the reserved ``_id`` field is the TEXT primary key of every
collection table.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

ID_FIELD = "_id"


@dataclass(frozen=True)
class Field:
    """A column of a collection table.

    Structural attributes are fixed when the column is first created;
    declaring the same field again never alters it.

    Attributes:
        name: Column name, unique within the collection.
        type: Engine-native type name. None means the engine default.
        unique: Whether values must be unique.
        indexed: Whether a single-column index is maintained.
        not_null: Whether NULL values are rejected.
        default: Raw SQL literal, or an int/float/bool rendered as one.
        primary_key: Whether the column is the primary key (only ``_id``).
    """

    name: str
    type: str | None = None
    unique: bool = False
    indexed: bool = False
    not_null: bool = False
    default: str | int | float | bool | None = None
    primary_key: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Field":
        """Build a field from its mapping form.

        ``index`` is accepted as an alias of ``indexed``.
        """
        if not isinstance(data, Mapping):
            raise TypeError(f"Field definition must be a mapping, got {type(data).__name__}")
        return cls(
            name=data.get("name"),
            type=data.get("type"),
            unique=bool(data.get("unique", False)),
            indexed=bool(data.get("indexed", data.get("index", False))),
            not_null=bool(data.get("not_null", False)),
            default=data.get("default"),
        )

    @classmethod
    def coerce(cls, value: "Field | Mapping[str, Any]") -> "Field":
        """Return a Field for either a Field or its mapping form."""
        if isinstance(value, cls):
            return value
        return cls.from_dict(value)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "unique": self.unique,
            "indexed": self.indexed,
            "not_null": self.not_null,
            "default": self.default,
            "primary_key": self.primary_key,
        }


@dataclass(frozen=True)
class Index:
    """An index over one or more fields of a collection."""

    name: str
    collection: str
    fields: tuple[str, ...]
    unique: bool = False

    @staticmethod
    def build_name(collection: str, field_names: list[str] | tuple[str, ...]) -> str:
        """Compute the deterministic index name ``<collection>_<f1>_<f2>..._index``."""
        return f"{collection}_{'_'.join(field_names)}_index"

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "collection": self.collection,
            "fields": list(self.fields),
            "unique": self.unique,
        }


@dataclass
class Collection:
    """A named table presented as a document collection.

    Attributes:
        name: Collection (table) name.
        fields: Columns in table order, always starting with ``_id``.
    """

    name: str
    fields: list[Field] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Collection name is required")

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    def get_field(self, name: str) -> Field | None:
        return next((f for f in self.fields if f.name == name), None)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "fields": [f.to_dict() for f in self.fields]}
