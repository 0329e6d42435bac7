"""Domain services for Sqimo.

Services contain logic that doesn't naturally fit within a single entity.
They have no dependencies on the storage engine.
"""

from sqimo.domain.services.id_generator import IdGenerator, generate_id
from sqimo.domain.services.name_validator import NAME_PATTERN, NameValidator
from sqimo.domain.services.value_normalizer import (
    StorableScalar,
    ValueKind,
    ValueNormalizer,
)

__all__ = [
    "IdGenerator",
    "NAME_PATTERN",
    "NameValidator",
    "StorableScalar",
    "ValueKind",
    "ValueNormalizer",
    "generate_id",
]
