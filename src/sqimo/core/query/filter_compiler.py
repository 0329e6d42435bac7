"""Filter compiler for Mongo-like equality filters.

Compiles a filter mapping to a SQL WHERE clause fragment with named
parameter bindings.
"""

from collections.abc import Mapping
from typing import Any

from sqimo.core.exceptions import InvalidFieldName
from sqimo.domain.services.name_validator import DEFAULT_MAX_LENGTH, NameValidator
from sqimo.domain.services.value_normalizer import ValueNormalizer

NEGATION_MARKER = "!"


class FilterCompiler:
    """Compiles filter mappings to SQL WHERE clauses.

    Each entry becomes one comparison, joined with AND::

        {"name": "Bill", "!status": "archived"}
        -> '"name" = :filter_0 AND "status" != :filter_1'

    Values always travel as bound parameters. Keys are checked against the
    identifier allow-list because column names cannot be parameterized.
    """

    PARAM_PREFIX = "filter_"

    def __init__(self, max_identifier_length: int = DEFAULT_MAX_LENGTH):
        self.max_identifier_length = max_identifier_length
        self.param_counter = 0
        self.params: dict[str, Any] = {}

    def compile(self, filter: Mapping[str, Any] | None) -> tuple[str, dict[str, Any]]:
        """Compile a filter to a SQL predicate.

        Args:
            filter: Mapping of field name (optionally prefixed with ``!``) to
                a literal value. Entries are compiled in iteration order.

        Returns:
            Tuple of (SQL fragment, parameter bindings). An empty or missing
            filter compiles to ``("", {})``.

        Raises:
            InvalidFieldName: If a key fails identifier validation.
            UnsupportedValueKind: If a value has no storable representation.
        """
        self.param_counter = 0
        self.params = {}

        if not filter:
            return "", {}

        clauses = [self._compile_entry(key, value) for key, value in filter.items()]
        return " AND ".join(clauses), self.params

    def _compile_entry(self, key: Any, value: Any) -> str:
        if not isinstance(key, str):
            raise InvalidFieldName(key, "filter keys must be strings")

        negated = key.startswith(NEGATION_MARKER)
        name = key[len(NEGATION_MARKER):] if negated else key
        try:
            NameValidator.validate_field_name(name, self.max_identifier_length)
        except InvalidFieldName as exc:
            raise InvalidFieldName(key, str(exc)) from None

        column = NameValidator.quote(name)

        # NULL never compares equal; use IS / IS NOT
        if value is None:
            return f"{column} IS NOT NULL" if negated else f"{column} IS NULL"

        operator = "!=" if negated else "="
        return f"{column} {operator} {self._bind(ValueNormalizer.normalize(value, path=key))}"

    def _bind(self, value: Any) -> str:
        param_name = f"{self.PARAM_PREFIX}{self.param_counter}"
        self.param_counter += 1
        self.params[param_name] = value
        return f":{param_name}"


def compile_filter(
    filter: Mapping[str, Any] | None, max_identifier_length: int = DEFAULT_MAX_LENGTH
) -> tuple[str, dict[str, Any]]:
    """Compile a filter with a fresh compiler."""
    return FilterCompiler(max_identifier_length).compile(filter)
