"""Query translation: filter mappings to parameterized SQL."""

from sqimo.core.query.filter_compiler import NEGATION_MARKER, FilterCompiler, compile_filter

__all__ = ["FilterCompiler", "NEGATION_MARKER", "compile_filter"]
