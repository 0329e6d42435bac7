"""Core Sqimo utilities.

This module exports configuration, logging and error types for use
throughout the package.
"""

from sqimo.core.config import Settings, get_settings
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
from sqimo.core.logging import (
    LoggingContext,
    clear_context,
    configure_logging,
    ensure_logging_configured,
    get_logger,
)

__all__ = [
    "DuplicateKey",
    "InvalidCollectionName",
    "InvalidFieldDefinition",
    "InvalidFieldName",
    "LoggingContext",
    "ReadError",
    "Settings",
    "SqimoError",
    "StructuralChangeRejected",
    "UnsupportedValueKind",
    "ValidationError",
    "WriteError",
    "clear_context",
    "configure_logging",
    "ensure_logging_configured",
    "get_logger",
    "get_settings",
]
