"""Configuration management for Sqimo.

This module uses Pydantic Settings to load and validate configuration from
environment variables and .env files. A store reads its settings once at
construction time.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SQLITE_JOURNAL_MODES = frozenset({"DELETE", "TRUNCATE", "PERSIST", "MEMORY", "WAL", "OFF"})
SQLITE_SYNCHRONOUS_MODES = frozenset({"OFF", "NORMAL", "FULL", "EXTRA"})


class Settings(BaseSettings):
    """Store configuration settings.

    Settings are loaded from environment variables prefixed with ``SQIMO_``
    and from a local ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SQIMO_",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["development", "production", "testing"] = "development"

    # Database Settings
    database_path: str | None = Field(
        default=None,
        description="Path to the SQLite file; in-memory database when unset",
    )
    db_echo: bool = False

    # SQLite Pragmas
    db_sqlite_journal_mode: str = "WAL"
    db_sqlite_synchronous: str = "NORMAL"
    db_sqlite_busy_timeout: int = 5000  # 5 seconds
    db_sqlite_foreign_keys: bool = True

    # Identifier Settings
    max_identifier_length: int = Field(default=64, ge=1, le=255)

    # Logging Settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "console"] = "json"

    @field_validator("db_sqlite_journal_mode")
    @classmethod
    def validate_journal_mode(cls, v: str) -> str:
        """Restrict journal mode to values SQLite accepts."""
        mode = v.upper()
        if mode not in SQLITE_JOURNAL_MODES:
            raise ValueError(
                f"Invalid journal mode '{v}'. Valid modes: {', '.join(sorted(SQLITE_JOURNAL_MODES))}"
            )
        return mode

    @field_validator("db_sqlite_synchronous")
    @classmethod
    def validate_synchronous(cls, v: str) -> str:
        """Restrict synchronous setting to values SQLite accepts."""
        mode = v.upper()
        if mode not in SQLITE_SYNCHRONOUS_MODES:
            raise ValueError(
                f"Invalid synchronous mode '{v}'. Valid modes: {', '.join(sorted(SQLITE_SYNCHRONOUS_MODES))}"
            )
        return mode

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.environment == "testing"

    @property
    def is_in_memory(self) -> bool:
        """Whether the configured database lives in memory."""
        return not self.database_path or self.database_path == ":memory:"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: Cached settings loaded from the environment.
    """
    return Settings()
