"""Pytest configuration for all tests."""

from collections.abc import Generator

import pytest
import structlog

from sqimo.core.config import Settings, get_settings
from sqimo.store import Sqimo


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment and any local .env file."""
    return Settings(_env_file=None, environment="testing", database_path=None)


@pytest.fixture
def store(settings: Settings) -> Generator[Sqimo, None, None]:
    """Create an in-memory store."""
    db = Sqimo(settings=settings)
    yield db
    db.close()


@pytest.fixture
def file_store(settings: Settings, tmp_path) -> Generator[Sqimo, None, None]:
    """Create a store backed by a database file under a temporary directory."""
    db = Sqimo(str(tmp_path / "data" / "sqimo.db"), settings=settings)
    yield db
    db.close()


@pytest.fixture
def users(store: Sqimo) -> Sqimo:
    """Store with a ``users`` collection holding a ``name`` field."""
    store.create_collection("users", [{"name": "name"}])
    return store


@pytest.fixture(autouse=True)
def _reset_settings_cache() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _reset_structlog() -> Generator[None, None, None]:
    """Start every test with structlog unconfigured."""
    structlog.reset_defaults()
    yield
    structlog.reset_defaults()
