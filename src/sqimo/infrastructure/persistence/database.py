"""Database engine management using SQLAlchemy 2.0.

Each store owns one DatabaseManager, and each manager owns one engine bound
to exactly one SQLite connection (StaticPool). Every operation runs in its
own ``begin()`` block on that connection.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import Connection, Engine, create_engine, event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from sqimo.core.config import Settings, get_settings
from sqimo.core.logging import get_logger

logger = get_logger(__name__)

MEMORY_URL = "sqlite://"


def build_database_url(connection_string: str | None) -> str:
    """Turn a connection target into a SQLAlchemy URL.

    Args:
        connection_string: A filesystem path, ``:memory:``, a full
            ``sqlite`` URL, or None for an in-memory database.

    Returns:
        The SQLAlchemy URL.
    """
    if not connection_string or connection_string == ":memory:":
        return MEMORY_URL
    if connection_string.startswith("sqlite"):
        return connection_string
    return f"sqlite:///{connection_string}"


def apply_sqlite_pragmas(dbapi_connection: Any, settings: Settings, in_memory: bool) -> None:
    """Apply the configured pragmas to a fresh DBAPI connection."""
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute(f"PRAGMA busy_timeout = {int(settings.db_sqlite_busy_timeout)}")
        cursor.execute(f"PRAGMA foreign_keys = {'ON' if settings.db_sqlite_foreign_keys else 'OFF'}")
        # Values are restricted to SQLite keywords by Settings validators
        cursor.execute(f"PRAGMA synchronous = {settings.db_sqlite_synchronous}")
        if not in_memory:
            cursor.execute(f"PRAGMA journal_mode = {settings.db_sqlite_journal_mode}")
    finally:
        cursor.close()


class DatabaseManager:
    """Database engine manager.

    Builds the engine lazily, applies SQLite pragmas on connect and provides
    a transactional scope for statements.
    """

    def __init__(self, connection_string: str | None = None, settings: Settings | None = None) -> None:
        """Initialize the database manager.

        Args:
            connection_string: Connection target. Falls back to
                ``settings.database_path``.
            settings: Optional settings instance.
        """
        self.settings = settings or get_settings()
        self.url = build_database_url(connection_string or self.settings.database_path)
        self._engine: Engine | None = None

    @property
    def is_in_memory(self) -> bool:
        return self.url in (MEMORY_URL, "sqlite:///:memory:")

    @property
    def engine(self) -> Engine:
        """Get or create the database engine."""
        if self._engine is None:
            if not self.is_in_memory:
                self._ensure_directory()

            self._engine = create_engine(
                self.url,
                echo=self.settings.db_echo,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )

            settings = self.settings
            in_memory = self.is_in_memory

            @event.listens_for(self._engine, "connect")
            def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
                # Hand transaction control to the "begin" listener so DDL is transactional
                dbapi_connection.isolation_level = None
                apply_sqlite_pragmas(dbapi_connection, settings, in_memory)

            @event.listens_for(self._engine, "begin")
            def _on_begin(conn: Connection) -> None:
                conn.exec_driver_sql("BEGIN")

            logger.info(
                "Database engine created",
                database_url=self._engine.url.render_as_string(hide_password=True),
                in_memory=in_memory,
            )
        return self._engine

    @contextmanager
    def begin(self) -> Iterator[Connection]:
        """Provide a transactional scope for one operation.

        Commits when the block exits normally and rolls back when it raises.
        DDL statements take part in the transaction, so a multi-statement
        structural change is applied whole or not at all.

        Yields:
            Connection: The store's single connection.
        """
        with self.engine.begin() as conn:
            yield conn

    def check_connection(self) -> bool:
        """Check if the database connection is working."""
        try:
            with self.begin() as conn:
                conn.execute(text("SELECT 1"))
            logger.debug("Database connection check successful")
            return True
        except SQLAlchemyError as e:
            logger.error("Database connection check failed", error=str(e))
            return False

    def dispose(self) -> None:
        """Close the engine and its connection."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            logger.info("Database engine disposed")

    def _ensure_directory(self) -> None:
        db_path = self.url.split(":///", 1)[-1]
        if db_path and db_path != ":memory:":
            db_dir = Path(db_path).parent
            db_dir.mkdir(parents=True, exist_ok=True)
