"""
Storage - Database.

============================================================
RESPONSIBILITY
============================================================
Manages database connections and sessions.

- Creates the SQLAlchemy engine for a URL
- Session factory and transaction boundaries
- Table creation and connection checks

Requirements:
- SQLAlchemy ORM (SQLite by default, any SQLAlchemy URL)
- Explicit transaction management
- Hard failures on persistence errors

============================================================
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from storage.models.base import Base


logger = logging.getLogger(__name__)


# =============================================================
# EXCEPTIONS
# =============================================================

class DatabasePersistenceError(Exception):
    """Raised when database persistence fails."""
    pass


class DatabaseConnectionError(DatabasePersistenceError):
    """Raised when database connection fails."""
    pass


class DatabaseInitializationError(DatabasePersistenceError):
    """Raised when database initialization fails."""
    pass


# =============================================================
# DATABASE
# =============================================================

def _redact(url: str) -> str:
    return url.split("@")[-1]


class Database:
    """
    Engine and session factory for one database URL.

    Usage:
        db = Database("sqlite:///treasury.db")
        db.initialize()
        with db.transaction_scope() as session:
            ...
    """

    def __init__(self, url: str, echo: bool = False):
        """
        Args:
            url: SQLAlchemy database URL
            echo: Log SQL statements
        """
        self._url = url
        self._engine = self._create_engine(url, echo)
        self._session_factory = sessionmaker(
            bind=self._engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )

    @staticmethod
    def _create_engine(url: str, echo: bool) -> Engine:
        logger.info(f"Creating database engine for: {_redact(url)}")

        kwargs = {"echo": echo, "future": True}
        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if url in ("sqlite://", "sqlite:///:memory:"):
                # One shared connection, or each session sees an empty database
                kwargs["poolclass"] = StaticPool
        else:
            kwargs["pool_pre_ping"] = True

        engine = create_engine(url, **kwargs)

        @event.listens_for(engine, "connect")
        def on_connect(dbapi_conn, connection_record):
            logger.debug("Database connection established")

        return engine

    @property
    def url(self) -> str:
        return self._url

    @property
    def engine(self) -> Engine:
        return self._engine

    # ---------------------------------------------------------
    # SESSIONS
    # ---------------------------------------------------------

    def get_session(self) -> Session:
        """
        Get a new database session.

        IMPORTANT: Caller is responsible for committing/closing.
        Prefer transaction_scope().
        """
        return self._session_factory()

    @contextmanager
    def transaction_scope(self) -> Generator[Session, None, None]:
        """
        Context manager for explicit transaction boundaries.

        Commits only if no exception occurs.
        Rolls back on ANY exception and re-raises it.
        """
        session = self.get_session()
        try:
            yield session
            session.commit()
            logger.debug("Database transaction committed successfully")
        except Exception as e:
            logger.error(f"Database transaction failed, rolling back: {e}")
            session.rollback()
            raise
        finally:
            session.close()

    # ---------------------------------------------------------
    # INITIALIZATION
    # ---------------------------------------------------------

    def verify_connection(self) -> bool:
        """
        Raises:
            DatabaseConnectionError if connection fails
        """
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()
            logger.info("Database connection verified successfully")
            return True
        except OperationalError as e:
            logger.error(f"Database connection failed: {e}")
            raise DatabaseConnectionError(f"Cannot connect to database: {e}") from e

    def create_all_tables(self) -> None:
        """
        Raises:
            DatabaseInitializationError if table creation fails
        """
        # Registers the models with Base.metadata
        from storage.models import treasury  # noqa: F401

        try:
            Base.metadata.create_all(bind=self._engine)
            logger.info("Database tables created successfully")
        except SQLAlchemyError as e:
            logger.error(f"Failed to create database tables: {e}")
            raise DatabaseInitializationError(f"Table creation failed: {e}") from e

    def initialize(self) -> None:
        """Verify connection and create tables. Call at startup."""
        self.verify_connection()
        self.create_all_tables()

    def dispose(self) -> None:
        """Close all pooled connections."""
        self._engine.dispose()


def create_database(url: str, echo: bool = False, initialize: bool = True) -> Database:
    """Create a Database and optionally initialize its tables."""
    database = Database(url, echo=echo)
    if initialize:
        database.initialize()
    return database


__all__ = [
    "Database",
    "create_database",
    "DatabasePersistenceError",
    "DatabaseConnectionError",
    "DatabaseInitializationError",
]
