"""Administrative client for the shared PostgreSQL server.

Each spark owns one logical database on the shared server. This module
creates and drops those databases; it never touches their contents.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from urllib.parse import quote_plus

from sqlalchemy import create_engine, text
from sqlalchemy.dialects import postgresql
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError

if TYPE_CHECKING:
    from sparkdev.config import PostgresConfig

logger = logging.getLogger(__name__)

_PREPARER = postgresql.dialect().identifier_preparer


class DatabaseError(Exception):
    """Base exception for database administration errors."""

    pass


class DatabaseConnectionError(DatabaseError):
    """Raised when the database server is unreachable or rejects the login."""

    pass


class DatabaseExistsError(DatabaseError):
    """Raised when creating a database that already exists."""

    pass


def build_connection_string(host: str, port: str, user: str, database: str) -> str:
    """Build a libpq parameter-list connection string.

    The password is deliberately absent; it is supplied separately.
    """
    return f"host={host} port={port} user={user} dbname={database} sslmode=disable"


def build_connection_uri(host: str, port: str, user: str, password: str, database: str) -> str:
    """Build a ``postgresql://`` URI with the credentials percent-encoded."""
    return (
        f"postgresql://{quote_plus(user)}:{quote_plus(password)}"
        f"@{host}:{port}/{database}?sslmode=disable"
    )


def quote_identifier(name: str) -> str:
    """Quote a database name for use in DDL."""
    return _PREPARER.quote_identifier(name)


class PostgresAdmin:
    """Creates and drops per-spark databases.

    Usable as a context manager; the engine is disposed on exit.
    """

    def __init__(self, conninfo: str, password: str, engine: Engine | None = None):
        """Initialize the admin client.

        Args:
            conninfo: libpq parameter-list string (see ``build_connection_string``)
            password: Password for the administrative user
            engine: Pre-built engine (tests)
        """
        self.conninfo = conninfo
        if engine is None:
            engine = create_engine(
                "postgresql+psycopg2://",
                connect_args={"dsn": conninfo, "password": password},
                isolation_level="AUTOCOMMIT",  # CREATE/DROP DATABASE cannot run in a transaction
                pool_pre_ping=True,
            )
        self._engine = engine

    @classmethod
    def from_config(cls, cfg: PostgresConfig) -> PostgresAdmin:
        """Build an admin client for the server described by ``cfg``."""
        conninfo = build_connection_string(cfg.host, cfg.port, cfg.user, cfg.database)
        return cls(conninfo, cfg.password)

    def __enter__(self) -> PostgresAdmin:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def ping(self) -> None:
        """Verify the server is reachable.

        Raises:
            DatabaseConnectionError: If the connection fails
        """
        logger.debug("Connecting to postgres: %s", self.conninfo)
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise DatabaseConnectionError(f"Failed to connect to postgres: {e}")  # noqa: B904

    def database_exists(self, name: str) -> bool:
        """Check the system catalog for a database."""
        try:
            with self._engine.connect() as conn:
                result = conn.execute(
                    text("SELECT EXISTS(SELECT 1 FROM pg_catalog.pg_database WHERE datname = :name)"),
                    {"name": name},
                )
                return bool(result.scalar())
        except OperationalError as e:
            raise DatabaseConnectionError(f"Failed to connect to postgres: {e}")  # noqa: B904
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to check if database {name} exists: {e}")  # noqa: B904

    def create_database(self, name: str) -> None:
        """Create a database.

        Raises:
            DatabaseExistsError: If the database already exists
            DatabaseError: If creation fails
        """
        if self.database_exists(name):
            raise DatabaseExistsError(f"Database {name} already exists")

        try:
            with self._engine.connect() as conn:
                conn.execute(text(f"CREATE DATABASE {quote_identifier(name)}"))
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to create database {name}: {e}")  # noqa: B904
        logger.info("Created database %s", name)

    def drop_database(self, name: str) -> None:
        """Terminate sessions bound to a database, then drop it if it exists."""
        try:
            with self._engine.connect() as conn:
                conn.execute(
                    text(
                        "SELECT pg_terminate_backend(pg_stat_activity.pid) "
                        "FROM pg_stat_activity "
                        "WHERE pg_stat_activity.datname = :name "
                        "AND pid <> pg_backend_pid()"
                    ),
                    {"name": name},
                )
        except OperationalError as e:
            raise DatabaseConnectionError(f"Failed to connect to postgres: {e}")  # noqa: B904
        except SQLAlchemyError as e:
            raise DatabaseError(  # noqa: B904
                f"Failed to terminate connections to database {name}: {e}"
            )

        try:
            with self._engine.connect() as conn:
                conn.execute(text(f"DROP DATABASE IF EXISTS {quote_identifier(name)}"))
        except SQLAlchemyError as e:
            raise DatabaseError(f"Failed to drop database {name}: {e}")  # noqa: B904
        logger.info("Dropped database %s", name)

    def close(self) -> None:
        """Dispose of the connection pool."""
        self._engine.dispose()
