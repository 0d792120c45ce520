"""Database administration module for sparkdev."""

from .postgres import (
    DatabaseConnectionError,
    DatabaseError,
    DatabaseExistsError,
    PostgresAdmin,
    build_connection_string,
    build_connection_uri,
    quote_identifier,
)

__all__ = [
    "PostgresAdmin",
    "build_connection_string",
    "build_connection_uri",
    "quote_identifier",
    # Errors
    "DatabaseError",
    "DatabaseConnectionError",
    "DatabaseExistsError",
]
