"""Tests for the PostgreSQL administrative client.

The SQLAlchemy engine is mocked; no database server is required.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError, ProgrammingError


def _admin(conn: MagicMock):
    from sparkdev.db import PostgresAdmin

    engine = MagicMock()
    engine.connect.return_value.__enter__.return_value = conn
    return PostgresAdmin("host=h port=5432 user=u dbname=homelab sslmode=disable", "pw", engine=engine)


def _sql(call) -> str:
    return str(call.args[0])


class TestConnectionStrings:
    def test_parameter_list_has_no_password(self):
        from sparkdev.db import build_connection_string

        assert (
            build_connection_string("db", "5432", "spark", "homelab")
            == "host=db port=5432 user=spark dbname=homelab sslmode=disable"
        )

    def test_uri_percent_encodes_credentials(self):
        from sparkdev.db import build_connection_uri

        uri = build_connection_uri("db", "5432", "spark", "p@ss:w/rd", "brave-otter")
        assert uri == "postgresql://spark:p%40ss%3Aw%2Frd@db:5432/brave-otter?sslmode=disable"

    def test_quote_identifier(self):
        from sparkdev.db import quote_identifier

        assert quote_identifier("brave-otter") == '"brave-otter"'
        assert quote_identifier('a"b') == '"a""b"'

    def test_engine_uses_autocommit(self):
        from sparkdev.db import PostgresAdmin

        with patch("sparkdev.db.postgres.create_engine") as mock_create:
            PostgresAdmin("host=h", "pw")
        kwargs = mock_create.call_args.kwargs
        assert kwargs["isolation_level"] == "AUTOCOMMIT"
        assert kwargs["connect_args"] == {"dsn": "host=h", "password": "pw"}

    def test_from_config(self, default_config):
        from sparkdev.db import PostgresAdmin

        with patch("sparkdev.db.postgres.create_engine"):
            admin = PostgresAdmin.from_config(default_config.postgres)
        assert admin.conninfo == (
            "host=postgres.postgres.svc.cluster.local port=5432 user=spark "
            "dbname=homelab sslmode=disable"
        )
        assert "s3cret" not in admin.conninfo


class TestPostgresAdmin:
    def test_ping_failure(self):
        from sparkdev.db import DatabaseConnectionError

        conn = MagicMock()
        conn.execute.side_effect = OperationalError("SELECT 1", {}, Exception("refused"))
        with pytest.raises(DatabaseConnectionError, match="Failed to connect"):
            _admin(conn).ping()

    def test_database_exists_binds_name(self):
        conn = MagicMock()
        conn.execute.return_value.scalar.return_value = True

        assert _admin(conn).database_exists("brave-otter") is True
        call = conn.execute.call_args
        assert "pg_database" in _sql(call)
        assert call.args[1] == {"name": "brave-otter"}

    def test_create_database(self):
        conn = MagicMock()
        conn.execute.return_value.scalar.return_value = False

        _admin(conn).create_database("brave-otter")
        assert _sql(conn.execute.call_args_list[-1]) == 'CREATE DATABASE "brave-otter"'

    def test_create_existing_database(self):
        from sparkdev.db import DatabaseExistsError

        conn = MagicMock()
        conn.execute.return_value.scalar.return_value = True

        with pytest.raises(DatabaseExistsError, match="already exists"):
            _admin(conn).create_database("brave-otter")
        assert conn.execute.call_count == 1

    def test_create_failure_is_database_error(self):
        from sparkdev.db import DatabaseError

        conn = MagicMock()
        exists = MagicMock()
        exists.scalar.return_value = False
        conn.execute.side_effect = [exists, ProgrammingError("CREATE", {}, Exception("denied"))]

        with pytest.raises(DatabaseError, match="Failed to create database brave-otter"):
            _admin(conn).create_database("brave-otter")

    def test_drop_terminates_sessions_first(self):
        conn = MagicMock()

        _admin(conn).drop_database("brave-otter")
        first, second = conn.execute.call_args_list
        assert "pg_terminate_backend" in _sql(first)
        assert first.args[1] == {"name": "brave-otter"}
        assert _sql(second) == 'DROP DATABASE IF EXISTS "brave-otter"'

    def test_drop_failure(self):
        from sparkdev.db import DatabaseError

        conn = MagicMock()
        conn.execute.side_effect = [MagicMock(), ProgrammingError("DROP", {}, Exception("in use"))]
        with pytest.raises(DatabaseError, match="Failed to drop database"):
            _admin(conn).drop_database("brave-otter")

    def test_context_manager_disposes_engine(self):
        conn = MagicMock()
        admin = _admin(conn)
        with admin as entered:
            assert entered is admin
        admin._engine.dispose.assert_called_once()
