"""Tests for ``cadence.core.connection`` and ``cadence.core.schema``."""

from __future__ import annotations

import pytest

from cadence.core.connection import create_connection
from cadence.core.dialect import PostgreSQLDialect, SQLiteDialect, get_dialect
from cadence.core.errors import ConfigError
from cadence.core.schema import TABLES, create_tables


class TestCreateConnection:
    @pytest.mark.parametrize("url", [None, "", "memory", ":memory:", "sqlite:///:memory:"])
    def test_memory_urls(self, url):
        conn, info = create_connection(url)
        assert info.backend == "sqlite"
        assert info.persistent is False
        conn.close()

    def test_file_url_creates_parent_dirs(self, tmp_path):
        """A file database path is resolved and its directory created."""
        target = tmp_path / "nested" / "cadence.db"
        conn, info = create_connection(f"sqlite:///{target}", init_schema=True)
        assert info.persistent is True
        assert target.exists()
        conn.close()

    def test_unsupported_scheme(self):
        """Unknown schemes are rejected, not silently downgraded."""
        with pytest.raises(ConfigError):
            create_connection("postgresql://localhost/cadence")


class TestSchema:
    def test_create_tables_is_repeatable(self, conn):
        """Tables can be created twice without error."""
        applied = create_tables(conn)
        assert "cadences" in applied and "instances" in applied

        dialect = SQLiteDialect()
        for table in TABLES.values():
            conn.execute(dialect.table_exists_query(), (table,))
            assert conn.fetchone() is not None


class TestDialect:
    def test_insert_or_ignore_sqlite(self):
        sql = SQLiteDialect().insert_or_ignore("instances", ["id", "status"])
        assert sql.startswith("INSERT OR IGNORE INTO instances")

    def test_insert_or_ignore_postgres(self):
        sql = PostgreSQLDialect().insert_or_ignore("instances", ["id", "status"])
        assert "ON CONFLICT DO NOTHING" in sql
        assert "%s" in sql

    def test_get_dialect(self):
        assert get_dialect("sqlite").name == "sqlite"
        assert get_dialect("postgresql").name == "postgresql"
