"""SQL dialect abstraction for database-agnostic store code.

The instance store needs exactly two things a database must do atomically:
insert a row unless its unique key already exists, and update a row only
while it still has an expected status. The first is spelled differently
per backend; this module hides that spelling.

Manifesto:
    Store code must run on SQLite (tests, single-node) and PostgreSQL
    (hosted). Without a dialect layer, "insert if absent" becomes a
    check-then-insert race or backend-specific SQL scattered through
    repositories.

    - **One interface:** Dialect protocol for SQL fragments
    - **Zero coupling:** Store code never imports a driver
    - **Testable:** SQLiteDialect for tests, PostgreSQLDialect for prod

Architecture::

    Store code:
    ┌────────────────────────────────────────────────────────────────┐
    │  sql = d.insert_or_ignore("instances", cols)                   │
    │  cur = conn.execute(sql, values)                               │
    │  created = cur.rowcount > 0                                    │
    └────────────────────────────────────────────────────────────────┘
                              │
                 ┌────────────┴─────────────┐
                 ▼                          ▼
    ┌──────────────────────┐   ┌───────────────────────────────┐
    │ SQLite               │   │ PostgreSQL                    │
    │ INSERT OR IGNORE ... │   │ INSERT ... ON CONFLICT        │
    │ ?, ?, ?              │   │   DO NOTHING  (%s, %s, %s)    │
    └──────────────────────┘   └───────────────────────────────┘

Examples:
    >>> d = SQLiteDialect()
    >>> d.placeholders(3)
    '?, ?, ?'
    >>> d.insert_or_ignore("t", ["a", "b"])
    'INSERT OR IGNORE INTO t (a, b) VALUES (?, ?)'

Tags:
    dialect, sql, abstraction, portability, database
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Dialect(Protocol):
    """SQL dialect contract.

    Every method returns a **SQL fragment** (string) valid for the target
    database. Store code interpolates these fragments into its templates.
    """

    @property
    def name(self) -> str:
        """Human-readable dialect name (e.g. ``'sqlite'``)."""
        ...

    def placeholder(self, index: int) -> str:
        """Single positional placeholder (0-based index)."""
        ...

    def placeholders(self, count: int) -> str:
        """Comma-separated placeholder list."""
        ...

    def insert_or_ignore(self, table: str, columns: list[str]) -> str:
        """``INSERT … ON CONFLICT DO NOTHING`` (or equivalent)."""
        ...

    def boolean_true(self) -> str:
        """Literal for boolean true in WHERE clauses."""
        ...

    def table_exists_query(self) -> str:
        """Query taking one table-name parameter; returns a row if present."""
        ...


class SQLiteDialect:
    """SQLite dialect — ``?`` placeholders, ``INSERT OR IGNORE``."""

    @property
    def name(self) -> str:
        return "sqlite"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "?"

    def placeholders(self, count: int) -> str:
        return ", ".join("?" for _ in range(count))

    def insert_or_ignore(self, table: str, columns: list[str]) -> str:
        cols = ", ".join(columns)
        ph = self.placeholders(len(columns))
        return f"INSERT OR IGNORE INTO {table} ({cols}) VALUES ({ph})"

    def boolean_true(self) -> str:
        return "1"

    def table_exists_query(self) -> str:
        return "SELECT name FROM sqlite_master WHERE type='table' AND name = ?"


class PostgreSQLDialect:
    """PostgreSQL dialect — ``%s`` placeholders, ``ON CONFLICT DO NOTHING``."""

    @property
    def name(self) -> str:
        return "postgresql"

    def placeholder(self, index: int) -> str:  # noqa: ARG002
        return "%s"

    def placeholders(self, count: int) -> str:
        return ", ".join("%s" for _ in range(count))

    def insert_or_ignore(self, table: str, columns: list[str]) -> str:
        cols = ", ".join(columns)
        ph = self.placeholders(len(columns))
        return f"INSERT INTO {table} ({cols}) VALUES ({ph}) ON CONFLICT DO NOTHING"

    def boolean_true(self) -> str:
        return "TRUE"

    def table_exists_query(self) -> str:
        return (
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = 'public' AND table_name = %s"
        )


# Pre-instantiated singletons (dialects are stateless)
_DIALECTS: dict[str, Dialect] = {
    "sqlite": SQLiteDialect(),
    "postgresql": PostgreSQLDialect(),
    "postgres": PostgreSQLDialect(),  # alias
}


def get_dialect(db_type: str) -> Dialect:
    """Get a dialect by database type name.

    Raises:
        ValueError: If ``db_type`` is not recognised.

    Example:
        >>> get_dialect("postgresql").placeholders(2)
        '%s, %s'
    """
    key = db_type.lower()
    if key not in _DIALECTS:
        raise ValueError(
            f"Unknown dialect '{db_type}'. "
            f"Supported: {sorted(set(_DIALECTS) - {'postgres'})}"
        )
    return _DIALECTS[key]


__all__ = [
    "Dialect",
    "SQLiteDialect",
    "PostgreSQLDialect",
    "get_dialect",
]
