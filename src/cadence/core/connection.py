"""Connection factory — create database connections from URL strings.

Supported URL schemes
---------------------
==================  ==========================================  ============
Scheme              Example                                     Backend
==================  ==========================================  ============
``memory``          ``memory`` or ``:memory:`` or ``None``       SQLite RAM
``sqlite``          ``sqlite:///path/to/file.db``                SQLite file
``(file path)``     ``./data/cadence.db``                        SQLite file
==================  ==========================================  ============

PostgreSQL deployments hand their own driver connection (anything that
satisfies :class:`~cadence.core.protocols.Connection`) to the stores
together with :class:`~cadence.core.dialect.PostgreSQLDialect`; URLs with
a ``postgresql://`` scheme are rejected here rather than silently
downgraded to SQLite.

Usage
-----
::

    from cadence.core.connection import create_connection

    conn, info = create_connection("sqlite:///cadence.db", init_schema=True)
    print(info)
    # ConnectionInfo(backend='sqlite', persistent=True, path='/abs/cadence.db')
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from cadence.core.dialect import Dialect, SQLiteDialect
from cadence.core.errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConnectionInfo:
    """Metadata about a database connection."""

    backend: str
    persistent: bool
    url: str
    resolved_path: str | None = None

    def __repr__(self) -> str:
        parts = [f"backend={self.backend!r}", f"persistent={self.persistent}"]
        if self.resolved_path:
            parts.append(f"path={self.resolved_path!r}")
        else:
            parts.append(f"url={self.url!r}")
        return f"ConnectionInfo({', '.join(parts)})"

    @property
    def dialect(self) -> Dialect:
        return SQLiteDialect()


def _parse_url(db: str | None) -> tuple[str, str]:
    """Parse a database URL into (scheme, target)."""
    if db is None or db in ("", "memory", ":memory:"):
        return "memory", ":memory:"
    if db.startswith("sqlite:///"):
        path = db[len("sqlite:///"):]
        if not path or path == ":memory:":
            return "memory", ":memory:"
        return "sqlite", path
    if "://" in db:
        return db.split("://", 1)[0], db
    return "sqlite", db


def create_connection(
    url: str | None = None,
    *,
    init_schema: bool = False,
) -> tuple[Any, ConnectionInfo]:
    """Open a connection for *url* and optionally create the tables.

    Raises:
        ConfigError: If the URL scheme is not supported.
    """
    from cadence.ops.sqlite_conn import SqliteConnection

    scheme, target = _parse_url(url)

    if scheme == "memory":
        conn = SqliteConnection(":memory:")
        info = ConnectionInfo(backend="sqlite", persistent=False, url=":memory:")
    elif scheme == "sqlite":
        path = Path(target).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        resolved = str(path.resolve())
        conn = SqliteConnection(resolved)
        info = ConnectionInfo(
            backend="sqlite", persistent=True, url=target, resolved_path=resolved
        )
    else:
        raise ConfigError(
            f"Unsupported database URL scheme '{scheme}'. "
            "Pass a driver connection and PostgreSQLDialect to the stores directly."
        ).with_context(url=url)

    if init_schema:
        from cadence.core.schema import create_tables

        create_tables(conn)
        logger.debug(f"Schema initialised for {info!r}")

    return conn, info


__all__ = ["ConnectionInfo", "create_connection"]
