"""
Database operations.

Thin wrappers around :mod:`cadence.core.schema` for table creation and
health checks.
"""

from __future__ import annotations

import time

from cadence.core.logging import get_logger
from cadence.core.schema import DDL, TABLES, create_tables
from cadence.ops.context import OperationContext
from cadence.ops.requests import DatabaseInitRequest
from cadence.ops.responses import DatabaseHealth, DatabaseInitResult
from cadence.ops.result import OperationResult, start_timer

logger = get_logger(__name__)


def initialize_database(
    ctx: OperationContext,
    request: DatabaseInitRequest | None = None,
) -> OperationResult[DatabaseInitResult]:
    """Create the cadence and instance tables (idempotent)."""
    request = request or DatabaseInitRequest()
    timer = start_timer()

    if ctx.dry_run:
        return OperationResult.ok(
            DatabaseInitResult(tables_created=list(DDL), dry_run=True),
            elapsed_ms=timer.elapsed_ms,
        )

    try:
        applied = create_tables(ctx.conn)
        logger.info("database_initialized", statements=len(applied))
        return OperationResult.ok(
            DatabaseInitResult(tables_created=applied),
            elapsed_ms=timer.elapsed_ms,
        )
    except Exception as exc:
        logger.exception("op_failed", error=str(exc))
        return OperationResult.fail(
            "INTERNAL",
            f"Failed to create tables: {exc}",
            elapsed_ms=timer.elapsed_ms,
        )


def check_database_health(ctx: OperationContext) -> OperationResult[DatabaseHealth]:
    """Check connectivity and which tables exist."""
    timer = start_timer()

    try:
        start = time.perf_counter()
        ctx.conn.execute("SELECT 1")
        ctx.conn.fetchone()
        latency = (time.perf_counter() - start) * 1000

        present, missing = [], []
        for table in sorted(TABLES.values()):
            cursor = ctx.conn.execute(ctx.dialect.table_exists_query(), (table,))
            (present if cursor.fetchone() else missing).append(table)

        warnings = [f"Missing table: {t}. Run 'cadence db init'." for t in missing]
        return OperationResult.ok(
            DatabaseHealth(
                connected=True,
                backend=ctx.dialect.name,
                tables_present=present,
                tables_missing=missing,
                latency_ms=round(latency, 2),
            ),
            warnings=warnings,
            elapsed_ms=timer.elapsed_ms,
        )
    except Exception as exc:
        logger.exception("op_failed", error=str(exc))
        return OperationResult.ok(
            DatabaseHealth(connected=False, backend=ctx.dialect.name),
            warnings=[f"Health check error: {exc}"],
            elapsed_ms=timer.elapsed_ms,
        )
