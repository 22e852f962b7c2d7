"""
Tables backing cadences and their materialized instances.

Manifesto:
    The engine asks two guarantees of its database and nothing more:

    - **Uniqueness:** at most one instance per ``(cadence_id, scheduled_for)``
    - **Conditional update:** ``UPDATE … WHERE id = ? AND status = ?``

    Both are expressed here as DDL (a UNIQUE constraint) and left to the
    store to exploit. Timestamps are fixed-width UTC ISO text (see
    ``cadence.core.timestamps``) so range filters compare lexically.

Architecture:
    ::

        TABLES:
        ┌────────────────────────────────────────────────────────────┐
        │ cadences   → cadences                                      │
        │ instances  → instances   UNIQUE(cadence_id, scheduled_for) │
        └────────────────────────────────────────────────────────────┘

        Lifecycle columns on instances:
        status ∈ pending | ready | in_progress | completed | missed | skipped
        started_at, completed_at, completed_by, submission_id, skip_reason

Tags:
    schema, ddl, cadence, instances, uniqueness

Doc-Types:
    - Schema Documentation
"""

from __future__ import annotations

from cadence.core.protocols import Connection

# =============================================================================
# TABLE NAMES
# =============================================================================

TABLES = {
    "cadences": "cadences",
    "instances": "instances",
}


# =============================================================================
# DDL STATEMENTS
# =============================================================================

DDL = {
    "cadences": """
        CREATE TABLE IF NOT EXISTS cadences (
            id TEXT PRIMARY KEY,
            workspace_id TEXT NOT NULL,
            form_id TEXT NOT NULL,
            name TEXT NOT NULL,

            -- JSON: pattern, time, timezone, days_of_week, start_date,
            --       end_date, completion_window_hours
            schedule TEXT NOT NULL,

            is_active INTEGER NOT NULL DEFAULT 1,
            assigned_to TEXT,              -- JSON list of assignee ids
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """,
    "cadences_idx_active": """
        CREATE INDEX IF NOT EXISTS idx_cadences_active
        ON cadences(is_active)
    """,
    "instances": """
        CREATE TABLE IF NOT EXISTS instances (
            id TEXT PRIMARY KEY,
            workspace_id TEXT NOT NULL,
            cadence_id TEXT NOT NULL,
            form_id TEXT NOT NULL,
            instance_name TEXT NOT NULL,

            scheduled_for TEXT NOT NULL,   -- UTC ISO, occurrence anchor
            due_at TEXT NOT NULL,          -- scheduled_for + completion window

            status TEXT NOT NULL DEFAULT 'pending',
            assigned_to TEXT,              -- JSON list
            started_at TEXT,
            completed_at TEXT,
            completed_by TEXT,
            submission_id TEXT,
            skip_reason TEXT,

            metadata TEXT,                 -- JSON: generated_at, timezone
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,

            UNIQUE (cadence_id, scheduled_for)
        )
    """,
    "instances_idx_status": """
        CREATE INDEX IF NOT EXISTS idx_instances_status
        ON instances(status)
    """,
    "instances_idx_scheduled": """
        CREATE INDEX IF NOT EXISTS idx_instances_scheduled_for
        ON instances(scheduled_for)
    """,
}


def create_tables(conn: Connection) -> list[str]:
    """
    Create all tables and indexes.

    Safe to call multiple times (CREATE IF NOT EXISTS). Returns the names
    of the DDL entries that were executed.
    """
    applied = []
    for name, ddl in DDL.items():
        conn.execute(ddl)
        applied.append(name)
    conn.commit()
    return applied


__all__ = ["TABLES", "DDL", "create_tables"]
