"""Engine settings for cadence-core.

Manifesto:
    The engine's operational knobs (how far ahead to materialize, how
    often the advance pass is expected to run, where the database lives)
    are deployment decisions, not code. They are read from the
    environment with a single prefix and validated at startup.

    - **Pydantic validation:** Type-checked at startup, not at tick time
    - **Environment-driven:** ``CADENCE_*`` env vars and ``.env`` files
    - **Sensible defaults:** Works out of the box against a local SQLite file

Features:
    - **CadenceSettings:** database, logging, and scheduling horizons
    - **extra="ignore":** Unknown env vars don't cause startup failures

Examples:
    >>> from cadence.core.settings import CadenceSettings
    >>> CadenceSettings(lookahead_hours=24).lookahead_hours
    24

Tags:
    settings, configuration, pydantic, environment, cadence
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CadenceSettings(BaseSettings):
    """Settings shared by the CLI, the HTTP API, and the scheduler trigger.

    Fields
    ──────
    database_url              : ``sqlite:///path.db``, a bare path, or ``memory``
    log_level                 : Structlog log level
    log_json                  : Force JSON (True) / console (False); None = auto
    lookahead_hours           : Horizon for each periodic materialize pass
    creation_lookahead_hours  : Horizon materialized right after a cadence is created
    advance_interval_minutes  : Expected period between advance passes
    up_next_minutes           : Window used by the "up next" display predicate
    """

    model_config = SettingsConfigDict(
        env_prefix="CADENCE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Storage ──────────────────────────────────────────────────
    database_url: str = Field(
        default="sqlite:///cadence.db",
        description="Database URL or SQLite file path",
    )

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool | None = None

    # ── Scheduling ───────────────────────────────────────────────
    lookahead_hours: int = Field(
        default=48, gt=0, description="Materialize horizon for the periodic trigger"
    )
    creation_lookahead_hours: int = Field(
        default=336, gt=0, description="Materialize horizon when a cadence is created"
    )
    advance_interval_minutes: int = Field(
        default=5, gt=0, description="Expected period between advance passes"
    )
    up_next_minutes: int = Field(
        default=60, gt=0, description="Window for the 'up next' display predicate"
    )


@lru_cache(maxsize=1)
def get_settings() -> CadenceSettings:
    """Cached settings — loaded once per process."""
    return CadenceSettings()


__all__ = ["CadenceSettings", "get_settings"]
