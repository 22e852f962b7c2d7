"""
API-specific settings.

Extends :class:`~cadence.core.settings.CadenceSettings` with the knobs
that only the HTTP transport needs. Environment variables keep the
``CADENCE_`` prefix (``CADENCE_CRON_SECRET``, ``CADENCE_API_PREFIX``).
"""

from __future__ import annotations

from pydantic import Field

from cadence.core.settings import CadenceSettings


class CadenceAPISettings(CadenceSettings):
    """Settings for the cadence REST API.

    Order of precedence (highest → lowest):
        1. Environment variables
        2. ``.env`` file
        3. Defaults below
    """

    debug: bool = Field(default=False, description="Expose exception text in 500 responses")

    # ── API ──────────────────────────────────────────────────────────────
    api_prefix: str = Field(default="/api/v1", description="URL prefix for all endpoints")
    api_title: str = Field(default="cadence API", description="OpenAPI title")
    api_version: str = Field(default="0.1.0", description="OpenAPI version string")

    # ── CORS ─────────────────────────────────────────────────────────────
    cors_origins: list[str] = Field(default=["*"], description="Allowed CORS origins")

    # ── Cron trigger ─────────────────────────────────────────────────────
    cron_secret: str | None = Field(
        default=None,
        description="Bearer token required on /cron routes; None disables the check",
    )
