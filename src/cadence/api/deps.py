"""
FastAPI dependency injection: settings singleton, per-request connection
and operation context, and the cron trigger guard.

Usage in routers::

    from cadence.api.deps import OpContext, Settings

    @router.get("/cadences")
    def list_cadences(ctx: OpContext):
        ...
"""

from __future__ import annotations

import hmac
import uuid
from collections.abc import Generator
from functools import lru_cache
from typing import Annotated, Any

from fastapi import Depends, Header, HTTPException, Request

from cadence.api.settings import CadenceAPISettings
from cadence.core.connection import create_connection
from cadence.ops.context import OperationContext

# ── Settings (singleton) ─────────────────────────────────────────────────


@lru_cache(maxsize=1)
def get_settings() -> CadenceAPISettings:
    """Cached settings — loaded once per process."""
    return CadenceAPISettings()


# ── Database connection (per-request) ────────────────────────────────────


def get_connection(
    settings: Annotated[CadenceAPISettings, Depends(get_settings)],
) -> Generator[Any, None, None]:
    """Yield a database connection for the request lifespan."""
    conn, _info = create_connection(settings.database_url)
    try:
        yield conn
    finally:
        conn.close()


# ── Operation context (per-request) ──────────────────────────────────────


def get_operation_context(
    request: Request,
    conn: Annotated[Any, Depends(get_connection)],
    x_user_id: Annotated[str | None, Header()] = None,
) -> OperationContext:
    """Build an :class:`OperationContext` from the current request.

    The acting user arrives in ``X-User-Id``; authentication itself is
    the job of whatever sits in front of this service.
    """
    request_id = getattr(request.state, "request_id", str(uuid.uuid4()))
    return OperationContext(
        conn=conn,
        request_id=request_id,
        caller="api",
        user=x_user_id,
    )


# ── Cron guard ───────────────────────────────────────────────────────────


def require_cron_secret(
    settings: Annotated[CadenceAPISettings, Depends(get_settings)],
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    """Reject cron calls without ``Authorization: Bearer <cron_secret>``.

    No secret configured means the routes are open (local development).
    """
    if not settings.cron_secret:
        return
    expected = f"Bearer {settings.cron_secret}"
    if authorization is None or not hmac.compare_digest(authorization, expected):
        raise HTTPException(status_code=401, detail="Missing or invalid cron secret")


# ── Convenience type aliases ─────────────────────────────────────────────

Settings = Annotated[CadenceAPISettings, Depends(get_settings)]
OpContext = Annotated[OperationContext, Depends(get_operation_context)]
CronAuth = Depends(require_cron_secret)
