"""
FastAPI application factory.

``create_app()`` wires middleware, routers, error handlers, and the
lifespan hook into a single ``FastAPI`` instance.

Manifesto:
    The app factory is the single composition root. Routers delegate to
    ``cadence.ops``; nothing below this module touches ``FastAPI``.

Tags:
    cadence, api, app-factory, composition-root, FastAPI

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from cadence.api.deps import get_settings
from cadence.api.middleware.errors import http_exception_handler, unhandled_exception_handler
from cadence.api.middleware.request_id import RequestIDMiddleware
from cadence.api.settings import CadenceAPISettings
from cadence.core.connection import create_connection
from cadence.core.logging import get_logger

log = get_logger("cadence.api")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create the tables on startup so a fresh database is usable at once."""
    settings: CadenceAPISettings = app.state.settings
    log.info("api_starting", version=app.version)

    conn, info = create_connection(settings.database_url, init_schema=True)
    try:
        log.info("database_initialized", backend=info.backend, persistent=info.persistent)
    finally:
        conn.close()

    yield
    log.info("api_stopping")


def create_app(*, settings: CadenceAPISettings | None = None) -> FastAPI:
    """Build and return a fully-configured FastAPI application.

    Parameters
    ----------
    settings : CadenceAPISettings | None
        Override settings (useful for testing). When ``None`` the cached
        singleton from :func:`get_settings` is used.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
        docs_url=f"{settings.api_prefix}/docs",
        openapi_url=f"{settings.api_prefix}/openapi.json",
    )
    app.state.settings = settings
    app.dependency_overrides[get_settings] = lambda: settings

    # ── Middleware (outermost → innermost) ────────────────────────────
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Exception handlers ───────────────────────────────────────────
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # ── Routers ──────────────────────────────────────────────────────
    from cadence.api.routers import cadences, cron, instances, metrics

    prefix = settings.api_prefix
    app.include_router(cadences.router, prefix=prefix, tags=["cadences"])
    app.include_router(instances.router, prefix=prefix, tags=["instances"])
    app.include_router(cron.router, prefix=prefix, tags=["cron"])
    app.include_router(metrics.router, prefix=prefix, tags=["metrics"])

    @app.get("/health", tags=["health"])
    def health() -> dict[str, str]:
        return {"status": "ok", "version": settings.api_version}

    return app
