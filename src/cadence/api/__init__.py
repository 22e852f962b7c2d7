"""
REST API layer for cadence.

A FastAPI application factory whose routers delegate to the operations
layer (``cadence.ops``). This package handles only HTTP transport:
serialisation, the cron guard, error mapping, and request context.

Quick start::

    from cadence.api import create_app

    app = create_app()  # ready for uvicorn
"""

from cadence.api.app import create_app

__all__ = ["create_app"]
