"""
Command-line interface for cadence.

Entry point: ``cadence`` (see ``cadence.cli.app``).
"""

from cadence.cli.app import app

__all__ = ["app"]
