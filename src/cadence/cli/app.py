"""
Root Typer application for the cadence CLI.

Sub-command modules import their operations lazily inside each command,
so ``cadence --help`` stays fast.
"""

from __future__ import annotations

import structlog
import typer
from typer import Typer

from cadence.core.logging import configure_logging
from cadence.core.settings import get_settings

app = Typer(
    name="cadence",
    help="cadence - recurring work scheduling.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        from cadence import __version__

        typer.echo(f"cadence {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override CADENCE_LOG_LEVEL"),
) -> None:
    """cadence CLI - manage cadences, instances, and the scheduler."""
    # An embedding process (or the test suite) may have configured logging already.
    if log_level is None and structlog.is_configured():
        return
    settings = get_settings()
    configure_logging(level=log_level or settings.log_level, json_format=settings.log_json)


# ── Sub-command registration ─────────────────────────────────────────────

from cadence.cli.cadences import app as cadence_app  # noqa: E402
from cadence.cli.db import app as db_app  # noqa: E402
from cadence.cli.instances import app as instance_app  # noqa: E402
from cadence.cli.metrics import metrics  # noqa: E402
from cadence.cli.scheduler import app as scheduler_app  # noqa: E402
from cadence.cli.serve import app as serve_app  # noqa: E402

app.add_typer(db_app, name="db", help="Database operations.")
app.add_typer(cadence_app, name="cadence", help="Cadence definitions.")
app.add_typer(instance_app, name="instance", help="Scheduled instances and user actions.")
app.add_typer(scheduler_app, name="scheduler", help="Materialize and advance instances.")
app.add_typer(serve_app, name="serve", help="Start the API server.")
app.command("metrics")(metrics)
