"""
CLI: ``cadence db`` - database management commands.
"""

from __future__ import annotations

import typer

from cadence.cli.utils import make_context, output_result

app = typer.Typer(no_args_is_help=True)


@app.command()
def init(
    database: str | None = typer.Option(None, "--database", "-d", help="Database path or URL"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Preview without changes"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Create the cadence and instance tables."""
    from cadence.ops.database import initialize_database
    from cadence.ops.requests import DatabaseInitRequest

    ctx, _conn = make_context(database, dry_run=dry_run)
    result = initialize_database(ctx, DatabaseInitRequest())
    output_result(result, as_json=json_out, title="Database Init")


@app.command()
def health(
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Check connectivity and table presence."""
    from cadence.ops.database import check_database_health

    ctx, _conn = make_context(database)
    result = check_database_health(ctx)
    output_result(result, as_json=json_out, title="Database Health")
