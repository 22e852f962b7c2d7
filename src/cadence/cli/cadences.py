"""
CLI: ``cadence cadence`` - cadence definition commands.
"""

from __future__ import annotations

from datetime import date

import typer

from cadence.cli.utils import (
    console,
    make_context,
    output_paged,
    output_result,
    parse_when,
    print_table,
)

app = typer.Typer(no_args_is_help=True)


def _parse_days(days: str | None) -> list[int]:
    if not days:
        return []
    try:
        return [int(d) for d in days.split(",") if d.strip()]
    except ValueError as e:
        raise typer.BadParameter(f"--days must be comma-separated 1..7, got {days!r}") from e


def _schedule(
    pattern: str,
    time: str,
    timezone: str,
    days: str | None,
    start_date: str | None,
    end_date: str | None,
    window: int,
) -> dict:
    return {
        "pattern": pattern,
        "time": time,
        "timezone": timezone,
        "days_of_week": _parse_days(days),
        "start_date": start_date or date.today().isoformat(),
        "end_date": end_date,
        "completion_window_hours": window,
    }


@app.command("create")
def create_cadence(
    name: str = typer.Argument(..., help="Cadence name"),
    workspace: str = typer.Option(..., "--workspace", "-w", help="Workspace ID"),
    form: str = typer.Option(..., "--form", "-f", help="Form ID"),
    pattern: str = typer.Option("daily", "--pattern", help="daily | weekly | monthly | quarterly"),
    time: str = typer.Option("09:00", "--time", help="Local time of day, HH:MM"),
    timezone: str = typer.Option("UTC", "--timezone", "--tz", help="IANA zone name"),
    days: str | None = typer.Option(None, "--days", help="ISO weekdays, e.g. 1,2,3,4,5"),
    start_date: str | None = typer.Option(None, "--start-date", help="YYYY-MM-DD (default: today)"),
    end_date: str | None = typer.Option(None, "--end-date", help="YYYY-MM-DD"),
    window: int = typer.Option(2, "--window", help="Completion window in hours"),
    assign: list[str] = typer.Option([], "--assign", help="Assignee (repeatable)"),
    active: bool = typer.Option(True, "--active/--inactive"),
    materialize: bool = typer.Option(True, "--materialize/--no-materialize"),
    now: str | None = typer.Option(None, "--now", help="Override the current time (ISO-8601)"),
    database: str | None = typer.Option(None, "--database", "-d"),
    dry_run: bool = typer.Option(False, "--dry-run"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Create a cadence and materialize its first two weeks."""
    from cadence.ops.cadences import create_cadence as _create
    from cadence.ops.requests import CreateCadenceRequest

    ctx, _ = make_context(database, dry_run=dry_run)
    request = CreateCadenceRequest(
        workspace_id=workspace,
        form_id=form,
        name=name,
        schedule=_schedule(pattern, time, timezone, days, start_date, end_date, window),
        is_active=active,
        assigned_to=list(assign),
        materialize=materialize,
        now=parse_when(now),
    )
    output_result(_create(ctx, request), as_json=json_out, title="Cadence Created")


@app.command("list")
def list_cadences(
    workspace: str | None = typer.Option(None, "--workspace", "-w"),
    active_only: bool = typer.Option(False, "--active-only"),
    limit: int = typer.Option(50, "--limit"),
    offset: int = typer.Option(0, "--offset"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List cadences."""
    from cadence.ops.cadences import list_cadences as _list
    from cadence.ops.requests import ListCadencesRequest

    ctx, _ = make_context(database)
    request = ListCadencesRequest(
        workspace_id=workspace, active_only=active_only, limit=limit, offset=offset
    )
    output_paged(_list(ctx, request), as_json=json_out, title="Cadences")


@app.command("show")
def show_cadence(
    cadence_id: str = typer.Argument(..., help="Cadence ID"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show cadence details."""
    from cadence.ops.cadences import get_cadence as _get
    from cadence.ops.requests import GetCadenceRequest

    ctx, _ = make_context(database)
    result = _get(ctx, GetCadenceRequest(cadence_id=cadence_id))
    output_result(result, as_json=json_out, title=f"Cadence: {cadence_id}")


@app.command("update")
def update_cadence(
    cadence_id: str = typer.Argument(..., help="Cadence ID"),
    name: str | None = typer.Option(None, "--name"),
    assign: list[str] | None = typer.Option(None, "--assign", help="Replace assignees (repeatable)"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Rename a cadence or replace its assignees."""
    from cadence.ops.cadences import update_cadence as _update
    from cadence.ops.requests import UpdateCadenceRequest

    ctx, _ = make_context(database)
    request = UpdateCadenceRequest(
        cadence_id=cadence_id,
        name=name,
        assigned_to=list(assign) if assign else None,
    )
    output_result(_update(ctx, request), as_json=json_out, title="Cadence Updated")


def _set_active(cadence_id: str, active: bool, database: str | None, json_out: bool) -> None:
    from cadence.ops.cadences import set_cadence_active
    from cadence.ops.requests import SetCadenceActiveRequest

    ctx, _ = make_context(database)
    result = set_cadence_active(ctx, SetCadenceActiveRequest(cadence_id=cadence_id, active=active))
    output_result(
        result, as_json=json_out, title="Cadence Activated" if active else "Cadence Deactivated"
    )


@app.command("activate")
def activate(
    cadence_id: str = typer.Argument(..., help="Cadence ID"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Resume materializing instances for a cadence."""
    _set_active(cadence_id, True, database, json_out)


@app.command("deactivate")
def deactivate(
    cadence_id: str = typer.Argument(..., help="Cadence ID"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Stop materializing instances for a cadence. Existing instances stay."""
    _set_active(cadence_id, False, database, json_out)


@app.command("preview")
def preview(
    cadence_id: str = typer.Argument(..., help="Cadence ID"),
    hours: int = typer.Option(336, "--hours", help="Horizon length"),
    now: str | None = typer.Option(None, "--now", help="Horizon start (ISO-8601)"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List the occurrences a cadence would produce. Writes nothing."""
    from cadence.ops.cadences import preview_cadence
    from cadence.ops.requests import PreviewCadenceRequest

    ctx, _ = make_context(database)
    result = preview_cadence(
        ctx, PreviewCadenceRequest(cadence_id=cadence_id, hours=hours, now=parse_when(now))
    )
    if json_out or not result.success:
        output_result(result, as_json=json_out)
        return

    data = result.data
    console.print(f"[bold]{data.description}[/bold]")
    if not data.occurrences:
        console.print("[dim]No occurrences in horizon.[/dim]")
        return
    print_table(data.occurrences, title=f"Next {hours}h")
