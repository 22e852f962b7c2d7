"""
CLI: ``cadence scheduler`` - run the materialize/advance passes.

``tick`` is what an external cron hits; ``run`` keeps a process alive and
ticks on an interval instead.
"""

from __future__ import annotations

import typer

from cadence.cli.utils import console, make_context, output_result, parse_when

app = typer.Typer(no_args_is_help=True)


@app.command("tick")
def tick(
    now: str | None = typer.Option(None, "--now", help="Override the current time (ISO-8601)"),
    lookahead: int | None = typer.Option(None, "--lookahead", help="Horizon in hours"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Materialize every active cadence, then advance instance statuses."""
    from cadence.ops.requests import TickRequest
    from cadence.ops.scheduler import run_tick

    ctx, _ = make_context(database)
    result = run_tick(ctx, TickRequest(now=parse_when(now), lookahead_hours=lookahead))
    output_result(result, as_json=json_out, title="Scheduler Tick")


@app.command("generate")
def generate(
    now: str | None = typer.Option(None, "--now", help="Override the current time (ISO-8601)"),
    lookahead: int | None = typer.Option(None, "--lookahead", help="Horizon in hours"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Materialize the lookahead horizon of every active cadence."""
    from cadence.ops.requests import GenerateInstancesRequest
    from cadence.ops.scheduler import generate_instances

    ctx, _ = make_context(database)
    request = GenerateInstancesRequest(now=parse_when(now), lookahead_hours=lookahead)
    output_result(generate_instances(ctx, request), as_json=json_out, title="Generated")


@app.command("advance")
def advance(
    now: str | None = typer.Option(None, "--now", help="Override the current time (ISO-8601)"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Apply pending → ready and → missed transitions."""
    from cadence.ops.requests import UpdateStatusesRequest
    from cadence.ops.scheduler import update_instance_statuses

    ctx, _ = make_context(database)
    result = update_instance_statuses(ctx, UpdateStatusesRequest(now=parse_when(now)))
    output_result(result, as_json=json_out, title="Statuses Updated")


@app.command("run")
def run(
    interval: float | None = typer.Option(
        None, "--interval", "-i", help="Seconds between ticks (default: CADENCE_ADVANCE_INTERVAL_MINUTES)"
    ),
    lookahead: int | None = typer.Option(None, "--lookahead", help="Horizon in hours"),
    max_ticks: int | None = typer.Option(None, "--max-ticks", help="Stop after N ticks"),
    database: str | None = typer.Option(None, "--database", "-d"),
) -> None:
    """Tick in the foreground until interrupted.

    Example::

        cadence scheduler run --interval 300
        cadence scheduler run -d sqlite:///cadence.db --max-ticks 1
    """
    from cadence.core.settings import get_settings
    from cadence.scheduling.driver import SchedulerDriver, TickResult
    from cadence.scheduling.lifecycle import InstanceLifecycleManager
    from cadence.scheduling.store import CadenceRepository, SqlInstanceStore

    settings = get_settings()
    seconds = interval if interval is not None else settings.advance_interval_minutes * 60
    if seconds <= 0:
        raise typer.BadParameter("--interval must be positive")

    ctx, _ = make_context(database)
    driver = SchedulerDriver(
        CadenceRepository(ctx.conn, ctx.dialect),
        InstanceLifecycleManager(SqlInstanceStore(ctx.conn, ctx.dialect)),
        lookahead_hours=lookahead if lookahead is not None else settings.lookahead_hours,
    )

    def _report(result: TickResult) -> None:
        advance = result.advance
        console.print(
            f"[dim]{result.now.isoformat()}[/dim] "
            f"created={result.created} existing={result.existing} "
            f"advanced={advance.advanced if advance else 0} "
            f"invalid={len(result.invalid_cadences)}"
        )

    console.print(f"[bold green]Starting cadence scheduler[/bold green] (interval={seconds}s)")
    try:
        driver.run_forever(seconds, max_ticks=max_ticks, on_tick=_report)
    except KeyboardInterrupt:
        driver.stop()
        console.print("\n[yellow]Scheduler stopped by user[/yellow]")
