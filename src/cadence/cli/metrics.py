"""
CLI: ``cadence metrics`` - completion metrics for a date range.
"""

from __future__ import annotations

import typer

from cadence.cli.utils import console, make_context, output_result, parse_when, print_table


def metrics(
    range_from: str | None = typer.Option(None, "--from", help="Range start (ISO-8601)"),
    range_to: str | None = typer.Option(None, "--to", help="Range end, exclusive (ISO-8601)"),
    workspace: str | None = typer.Option(None, "--workspace", "-w"),
    cadence: list[str] | None = typer.Option(None, "--cadence", "-c", help="Cadence ID (repeatable)"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Completion rate, late and missed counts, with a per-cadence breakdown."""
    from cadence.ops.metrics import compute_metrics
    from cadence.ops.requests import ComputeMetricsRequest

    ctx, _ = make_context(database)
    request = ComputeMetricsRequest(
        range_start=parse_when(range_from, "--from"),
        range_end=parse_when(range_to, "--to"),
        workspace_id=workspace,
        cadence_ids=list(cadence) if cadence else None,
    )
    result = compute_metrics(ctx, request)
    if json_out or not result.success:
        output_result(result, as_json=json_out)
        return

    m = result.data.metrics
    console.print(
        f"[bold]Completion rate:[/bold] {m['completion_rate']:.1f}%  "
        f"({m['completed']}/{m['total_instances']}, "
        f"late={m['late']}, missed={m['missed']})"
    )
    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")
    if m["by_cadence"]:
        print_table(
            m["by_cadence"],
            title="By cadence",
            columns=["cadence_id", "cadence_name", "form_id", "total", "completed", "missed", "late", "completion_rate"],
        )
    else:
        console.print("[dim]No cadences in range.[/dim]")
