"""
CLI utility helpers - output formatting and connection management.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from cadence.core.connection import create_connection
from cadence.core.settings import get_settings
from cadence.core.timestamps import from_iso8601
from cadence.ops.context import OperationContext
from cadence.ops.result import OperationResult, PagedResult

console = Console()
err_console = Console(stderr=True)


# ── Connection helper ────────────────────────────────────────────────────


def get_connection(database: str | None = None) -> Any:
    """Open a database connection.  Defaults to ``CADENCE_DATABASE_URL``."""
    conn, _info = create_connection(database or get_settings().database_url)
    return conn


def make_context(
    database: str | None = None,
    *,
    dry_run: bool = False,
    user: str | None = None,
) -> tuple[OperationContext, Any]:
    """Create an ``OperationContext`` + connection pair for CLI commands."""
    conn = get_connection(database)
    ctx = OperationContext(conn=conn, caller="cli", dry_run=dry_run, user=user)
    return ctx, conn


def parse_when(value: str | None, option: str = "--now") -> datetime | None:
    """Parse an ISO-8601 option value; a value without offset is taken as UTC."""
    if not value:
        return None
    try:
        return from_iso8601(value)
    except ValueError as e:
        raise typer.BadParameter(f"{option} must be ISO-8601, got {value!r}") from e


# ── Output helpers ───────────────────────────────────────────────────────


def _to_dict(obj: Any) -> dict[str, Any]:
    if hasattr(obj, "__dataclass_fields__"):
        return asdict(obj)
    if isinstance(obj, dict):
        return obj
    return {"value": str(obj)}


def _fail(result: OperationResult) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    code = err.code if err else "ERROR"
    err_console.print(f"[bold red]Error[/bold red] ({code}): {msg}")
    raise typer.Exit(code=1)


def _print_warnings(result: OperationResult) -> None:
    for warning in result.warnings:
        err_console.print(f"[yellow]Warning:[/yellow] {warning}")


def output_result(
    result: OperationResult,
    *,
    as_json: bool = False,
    title: str = "",
) -> None:
    """Render an ``OperationResult`` to the terminal."""
    if not result.success:
        _fail(result)

    data = result.data

    if as_json:
        payload = _to_dict(data) if not isinstance(data, list | tuple) else [_to_dict(d) for d in data]
        console.print_json(json.dumps(payload, default=str))
        return

    _print_warnings(result)
    if isinstance(data, list):
        if not data:
            console.print("[dim]No items.[/dim]")
            return
        print_table(data, title=title)
    else:
        _print_dict(_to_dict(data), title=title)


def output_paged(
    result: PagedResult,
    *,
    as_json: bool = False,
    title: str = "",
) -> None:
    """Render a ``PagedResult`` to the terminal with pagination info."""
    if not result.success:
        _fail(result)

    items = result.data or []

    if as_json:
        payload = {
            "items": [_to_dict(d) for d in items],
            "total": result.total,
            "limit": result.limit,
            "offset": result.offset,
            "has_more": result.has_more,
        }
        console.print_json(json.dumps(payload, default=str))
        return

    if not items:
        console.print("[dim]No items.[/dim]")
        return

    print_table(items, title=title)
    console.print(
        f"\n[dim]Showing {len(items)} of {result.total} (offset {result.offset})[/dim]"
    )


def print_table(items: list, *, title: str = "", columns: list[str] | None = None) -> None:
    """Render a list of dataclasses/dicts as a Rich table."""
    first = _to_dict(items[0])
    cols = columns or list(first)
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in cols:
        table.add_column(col, overflow="fold")
    for item in items:
        d = _to_dict(item)
        table.add_row(*(str(d.get(c, "")) for c in cols))
    console.print(table)


def _print_dict(data: dict[str, Any], *, title: str = "") -> None:
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        if isinstance(v, list) and v and isinstance(v[0], dict):
            console.print(f"  [cyan]{k}[/cyan]: {len(v)} item(s)")
            continue
        console.print(f"  [cyan]{k}[/cyan]: {v}")
