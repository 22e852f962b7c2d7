"""
CLI: ``cadence instance`` - instance listing and user actions.
"""

from __future__ import annotations

import typer

from cadence.cli.utils import make_context, output_paged, output_result, parse_when

app = typer.Typer(no_args_is_help=True)


@app.command("list")
def list_instances(
    cadence_id: str | None = typer.Option(None, "--cadence", "-c"),
    workspace: str | None = typer.Option(None, "--workspace", "-w"),
    status: list[str] | None = typer.Option(None, "--status", "-s", help="Status filter (repeatable)"),
    scheduled_from: str | None = typer.Option(None, "--from", help="scheduled_for >= (ISO-8601)"),
    scheduled_to: str | None = typer.Option(None, "--to", help="scheduled_for < (ISO-8601)"),
    limit: int = typer.Option(50, "--limit"),
    offset: int = typer.Option(0, "--offset"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List instances ordered by scheduled time."""
    from cadence.ops.instances import list_instances as _list
    from cadence.ops.requests import ListInstancesRequest

    ctx, _ = make_context(database)
    request = ListInstancesRequest(
        workspace_id=workspace,
        cadence_id=cadence_id,
        statuses=list(status) if status else None,
        scheduled_from=parse_when(scheduled_from, "--from"),
        scheduled_to=parse_when(scheduled_to, "--to"),
        limit=limit,
        offset=offset,
    )
    output_paged(_list(ctx, request), as_json=json_out, title="Instances")


@app.command("show")
def show_instance(
    instance_id: str = typer.Argument(..., help="Instance ID"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show instance details."""
    from cadence.ops.instances import get_instance
    from cadence.ops.requests import GetInstanceRequest

    ctx, _ = make_context(database)
    result = get_instance(ctx, GetInstanceRequest(instance_id=instance_id))
    output_result(result, as_json=json_out, title=f"Instance: {instance_id}")


@app.command("start")
def start_instance(
    instance_id: str = typer.Argument(..., help="Instance ID"),
    now: str | None = typer.Option(None, "--now", help="Override the current time (ISO-8601)"),
    user: str | None = typer.Option(None, "--user", "-u"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Begin work on an instance."""
    from cadence.ops.instances import start_instance as _start
    from cadence.ops.requests import StartInstanceRequest

    ctx, _ = make_context(database, user=user)
    result = _start(ctx, StartInstanceRequest(instance_id=instance_id, now=parse_when(now)))
    output_result(result, as_json=json_out, title="Instance Started")


@app.command("complete")
def complete_instance(
    instance_id: str = typer.Argument(..., help="Instance ID"),
    submission_id: str = typer.Option(..., "--submission", help="Submission ID"),
    now: str | None = typer.Option(None, "--now", help="Override the current time (ISO-8601)"),
    user: str | None = typer.Option(None, "--user", "-u"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Record a submission against an instance."""
    from cadence.ops.instances import complete_instance as _complete
    from cadence.ops.requests import CompleteInstanceRequest

    ctx, _ = make_context(database, user=user)
    request = CompleteInstanceRequest(
        instance_id=instance_id, submission_id=submission_id, now=parse_when(now)
    )
    output_result(_complete(ctx, request), as_json=json_out, title="Instance Completed")


@app.command("skip")
def skip_instance(
    instance_id: str = typer.Argument(..., help="Instance ID"),
    reason: str = typer.Option(..., "--reason", "-r"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Skip an instance that has not been started."""
    from cadence.ops.instances import skip_instance as _skip
    from cadence.ops.requests import SkipInstanceRequest

    ctx, _ = make_context(database)
    result = _skip(ctx, SkipInstanceRequest(instance_id=instance_id, reason=reason))
    output_result(result, as_json=json_out, title="Instance Skipped")


@app.command("my-work")
def my_work(
    workspace: str | None = typer.Option(None, "--workspace", "-w"),
    assignee: str | None = typer.Option(None, "--assignee", "-a"),
    now: str | None = typer.Option(None, "--now"),
    database: str | None = typer.Option(None, "--database", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Open work grouped into overdue, in progress, due and up next."""
    from cadence.core.settings import get_settings
    from cadence.ops.instances import get_my_work
    from cadence.ops.requests import MyWorkRequest

    ctx, _ = make_context(database)
    request = MyWorkRequest(
        workspace_id=workspace,
        assignee=assignee,
        up_next_minutes=get_settings().up_next_minutes,
        now=parse_when(now),
    )
    output_result(get_my_work(ctx, request), as_json=json_out, title="My Work")
