"""Execution commands: watch, cancel, output, logs."""

from __future__ import annotations

import asyncio

import rich_click as click
from rich.console import Console

from stepwise.core.execution.models import LogEntry
from stepwise.core.execution.output import extract_stderr, extract_stdout
from stepwise.frontends.cli.output import (
    error_exit,
    output_json,
    print_logs,
    print_snapshot,
    status_text,
)
from stepwise.frontends.cli.utils import app_connection, async_command, backend_options


@click.group("exec")
def executions() -> None:
    """Follow and control workflow executions.

    **Commands:**

        stepwise exec watch     Poll an execution until it finishes

        stepwise exec cancel    Ask the backend to cancel an execution

        stepwise exec output    Print an execution's stdout or stderr

        stepwise exec logs      Print an execution's log lines
    """


@executions.command("watch")
@click.argument("execution_id")
@click.option("--interval", "-i", type=float, default=None, help="Seconds between fetches")
@click.option("--quiet", "-q", is_flag=True, help="Only print the final output")
@backend_options
@async_command
async def exec_watch(
    execution_id: str,
    interval: float | None,
    quiet: bool,
    api_url: str | None,
    token: str | None,
) -> None:
    """Poll an execution until it reaches a terminal state, then print its output.

    Fetch failures are reported and polling continues. Ctrl+C stops
    watching without cancelling the execution.

    **Examples:**

        stepwise exec watch 42

        stepwise exec watch 42 --interval 5
    """
    console = Console()
    async with app_connection(api_url, token) as app:
        tracker = app.tracker
        if interval is not None:
            if interval <= 0:
                error_exit("--interval must be positive")
            tracker.poll_interval = interval

        if not quiet:
            tracker.subscribe(lambda snap: print_snapshot(console, snap, tracker.duration()))

        handle = app.watch(execution_id)
        try:
            await handle.wait()
        except asyncio.CancelledError:
            handle.cancel()
            raise

        console.print()
        console.rule("stdout")
        click.echo(tracker.extract_stdout())
        console.rule("stderr")
        click.echo(tracker.extract_stderr())
        console.print(status_text(tracker.status))


@executions.command("cancel")
@click.argument("execution_id")
@click.option("--json", "-j", "json_output", is_flag=True, help="Output as JSON")
@backend_options
@async_command
async def exec_cancel(
    execution_id: str,
    json_output: bool,
    api_url: str | None,
    token: str | None,
) -> None:
    """Request cancellation and show the status the backend reports afterwards.

    **Examples:**

        stepwise exec cancel 42
    """
    async with app_connection(api_url, token) as app:
        app.tracker.attach(execution_id)
        snapshot = await app.tracker.cancel()

    if json_output:
        output_json(
            {
                "execution_id": execution_id,
                "status": snapshot.status.value if snapshot.status else None,
                "error": str(snapshot.last_error) if snapshot.last_error else None,
            }
        )
        return
    Console().print(f"Cancellation requested for {execution_id}:", status_text(snapshot.status))


@executions.command("output")
@click.argument("execution_id")
@click.option("--stderr", "-e", "show_stderr", is_flag=True, help="Print stderr instead of stdout")
@click.option("--json", "-j", "json_output", is_flag=True, help="Output both streams as JSON")
@backend_options
@async_command
async def exec_output(
    execution_id: str,
    show_stderr: bool,
    json_output: bool,
    api_url: str | None,
    token: str | None,
) -> None:
    """Print the normalized stdout (or stderr) of an execution.

    **Examples:**

        stepwise exec output 42

        stepwise exec output 42 --stderr
    """
    async with app_connection(api_url, token) as app:
        app.tracker.attach(execution_id)
        snapshot = await app.tracker.refresh()

    if snapshot.record is None:
        error_exit(f"Failed to fetch execution {execution_id}: {snapshot.last_error}")

    stdout = extract_stdout(snapshot.record, snapshot.logs)
    stderr = extract_stderr(snapshot.record, snapshot.logs)
    if json_output:
        output_json(
            {
                "execution_id": execution_id,
                "status": snapshot.record.status.value,
                "stdout": stdout,
                "stderr": stderr,
            }
        )
    else:
        click.echo(stderr if show_stderr else stdout)


@executions.command("logs")
@click.argument("execution_id")
@click.option("--node", "-n", "node_id", default=None, help="Only logs from this node")
@click.option("--json", "-j", "json_output", is_flag=True, help="Output as JSON")
@backend_options
@async_command
async def exec_logs(
    execution_id: str,
    node_id: str | None,
    json_output: bool,
    api_url: str | None,
    token: str | None,
) -> None:
    """Print an execution's log lines, optionally for one node.

    **Examples:**

        stepwise exec logs 42

        stepwise exec logs 42 --node step-1 --json
    """
    async with app_connection(api_url, token) as app:
        if node_id is None:
            rows = await app.client.get_execution_logs(execution_id)
        else:
            rows = await app.client.get_node_logs(execution_id, node_id)

    logs = [LogEntry.from_dict(row) for row in rows]
    if json_output:
        output_json([log.to_dict() for log in logs])
    else:
        print_logs(Console(), logs)
