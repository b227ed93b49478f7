"""Output formatting utilities for CLI commands."""

from __future__ import annotations

import json
import sys
from typing import TYPE_CHECKING, Any, NoReturn

import rich_click as click
from rich.console import Console
from rich.text import Text

from stepwise.core.execution.models import ExecutionStatus, LogEntry, LogLevel

if TYPE_CHECKING:
    from collections.abc import Callable

    from stepwise.core.execution.tracker import TrackerSnapshot

STATUS_STYLES: dict[ExecutionStatus, str] = {
    ExecutionStatus.PENDING: "yellow",
    ExecutionStatus.RUNNING: "cyan",
    ExecutionStatus.COMPLETED: "bold green",
    ExecutionStatus.FAILED: "bold red",
    ExecutionStatus.CANCELLED: "bright_black",
    ExecutionStatus.ERROR: "red",
}

LEVEL_STYLES: dict[LogLevel, str] = {
    LogLevel.INFO: "white",
    LogLevel.WARN: "yellow",
    LogLevel.ERROR: "red",
}


def print_table(
    headers: list[str],
    rows: list[list[str]],
    widths: list[int] | None = None,
    separator_width: int = 70,
) -> None:
    """Print a fixed-width table with a header row.

    Args:
        headers: Column header strings
        rows: Cell values per row
        widths: Column widths; header lengths when omitted. The last
            column is never padded.
        separator_width: Width of the line under the header
    """
    if widths is None:
        widths = [len(h) for h in headers]

    fmt = " ".join(
        "{}" if i == len(widths) - 1 else f"{{:<{width}}}" for i, width in enumerate(widths)
    )

    click.echo(fmt.format(*headers))
    click.echo("-" * separator_width)
    for row in rows:
        padded_row = list(row) + [""] * (len(headers) - len(row))
        click.echo(fmt.format(*padded_row[: len(headers)]))


def output_json(data: Any, indent: int = 2) -> None:
    """Output data as formatted JSON."""
    click.echo(json.dumps(data, indent=indent, default=str))


def output_json_or_table(
    data: Any,
    json_flag: bool,
    table_fn: Callable[[], None],
) -> None:
    """Output as JSON if flag is set, otherwise call table function."""
    if json_flag:
        output_json(data)
    else:
        table_fn()


def error_exit(message: str, code: int = 1) -> NoReturn:
    """Print error message and exit with code."""
    click.echo(f"Error: {message}", err=True)
    sys.exit(code)


def truncate(text: str, width: int) -> str:
    return text if len(text) <= width else text[: width - 3] + "..."


def status_text(status: ExecutionStatus | None) -> Text:
    """Status label styled by state."""
    if status is None:
        return Text("idle", style="dim")
    return Text(status.value, style=STATUS_STYLES[status])


def print_snapshot(console: Console, snapshot: TrackerSnapshot, duration: str) -> None:
    """One status line for `exec watch`."""
    line = Text.assemble(
        (f"{snapshot.execution_id} ", "bold"),
        status_text(snapshot.status),
        (f"  {duration}", "dim"),
        (f"  logs={len(snapshot.logs)}", "dim"),
    )
    if snapshot.last_error is not None:
        line.append(f"  fetch failed: {snapshot.last_error}", style="yellow")
    console.print(line)


def print_logs(console: Console, logs: tuple[LogEntry, ...] | list[LogEntry]) -> None:
    """Log lines as `time level [node] message`."""
    if not logs:
        console.print("[dim]No logs[/]")
        return
    for log in logs:
        stamp = log.timestamp.strftime("%H:%M:%S") if log.timestamp else "--:--:--"
        line = Text.assemble(
            (f"{stamp} ", "dim cyan"),
            (f"{log.level.value:<5} ", LEVEL_STYLES[log.level]),
            (f"[{log.node_id}] " if log.node_id else "", "magenta"),
            log.message,
        )
        console.print(line)
