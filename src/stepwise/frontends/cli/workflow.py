"""Offline commands over saved workflow files: vars, graph."""

from __future__ import annotations

import json
from pathlib import Path

import rich_click as click

from stepwise.core.sequence.model import StepSequence
from stepwise.core.sequence.variables import VariableResolver
from stepwise.frontends.cli.output import error_exit, output_json, print_table
from stepwise.frontends.cli.utils import load_workflow_file


def _load_sequence(file: str) -> StepSequence:
    sequence = StepSequence()
    try:
        sequence.load_graph(load_workflow_file(file))
    except ValueError as e:
        error_exit(f"{file}: {e}")
    return sequence


def _resolve_cursor(sequence: StepSequence, step: str) -> int:
    """Accept a step id or a 0-based index."""
    index = sequence.index_of(step)
    if index is not None:
        return index
    try:
        index = int(step)
    except ValueError:
        error_exit(f"No step with id {step!r}")
    if not 0 <= index < len(sequence):
        error_exit(f"Step index {index} out of range (workflow has {len(sequence)} steps)")
    return index


@click.command("vars")
@click.argument("file")
@click.option("--step", "-s", "step", required=True, help="Step id or 0-based index")
@click.option("--query", "-q", default="", help="Filter by path or description")
@click.option("--json", "-j", "json_output", is_flag=True, help="Output as JSON")
def vars_command(file: str, step: str, query: str, json_output: bool) -> None:
    """List the {{variables}} a step of a saved workflow can reference.

    **Examples:**

        stepwise vars workflow.json --step 2

        stepwise vars workflow.json --step 2 --query result
    """
    sequence = _load_sequence(file)
    cursor = _resolve_cursor(sequence, step)
    scopes = VariableResolver(sequence).scopes_at(cursor, query)

    if json_output:
        output_json(
            [
                {
                    "scope": scope.name,
                    "title": scope.title,
                    "variables": [
                        {
                            "path": b.path,
                            "type": b.value_type,
                            "description": b.description,
                            "token": b.token,
                        }
                        for b in scope.bindings
                    ],
                }
                for scope in scopes
            ]
        )
        return

    if not scopes:
        click.echo(f"No variables match {query!r}")
        return
    rows = [
        [b.token, b.value_type, b.description] for scope in scopes for b in scope.bindings
    ]
    print_table(["VARIABLE", "TYPE", "DESCRIPTION"], rows, widths=[36, 8, 50], separator_width=90)


@click.command("graph")
@click.argument("file")
@click.option("--output", "-o", "output_path", default=None, help="Write to a file")
def graph_command(file: str, output_path: str | None) -> None:
    """Normalize a saved workflow into the linear chain format.

    Nodes keep their order and data. Missing ids and types are filled in,
    positions are re-laid out and edges are rebuilt between consecutive
    nodes.

    **Examples:**

        stepwise graph workflow.json

        stepwise graph workflow.json -o normalized.json
    """
    graph = _load_sequence(file).to_persistable_graph()
    if output_path is None:
        output_json(graph.to_dict())
        return
    Path(output_path).write_text(json.dumps(graph.to_dict(), indent=2) + "\n")
    click.echo(f"Wrote {len(graph.nodes)} nodes, {len(graph.edges)} edges to {output_path}")
