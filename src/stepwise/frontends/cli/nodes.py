"""Node type commands (dynamic node registry)."""

from __future__ import annotations

import rich_click as click

from stepwise.core.errors import ApiError
from stepwise.frontends.cli.output import (
    error_exit,
    output_json,
    output_json_or_table,
    print_table,
    truncate,
)
from stepwise.frontends.cli.utils import app_connection, async_command, backend_options


@click.group()
def nodes() -> None:
    """Inspect dynamically generated node types.

    **Commands:**

        stepwise nodes list     List node types known to the backend

        stepwise nodes show     Show one node type's parameters and form
    """


@nodes.command("list")
@click.option("--category", "-c", default=None, help="Only show this category")
@click.option("--json", "-j", "json_output", is_flag=True, help="Output as JSON")
@backend_options
@async_command
async def nodes_list(
    category: str | None,
    json_output: bool,
    api_url: str | None,
    token: str | None,
) -> None:
    """List node types, grouped by category.

    **Examples:**

        stepwise nodes list

        stepwise nodes list --category Data --json
    """
    async with app_connection(api_url, token, sync_nodes=True) as app:
        grouped = app.registry.list_by_category()

    if category is not None:
        grouped = {name: defs for name, defs in grouped.items() if name == category}
    definitions = [d for defs in grouped.values() for d in defs]

    def show_table() -> None:
        if not definitions:
            click.echo("No node types available")
            return
        rows = [
            [
                d.definition_id,
                truncate(d.display_name, 28),
                d.category,
                str(d.version),
                str(len(d.inputs)),
            ]
            for d in definitions
        ]
        print_table(
            ["ID", "NAME", "CATEGORY", "VERSION", "INPUTS"],
            rows,
            widths=[38, 30, 16, 8, 6],
            separator_width=100,
        )

    output_json_or_table([d.to_dict() for d in definitions], json_output, show_table)


@nodes.command("show")
@click.argument("definition_id")
@click.option("--json", "-j", "json_output", is_flag=True, help="Output as JSON")
@backend_options
@async_command
async def nodes_show(
    definition_id: str,
    json_output: bool,
    api_url: str | None,
    token: str | None,
) -> None:
    """Show a node type's inputs, outputs and form fields.

    **Examples:**

        stepwise nodes show 7f3c2a10-...
    """
    async with app_connection(api_url, token) as app:
        try:
            descriptor = await app.client.get_node_descriptor(definition_id)
        except ApiError as e:
            if e.status_code == 404:
                error_exit(f"Node type not found: {definition_id}")
            raise
        definition = app.registry.register(descriptor)

    if json_output:
        output_json(definition.to_dict())
        return

    click.echo(f"{definition.display_name} (v{definition.version})")
    click.echo(f"Category: {definition.category}")
    if definition.description:
        click.echo(f"Description: {definition.description}")

    for title, params in (("Inputs", definition.inputs), ("Outputs", definition.outputs)):
        click.echo(f"\n{title}:")
        if not params:
            click.echo("  (none)")
        for param in params:
            flag = " *" if param.required else ""
            click.echo(f"  {param.name}{flag}  [{param.kind.value}]  {param.description}")

    if definition.form_fields:
        click.echo("\nForm fields:")
        for form_field in definition.form_fields:
            click.echo(f"  {form_field.name}  [{form_field.kind}]  {form_field.label}")

    if definition.config_note:
        click.echo(f"\n{definition.config_note}")
