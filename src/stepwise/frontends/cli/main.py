"""CLI entry point."""

from __future__ import annotations

import os

import rich_click as click

from stepwise.core.logging_config import configure_logging
from stepwise.frontends.cli.executions import executions
from stepwise.frontends.cli.nodes import nodes
from stepwise.frontends.cli.workflow import graph_command, vars_command

click.rich_click.USE_RICH_MARKUP = True
click.rich_click.USE_MARKDOWN = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = "Try running '--help' for more information."
click.rich_click.ERRORS_EPILOGUE = ""
click.rich_click.MAX_WIDTH = 100


@click.group()
@click.version_option(package_name="stepwise")
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Log level (default: STEPWISE_LOG_LEVEL or WARNING)",
)
@click.option("--verbose", "-v", is_flag=True, help="Shorthand for --log-level DEBUG")
def cli(log_level: str | None, verbose: bool) -> None:
    """Stepwise - author and follow linear workflows from the terminal.

    **Backend commands** (need STEPWISE_API_URL / STEPWISE_API_TOKEN):

        stepwise nodes    Inspect dynamically generated node types

        stepwise exec     Watch, cancel and read output of executions

    **Offline commands** (work on saved workflow JSON files):

        stepwise vars     List variables available to a step

        stepwise graph    Normalize a saved workflow
    """
    if verbose:
        log_level = "DEBUG"
    configure_logging(level=log_level or os.environ.get("STEPWISE_LOG_LEVEL") or "WARNING")


cli.add_command(nodes)
cli.add_command(executions)
cli.add_command(vars_command)
cli.add_command(graph_command)


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
