"""Shared utilities for CLI commands."""

from __future__ import annotations

import asyncio
import functools
import json
from collections.abc import AsyncIterator, Callable, Coroutine
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, TypeVar

import rich_click as click

from stepwise.app import StepwiseApp
from stepwise.config import StepwiseConfig
from stepwise.core.errors import StepwiseError
from stepwise.core.sequence.graph import WorkflowGraph
from stepwise.frontends.cli.output import error_exit

F = TypeVar("F", bound=Callable[..., Any])


def async_command(fn: Callable[..., Coroutine[Any, Any, None]]) -> Callable[..., None]:
    """Run an async click command with asyncio.run(). StepwiseErrors exit 1."""

    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> None:
        try:
            asyncio.run(fn(*args, **kwargs))
        except StepwiseError as e:
            error_exit(str(e))

    return wrapper


def backend_options(fn: F) -> F:
    """Add --api-url and --token to a command."""
    fn = click.option(
        "--token",
        "token",
        default=None,
        help="Bearer token (default: STEPWISE_API_TOKEN)",
    )(fn)
    fn = click.option(
        "--api-url",
        "api_url",
        default=None,
        help="Backend base URL (default: STEPWISE_API_URL)",
    )(fn)
    return fn


def build_config(api_url: str | None, token: str | None) -> StepwiseConfig:
    """Environment config with command-line overrides applied."""
    config = StepwiseConfig.from_env()
    if api_url:
        config.api_url = api_url
    if token:
        config.api_token = token
    return config


@asynccontextmanager
async def app_connection(
    api_url: str | None,
    token: str | None,
    sync_nodes: bool = False,
) -> AsyncIterator[StepwiseApp]:
    """Open a StepwiseApp for one command and close it afterwards.

    Args:
        api_url: --api-url override.
        token: --token override.
        sync_nodes: Load the node registry before yielding.
    """
    async with StepwiseApp(build_config(api_url, token)) as app:
        if sync_nodes:
            await app.begin_session()
        yield app


def load_workflow_file(path: str) -> WorkflowGraph:
    """Read a saved workflow ({nodes, edges}) from a JSON file."""
    try:
        data = json.loads(Path(path).read_text())
    except OSError as e:
        error_exit(f"Cannot read {path}: {e}")
    except ValueError as e:
        error_exit(f"{path} is not valid JSON: {e}")
    try:
        return WorkflowGraph.from_dict(data)
    except ValueError as e:
        error_exit(f"{path}: {e}")
