"""Runtime configuration.

Values come from the process environment, after loading ``.env.local`` and
``.env`` (if present) with python-dotenv. Variables already set in the
environment are never overridden by the files.

Environment Variables:
    STEPWISE_API_URL: Backend base URL (default http://localhost:5001/api)
    STEPWISE_API_TOKEN: Bearer token for the backend
    STEPWISE_POLL_INTERVAL: Seconds between execution fetches (default 2.0)
    STEPWISE_REQUEST_TIMEOUT: HTTP request timeout in seconds (default 30.0)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from stepwise.core.execution.tracker import DEFAULT_POLL_INTERVAL
from stepwise.transport.http import DEFAULT_API_URL, BackendClientConfig

logger = logging.getLogger(__name__)

ENV_FILES = (".env.local", ".env")


def _find_project_root(start: Path | None = None) -> Path | None:
    """Walk up from ``start`` (default: cwd) to the directory holding pyproject.toml."""
    current = (start or Path.cwd()).resolve()
    for parent in [current, *current.parents]:
        if (parent / "pyproject.toml").exists():
            return parent
    return None


def load_env_files(start: Path | None = None) -> list[Path]:
    """Load .env.local then .env from the project root (or cwd).

    Returns:
        The files that were loaded.
    """
    root = _find_project_root(start) or (start or Path.cwd())
    loaded = []
    for name in ENV_FILES:
        path = root / name
        if path.exists():
            load_dotenv(path, override=False)
            loaded.append(path)
    if loaded:
        logger.debug("env_files_loaded: %s", ", ".join(str(p) for p in loaded))
    return loaded


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("config_invalid_number: %s=%r, using %s", name, raw, default)
        return default
    if value <= 0:
        logger.warning("config_non_positive: %s=%r, using %s", name, raw, default)
        return default
    return value


@dataclass
class StepwiseConfig:
    """Resolved settings for one StepwiseApp."""

    api_url: str = DEFAULT_API_URL
    api_token: str | None = None
    poll_interval: float = DEFAULT_POLL_INTERVAL
    request_timeout: float = 30.0

    @classmethod
    def from_env(cls, load_files: bool = True) -> StepwiseConfig:
        """Build a config from STEPWISE_* variables.

        Args:
            load_files: Load .env.local / .env first.
        """
        if load_files:
            load_env_files()
        return cls(
            api_url=os.environ.get("STEPWISE_API_URL") or DEFAULT_API_URL,
            api_token=os.environ.get("STEPWISE_API_TOKEN") or None,
            poll_interval=_float_env("STEPWISE_POLL_INTERVAL", DEFAULT_POLL_INTERVAL),
            request_timeout=_float_env("STEPWISE_REQUEST_TIMEOUT", 30.0),
        )

    def client_config(self) -> BackendClientConfig:
        return BackendClientConfig(
            base_url=self.api_url,
            token=self.api_token,
            request_timeout=self.request_timeout,
        )
