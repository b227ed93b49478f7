"""Logging setup for stepwise.

Library modules only create loggers (``logging.getLogger(__name__)``); handlers
are installed once by the application entry point (the CLI, or an embedding
application calling configure_logging()).

Usage:
    from stepwise.core.logging_config import configure_logging

    configure_logging(level="DEBUG")

Environment Variables:
    STEPWISE_LOG_LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    STEPWISE_LOG_FORMAT: Output format ("text" or "json")
    STEPWISE_LOG_FILE: Optional log file path
"""

from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

TEXT_FORMAT = "%(asctime)s.%(msecs)03d - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Libraries that are chatty at DEBUG and drown out polling/sync messages
NOISY_LOGGERS = ("aiohttp.access", "aiohttp.client", "asyncio")

# LogRecord attributes that are not user-supplied "extra" fields
_RECORD_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }
)

_configured = False


@dataclass
class LogConfig:
    """Resolved logging settings.

    Attributes:
        level: Log level name.
        format: "text" or "json".
        file_path: Optional file to log to in addition to stderr.
    """

    level: str = "INFO"
    format: Literal["text", "json"] = "text"
    file_path: str | None = None

    @classmethod
    def from_env(cls) -> LogConfig:
        """Build a config from STEPWISE_LOG_* environment variables."""
        fmt = os.environ.get("STEPWISE_LOG_FORMAT", "text").lower()
        return cls(
            level=os.environ.get("STEPWISE_LOG_LEVEL", "INFO").upper(),
            format="json" if fmt == "json" else "text",
            file_path=os.environ.get("STEPWISE_LOG_FILE") or None,
        )


class JsonFormatter(logging.Formatter):
    """One JSON object per line.

    {"timestamp": "...", "level": "INFO", "logger": "stepwise.core.registry",
     "message": "registry_synced: count=3", "extra": {...}}
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        extra = {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS}
        if extra:
            payload["extra"] = extra

        return json.dumps(payload, default=str)


def configure_logging(
    level: str | None = None,
    format: Literal["text", "json"] | None = None,
    file_path: str | None = None,
    force: bool = False,
) -> LogConfig:
    """Install root handlers.

    Explicit arguments win over STEPWISE_LOG_* variables. Calling again is a
    no-op unless force=True.

    Args:
        level: Log level name.
        format: "text" or "json".
        file_path: Optional log file.
        force: Reconfigure even if already configured.

    Returns:
        The effective configuration.
    """
    global _configured

    config = LogConfig.from_env()
    if level:
        config.level = level.upper()
    if format:
        config.format = format
    if file_path:
        config.file_path = file_path

    if _configured and not force:
        return config

    formatter: logging.Formatter
    if config.format == "json":
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT)

    root = logging.getLogger()
    root.setLevel(getattr(logging, config.level, logging.INFO))
    root.handlers.clear()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    root.addHandler(console)

    if config.file_path:
        file_handler = logging.FileHandler(config.file_path)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True
    return config
