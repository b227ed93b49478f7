"""Execution record and log entry types.

Both are parsed at the backend boundary. The backend emits snake_case rows;
camelCase keys are accepted as well.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class ExecutionStatus(Enum):
    """Execution states."""

    PENDING = "pending"  # Submitted, not started
    RUNNING = "running"  # Executing on the server
    COMPLETED = "completed"  # Finished successfully
    FAILED = "failed"  # Finished with error
    CANCELLED = "cancelled"  # Cancelled on request
    ERROR = "error"  # Local only: tracking itself failed before any record arrived

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @classmethod
    def from_remote(cls, value: Any) -> ExecutionStatus:
        """Parse a remote status string.

        ``error`` is a local pseudo-state and unknown strings are treated as
        pending, so neither can stop polling by accident.
        """
        try:
            status = cls(str(value).lower())
        except ValueError:
            logger.warning("execution_status_unknown: value=%r", value)
            return cls.PENDING
        return cls.PENDING if status is cls.ERROR else status


TERMINAL_STATUSES = frozenset(
    {ExecutionStatus.COMPLETED, ExecutionStatus.FAILED, ExecutionStatus.CANCELLED}
)


class LogLevel(Enum):
    """Log line severity."""

    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @classmethod
    def parse(cls, value: Any) -> LogLevel:
        text = str(value or "").lower()
        if text == "warning":
            return cls.WARN
        try:
            return cls(text)
        except ValueError:
            return cls.INFO


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO 8601 timestamp (``Z`` suffix allowed); None if unusable."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


@dataclass(frozen=True)
class ExecutionRecord:
    """Server-owned state of one workflow run.

    ``output_data`` is kept exactly as received (string, object or None);
    the output module classifies it.
    """

    execution_id: str
    status: ExecutionStatus
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error_message: str | None = None
    output_data: Any = None
    workflow_id: str | None = None
    workflow_name: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ExecutionRecord:
        """Parse a raw execution row.

        Raises:
            ValueError: If ``data`` is not a mapping.
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"Execution record must be an object, got {type(data).__name__}")

        error_message = _first(data, "error_message", "errorMessage")
        workflow_id = _first(data, "workflow_id", "workflowId")
        workflow_name = _first(data, "workflow_name", "workflowName")
        return cls(
            execution_id=str(_first(data, "id", "execution_id", "executionId") or ""),
            status=ExecutionStatus.from_remote(data.get("status")),
            started_at=parse_timestamp(_first(data, "started_at", "startedAt")),
            completed_at=parse_timestamp(_first(data, "completed_at", "completedAt")),
            error_message=str(error_message) if error_message else None,
            output_data=_first(data, "output_data", "outputData"),
            workflow_id=str(workflow_id) if workflow_id is not None else None,
            workflow_name=str(workflow_name) if workflow_name is not None else None,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "id": self.execution_id,
            "status": self.status.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "error_message": self.error_message,
            "output_data": self.output_data,
            "workflow_id": self.workflow_id,
            "workflow_name": self.workflow_name,
        }


@dataclass(frozen=True)
class LogEntry:
    """One execution log line."""

    message: str
    level: LogLevel = LogLevel.INFO
    timestamp: datetime | None = None
    node_id: str | None = None
    source: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> LogEntry:
        if not isinstance(data, Mapping):
            return cls(message=str(data))
        node_id = _first(data, "node_id", "nodeId")
        source = data.get("source")
        return cls(
            message=str(data.get("message") or ""),
            level=LogLevel.parse(_first(data, "log_level", "level")),
            timestamp=parse_timestamp(data.get("timestamp")),
            node_id=str(node_id) if node_id is not None else None,
            source=str(source) if source is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "log_level": self.level.value,
            "node_id": self.node_id,
            "source": self.source,
            "message": self.message,
        }
