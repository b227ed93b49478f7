"""Execution Tracker: status polling and output extraction for one run."""

from stepwise.core.execution.models import (
    TERMINAL_STATUSES,
    ExecutionRecord,
    ExecutionStatus,
    LogEntry,
    LogLevel,
)
from stepwise.core.execution.output import (
    NO_ERRORS_MARKER,
    NO_OUTPUT_MARKER,
    DirectFields,
    RawString,
    ResultsMap,
    classify,
    extract_stderr,
    extract_stdout,
)
from stepwise.core.execution.tracker import (
    ExecutionTracker,
    PollHandle,
    TrackerSnapshot,
    format_duration,
)

__all__ = [
    "NO_ERRORS_MARKER",
    "NO_OUTPUT_MARKER",
    "TERMINAL_STATUSES",
    "DirectFields",
    "ExecutionRecord",
    "ExecutionStatus",
    "ExecutionTracker",
    "LogEntry",
    "LogLevel",
    "PollHandle",
    "RawString",
    "ResultsMap",
    "TrackerSnapshot",
    "classify",
    "extract_stderr",
    "extract_stdout",
    "format_duration",
]
