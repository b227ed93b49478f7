"""Stdout/stderr extraction from an execution record and its logs.

The backend's ``output_data`` comes in several shapes. It is classified
into a tagged union first:

    RawString     output_data is itself a non-empty string
    DirectFields  top-level stdout / stderr / result fields of an object
    ResultsMap    per-node entries under output_data.results

Each extractor is then a literal, ordered tuple of strategies. The first
strategy that yields text wins; if none does, a fixed marker is returned.

    stdout  raw string, stdout field, per-node stdout (or result),
            result field, program log lines, non-error log lines
    stderr  stderr field, per-node stderr, error_message,
            error log lines

Per-node entries are joined with newlines in the mapping's own key order,
which is the key order of the JSON object the backend sent.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from stepwise.core.execution.models import ExecutionRecord, LogEntry, LogLevel

NO_OUTPUT_MARKER = "No output available"
NO_ERRORS_MARKER = "No errors available"

# Log lines emitted by the engine itself rather than by a step
ENGINE_SOURCE = "engine"
ENGINE_NOISE = ("Starting execution", "Processing node", "completed successfully")


@dataclass(frozen=True)
class RawString:
    text: str


@dataclass(frozen=True)
class DirectFields:
    stdout: Any = None
    stderr: Any = None
    result: Any = None


@dataclass(frozen=True)
class ResultsMap:
    """Per-node result objects, in backend key order."""

    entries: tuple[tuple[str, Mapping[str, Any]], ...]


OutputShape = RawString | DirectFields | ResultsMap


def classify(output_data: Any) -> tuple[OutputShape, ...]:
    """Split a raw output payload into the shapes it carries."""
    if isinstance(output_data, str):
        return (RawString(output_data),) if output_data else ()
    if not isinstance(output_data, Mapping):
        return ()

    shapes: list[OutputShape] = [
        DirectFields(
            stdout=output_data.get("stdout"),
            stderr=output_data.get("stderr"),
            result=output_data.get("result"),
        )
    ]
    results = output_data.get("results")
    if isinstance(results, Mapping):
        items = [(str(key), value) for key, value in results.items()]
    elif isinstance(results, list):
        items = [(str(index), value) for index, value in enumerate(results)]
    else:
        items = []
    if items:
        entries = tuple((key, value) for key, value in items if isinstance(value, Mapping))
        shapes.append(ResultsMap(entries=entries))
    return tuple(shapes)


@dataclass(frozen=True)
class OutputSource:
    """Everything an extraction strategy may look at."""

    shapes: tuple[OutputShape, ...]
    record: ExecutionRecord | None
    logs: tuple[LogEntry, ...]

    @classmethod
    def of(cls, record: ExecutionRecord | None, logs: Sequence[LogEntry] = ()) -> OutputSource:
        return cls(
            shapes=classify(record.output_data) if record is not None else (),
            record=record,
            logs=tuple(logs),
        )

    def shape(self, kind: type[Any]) -> Any:
        for shape in self.shapes:
            if isinstance(shape, kind):
                return shape
        return None


Strategy = Callable[[OutputSource], str | None]


def stringify(value: Any) -> str:
    """Strings as-is; anything else as indented JSON."""
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, indent=2)
    except (TypeError, ValueError):
        return str(value)


def _join(parts: Sequence[str]) -> str | None:
    return "\n".join(parts) if parts else None


# =============================================================================
# Strategies
# =============================================================================


def raw_string(source: OutputSource) -> str | None:
    shape = source.shape(RawString)
    return shape.text if shape else None


def direct_stdout(source: OutputSource) -> str | None:
    shape = source.shape(DirectFields)
    return stringify(shape.stdout) if shape and shape.stdout else None


def results_stdout(source: OutputSource) -> str | None:
    shape = source.shape(ResultsMap)
    if shape is None:
        return None
    parts = []
    for _, node_result in shape.entries:
        if node_result.get("stdout"):
            parts.append(stringify(node_result["stdout"]))
        elif node_result.get("result"):
            parts.append(stringify(node_result["result"]))
    return _join(parts)


def direct_result(source: OutputSource) -> str | None:
    shape = source.shape(DirectFields)
    return stringify(shape.result) if shape and shape.result else None


def program_log_lines(source: OutputSource) -> str | None:
    """Info lines written by steps, without the engine's own progress chatter."""
    return _join(
        [
            log.message
            for log in source.logs
            if log.level is LogLevel.INFO
            and log.source != ENGINE_SOURCE
            and not any(noise in log.message for noise in ENGINE_NOISE)
        ]
    )


def non_error_log_lines(source: OutputSource) -> str | None:
    joined = "\n".join(log.message for log in source.logs if log.level is not LogLevel.ERROR)
    return joined or None


def direct_stderr(source: OutputSource) -> str | None:
    shape = source.shape(DirectFields)
    return stringify(shape.stderr) if shape and shape.stderr else None


def results_stderr(source: OutputSource) -> str | None:
    shape = source.shape(ResultsMap)
    if shape is None:
        return None
    return _join(
        [stringify(node["stderr"]) for _, node in shape.entries if node.get("stderr")]
    )


def record_error_message(source: OutputSource) -> str | None:
    if source.record is None:
        return None
    return source.record.error_message or None


def error_log_lines(source: OutputSource) -> str | None:
    return _join([log.message for log in source.logs if log.level is LogLevel.ERROR])


STDOUT_STRATEGIES: tuple[Strategy, ...] = (
    raw_string,
    direct_stdout,
    results_stdout,
    direct_result,
    program_log_lines,
    non_error_log_lines,
)

STDERR_STRATEGIES: tuple[Strategy, ...] = (
    direct_stderr,
    results_stderr,
    record_error_message,
    error_log_lines,
)


def first_match(strategies: Sequence[Strategy], source: OutputSource, marker: str) -> str:
    """Run strategies in order and return the first text produced, else ``marker``."""
    for strategy in strategies:
        text = strategy(source)
        if text:
            return text
    return marker


def extract_stdout(record: ExecutionRecord | None, logs: Sequence[LogEntry] = ()) -> str:
    return first_match(STDOUT_STRATEGIES, OutputSource.of(record, logs), NO_OUTPUT_MARKER)


def extract_stderr(record: ExecutionRecord | None, logs: Sequence[LogEntry] = ()) -> str:
    return first_match(STDERR_STRATEGIES, OutputSource.of(record, logs), NO_ERRORS_MARKER)
