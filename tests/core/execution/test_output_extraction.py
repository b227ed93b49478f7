"""Tests for stdout/stderr extraction."""

from __future__ import annotations

import pytest

from stepwise.core.execution import (
    NO_ERRORS_MARKER,
    NO_OUTPUT_MARKER,
    DirectFields,
    ExecutionRecord,
    ExecutionStatus,
    LogEntry,
    LogLevel,
    RawString,
    ResultsMap,
    classify,
    extract_stderr,
    extract_stdout,
)


def record(output_data=None, status=ExecutionStatus.COMPLETED, error_message=None):
    return ExecutionRecord(
        execution_id="exec-1",
        status=status,
        output_data=output_data,
        error_message=error_message,
    )


def log(message, level=LogLevel.INFO, source=None):
    return LogEntry(message=message, level=level, source=source)


class TestClassify:
    """Tests for classify()."""

    def test_string(self):
        assert classify("hello") == (RawString("hello"),)

    @pytest.mark.parametrize("value", [None, "", 42, ["a"]])
    def test_nothing_usable(self, value):
        assert classify(value) == ()

    def test_object_with_results(self):
        shapes = classify({"stdout": "x", "results": {"n1": {"stdout": "a"}, "n2": "junk"}})

        assert shapes[0] == DirectFields(stdout="x")
        assert shapes[1] == ResultsMap(entries=(("n1", {"stdout": "a"}),))

    def test_results_list(self):
        shapes = classify({"results": [{"stdout": "a"}, {"stdout": "b"}]})

        assert isinstance(shapes[1], ResultsMap)
        assert [key for key, _ in shapes[1].entries] == ["0", "1"]


class TestExtractStdout:
    """Tests for extract_stdout() precedence."""

    def test_raw_string_output(self):
        assert extract_stdout(record("all done")) == "all done"

    def test_direct_stdout_beats_results(self):
        data = {"stdout": "top", "results": {"n1": {"stdout": "node"}}}

        assert extract_stdout(record(data)) == "top"

    def test_results_joined_in_key_order(self):
        data = {"results": {"n1": {"stdout": "a"}, "n2": {"stdout": "b"}}}

        assert extract_stdout(record(data)) == "a\nb"

    def test_node_result_used_when_no_stdout(self):
        data = {"results": {"n1": {"result": {"rows": 2}}, "n2": {"stdout": "b"}}}

        assert extract_stdout(record(data)) == '{\n  "rows": 2\n}\nb'

    def test_results_beat_direct_result(self):
        data = {"result": "direct", "results": {"n1": {"stdout": "node"}}}

        assert extract_stdout(record(data)) == "node"

    def test_direct_result(self):
        assert extract_stdout(record({"result": [1, 2]})) == "[\n  1,\n  2\n]"

    def test_program_logs_skip_engine_lines(self):
        logs = [
            log("Starting execution of workflow"),
            log("Processing node n1"),
            log("hello from script", source="script"),
            log("engine heartbeat", source="engine"),
            log("oops", level=LogLevel.ERROR),
        ]

        assert extract_stdout(record({}), logs) == "hello from script"

    def test_falls_back_to_all_non_error_lines(self):
        logs = [
            log("Starting execution"),
            log("careful", level=LogLevel.WARN),
            log("bad", level=LogLevel.ERROR),
        ]

        assert extract_stdout(record({}), logs) == "Starting execution\ncareful"

    def test_empty_values_fall_through(self):
        data = {"stdout": "", "results": {"n1": {"stdout": ""}}, "result": None}

        assert extract_stdout(record(data)) == NO_OUTPUT_MARKER

    def test_no_record(self):
        assert extract_stdout(None) == NO_OUTPUT_MARKER


class TestExtractStderr:
    """Tests for extract_stderr() precedence."""

    def test_failed_with_error_message(self):
        failed = record({}, status=ExecutionStatus.FAILED, error_message="boom")

        assert extract_stderr(failed) == "boom"

    def test_direct_stderr_first(self):
        data = {"stderr": "direct", "results": {"n1": {"stderr": "node"}}}

        assert extract_stderr(record(data, error_message="boom")) == "direct"

    def test_results_stderr_joined(self):
        data = {"results": {"n1": {"stderr": "e1"}, "n2": {"stdout": "ok"}, "n3": {"stderr": "e3"}}}

        assert extract_stderr(record(data, error_message="boom")) == "e1\ne3"

    def test_error_log_lines(self):
        logs = [
            log("fine"),
            log("bad one", level=LogLevel.ERROR),
            log("bad two", level=LogLevel.ERROR),
        ]

        assert extract_stderr(record({}), logs) == "bad one\nbad two"

    def test_marker(self):
        assert extract_stderr(record("plain output"), [log("fine")]) == NO_ERRORS_MARKER
