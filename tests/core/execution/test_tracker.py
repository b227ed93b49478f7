"""Tests for ExecutionTracker."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from stepwise.core.errors import ApiError
from stepwise.core.execution import ExecutionStatus, ExecutionTracker, format_duration

FAST = 0.01


async def wait_for(handle, timeout: float = 2.0) -> None:
    await asyncio.wait_for(handle.wait(), timeout)


class TestTrackerPolling:
    """Tests for start() and the poll loop."""

    @pytest.mark.asyncio
    async def test_stops_after_terminal_status(self, fake_backend_cls, execution_factory):
        backend = fake_backend_cls(
            [
                execution_factory("running"),
                execution_factory("running"),
                execution_factory("completed"),
            ]
        )
        tracker = ExecutionTracker(backend, poll_interval=FAST)

        handle = tracker.start("exec-1")
        await wait_for(handle)
        await asyncio.sleep(FAST * 5)

        assert tracker.status is ExecutionStatus.COMPLETED
        assert len(backend.fetches) == 3
        assert handle.done is True
        assert tracker.is_polling is False

    @pytest.mark.asyncio
    async def test_first_fetch_is_immediate(self, fake_backend_cls, execution_factory):
        backend = fake_backend_cls([execution_factory("completed")])
        tracker = ExecutionTracker(backend, poll_interval=60)

        await wait_for(tracker.start("exec-1"))

        assert backend.fetches == ["exec-1"]

    @pytest.mark.asyncio
    async def test_error_before_first_record_then_recovers(
        self, fake_backend_cls, execution_factory, transport_error
    ):
        backend = fake_backend_cls([transport_error, execution_factory("completed")])
        tracker = ExecutionTracker(backend, poll_interval=FAST)
        statuses = []
        tracker.subscribe(lambda snap: statuses.append(snap.status))

        await wait_for(tracker.start("exec-1"))

        assert statuses == [ExecutionStatus.ERROR, ExecutionStatus.COMPLETED]
        assert tracker.last_error is None

    @pytest.mark.asyncio
    async def test_error_after_record_keeps_status(
        self, fake_backend_cls, execution_factory, transport_error
    ):
        backend = fake_backend_cls(
            [
                execution_factory("running"),
                transport_error,
                transport_error,
                execution_factory("running"),
            ]
        )
        tracker = ExecutionTracker(backend, poll_interval=FAST)
        seen = []
        tracker.subscribe(lambda snap: seen.append((snap.status, snap.last_error)))

        handle = tracker.start("exec-1")
        while len(seen) < 3:
            await asyncio.sleep(FAST)
        handle.cancel()

        assert seen[1] == (ExecutionStatus.RUNNING, transport_error)
        assert seen[2][0] is ExecutionStatus.RUNNING
        assert tracker.record is not None

    @pytest.mark.asyncio
    async def test_cancelled_handle_discards_in_flight_fetch(self, execution_factory):
        class SlowBackend:
            def __init__(self):
                self.started = asyncio.Event()

            async def get_execution(self, execution_id):
                self.started.set()
                await asyncio.sleep(0.2)
                return execution_factory("completed")

            async def get_execution_logs(self, execution_id):
                return []

        backend = SlowBackend()
        tracker = ExecutionTracker(backend, poll_interval=FAST)
        handle = tracker.start("exec-1")
        await backend.started.wait()

        handle.cancel()
        handle.cancel()
        await wait_for(handle)

        assert handle.cancelled is True
        assert tracker.status is ExecutionStatus.PENDING
        assert tracker.record is None

    @pytest.mark.asyncio
    async def test_start_replaces_previous(self, fake_backend_cls, execution_factory):
        backend = fake_backend_cls([execution_factory("running")])
        tracker = ExecutionTracker(backend, poll_interval=FAST)

        first = tracker.start("exec-1")
        await asyncio.sleep(0)
        second = tracker.start("exec-2")
        await asyncio.sleep(FAST * 3)

        assert first.cancelled is True
        assert first.done is True
        assert tracker.execution_id == "exec-2"
        assert "exec-2" in backend.fetches
        second.cancel()

    @pytest.mark.asyncio
    async def test_auto_refresh_pause(self, fake_backend_cls, execution_factory):
        backend = fake_backend_cls([execution_factory("running")])
        tracker = ExecutionTracker(backend, poll_interval=FAST)
        tracker.set_auto_refresh(False)

        handle = tracker.start("exec-1")
        await asyncio.sleep(FAST * 10)
        paused_count = len(backend.fetches)

        assert paused_count == 1
        assert tracker.status is ExecutionStatus.RUNNING
        assert tracker.auto_refresh is False

        tracker.set_auto_refresh(True)
        await asyncio.sleep(FAST * 10)
        handle.cancel()

        assert len(backend.fetches) > paused_count

    @pytest.mark.asyncio
    async def test_failing_subscriber_isolated(self, fake_backend_cls, execution_factory):
        tracker = ExecutionTracker(fake_backend_cls([execution_factory("completed")]), FAST)
        delivered = []

        def broken(snapshot):
            raise RuntimeError("boom")

        tracker.subscribe(broken)
        unsubscribe = tracker.subscribe(delivered.append)

        await wait_for(tracker.start("exec-1"))
        unsubscribe()
        await tracker.refresh()

        assert len(delivered) == 1

    def test_poll_interval_must_be_positive(self, fake_backend_cls):
        tracker = ExecutionTracker(fake_backend_cls([{}]))

        with pytest.raises(ValueError):
            tracker.poll_interval = 0


class TestTrackerCancel:
    """Tests for cancel()."""

    @pytest.mark.asyncio
    async def test_cancel_refetches(self, fake_backend_cls, execution_factory):
        backend = fake_backend_cls([execution_factory("running"), execution_factory("cancelled")])
        tracker = ExecutionTracker(backend)
        tracker.attach("exec-1")
        await tracker.refresh()

        snapshot = await tracker.cancel()

        assert backend.cancels == ["exec-1"]
        assert snapshot.status is ExecutionStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_no_fetch_after_cancel_reports_terminal(
        self, fake_backend_cls, execution_factory
    ):
        backend = fake_backend_cls([execution_factory("running"), execution_factory("cancelled")])
        tracker = ExecutionTracker(backend, poll_interval=0.1)

        handle = tracker.start("exec-1")
        while not backend.fetches:
            await asyncio.sleep(0)
        await asyncio.sleep(FAST)
        await tracker.cancel()
        await wait_for(handle)
        await asyncio.sleep(0.3)

        assert tracker.status is ExecutionStatus.CANCELLED
        assert len(backend.fetches) == 2
        assert handle.cancelled is False
        assert tracker.is_polling is False

    @pytest.mark.asyncio
    async def test_slow_poll_response_cannot_undo_cancel(self, execution_factory):
        class LaggingBackend:
            """Second fetch answers "running" late; later ones say "cancelled"."""

            def __init__(self):
                self.fetches = 0
                self.slow_fetch_started = asyncio.Event()

            async def get_execution(self, execution_id):
                self.fetches += 1
                if self.fetches == 1:
                    return execution_factory("running")
                if self.fetches == 2:
                    self.slow_fetch_started.set()
                    await asyncio.sleep(0.1)
                    return execution_factory("running")
                return execution_factory("cancelled")

            async def get_execution_logs(self, execution_id):
                return []

            async def cancel_execution(self, execution_id):
                return {"message": "Execution cancelled"}

        backend = LaggingBackend()
        tracker = ExecutionTracker(backend, poll_interval=FAST)
        handle = tracker.start("exec-1")
        await backend.slow_fetch_started.wait()

        snapshot = await tracker.cancel()
        await wait_for(handle)
        await asyncio.sleep(FAST * 5)

        assert snapshot.status is ExecutionStatus.CANCELLED
        assert tracker.status is ExecutionStatus.CANCELLED
        assert backend.fetches == 3

    @pytest.mark.asyncio
    async def test_terminal_status_never_regresses(self, fake_backend_cls, execution_factory):
        backend = fake_backend_cls([execution_factory("cancelled"), execution_factory("running")])
        tracker = ExecutionTracker(backend)
        tracker.attach("exec-1")

        await tracker.refresh()
        await tracker.refresh()

        assert tracker.status is ExecutionStatus.CANCELLED
        assert tracker.record.status is ExecutionStatus.CANCELLED
    @pytest.mark.asyncio
    async def test_cancel_failure_leaves_state(self, fake_backend_cls, execution_factory):
        error = ApiError("Execution cannot be cancelled", 400)
        backend = fake_backend_cls([execution_factory("completed")], cancel_error=error)
        tracker = ExecutionTracker(backend)
        tracker.attach("exec-1")
        await tracker.refresh()

        with pytest.raises(ApiError):
            await tracker.cancel()

        assert tracker.status is ExecutionStatus.COMPLETED
        assert len(backend.fetches) == 1

    @pytest.mark.asyncio
    async def test_cancel_other_execution_does_not_refetch(
        self, fake_backend_cls, execution_factory
    ):
        backend = fake_backend_cls([execution_factory("running")])
        tracker = ExecutionTracker(backend)
        tracker.attach("exec-1")

        await tracker.cancel("exec-9")

        assert backend.cancels == ["exec-9"]
        assert backend.fetches == []

    @pytest.mark.asyncio
    async def test_nothing_tracked(self, fake_backend_cls):
        tracker = ExecutionTracker(fake_backend_cls([{}]))

        with pytest.raises(RuntimeError):
            await tracker.cancel()
        with pytest.raises(RuntimeError):
            await tracker.refresh()


class TestTrackerOutput:
    """Tests for output helpers on the tracker."""

    @pytest.mark.asyncio
    async def test_extract_from_tracked_state(self, fake_backend_cls, execution_factory):
        backend = fake_backend_cls(
            [
                execution_factory(
                    "failed",
                    error_message="boom",
                    output_data={"results": {"n1": {"stdout": "a"}, "n2": {"stdout": "b"}}},
                )
            ],
            logs=[{"message": "line", "log_level": "info"}],
        )
        tracker = ExecutionTracker(backend)
        tracker.attach("exec-1")
        await tracker.refresh()

        assert tracker.extract_stdout() == "a\nb"
        assert tracker.extract_stderr() == "boom"
        assert tracker.logs[0].message == "line"

    def test_reset_forgets_everything(self, fake_backend_cls):
        tracker = ExecutionTracker(fake_backend_cls([{}]))
        tracker.attach("exec-1")

        tracker.reset()

        assert tracker.execution_id is None
        assert tracker.status is None
        assert tracker.duration() == "-"


class TestFormatDuration:
    """Tests for format_duration()."""

    START = datetime(2024, 5, 1, 10, 0, 0, tzinfo=UTC)

    @pytest.mark.parametrize(
        ("elapsed", "expected"),
        [
            (timedelta(milliseconds=850), "850ms"),
            (timedelta(seconds=12.34), "12.3s"),
            (timedelta(minutes=4, seconds=30), "4.5m"),
        ],
    )
    def test_units(self, elapsed, expected):
        assert format_duration(self.START, self.START + elapsed) == expected

    def test_running_measures_to_now(self):
        now = self.START + timedelta(seconds=2)

        assert format_duration(self.START, None, now=now) == "2.0s"

    def test_not_started(self):
        assert format_duration(None) == "-"
