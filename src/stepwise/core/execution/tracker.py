"""ExecutionTracker - local mirror of one submitted run.

Polling runs as one asyncio task per tracked execution, behind a
PollHandle. The loop fetches immediately, then every ``poll_interval``
seconds until the remote status is terminal:

    fetch -> terminal? -> stop
          -> sleep(poll_interval) -> wait for auto-refresh gate -> fetch ...

A failed fetch is recorded in ``last_error`` and the loop keeps going with
no backoff and no cap. Only a terminal remote status or cancelling the
handle ends it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from stepwise.core.execution.models import ExecutionRecord, ExecutionStatus, LogEntry
from stepwise.core.execution.output import extract_stderr, extract_stdout

if TYPE_CHECKING:
    from stepwise.transport.protocols import ExecutionBackend

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 2.0


@dataclass(frozen=True)
class TrackerSnapshot:
    """State handed to tracker subscribers after every applied fetch."""

    execution_id: str | None
    status: ExecutionStatus | None
    record: ExecutionRecord | None
    logs: tuple[LogEntry, ...]
    last_error: Exception | None


SnapshotCallback = Callable[[TrackerSnapshot], None]


class PollHandle:
    """Handle to a running poll loop. cancel() is the only way to stop it."""

    def __init__(self, execution_id: str, task: asyncio.Task[None]) -> None:
        self.execution_id = execution_id
        self._task = task
        self._cancelled = False

    def cancel(self) -> None:
        """Stop polling now. Results of a fetch already in flight are discarded."""
        if self._cancelled:
            return
        self._cancelled = True
        self._task.cancel()
        logger.debug("poll_cancelled: execution_id=%s", self.execution_id)

    def _finish(self) -> None:
        """End the loop after a terminal record arrived outside of it."""
        if not self._task.done() and self._task is not asyncio.current_task():
            self._task.cancel()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        """True once the loop has finished, for any reason."""
        return self._task.done()

    async def wait(self) -> None:
        """Wait until the loop ends (terminal status or cancellation)."""
        await asyncio.wait({self._task})


class ExecutionTracker:
    """Tracks one execution at a time.

    Example:
        >>> tracker = ExecutionTracker(backend_client)
        >>> handle = tracker.start("exec-123")
        >>> await handle.wait()
        >>> tracker.status, tracker.extract_stdout()
    """

    def __init__(
        self,
        backend: ExecutionBackend,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        """Create an idle tracker.

        Args:
            backend: Execution endpoints.
            poll_interval: Seconds between fetches while non-terminal.
        """
        self._backend = backend
        self._poll_interval = poll_interval

        self._execution_id: str | None = None
        self._status: ExecutionStatus | None = None
        self._record: ExecutionRecord | None = None
        self._logs: tuple[LogEntry, ...] = ()
        self._last_error: Exception | None = None

        self._handle: PollHandle | None = None
        self._generation = 0
        self._fetch_lock = asyncio.Lock()
        self._auto_refresh = asyncio.Event()
        self._auto_refresh.set()
        self._subscribers: list[SnapshotCallback] = []

    # =========================================================================
    # State
    # =========================================================================

    @property
    def execution_id(self) -> str | None:
        return self._execution_id

    @property
    def status(self) -> ExecutionStatus | None:
        """Last remote status, ERROR before any record arrived, None when idle."""
        return self._status

    @property
    def record(self) -> ExecutionRecord | None:
        return self._record

    @property
    def logs(self) -> tuple[LogEntry, ...]:
        return self._logs

    @property
    def last_error(self) -> Exception | None:
        """Error from the most recent fetch, cleared by the next successful one."""
        return self._last_error

    @property
    def handle(self) -> PollHandle | None:
        return self._handle

    @property
    def is_polling(self) -> bool:
        return self._handle is not None and not self._handle.done

    @property
    def poll_interval(self) -> float:
        return self._poll_interval

    @poll_interval.setter
    def poll_interval(self, seconds: float) -> None:
        if seconds <= 0:
            raise ValueError("poll_interval must be positive")
        self._poll_interval = seconds

    @property
    def auto_refresh(self) -> bool:
        return self._auto_refresh.is_set()

    def snapshot(self) -> TrackerSnapshot:
        return TrackerSnapshot(
            execution_id=self._execution_id,
            status=self._status,
            record=self._record,
            logs=self._logs,
            last_error=self._last_error,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def attach(self, execution_id: str) -> None:
        """Track an execution without polling; use refresh() and cancel() by hand."""
        self.stop()
        self._execution_id = execution_id
        self._status = ExecutionStatus.PENDING
        self._record = None
        self._logs = ()
        self._last_error = None

    def start(self, execution_id: str) -> PollHandle:
        """Begin tracking and polling an execution, replacing any previous one.

        Must be called from a running event loop.
        """
        self.attach(execution_id)
        generation = self._generation
        task = asyncio.create_task(self._poll(generation), name=f"poll-{execution_id}")
        self._handle = PollHandle(execution_id, task)
        logger.info("tracking_started: execution_id=%s", execution_id)
        return self._handle

    def stop(self) -> None:
        """Cancel polling and discard any fetch still in flight. State is kept."""
        self._generation += 1
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def reset(self) -> None:
        """Stop and forget the tracked execution."""
        self.stop()
        self._execution_id = None
        self._status = None
        self._record = None
        self._logs = ()
        self._last_error = None

    def set_auto_refresh(self, enabled: bool) -> None:
        """Pause or resume periodic fetching. Fetched state is kept either way."""
        if enabled:
            self._auto_refresh.set()
        else:
            self._auto_refresh.clear()
        logger.debug("auto_refresh_changed: enabled=%s", enabled)

    async def refresh(self) -> TrackerSnapshot:
        """Run one fetch cycle now.

        Raises:
            RuntimeError: If no execution is being tracked.
        """
        if self._execution_id is None:
            raise RuntimeError("No execution is being tracked")
        await self._fetch(self._generation)
        return self.snapshot()

    async def cancel(self, execution_id: str | None = None) -> TrackerSnapshot:
        """Ask the backend to cancel, then refetch.

        Local status is never assumed; it changes only when the refetch sees
        the new remote status.

        Raises:
            RuntimeError: If no id is given and nothing is tracked.
            BackendError: If the backend rejects the request. Local state is
                untouched.
        """
        target = execution_id or self._execution_id
        if target is None:
            raise RuntimeError("No execution is being tracked")

        await self._backend.cancel_execution(target)
        logger.info("execution_cancel_requested: execution_id=%s", target)
        if target == self._execution_id:
            await self.refresh()
        return self.snapshot()

    # =========================================================================
    # Output
    # =========================================================================

    def extract_stdout(self) -> str:
        return extract_stdout(self._record, self._logs)

    def extract_stderr(self) -> str:
        return extract_stderr(self._record, self._logs)

    def duration(self, now: datetime | None = None) -> str:
        """Elapsed time of the tracked run ("-" before it started)."""
        if self._record is None:
            return "-"
        return format_duration(self._record.started_at, self._record.completed_at, now)

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        """Register a snapshot callback. Returns a function that unsubscribes."""
        if callback not in self._subscribers:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # =========================================================================
    # Internals
    # =========================================================================

    def _poll_over(self, generation: int) -> bool:
        if generation != self._generation:
            return True
        return self._status is not None and self._status.is_terminal

    async def _poll(self, generation: int) -> None:
        while not self._poll_over(generation):
            await self._fetch(generation)
            if self._poll_over(generation):
                break
            await asyncio.sleep(self._poll_interval)
            await self._auto_refresh.wait()

        if generation == self._generation:
            logger.info(
                "tracking_finished: execution_id=%s status=%s",
                self._execution_id,
                self._status.value if self._status is not None else None,
            )

    async def _fetch(self, generation: int) -> None:
        # Serialized: results apply in the order fetches were issued.
        async with self._fetch_lock:
            await self._fetch_locked(generation)

    async def _fetch_locked(self, generation: int) -> None:
        execution_id = self._execution_id
        if execution_id is None or generation != self._generation:
            return
        try:
            raw_record = await self._backend.get_execution(execution_id)
            raw_logs = await self._backend.get_execution_logs(execution_id)
            record = ExecutionRecord.from_dict(raw_record)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if generation != self._generation:
                return
            logger.warning("execution_fetch_failed: execution_id=%s error=%s", execution_id, e)
            self._last_error = e
            if self._record is None:
                self._status = ExecutionStatus.ERROR
            self._notify()
            return

        if generation != self._generation:
            logger.debug("execution_fetch_discarded: execution_id=%s", execution_id)
            return
        if self._status is not None and self._status.is_terminal and not record.is_terminal:
            logger.debug(
                "execution_status_regression_ignored: execution_id=%s status=%s received=%s",
                execution_id,
                self._status.value,
                record.status.value,
            )
            return

        self._record = record
        self._logs = tuple(
            LogEntry.from_dict(row) for row in (raw_logs if isinstance(raw_logs, list) else [])
        )
        self._status = record.status
        self._last_error = None
        logger.debug(
            "execution_fetched: execution_id=%s status=%s logs=%d",
            execution_id,
            record.status.value,
            len(self._logs),
        )
        if record.is_terminal and self._handle is not None:
            self._handle._finish()
        self._notify()

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("tracker_subscriber_failed: callback=%r", callback)


def format_duration(
    started_at: datetime | None,
    completed_at: datetime | None = None,
    now: datetime | None = None,
) -> str:
    """Format elapsed time as "850ms", "12.3s" or "4.5m".

    A run without ``completed_at`` is measured up to ``now`` (default: the
    current UTC time).
    """
    if started_at is None:
        return "-"
    end = completed_at or now or datetime.now(UTC)
    millis = int((end - started_at).total_seconds() * 1000)
    if millis < 1000:
        return f"{millis}ms"
    if millis < 60_000:
        return f"{millis / 1000:.1f}s"
    return f"{millis / 60_000:.1f}m"
