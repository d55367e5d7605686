"""Protection of remote mutations against write-lock windows.

While the device's storage is mounted by a host as USB mass storage, every
mutation is answered with 409 Conflict. The :class:`WriteCoordinator` turns
that answer into backpressure: it pauses, queues the rejected call and every
later one, polls the disk status until a disk is writable again, then replays
the queue in submission order.

Deferred calls are fire-and-forget. Their callers receive ``202`` and never
learn whether the replay succeeded; failures are only logged.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..api import HTTP_ACCEPTED, WebWorkflowClient, is_conflict, is_success
from ..output import OutputFormatter

logger = logging.getLogger(__name__)


class CoordinatorState(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"


@dataclass
class PendingWriteOperation:
    """A deferred remote mutation."""

    kind: str
    """``put_file``, ``put_directory``, ``move`` or ``delete``"""

    target: str
    """Remote path the operation applies to (for log lines)"""

    call: Callable[[], int]
    """Re-invokes the operation and returns its HTTP status"""


class WriteCoordinator:
    """Two-state (active/paused) gate in front of all remote mutations."""

    def __init__(
        self,
        client: WebWorkflowClient,
        writable_poll_interval: float = 5.0,
        output: Optional[OutputFormatter] = None,
    ):
        """Initialize the coordinator.

        Args:
            client: Device client used for mutations and disk-status polls
            writable_poll_interval: Seconds between disk-status polls while paused
            output: Output formatter for PAUSE/RESUME lines
        """
        self.client = client
        self.writable_poll_interval = writable_poll_interval
        self.output = output or OutputFormatter(quiet=True)
        self._queue: deque[PendingWriteOperation] = deque()
        self._lock = threading.Lock()
        self._state = CoordinatorState.ACTIVE
        self._monitor: Optional[threading.Thread] = None
        self._draining = False
        self._stop_event = threading.Event()

    @property
    def state(self) -> CoordinatorState:
        with self._lock:
            return self._state

    @property
    def is_paused(self) -> bool:
        return self.state == CoordinatorState.PAUSED

    def pending(self) -> list[PendingWriteOperation]:
        """Snapshot of the queued operations, oldest first."""
        with self._lock:
            return list(self._queue)

    # =========================
    # Mutations
    # =========================

    def put_file(
        self, file_path: str, content: bytes, timestamp_ms: Optional[int] = None
    ) -> int:
        return self._execute_or_queue(
            PendingWriteOperation(
                "put_file",
                file_path,
                lambda: self.client.put_file(file_path, content, timestamp_ms),
            )
        )

    def put_directory(self, dir_path: str, timestamp_ms: Optional[int] = None) -> int:
        return self._execute_or_queue(
            PendingWriteOperation(
                "put_directory",
                dir_path,
                lambda: self.client.put_directory(dir_path, timestamp_ms),
            )
        )

    def move(self, source_path: str, destination_path: str, is_directory: bool) -> int:
        return self._execute_or_queue(
            PendingWriteOperation(
                "move",
                f"{source_path} -> {destination_path}",
                lambda: self.client.move(source_path, destination_path, is_directory),
            )
        )

    def delete(self, path: str, is_directory: bool) -> int:
        return self._execute_or_queue(
            PendingWriteOperation(
                "delete", path, lambda: self.client.delete(path, is_directory)
            )
        )

    def _execute_or_queue(self, op: PendingWriteOperation) -> int:
        """Run ``op`` now, or defer it while paused or draining.

        Returns:
            The HTTP status of the immediate attempt, or 202 when deferred
        """
        with self._lock:
            if self._state == CoordinatorState.PAUSED or self._draining:
                self._queue.append(op)
                logger.debug("Deferred %s %s (%s)", op.kind, op.target, self._state.value)
                return HTTP_ACCEPTED

        status = op.call()
        if is_conflict(status):
            with self._lock:
                self._queue.append(op)
                paused = self._pause_locked()
            if paused:
                self._report_paused()
        return status

    # =========================
    # State transitions
    # =========================

    def _pause_locked(self) -> bool:
        """Switch to paused and make sure a monitor runs (lock held).

        Returns:
            True if the state changed
        """
        if self._state == CoordinatorState.PAUSED:
            return False
        self._state = CoordinatorState.PAUSED
        self._ensure_monitor()
        return True

    def _report_paused(self) -> None:
        self.output.action("PAUSE", "device storage", "write-locked, waiting for writable")

    def _enter_paused(self) -> None:
        with self._lock:
            paused = self._pause_locked()
        if paused:
            self._report_paused()

    def _exit_paused(self) -> None:
        with self._lock:
            if self._state == CoordinatorState.ACTIVE:
                return
            self._state = CoordinatorState.ACTIVE
        self.output.action("RESUME", "device storage", "writable")

    def _ensure_monitor(self) -> None:
        """Start the monitor thread unless one is running (lock held)."""
        if self._monitor is not None or self._stop_event.is_set():
            return
        self._monitor = threading.Thread(
            target=self._monitor_loop, name="pycpsync-write-monitor", daemon=True
        )
        self._monitor.start()

    def _monitor_loop(self) -> None:
        while not self._stop_event.is_set():
            with self._lock:
                if self._state == CoordinatorState.ACTIVE:
                    self._monitor = None
                    return

            try:
                if self._any_disk_writable():
                    self._exit_paused()
                    self.drain()
                    continue
            except Exception as e:
                logger.debug("Disk status poll failed: %s", e)

            self._stop_event.wait(self.writable_poll_interval)

        with self._lock:
            self._monitor = None

    def _any_disk_writable(self) -> bool:
        return any(disk.writable for disk in self.client.get_disk_info())

    def drain(self) -> None:
        """Replay queued operations in FIFO order.

        Until the queue is empty new mutations are appended behind the
        replayed ones, so no write overtakes an older deferred write. A
        conflict puts the operation back at the head of the queue and
        re-enters the paused state; the rest of the queue waits for the next
        resume.
        """
        with self._lock:
            if self._draining:
                return
            self._draining = True

        while True:
            with self._lock:
                if (
                    self._stop_event.is_set()
                    or self._state == CoordinatorState.PAUSED
                    or not self._queue
                ):
                    self._draining = False
                    return
                op = self._queue.popleft()

            try:
                status = op.call()
            except Exception as e:
                logger.error("Deferred %s %s failed: %s", op.kind, op.target, e)
                self.output.action("ERROR", op.target, f"deferred {op.kind} failed: {e}")
                continue

            if is_conflict(status):
                with self._lock:
                    self._queue.appendleft(op)
                    self._draining = False
                    paused = self._pause_locked()
                if paused:
                    self._report_paused()
                return
            if is_success(status):
                logger.debug("Replayed %s %s [%d]", op.kind, op.target, status)
            else:
                self.output.action(
                    "ERROR", op.target, f"deferred {op.kind} returned {status}"
                )

    def start(self) -> None:
        """Allow a monitor thread again after :meth:`stop`."""
        self._stop_event.clear()

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Stop the monitor thread; queued operations are abandoned."""
        self._stop_event.set()
        with self._lock:
            monitor = self._monitor
        if monitor is not None and monitor is not threading.current_thread():
            monitor.join(timeout)
        if self._queue:
            logger.warning("Dropping %d deferred write(s) on shutdown", len(self._queue))
