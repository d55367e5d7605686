"""Coalescing of bursts of filesystem notifications."""

import heapq
import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class ChangeDebouncer:
    """Per-path quiet-period timer feeding a single work queue.

    Each :meth:`touch` (re)arms the deadline of a path to ``now + interval``.
    Once a deadline passes without another touch, ``sink(path)`` is called
    exactly once and the path is forgotten. Deadlines live in one map plus a
    heap of ``(deadline, seq, path)``; superseded heap items are discarded
    when they surface.

    Examples:
        >>> fired = []
        >>> now = [0.0]
        >>> debouncer = ChangeDebouncer(0.5, fired.append, clock=lambda: now[0])
        >>> for _ in range(5):
        ...     debouncer.touch("/mirror/code.py")
        >>> now[0] = 1.0
        >>> debouncer.fire_due()
        1
        >>> fired
        ['/mirror/code.py']
    """

    def __init__(
        self,
        interval: float,
        sink: Callable[[str], None],
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the debouncer.

        Args:
            interval: Quiet period in seconds
            sink: Receives each path once its deadline expires
            clock: Monotonic time source
        """
        self.interval = interval
        self._sink = sink
        self._clock = clock
        self._deadlines: dict[str, float] = {}
        self._heap: list[tuple[float, int, str]] = []
        self._seq = 0
        self._cond = threading.Condition()
        self._thread: Optional[threading.Thread] = None
        self._stopped = False

    def touch(self, path: str) -> None:
        """Register a change notification for ``path``."""
        with self._cond:
            if self._stopped:
                return
            deadline = self._clock() + self.interval
            self._deadlines[path] = deadline
            self._seq += 1
            heapq.heappush(self._heap, (deadline, self._seq, path))
            self._cond.notify()

    def pending(self) -> int:
        """Number of paths waiting for their deadline."""
        with self._cond:
            return len(self._deadlines)

    def _pop_due(self) -> list[str]:
        """Remove and return every path whose deadline has passed (lock held)."""
        now = self._clock()
        due = []
        while self._heap and self._heap[0][0] <= now:
            deadline, _, path = heapq.heappop(self._heap)
            if self._deadlines.get(path) == deadline:
                del self._deadlines[path]
                due.append(path)
        return due

    def fire_due(self) -> int:
        """Hand expired paths to the sink; returns how many fired."""
        with self._cond:
            due = self._pop_due()
        for path in due:
            logger.debug("Debounce expired: %s", path)
            self._sink(path)
        return len(due)

    def _run(self) -> None:
        while True:
            with self._cond:
                while not self._stopped:
                    if self._heap:
                        timeout = self._heap[0][0] - self._clock()
                        if timeout <= 0:
                            break
                        self._cond.wait(timeout)
                    else:
                        self._cond.wait()
                if self._stopped:
                    return
            self.fire_due()

    def start(self) -> None:
        """Start the scheduler thread."""
        with self._cond:
            if self._thread is not None:
                return
            self._stopped = False
            self._thread = threading.Thread(
                target=self._run, name="pycpsync-debouncer", daemon=True
            )
        self._thread.start()

    def cancel_all(self) -> int:
        """Drop every armed deadline without firing; returns how many."""
        with self._cond:
            count = len(self._deadlines)
            self._deadlines.clear()
            self._heap.clear()
            self._cond.notify()
        return count

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Cancel pending deadlines and stop the scheduler thread.

        No path reaches the sink after this returns.
        """
        with self._cond:
            self._stopped = True
        dropped = self.cancel_all()
        if dropped:
            logger.debug("Discarded %d pending change(s) on shutdown", dropped)
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
