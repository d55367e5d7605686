"""Core sync engine wiring the mirror components together."""

import logging
import threading
from typing import Optional

from ..api import WebWorkflowClient
from ..config import SyncSettings
from ..output import OutputFormatter
from .coordinator import WriteCoordinator
from .debouncer import ChangeDebouncer
from .ignore import IgnoreMatcher
from .operations import SyncOperations
from .processor import LocalChangeProcessor
from .self_writes import SelfWriteTracker
from .walker import FetchPolicy, FullPuller, RemotePoller, RemoteTreeWalker, WalkStats
from .watcher import ChangeIngestor, LocalObserver

logger = logging.getLogger(__name__)


class SyncEngine:
    """One run of the two-way mirror.

    Every stateful component (self-write ledger, debounce table, write
    queue) is owned by the engine instance, so two engines never share
    state.

    Data flow: watchdog -> :class:`ChangeIngestor` -> :class:`ChangeDebouncer`
    -> :class:`LocalChangeProcessor` -> :class:`WriteCoordinator` -> device.
    Independently, :class:`RemotePoller` walks the device tree on a timer.

    Examples:
        >>> engine = SyncEngine(client, SyncSettings(local_root=Path("CIRCUITPY")))
        >>> engine.bootstrap()
        >>> engine.run_forever(stop_event)
    """

    def __init__(
        self,
        client: WebWorkflowClient,
        settings: Optional[SyncSettings] = None,
        output: Optional[OutputFormatter] = None,
    ):
        """Initialize sync engine.

        Args:
            client: Device API client
            settings: Intervals, local root and ignore rules
            output: Output formatter for action lines
        """
        self.client = client
        self.settings = settings or SyncSettings()
        self.settings.validate()
        self.output = output or OutputFormatter()
        self.local_root = self.settings.local_root.resolve()

        self.ignore = IgnoreMatcher(
            self.settings.ignored_names, self.settings.ignored_extensions
        )
        self.self_writes = SelfWriteTracker()
        self.coordinator = WriteCoordinator(
            client, self.settings.writable_poll_interval, self.output
        )
        self.operations = SyncOperations(client, self.self_writes, self.coordinator)
        self.processor = LocalChangeProcessor(
            self.local_root, self.operations, self.output
        )
        self.debouncer = ChangeDebouncer(
            self.settings.debounce_interval, self.processor.enqueue_change
        )
        self.ingestor = ChangeIngestor(
            self.local_root,
            self.debouncer,
            self.processor,
            self.self_writes,
            self.ignore,
        )
        self.observer = LocalObserver(self.local_root, self.ingestor)
        self.poller = RemotePoller(
            self._walker(FetchPolicy.CONDITIONAL), self.settings.remote_poll_interval
        )

        self._stop_event = threading.Event()
        self._threads: list[threading.Thread] = []

    def _walker(self, policy: FetchPolicy) -> RemoteTreeWalker:
        return RemoteTreeWalker(
            self.client,
            self.operations,
            self.local_root,
            policy,
            self.ignore,
            self.output,
        )

    def bootstrap(self) -> WalkStats:
        """Replace the local mirror with a full copy of the device.

        Raises:
            CpAPIError: If any listing or download fails
        """
        puller = FullPuller(
            self._walker(FetchPolicy.UNCONDITIONAL),
            wipe=self.settings.wipe_local_on_start,
        )
        return puller.run()

    def start(self) -> None:
        """Start watching, consuming and polling in background threads."""
        if self._threads:
            return
        self._stop_event.clear()
        self.coordinator.start()
        self.local_root.mkdir(parents=True, exist_ok=True)
        self.debouncer.start()
        for name, target in (
            ("pycpsync-consumer", self.processor.run),
            ("pycpsync-poller", self.poller.run),
        ):
            thread = threading.Thread(
                target=target, args=(self._stop_event,), name=name, daemon=True
            )
            thread.start()
            self._threads.append(thread)
        self.observer.start()
        logger.debug("Sync engine started for %s", self.local_root)

    def stop(self, timeout: float = 5.0) -> None:
        """Stop all loops; pending debounce deadlines are discarded."""
        self._stop_event.set()
        self.observer.stop(timeout)
        self.debouncer.stop(timeout)
        self.coordinator.stop(timeout)
        for thread in self._threads:
            thread.join(timeout)
        self._threads = []
        logger.debug("Sync engine stopped")

    def run_forever(self, stop_event: threading.Event) -> None:
        """Run until ``stop_event`` is set, then shut down cleanly."""
        self.start()
        try:
            # Short waits keep the main thread responsive to Ctrl+C
            while not stop_event.wait(0.5):
                pass
        finally:
            self.stop()
