"""Filesystem notification ingestion based on watchdog."""

import logging
from pathlib import Path
from typing import Optional, Union

from watchdog.events import (
    DirMovedEvent,
    FileMovedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from ..utils import is_symlink
from .debouncer import ChangeDebouncer
from .ignore import IgnoreMatcher
from .processor import LocalChangeProcessor
from .self_writes import SelfWriteTracker

logger = logging.getLogger(__name__)


def _as_str(path: Union[str, bytes]) -> str:
    return path.decode() if isinstance(path, bytes) else path


class ChangeIngestor(FileSystemEventHandler):
    """Filters raw notifications before they reach the debouncer.

    Created/modified paths are dropped if ignored, symlinked or recently
    written by the engine itself; the rest re-arm their debounce deadline.
    Renames bypass the debouncer and go straight to the consumer queue.
    Deletions are only reported.
    """

    def __init__(
        self,
        local_root: Path,
        debouncer: ChangeDebouncer,
        processor: LocalChangeProcessor,
        self_writes: SelfWriteTracker,
        ignore: IgnoreMatcher,
    ):
        super().__init__()
        self.local_root = Path(local_root)
        self.debouncer = debouncer
        self.processor = processor
        self.self_writes = self_writes
        self.ignore = ignore

    def _is_filtered(self, path: str) -> bool:
        return self.ignore.is_ignored(path, root=self.local_root) or is_symlink(path)

    def on_changed(self, path: str) -> bool:
        """Handle a change/create notification; True if it was debounced."""
        if self._is_filtered(path):
            return False
        if self.self_writes.is_recent(path):
            logger.debug("Suppressed self-write echo: %s", path)
            return False
        self.debouncer.touch(path)
        return True

    def on_renamed(self, old_path: str, new_path: str) -> bool:
        if self._is_filtered(new_path):
            return False
        self.processor.enqueue_rename(old_path, new_path)
        return True

    # watchdog callbacks

    def on_created(self, event: FileSystemEvent) -> None:
        # Includes synthetic events for the contents of a directory moved in
        self.on_changed(_as_str(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self.on_changed(_as_str(event.src_path))

    def on_moved(self, event: Union[FileMovedEvent, DirMovedEvent]) -> None:
        # Children of a moved directory move with it
        if event.is_synthetic:
            return
        self.on_renamed(_as_str(event.src_path), _as_str(event.dest_path))

    def on_deleted(self, event: FileSystemEvent) -> None:
        path = _as_str(event.src_path)
        if self.ignore.is_ignored(path, root=self.local_root):
            return
        self.processor.handle_delete(path)


class LocalObserver:
    """Owns the watchdog observer for the mirror directory."""

    def __init__(self, local_root: Path, handler: ChangeIngestor):
        self.local_root = Path(local_root)
        self.handler = handler
        self.observer: Optional[Observer] = None

    @property
    def is_running(self) -> bool:
        return self.observer is not None

    def start(self) -> None:
        if self.observer is not None:
            logger.warning("Local observer already running")
            return
        observer = Observer()
        observer.daemon = True
        observer.schedule(self.handler, str(self.local_root), recursive=True)
        observer.start()
        self.observer = observer
        logger.debug("Watching %s", self.local_root)

    def stop(self, timeout: float = 5.0) -> None:
        if self.observer is None:
            return
        self.observer.stop()
        self.observer.join(timeout=timeout)
        if self.observer.is_alive():
            logger.warning("Observer thread did not exit within %.1fs", timeout)
        self.observer = None
