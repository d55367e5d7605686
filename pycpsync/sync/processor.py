"""Serialized handling of local filesystem changes."""

import logging
import queue
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from ..api import HTTP_ACCEPTED, is_conflict, is_success
from ..models import LocalFileStat
from ..output import OutputFormatter
from .comparator import FileComparator, SyncAction, SyncDecision
from .operations import SyncOperations
from .paths import relative_display, to_remote_directory_path, to_remote_file_path

logger = logging.getLogger(__name__)


class ChangeKind(str, Enum):
    CHANGED = "changed"
    RENAMED = "renamed"


@dataclass
class LocalChange:
    """One unit of work for the consumer."""

    kind: ChangeKind
    path: str
    dest_path: Optional[str] = None


class LocalChangeProcessor:
    """Single consumer of debounced local changes.

    Items are handled strictly one at a time, so at most one decision or
    mutation caused by a local change is in flight. A failing item is
    reported and never stops the loop.
    """

    def __init__(
        self,
        local_root: Path,
        operations: SyncOperations,
        output: Optional[OutputFormatter] = None,
    ):
        self.local_root = Path(local_root)
        self.operations = operations
        self.output = output or OutputFormatter(quiet=True)
        self.comparator = FileComparator()
        self.queue: "queue.Queue[LocalChange]" = queue.Queue()

    def _rel(self, path: str) -> str:
        return relative_display(self.local_root, path)

    # =========================
    # Producers
    # =========================

    def enqueue_change(self, path: str) -> None:
        """Queue a debounced change/create notification."""
        self.queue.put(LocalChange(ChangeKind.CHANGED, path))

    def enqueue_rename(self, old_path: str, new_path: str) -> None:
        self.queue.put(LocalChange(ChangeKind.RENAMED, old_path, new_path))

    # =========================
    # Consumer loop
    # =========================

    def run(self, stop_event: threading.Event, poll_timeout: float = 0.2) -> None:
        """Drain the queue until ``stop_event`` is set."""
        while not stop_event.is_set():
            try:
                item = self.queue.get(timeout=poll_timeout)
            except queue.Empty:
                continue
            try:
                self.process(item)
            finally:
                self.queue.task_done()

    def process(self, item: LocalChange) -> None:
        """Handle one item, reporting any failure."""
        try:
            if item.kind == ChangeKind.RENAMED and item.dest_path is not None:
                self.handle_rename(item.path, item.dest_path)
            else:
                self.handle_change(item.path)
        except Exception as e:
            logger.debug("Processing %s failed", item.path, exc_info=True)
            self.output.action("ERROR", self._rel(item.path), str(e))

    def handle_change(self, path: str) -> SyncDecision:
        """Compare a changed local file with the device and act on it."""
        local_path = Path(path)
        rel = self._rel(path)

        if local_path.is_dir():
            # Pushing a file creates its parent directories remotely
            logger.debug("Skipping directory change: %s", rel)
            return SyncDecision(SyncAction.SKIP, "directory change")

        try:
            local: Optional[LocalFileStat] = LocalFileStat.from_path(local_path)
        except FileNotFoundError:
            local = None
        if local is None:
            decision = self.comparator.compare_for_change(None, None)
            self.output.action("SKIP", rel, decision.reason)
            return decision

        remote_path = to_remote_file_path(self.local_root, local_path)
        remote = self.operations.remote_entry_for(remote_path)
        decision = self.comparator.compare_for_change(local, remote)

        if decision.action == SyncAction.PUSH_LOCAL:
            self.operations.ensure_remote_dirs(remote_path)
            status = self.operations.push_file(local, remote_path)
            self.output.action("PUSH", rel, f"reason: {decision.reason}, {status}")
        elif decision.action == SyncAction.PULL_REMOTE and decision.remote is not None:
            self.operations.pull_file(remote_path, local_path, decision.remote)
            self.output.action("PULL", rel, f"reason: {decision.reason}")
        else:
            logger.debug("Skipping %s (%s)", rel, decision.reason)
            self.output.action("SKIP", rel, decision.reason)
        return decision

    def handle_rename(self, old_path: str, new_path: str) -> bool:
        """Mirror a local rename with MOVE, falling back to PUT + DELETE.

        Returns:
            True if the rename was applied (or deferred) remotely
        """
        is_dir = Path(new_path).is_dir()
        if is_dir:
            source = to_remote_directory_path(self.local_root, old_path)
            destination = to_remote_directory_path(self.local_root, new_path)
        else:
            source = to_remote_file_path(self.local_root, old_path)
            destination = to_remote_file_path(self.local_root, new_path)
        subject = f"{self._rel(old_path)} -> {self._rel(new_path)}"

        status = self.operations.writer.move(source, destination, is_dir)
        if is_conflict(status) or status == HTTP_ACCEPTED:
            self.output.action("MOVE", subject, "deferred")
            return True
        if is_success(status):
            self.output.action("MOVE", subject, "reason: local-rename")
            return True

        new_file = Path(new_path)
        if not is_dir and new_file.is_file():
            local = LocalFileStat.from_path(new_file)
            self.operations.ensure_remote_dirs(destination)
            self.operations.push_file(local, destination)
            self.operations.writer.delete(source, is_directory=False)
            self.output.action("MOVE", subject, "fallback PUT+DELETE")
            return True

        self.output.action("ERROR", f"MOVE {subject}", f"status {status}")
        return False

    def handle_delete(self, path: str) -> None:
        """Deletions are reported but never propagated to the device."""
        self.output.action("DELETE", self._rel(path), "skipped by policy")
