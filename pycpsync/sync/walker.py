"""Recursive reconciliation of the remote tree into the local mirror.

One walk primitive serves both the startup full pull and the periodic
safety-net poll; they differ only in the fetch policy. Walks never push and
never set directory modification times (listings carry no reliable
per-directory stamps).
"""

import logging
import shutil
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from ..api import WebWorkflowClient
from ..exceptions import CpNotFoundError
from ..models import LocalFileStat, RemoteFileEntry
from ..output import OutputFormatter
from .comparator import FileComparator, SyncAction, SyncDecision
from .ignore import IgnoreMatcher
from .operations import SyncOperations
from .paths import relative_display

logger = logging.getLogger(__name__)


class FetchPolicy(str, Enum):
    """When a walk downloads a remote file."""

    UNCONDITIONAL = "unconditional"
    """Always fetch and overwrite (startup full pull)"""

    CONDITIONAL = "conditional"
    """Fetch only if missing locally or strictly newer remotely (poll)"""


@dataclass
class WalkStats:
    """Counters of one walk."""

    pulled: int = 0
    skipped: int = 0
    vanished: int = 0
    failed: int = 0
    directories: int = 0


class RemoteTreeWalker:
    """Mirrors a remote directory tree into a local directory."""

    def __init__(
        self,
        client: WebWorkflowClient,
        operations: SyncOperations,
        local_root: Path,
        policy: FetchPolicy,
        ignore: Optional[IgnoreMatcher] = None,
        output: Optional[OutputFormatter] = None,
    ):
        """Initialize the walker.

        Args:
            client: Device client used for listings
            operations: Pull primitive (writes bytes and mtimes)
            local_root: Local directory matching the remote ``/``
            policy: Fetch policy applied to every file
            ignore: Entries matching this are neither listed nor fetched
            output: Output formatter for PULL lines
        """
        self.client = client
        self.operations = operations
        self.local_root = Path(local_root)
        self.policy = policy
        self.ignore = ignore or IgnoreMatcher()
        self.output = output or OutputFormatter(quiet=True)
        self.comparator = FileComparator()

    @property
    def unconditional(self) -> bool:
        return self.policy == FetchPolicy.UNCONDITIONAL

    def walk(
        self,
        remote_dir: str = "/",
        local_dir: Optional[Path] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> WalkStats:
        """Reconcile ``remote_dir`` (recursively) into ``local_dir``.

        With the unconditional policy any listing or fetch failure other than
        a vanished file is raised; with the conditional policy failures are
        logged and the walk moves on.
        """
        stats = WalkStats()
        self._walk(remote_dir, local_dir or self.local_root, stats, stop_event)
        return stats

    def _walk(
        self,
        remote_dir: str,
        local_dir: Path,
        stats: WalkStats,
        stop_event: Optional[threading.Event],
    ) -> None:
        if not remote_dir.endswith("/"):
            remote_dir += "/"

        try:
            listing = self.client.list_directory(remote_dir)
        except Exception as e:
            if self.unconditional:
                raise
            logger.warning("Listing %s failed: %s", remote_dir, e)
            stats.failed += 1
            return

        local_dir.mkdir(parents=True, exist_ok=True)
        stats.directories += 1

        for entry in listing.entries:
            if stop_event is not None and stop_event.is_set():
                return
            if self.ignore.is_ignored_name(entry.name):
                continue

            local_path = local_dir / entry.name
            if entry.is_directory:
                self._walk(remote_dir + entry.name + "/", local_path, stats, stop_event)
                continue

            try:
                self._reconcile_file(remote_dir + entry.name, local_path, entry, stats)
            except Exception as e:
                if self.unconditional:
                    raise
                stats.failed += 1
                self.output.action(
                    "ERROR", relative_display(self.local_root, local_path), str(e)
                )

    def _reconcile_file(
        self,
        remote_path: str,
        local_path: Path,
        entry: RemoteFileEntry,
        stats: WalkStats,
    ) -> SyncDecision:
        local: Optional[LocalFileStat]
        try:
            local = LocalFileStat.from_path(local_path)
        except FileNotFoundError:
            local = None

        decision = self.comparator.compare_for_walk(local, entry, self.unconditional)
        if decision.action != SyncAction.PULL_REMOTE:
            stats.skipped += 1
            return decision

        rel = relative_display(self.local_root, local_path)
        try:
            self.operations.pull_file(
                remote_path, local_path, entry, register=not self.unconditional
            )
        except CpNotFoundError:
            # Removed between listing and fetch
            stats.vanished += 1
            decision = SyncDecision(
                SyncAction.SKIP_MISSING_REMOTE_DURING_WALK, "vanished", local, entry
            )
            logger.debug("%s: %s", decision.action.value, remote_path)
            return decision

        stats.pulled += 1
        if self.unconditional:
            logger.debug("Pulled %s", rel)
        else:
            self.output.action("PULL", rel, f"reason: {decision.reason}")
        return decision


class FullPuller:
    """Startup bootstrap: wipe the mirror and pull everything."""

    def __init__(self, walker: RemoteTreeWalker, wipe: bool = True):
        if not walker.unconditional:
            raise ValueError("FullPuller needs an unconditional walker")
        self.walker = walker
        self.wipe = wipe

    def run(self) -> WalkStats:
        root = self.walker.local_root
        if self.wipe and root.exists():
            logger.info("Deleting existing local mirror: %s", root)
            shutil.rmtree(root)
        root.mkdir(parents=True, exist_ok=True)
        return self.walker.walk("/", root)


class RemotePoller:
    """Periodic safety-net walk catching remote-side changes."""

    def __init__(self, walker: RemoteTreeWalker, interval: float):
        if walker.unconditional:
            raise ValueError("RemotePoller needs a conditional walker")
        self.walker = walker
        self.interval = interval

    def poll_once(self, stop_event: Optional[threading.Event] = None) -> WalkStats:
        stats = self.walker.walk("/", self.walker.local_root, stop_event)
        logger.debug(
            "Remote poll: %d pulled, %d unchanged, %d failed",
            stats.pulled,
            stats.skipped,
            stats.failed,
        )
        return stats

    def run(self, stop_event: threading.Event) -> None:
        """Poll every ``interval`` seconds until ``stop_event`` is set."""
        while not stop_event.is_set():
            try:
                self.poll_once(stop_event)
            except Exception as e:
                logger.error("Remote poll failed: %s", e)
                self.walker.output.action("ERROR", "remote poll", str(e))
            stop_event.wait(self.interval)
