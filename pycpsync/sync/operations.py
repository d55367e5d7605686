"""Push and pull primitives shared by the change processor and tree walks."""

import logging
from pathlib import Path
from typing import Optional

from ..api import WebWorkflowClient, is_success
from ..exceptions import CpNotFoundError
from ..models import LocalFileStat, RemoteFileEntry
from ..utils import set_mtime_from_ns
from .coordinator import WriteCoordinator
from .paths import remote_ancestors, remote_parent
from .self_writes import SelfWriteTracker

logger = logging.getLogger(__name__)


class SyncOperations:
    """Unified upload/download operations for one mirror."""

    def __init__(
        self,
        client: WebWorkflowClient,
        self_writes: SelfWriteTracker,
        coordinator: Optional[WriteCoordinator] = None,
    ):
        """Initialize sync operations.

        Args:
            client: Device client (reads)
            self_writes: Ledger that pulled files are registered in
            coordinator: Gate for mutations; required for pushes
        """
        self.client = client
        self.self_writes = self_writes
        self.coordinator = coordinator

    @property
    def writer(self) -> WriteCoordinator:
        """The coordinator that all mutations go through."""
        if self.coordinator is None:
            raise RuntimeError("Pushing requires a WriteCoordinator")
        return self.coordinator

    def pull_file(
        self,
        remote_path: str,
        local_path: Path,
        entry: RemoteFileEntry,
        register: bool = True,
    ) -> int:
        """Download a remote file into the mirror.

        The local file gets the bytes and the remote modification time. With
        ``register`` the path is stamped in the self-write ledger before and
        after writing, so the resulting notification is never taken for a
        local edit.

        Returns:
            Number of bytes written

        Raises:
            CpNotFoundError: If the remote file vanished
        """
        content = self.client.get_file(remote_path)
        local_path.parent.mkdir(parents=True, exist_ok=True)
        if register:
            self.self_writes.register(local_path)
        local_path.write_bytes(content)
        set_mtime_from_ns(local_path, entry.modified_ns)
        if register:
            self.self_writes.register(local_path)
        return len(content)

    def push_file(self, local: LocalFileStat, remote_path: str) -> int:
        """Upload a local file with its modification time.

        Returns:
            HTTP status from the coordinator (202 when deferred)
        """
        content = local.path.read_bytes()
        return self.writer.put_file(remote_path, content, local.modified_ms)

    def ensure_remote_dirs(self, remote_file_path: str) -> list[str]:
        """Create the missing remote directories above a file.

        Walks up from the file's parent until a directory lists successfully,
        then creates the missing ones outermost first.

        Returns:
            Directories that were created (or deferred)
        """
        ancestors = remote_ancestors(remote_file_path)
        missing: list[str] = []
        for directory in reversed(ancestors):
            try:
                self.client.list_directory(directory)
                break
            except CpNotFoundError:
                missing.append(directory)

        created = []
        for directory in reversed(missing):
            status = self.writer.put_directory(directory)
            if not is_success(status):
                logger.warning("Creating %s returned %d", directory, status)
            created.append(directory)
        return created

    def remote_entry_for(self, remote_file_path: str) -> Optional[RemoteFileEntry]:
        """Look up a file in its parent's listing; None if either is missing."""
        name = remote_file_path.rstrip("/").rsplit("/", 1)[-1]
        try:
            listing = self.client.list_directory(remote_parent(remote_file_path))
        except CpNotFoundError:
            return None
        return listing.find(name)
