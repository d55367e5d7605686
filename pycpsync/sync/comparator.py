"""File comparison logic for sync operations."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..models import LocalFileStat, RemoteFileEntry


class SyncAction(str, Enum):
    """Actions that can be taken for one file."""

    PUSH_LOCAL = "push_local"
    """Upload local file to the device"""

    PULL_REMOTE = "pull_remote"
    """Download remote file into the mirror"""

    SKIP = "skip"
    """Both sides already agree"""

    SKIP_MISSING_LOCAL = "skip_missing_local"
    """Local file vanished before it could be processed"""

    SKIP_MISSING_REMOTE_DURING_WALK = "skip_missing_remote_during_walk"
    """Remote entry vanished between listing and fetch"""


@dataclass
class SyncDecision:
    """Represents a decision about how to sync a file."""

    action: SyncAction
    """Action to take"""

    reason: str
    """Short reason shown next to the action, e.g. ``remote-newer``"""

    local: Optional[LocalFileStat] = None
    """Local file (if exists)"""

    remote: Optional[RemoteFileEntry] = None
    """Remote entry (if exists)"""


class FileComparator:
    """Compares a local file with its remote entry.

    All comparisons use ``(modified_ms, size)`` pairs with the remote stamp
    truncated to milliseconds; the more recent side wins.
    """

    def compare_for_change(
        self,
        local: Optional[LocalFileStat],
        remote: Optional[RemoteFileEntry],
    ) -> SyncDecision:
        """Decide what to do after a local change notification.

        A differing size forces a push even when the remote side is newer,
        since the local edit is what triggered the check.
        """
        if local is None:
            return SyncDecision(SyncAction.SKIP_MISSING_LOCAL, "file missing", None, remote)

        if remote is None:
            return SyncDecision(SyncAction.PUSH_LOCAL, "missing-remote", local, None)

        remote_ms = remote.modified_ms
        if local.modified_ms > remote_ms or local.size != remote.size:
            return SyncDecision(
                SyncAction.PUSH_LOCAL, "local-newer|size-diff", local, remote
            )
        if remote_ms > local.modified_ms:
            return SyncDecision(SyncAction.PULL_REMOTE, "remote-newer", local, remote)
        return SyncDecision(SyncAction.SKIP, "equal", local, remote)

    def compare_for_walk(
        self,
        local: Optional[LocalFileStat],
        remote: RemoteFileEntry,
        unconditional: bool = False,
    ) -> SyncDecision:
        """Decide whether a tree walk should fetch ``remote``.

        Local-only changes never lead to a push here; size is not compared.
        """
        if unconditional:
            return SyncDecision(SyncAction.PULL_REMOTE, "full-pull", local, remote)
        if local is None:
            return SyncDecision(SyncAction.PULL_REMOTE, "missing-local", None, remote)
        if remote.modified_ms > local.modified_ms:
            return SyncDecision(SyncAction.PULL_REMOTE, "remote-newer", local, remote)
        return SyncDecision(SyncAction.SKIP, "up-to-date", local, remote)
