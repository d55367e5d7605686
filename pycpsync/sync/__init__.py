"""Sync engine for pycpsync - two-way mirror of a device filesystem."""

from .comparator import FileComparator, SyncAction, SyncDecision
from .coordinator import CoordinatorState, PendingWriteOperation, WriteCoordinator
from .debouncer import ChangeDebouncer
from .engine import SyncEngine
from .ignore import IgnoreMatcher
from .operations import SyncOperations
from .paths import to_local_path, to_remote_directory_path, to_remote_file_path
from .processor import ChangeKind, LocalChange, LocalChangeProcessor
from .self_writes import SelfWriteTracker
from .walker import FetchPolicy, FullPuller, RemotePoller, RemoteTreeWalker, WalkStats
from .watcher import ChangeIngestor, LocalObserver

__all__ = [
    "SyncEngine",
    "SyncOperations",
    "FileComparator",
    "SyncAction",
    "SyncDecision",
    "WriteCoordinator",
    "CoordinatorState",
    "PendingWriteOperation",
    "ChangeDebouncer",
    "ChangeIngestor",
    "LocalObserver",
    "IgnoreMatcher",
    "SelfWriteTracker",
    "LocalChange",
    "ChangeKind",
    "LocalChangeProcessor",
    "RemoteTreeWalker",
    "FetchPolicy",
    "FullPuller",
    "RemotePoller",
    "WalkStats",
    "to_local_path",
    "to_remote_directory_path",
    "to_remote_file_path",
]
