"""Ledger of files recently written by the engine itself."""

import os
import threading
import time
from typing import Callable

from ..utils import SELF_WRITE_TTL, PathLike


class SelfWriteTracker:
    """Remembers local writes made while pulling, to suppress their echo.

    Writing a pulled file raises a filesystem notification of its own.
    Paths registered here are dropped by the ingestion step for ``ttl``
    seconds so that notification is not pushed straight back to the device.
    One tracker belongs to one engine run.
    """

    def __init__(
        self,
        ttl: float = SELF_WRITE_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self._clock = clock
        self._stamps: dict[str, float] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(path: PathLike) -> str:
        return os.path.abspath(path)

    def register(self, path: PathLike) -> None:
        """Stamp ``path`` with the current time."""
        with self._lock:
            self._stamps[self._key(path)] = self._clock()

    def is_recent(self, path: PathLike) -> bool:
        """True if ``path`` was registered less than ``ttl`` seconds ago."""
        key = self._key(path)
        with self._lock:
            stamp = self._stamps.get(key)
            if stamp is None:
                return False
            if self._clock() - stamp < self.ttl:
                return True
            del self._stamps[key]
            return False

    def __len__(self) -> int:
        with self._lock:
            return len(self._stamps)
