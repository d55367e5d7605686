"""Data models for the CircuitPython web workflow API."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from .utils import NS_PER_MS, ns_to_ms


@dataclass
class RemoteFileEntry:
    """One entry of a remote directory listing."""

    name: str
    """Entry name (no path separators)"""

    is_directory: bool = False
    """True for sub-directories"""

    modified_ns: int = 0
    """Modification time in nanoseconds since the epoch"""

    size: int = 0
    """File size in bytes (0 for directories)"""

    @property
    def modified_ms(self) -> int:
        """Modification time truncated to milliseconds."""
        return ns_to_ms(self.modified_ns)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RemoteFileEntry":
        """Create an entry from the ``files`` array of a listing."""
        return cls(
            name=data["name"],
            is_directory=bool(data.get("directory", False)),
            modified_ns=int(data.get("modified_ns") or 0),
            size=int(data.get("file_size") or 0),
        )


@dataclass
class RemoteDirectoryListing:
    """Response body of ``GET /fs/<dir>/``."""

    free: int = 0
    total: int = 0
    block_size: int = 0
    writable: bool = False
    entries: list[RemoteFileEntry] = field(default_factory=list)

    def find(self, name: str) -> Optional[RemoteFileEntry]:
        """Return the entry named exactly ``name`` (case-sensitive)."""
        for entry in self.entries:
            if entry.name == name:
                return entry
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RemoteDirectoryListing":
        return cls(
            free=int(data.get("free") or 0),
            total=int(data.get("total") or 0),
            block_size=int(data.get("block_size") or 0),
            writable=bool(data.get("writable", False)),
            entries=[RemoteFileEntry.from_dict(f) for f in data.get("files") or []],
        )


@dataclass
class DiskInfo:
    """One element of ``/cp/diskinfo.json``."""

    root: str
    free: int = 0
    total: int = 0
    block_size: int = 0
    writable: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DiskInfo":
        return cls(
            root=str(data.get("root", "")),
            free=int(data.get("free") or 0),
            total=int(data.get("total") or 0),
            block_size=int(data.get("block_size") or 0),
            writable=bool(data.get("writable", False)),
        )


@dataclass
class VersionInfo:
    """Response body of ``/cp/version.json``."""

    web_api_version: int = 0
    version: Optional[str] = None
    board_name: Optional[str] = None
    hostname: Optional[str] = None
    port: Optional[int] = None
    ip: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VersionInfo":
        return cls(
            web_api_version=int(data.get("web_api_version") or 0),
            version=data.get("version"),
            board_name=data.get("board_name"),
            hostname=data.get("hostname"),
            port=data.get("port"),
            ip=data.get("ip"),
        )


@dataclass
class LocalFileStat:
    """Metadata of a local file, read on demand and never cached."""

    path: Path
    """Absolute path to the file"""

    modified_ms: int
    """Modification time in epoch milliseconds"""

    size: int
    """File size in bytes"""

    @classmethod
    def from_path(cls, path: Path) -> "LocalFileStat":
        """Stat ``path``.

        Raises:
            FileNotFoundError: If the file vanished
        """
        stat = os.stat(path)
        return cls(
            path=Path(path),
            modified_ms=stat.st_mtime_ns // NS_PER_MS,
            size=stat.st_size,
        )
