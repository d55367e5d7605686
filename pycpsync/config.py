"""Configuration management for pycpsync.

Credentials are resolved in this order: explicit arguments, environment
variables (``CPSYNC_ADDRESS`` / ``CPSYNC_PASSWORD``), then the config file
at ``~/.config/pycpsync/config``.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .exceptions import CpConfigError

DEFAULT_IGNORED_NAMES: frozenset[str] = frozenset(
    {
        ".git",
        ".vscode",
        "__pycache__",
        ".idea",
        "node_modules",
        ".DS_Store",
        "Thumbs.db",
    }
)
DEFAULT_IGNORED_EXTENSIONS: frozenset[str] = frozenset({".swp", ".tmp"})


def normalize_address(address: str) -> str:
    """Return ``address`` as a base URL without trailing slash.

    Examples:
        >>> normalize_address("192.168.1.20")
        'http://192.168.1.20'
        >>> normalize_address("https://cpy.local:8080/")
        'https://cpy.local:8080'
    """
    addr = address.strip()
    if not addr:
        raise CpConfigError("Device address is empty")
    if not addr.lower().startswith(("http://", "https://")):
        addr = f"http://{addr}"
    return addr.rstrip("/")


class Config:
    """Device credentials backed by the environment and a config file."""

    ADDRESS_KEY = "CPSYNC_ADDRESS"
    PASSWORD_KEY = "CPSYNC_PASSWORD"

    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = config_dir or Path.home() / ".config" / "pycpsync"
        self.config_file = self.config_dir / "config"
        self._file_values: Optional[dict[str, str]] = None

    def _load_file(self) -> dict[str, str]:
        if self._file_values is None:
            values: dict[str, str] = {}
            if self.config_file.exists():
                for line in self.config_file.read_text(encoding="utf-8").splitlines():
                    line = line.strip()
                    if not line or line.startswith("#") or "=" not in line:
                        continue
                    key, _, value = line.partition("=")
                    values[key.strip()] = value.strip()
            self._file_values = values
        return self._file_values

    def _get(self, key: str) -> Optional[str]:
        return os.environ.get(key) or self._load_file().get(key)

    @property
    def address(self) -> Optional[str]:
        """Device address (host, host:port or URL)."""
        return self._get(self.ADDRESS_KEY)

    @property
    def password(self) -> Optional[str]:
        """Web workflow password (the HTTP Basic user name is always empty)."""
        return self._get(self.PASSWORD_KEY)

    def is_configured(self) -> bool:
        return bool(self.address and self.password)

    def get_config_path(self) -> Path:
        return self.config_file

    def save_credentials(self, address: str, password: str) -> None:
        """Persist credentials to the config file (mode 0600)."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        values = dict(self._load_file())
        values[self.ADDRESS_KEY] = address
        values[self.PASSWORD_KEY] = password
        content = "".join(f"{key}={value}\n" for key, value in values.items())
        self.config_file.write_text(content, encoding="utf-8")
        self.config_file.chmod(0o600)
        self._file_values = values


@dataclass
class SyncSettings:
    """Tunables of one synchronization run."""

    local_root: Path = field(default_factory=lambda: Path("./CIRCUITPY"))
    """Local mirror directory"""

    remote_poll_interval: float = 120.0
    """Seconds between full-tree safety-net polls"""

    writable_poll_interval: float = 5.0
    """Seconds between disk-status checks while writes are paused"""

    debounce_interval: float = 0.5
    """Quiet period before a changed path is processed"""

    wipe_local_on_start: bool = True
    """Delete the local mirror before the initial full pull"""

    ignored_names: frozenset[str] = DEFAULT_IGNORED_NAMES
    ignored_extensions: frozenset[str] = DEFAULT_IGNORED_EXTENSIONS

    def validate(self) -> None:
        """Check intervals.

        Raises:
            CpConfigError: If an interval is out of range
        """
        if self.remote_poll_interval <= 0:
            raise CpConfigError("remote_poll_interval must be positive")
        if self.writable_poll_interval <= 0:
            raise CpConfigError("writable_poll_interval must be positive")
        if self.debounce_interval < 0:
            raise CpConfigError("debounce_interval must not be negative")


config = Config()
