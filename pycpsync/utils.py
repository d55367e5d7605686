"""Utility functions for pycpsync."""

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Union

# =============================================================================
# Constants
# =============================================================================

# Window during which a file written by the engine is not treated as a local edit
SELF_WRITE_TTL: float = 2.0  # seconds

# Retry configuration for transient errors
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY: float = 0.5  # seconds

NS_PER_MS: int = 1_000_000

PathLike = Union[str, "os.PathLike[str]"]


# =============================================================================
# Timestamp conversion utilities
# =============================================================================


def ns_to_ms(modified_ns: int) -> int:
    """Truncate a nanosecond timestamp to millisecond precision.

    The device reports ``modified_ns`` but local filesystems and the
    ``X-Timestamp`` header only carry milliseconds, so every comparison
    happens on the truncated value.

    Examples:
        >>> ns_to_ms(1_700_000_000_123_456_789)
        1700000000123
    """
    return modified_ns // NS_PER_MS


def set_mtime_from_ns(path: PathLike, modified_ns: int) -> None:
    """Stamp a local file with a remote modification time.

    The stamp is truncated to milliseconds first so that a later comparison
    against the same remote entry classifies as equal. Unknown stamps
    (zero or negative) leave the file untouched.

    Args:
        path: Local file to update
        modified_ns: Remote timestamp in nanoseconds since the epoch
    """
    if modified_ns <= 0:
        return
    truncated = ns_to_ms(modified_ns) * NS_PER_MS
    os.utime(path, ns=(truncated, truncated))


def format_timestamp_ms(timestamp_ms: int) -> str:
    """Format an epoch millisecond stamp as a local date/time string."""
    dt = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).astimezone()
    return dt.strftime("%Y-%m-%d %H:%M:%S")


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


def is_symlink(path: PathLike) -> bool:
    """Return True if ``path`` is a symbolic link (missing paths are not)."""
    try:
        return Path(path).is_symlink()
    except OSError:
        return False
