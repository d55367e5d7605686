"""Name and extension based filtering of synchronized paths."""

import os
from collections.abc import Iterable
from pathlib import Path
from typing import Optional

from ..config import DEFAULT_IGNORED_EXTENSIONS, DEFAULT_IGNORED_NAMES
from ..utils import PathLike


class IgnoreMatcher:
    """Decides whether a path is excluded from synchronization.

    A path is ignored if any of its segments (below the root, when one is
    given) is an ignored name or carries an ignored extension. Names match
    case-sensitively, extensions case-insensitively, so an ignored directory
    hides its whole subtree.

    Examples:
        >>> matcher = IgnoreMatcher()
        >>> matcher.is_ignored("/mirror/.git/HEAD", root="/mirror")
        True
        >>> matcher.is_ignored("/mirror/code.py", root="/mirror")
        False
        >>> matcher.is_ignored_name("notes.TMP")
        True
    """

    def __init__(
        self,
        names: Optional[Iterable[str]] = None,
        extensions: Optional[Iterable[str]] = None,
    ):
        self.names = frozenset(DEFAULT_IGNORED_NAMES if names is None else names)
        self.extensions = frozenset(
            e.lower()
            for e in (DEFAULT_IGNORED_EXTENSIONS if extensions is None else extensions)
        )

    def is_ignored_name(self, name: str) -> bool:
        """Check a single path segment."""
        if not name:
            return False
        if name in self.names:
            return True
        _, ext = os.path.splitext(name)
        return bool(ext) and ext.lower() in self.extensions

    def is_ignored(self, path: PathLike, root: Optional[PathLike] = None) -> bool:
        """Check every segment of ``path``.

        Args:
            path: Local path or remote ``/fs`` path
            root: If given, only segments below this directory are checked
        """
        candidate = Path(path)
        if root is not None:
            try:
                candidate = Path(os.path.abspath(path)).relative_to(
                    os.path.abspath(root)
                )
            except ValueError:
                pass
        return any(self.is_ignored_name(part) for part in candidate.parts)
