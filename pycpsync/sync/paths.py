"""Mapping between local mirror paths and remote ``/fs`` paths."""

import os
from pathlib import Path, PurePosixPath

from ..exceptions import PathMappingError
from ..utils import PathLike


def _relative_parts(root: PathLike, local_path: PathLike) -> tuple[str, ...]:
    """Return the path components of ``local_path`` below ``root``.

    Both paths are made absolute and normalised first. Containment is checked
    per component, so ``/data/rootx/a`` is not inside ``/data/root``.

    Raises:
        PathMappingError: If ``local_path`` is outside ``root``
    """
    root_abs = Path(os.path.abspath(root))
    path_abs = Path(os.path.abspath(local_path))
    try:
        relative = path_abs.relative_to(root_abs)
    except ValueError:
        raise PathMappingError(
            f"Path is outside of local root: {local_path} (root: {root})"
        ) from None
    return relative.parts


def to_remote_file_path(root: PathLike, local_path: PathLike) -> str:
    """Map a local file to its remote path, e.g. ``/lib/foo.py``.

    Raises:
        PathMappingError: If the path is outside ``root`` or is the root itself
    """
    parts = _relative_parts(root, local_path)
    if not parts:
        raise PathMappingError("Expected a file path, got the local root")
    return "/" + "/".join(parts)


def to_remote_directory_path(root: PathLike, local_path: PathLike) -> str:
    """Map a local directory to its remote path with trailing slash.

    The root itself maps to ``/``.
    """
    parts = _relative_parts(root, local_path)
    if not parts:
        return "/"
    return "/" + "/".join(parts) + "/"


def to_local_path(root: PathLike, remote_path: str) -> Path:
    """Map a remote path back into the local mirror."""
    parts = [p for p in PurePosixPath(remote_path).parts if p != "/"]
    return Path(os.path.abspath(root)).joinpath(*parts)


def remote_parent(remote_file_path: str) -> str:
    """Return the directory holding a remote file, with trailing slash.

    Examples:
        >>> remote_parent("/lib/hello/world.txt")
        '/lib/hello/'
        >>> remote_parent("/code.py")
        '/'
    """
    parent = remote_file_path.rstrip("/").rsplit("/", 1)[0]
    return parent + "/" if parent else "/"


def remote_ancestors(remote_file_path: str) -> list[str]:
    """List the directories above a remote file, outermost first.

    Examples:
        >>> remote_ancestors("/lib/hello/world.txt")
        ['/lib/', '/lib/hello/']
    """
    segments = [s for s in remote_file_path.split("/") if s][:-1]
    ancestors = []
    current = "/"
    for segment in segments:
        current += segment + "/"
        ancestors.append(current)
    return ancestors


def relative_display(root: PathLike, local_path: PathLike) -> str:
    """Path relative to ``root`` for log lines; falls back to the full path."""
    try:
        parts = _relative_parts(root, local_path)
    except PathMappingError:
        return str(local_path)
    return "/".join(parts) or "."
