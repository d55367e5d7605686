"""Tests for local/remote path mapping."""

import pytest

from pycpsync.exceptions import PathMappingError
from pycpsync.sync.paths import (
    relative_display,
    remote_ancestors,
    remote_parent,
    to_local_path,
    to_remote_directory_path,
    to_remote_file_path,
)


class TestToRemote:
    """Tests for local -> remote mapping."""

    def test_nested_file(self, temp_dir):
        """Test a file two levels deep."""
        path = temp_dir / "lib" / "hello" / "world.txt"
        assert to_remote_file_path(temp_dir, path) == "/lib/hello/world.txt"

    def test_top_level_file(self, temp_dir):
        """Test a file directly under the root."""
        assert to_remote_file_path(temp_dir, temp_dir / "code.py") == "/code.py"

    def test_directory_has_trailing_slash(self, temp_dir):
        """Test directory mapping."""
        assert to_remote_directory_path(temp_dir, temp_dir / "lib") == "/lib/"

    def test_root_directory_maps_to_slash(self, temp_dir):
        """Test that the root itself maps to /."""
        assert to_remote_directory_path(temp_dir, temp_dir) == "/"

    def test_root_is_not_a_file(self, temp_dir):
        """Test that the root cannot be mapped as a file."""
        with pytest.raises(PathMappingError):
            to_remote_file_path(temp_dir, temp_dir)

    def test_outside_root_raises(self, temp_dir):
        """Test that paths outside the root are rejected."""
        with pytest.raises(PathMappingError, match="outside of local root"):
            to_remote_file_path(temp_dir / "root", temp_dir / "other" / "a.py")

    def test_sibling_with_common_prefix_is_outside(self, temp_dir):
        """Test that /x/rootx is not treated as inside /x/root."""
        with pytest.raises(PathMappingError):
            to_remote_file_path(temp_dir / "root", temp_dir / "rootx" / "a.py")

    def test_dot_segments_are_normalized(self, temp_dir):
        """Test that relative segments resolve before mapping."""
        path = temp_dir / "lib" / ".." / "code.py"
        assert to_remote_file_path(temp_dir, path) == "/code.py"

    def test_mapping_error_is_value_error(self, temp_dir):
        """Test that callers catching ValueError still work."""
        with pytest.raises(ValueError):
            to_remote_file_path(temp_dir / "a", temp_dir / "b")


class TestToLocal:
    """Tests for remote -> local mapping."""

    def test_round_trip(self, temp_dir):
        """Test that mapping back yields the original path."""
        path = temp_dir / "lib" / "adafruit_bus_device" / "i2c_device.py"
        remote = to_remote_file_path(temp_dir, path)
        assert to_local_path(temp_dir, remote) == path

    def test_root(self, temp_dir):
        """Test that / maps to the root."""
        assert to_local_path(temp_dir, "/") == temp_dir


class TestRemoteHelpers:
    """Tests for remote path helpers."""

    def test_remote_parent(self):
        """Test parent directory extraction."""
        assert remote_parent("/lib/hello/world.txt") == "/lib/hello/"
        assert remote_parent("/code.py") == "/"

    def test_remote_ancestors(self):
        """Test ancestor listing order."""
        assert remote_ancestors("/lib/hello/world.txt") == ["/lib/", "/lib/hello/"]
        assert remote_ancestors("/code.py") == []

    def test_relative_display(self, temp_dir):
        """Test display paths inside and outside the root."""
        assert relative_display(temp_dir, temp_dir / "lib" / "a.py") == "lib/a.py"
        assert relative_display(temp_dir, temp_dir) == "."
        assert relative_display(temp_dir / "a", "/elsewhere/x") == "/elsewhere/x"
