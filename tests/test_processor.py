"""Tests for LocalChangeProcessor and the push/pull primitives."""

import os
import threading
import time
from unittest.mock import Mock

import pytest

from pycpsync.output import OutputFormatter
from pycpsync.sync.comparator import SyncAction
from pycpsync.sync.coordinator import WriteCoordinator
from pycpsync.sync.operations import SyncOperations
from pycpsync.sync.processor import ChangeKind, LocalChange, LocalChangeProcessor
from pycpsync.sync.self_writes import SelfWriteTracker

NS = 1_000_000
BASE_MS = 1_700_000_000_000


def write_local(path, content: bytes, modified_ms: int) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    os.utime(path, ns=(modified_ms * NS, modified_ms * NS))


@pytest.fixture
def coordinator(client):
    c = WriteCoordinator(client, writable_poll_interval=60.0)
    yield c
    c.stop(timeout=1.0)


@pytest.fixture
def self_writes():
    return SelfWriteTracker()


@pytest.fixture
def operations(client, self_writes, coordinator):
    return SyncOperations(client, self_writes, coordinator)


@pytest.fixture
def output():
    return Mock(spec=OutputFormatter)


@pytest.fixture
def processor(temp_dir, operations, output):
    return LocalChangeProcessor(temp_dir, operations, output)


class TestSyncOperations:
    """Tests for the shared primitives."""

    def test_push_requires_coordinator(self, client, self_writes):
        """Test that a read-only operations object refuses to push."""
        with pytest.raises(RuntimeError):
            SyncOperations(client, self_writes).writer

    def test_ensure_remote_dirs_creates_missing_outermost_first(
        self, operations, device
    ):
        """Test creation of /lib/ then /lib/hello/."""
        created = operations.ensure_remote_dirs("/lib/hello/world.txt")
        assert created == ["/lib/", "/lib/hello/"]
        puts = [r.url.path for r in device.requests if r.method == "PUT"]
        assert puts == ["/fs/lib/", "/fs/lib/hello/"]

    def test_ensure_remote_dirs_stops_at_existing(self, operations, device):
        """Test that existing ancestors are not re-created."""
        device.add_dir("/lib/")
        assert operations.ensure_remote_dirs("/lib/hello/world.txt") == ["/lib/hello/"]

    def test_ensure_remote_dirs_top_level_file(self, operations, device):
        """Test that nothing is created for files under /."""
        assert operations.ensure_remote_dirs("/code.py") == []
        assert device.count("PUT") == 0

    def test_remote_entry_for(self, operations, device):
        """Test lookup of a file in its parent listing."""
        device.add_file("/lib/a.py", b"abc", 5 * NS)
        entry = operations.remote_entry_for("/lib/a.py")
        assert entry is not None and entry.size == 3
        assert operations.remote_entry_for("/lib/b.py") is None
        assert operations.remote_entry_for("/nope/b.py") is None

    def test_pull_file_sets_bytes_mtime_and_registers(
        self, operations, device, temp_dir, self_writes
    ):
        """Test a pulled file's content, stamp and self-write entry."""
        device.add_file("/lib/a.py", b"abc", BASE_MS * NS + 123_456)
        entry = operations.remote_entry_for("/lib/a.py")
        target = temp_dir / "lib" / "a.py"

        assert operations.pull_file("/lib/a.py", target, entry) == 3
        assert target.read_bytes() == b"abc"
        assert target.stat().st_mtime_ns == BASE_MS * NS
        assert self_writes.is_recent(target)


class TestHandleChange:
    """Tests for the change decision and its effect."""

    def test_push_missing_remote_creates_parents(self, processor, device, temp_dir):
        """Test a new nested file."""
        path = temp_dir / "lib" / "hello" / "world.txt"
        write_local(path, b"hello", BASE_MS)

        decision = processor.handle_change(str(path))

        assert decision.action == SyncAction.PUSH_LOCAL
        assert decision.reason == "missing-remote"
        assert {"/lib/", "/lib/hello/"} <= device.dirs
        assert device.files["/lib/hello/world.txt"] == (b"hello", BASE_MS * NS)

    def test_push_local_newer(self, processor, device, temp_dir, output):
        """Test an edit made ten minutes after the device copy."""
        device.add_file("/code.py", b"aaaa", BASE_MS * NS)
        write_local(temp_dir / "code.py", b"bbbb", BASE_MS + 600_000)

        decision = processor.handle_change(str(temp_dir / "code.py"))

        assert decision.action == SyncAction.PUSH_LOCAL
        assert device.files["/code.py"][0] == b"bbbb"
        output.action.assert_called_with(
            "PUSH", "code.py", "reason: local-newer|size-diff, 201"
        )

    def test_pull_remote_newer(self, processor, device, temp_dir, self_writes):
        """Test that a newer device copy replaces the local file."""
        device.add_file("/code.py", b"new!", (BASE_MS + 5000) * NS)
        write_local(temp_dir / "code.py", b"old!", BASE_MS)

        decision = processor.handle_change(str(temp_dir / "code.py"))

        assert decision.action == SyncAction.PULL_REMOTE
        assert (temp_dir / "code.py").read_bytes() == b"new!"
        assert (temp_dir / "code.py").stat().st_mtime_ns == (BASE_MS + 5000) * NS
        assert self_writes.is_recent(temp_dir / "code.py")
        assert device.count("PUT") == 0

    def test_skip_equal(self, processor, device, temp_dir, output):
        """Test that identical stamp and size cause no traffic."""
        device.add_file("/code.py", b"same", BASE_MS * NS)
        write_local(temp_dir / "code.py", b"same", BASE_MS)

        decision = processor.handle_change(str(temp_dir / "code.py"))

        assert decision.action == SyncAction.SKIP
        assert device.count("PUT") == 0
        output.action.assert_called_with("SKIP", "code.py", "equal")

    def test_skip_missing_local(self, processor, device, temp_dir):
        """Test a file deleted before its debounce expired."""
        decision = processor.handle_change(str(temp_dir / "gone.py"))
        assert decision.action == SyncAction.SKIP_MISSING_LOCAL
        assert device.requests == []

    def test_directory_change_skipped(self, processor, device, temp_dir):
        """Test that directory notifications cause no traffic."""
        (temp_dir / "lib").mkdir()
        decision = processor.handle_change(str(temp_dir / "lib"))
        assert decision.action == SyncAction.SKIP
        assert device.requests == []

    def test_push_while_locked_is_deferred(
        self, processor, device, temp_dir, coordinator
    ):
        """Test that a locked device pauses the coordinator."""
        device.writable = False
        write_local(temp_dir / "code.py", b"x", BASE_MS)
        processor.handle_change(str(temp_dir / "code.py"))
        assert coordinator.is_paused
        assert [op.target for op in coordinator.pending()] == ["/code.py"]


class TestHandleRename:
    """Tests for rename propagation."""

    def test_move(self, processor, device, temp_dir, output):
        """Test a plain file rename."""
        device.add_file("/a.py", b"a", BASE_MS * NS)
        write_local(temp_dir / "b.py", b"a", BASE_MS)

        assert processor.handle_rename(str(temp_dir / "a.py"), str(temp_dir / "b.py"))

        assert "/b.py" in device.files and "/a.py" not in device.files
        output.action.assert_called_with("MOVE", "a.py -> b.py", "reason: local-rename")

    def test_fallback_put_delete(self, processor, device, temp_dir, output):
        """Test fallback when the device cannot move the file."""
        write_local(temp_dir / "sub" / "b.py", b"data", BASE_MS)

        assert processor.handle_rename(
            str(temp_dir / "a.py"), str(temp_dir / "sub" / "b.py")
        )

        assert device.files["/sub/b.py"] == (b"data", BASE_MS * NS)
        assert device.count("DELETE") == 1
        output.action.assert_called_with(
            "MOVE", "a.py -> sub/b.py", "fallback PUT+DELETE"
        )

    def test_deferred_while_locked(self, processor, device, temp_dir, coordinator):
        """Test that a 409 on MOVE defers without a fallback."""
        device.writable = False
        write_local(temp_dir / "b.py", b"a", BASE_MS)

        assert processor.handle_rename(str(temp_dir / "a.py"), str(temp_dir / "b.py"))

        assert device.count("MOVE") == 1
        assert device.count("PUT") == 0
        assert [op.kind for op in coordinator.pending()] == ["move"]

    def test_directory_move(self, processor, device, temp_dir, output):
        """Test that a directory rename is one MOVE for the whole subtree."""
        device.add_file("/lib/a.py", b"a", BASE_MS * NS)
        device.add_file("/lib/sub/b.py", b"b", BASE_MS * NS)
        (temp_dir / "lib2" / "sub").mkdir(parents=True)

        assert processor.handle_rename(str(temp_dir / "lib"), str(temp_dir / "lib2"))

        mutations = [(r.method, r.url.path) for r in device.requests if r.method != "GET"]
        assert mutations == [("MOVE", "/fs/lib/")]
        assert device.requests[-1].headers["X-Destination"] == "/fs/lib2/"
        assert set(device.files) == {"/lib2/a.py", "/lib2/sub/b.py"}
        output.action.assert_called_with("MOVE", "lib -> lib2", "reason: local-rename")

    def test_failure_without_local_file(self, processor, temp_dir, output):
        """Test a failed move whose target vanished locally."""
        assert not processor.handle_rename(
            str(temp_dir / "a.py"), str(temp_dir / "b.py")
        )
        assert output.action.call_args.args[0] == "ERROR"

    def test_delete_is_reported_only(self, processor, device, temp_dir, output):
        """Test that local deletions never reach the device."""
        processor.handle_delete(str(temp_dir / "a.py"))
        assert device.requests == []
        output.action.assert_called_once_with("DELETE", "a.py", "skipped by policy")


class TestConsumerLoop:
    """Tests for the queue consumer."""

    def test_failing_item_does_not_stop_loop(self, processor, device, temp_dir, output):
        """Test that an error is reported and the next item still runs."""
        write_local(temp_dir / "bad.py", b"bad", BASE_MS)
        write_local(temp_dir / "ok.py", b"ok", BASE_MS)
        # Listing for the first item keeps failing through all retries
        device.fail_next = [500] * 4
        processor.enqueue_change(str(temp_dir / "bad.py"))
        processor.enqueue_change(str(temp_dir / "ok.py"))

        stop = threading.Event()
        thread = threading.Thread(target=processor.run, args=(stop, 0.01))
        thread.start()
        try:
            deadline = time.monotonic() + 2.0
            while "/ok.py" not in device.files and time.monotonic() < deadline:
                time.sleep(0.01)
        finally:
            stop.set()
            thread.join(1.0)

        assert "/ok.py" in device.files
        verbs = [c.args[0] for c in output.action.call_args_list]
        assert verbs[0] == "ERROR"
        assert "PUSH" in verbs

    def test_rename_items_are_dispatched(self, processor):
        """Test that process routes renames to handle_rename."""
        processor.handle_rename = Mock(return_value=True)
        processor.process(LocalChange(ChangeKind.RENAMED, "/r/a", "/r/b"))
        processor.handle_rename.assert_called_once_with("/r/a", "/r/b")
