"""Shared fixtures: an in-memory CircuitPython device behind httpx.MockTransport."""

import base64
import json
import tempfile
from pathlib import Path

import httpx
import pytest

from pycpsync.api import WebWorkflowClient

PASSWORD = "pwd"
NS = 1_000_000


class FakeDevice:
    """Minimal web workflow filesystem with a switchable write lock."""

    def __init__(self) -> None:
        self.files: dict[str, tuple[bytes, int]] = {}
        self.dirs: set[str] = {"/"}
        self.writable = True
        self.requests: list[httpx.Request] = []
        self.fail_next: list[int] = []

    # Setup helpers

    def add_file(self, path: str, content: bytes, modified_ns: int) -> None:
        self.files[path] = (content, modified_ns)
        parent = "/"
        for segment in [s for s in path.split("/") if s][:-1]:
            parent += segment + "/"
            self.dirs.add(parent)

    def add_dir(self, path: str) -> None:
        if not path.endswith("/"):
            path += "/"
        self.dirs.add(path)

    def count(self, method: str, prefix: str = "/fs/") -> int:
        return sum(
            1
            for r in self.requests
            if r.method == method and r.url.path.startswith(prefix)
        )

    # Transport

    def _listing(self, dir_path: str) -> dict:
        entries = []
        for sub in sorted(self.dirs):
            if sub != dir_path and sub.startswith(dir_path):
                rest = sub[len(dir_path) :].rstrip("/")
                if rest and "/" not in rest:
                    entries.append(
                        {"name": rest, "directory": True, "modified_ns": 0, "file_size": 0}
                    )
        for path, (content, modified_ns) in sorted(self.files.items()):
            if path.startswith(dir_path) and "/" not in path[len(dir_path) :]:
                entries.append(
                    {
                        "name": path[len(dir_path) :],
                        "directory": False,
                        "modified_ns": modified_ns,
                        "file_size": len(content),
                    }
                )
        return {
            "free": 100,
            "total": 200,
            "block_size": 512,
            "writable": self.writable,
            "files": entries,
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        expected = "Basic " + base64.b64encode(f":{PASSWORD}".encode()).decode()
        if request.headers.get("Authorization") != expected:
            return httpx.Response(401)
        if self.fail_next:
            return httpx.Response(self.fail_next.pop(0))

        path = request.url.path
        method = request.method

        if path == "/cp/version.json":
            return httpx.Response(
                200,
                json={"web_api_version": 4, "hostname": "cpy-test", "version": "9.0.0"},
            )
        if path == "/cp/diskinfo.json":
            return httpx.Response(
                200,
                json=[
                    {
                        "root": "/",
                        "free": 100,
                        "total": 200,
                        "block_size": 512,
                        "writable": self.writable,
                    }
                ],
            )
        if not path.startswith("/fs/"):
            return httpx.Response(404)

        fs_path = path[len("/fs") :]
        is_dir = fs_path.endswith("/")

        if method == "GET":
            if is_dir:
                if fs_path not in self.dirs:
                    return httpx.Response(404)
                return httpx.Response(200, content=json.dumps(self._listing(fs_path)))
            if fs_path not in self.files:
                return httpx.Response(404)
            return httpx.Response(200, content=self.files[fs_path][0])

        if not self.writable:
            return httpx.Response(409)

        if method == "PUT":
            if is_dir:
                self.add_dir(fs_path)
                return httpx.Response(201)
            stamp = request.headers.get("X-Timestamp")
            modified_ns = int(stamp) * NS if stamp else 0
            self.add_file(fs_path, request.content, modified_ns)
            return httpx.Response(201)
        if method == "MOVE":
            destination = request.headers["X-Destination"][len("/fs") :]
            if is_dir:
                if fs_path not in self.dirs:
                    return httpx.Response(404)
                for sub in [d for d in self.dirs if d.startswith(fs_path)]:
                    self.dirs.discard(sub)
                    self.dirs.add(destination + sub[len(fs_path) :])
                for path in [p for p in self.files if p.startswith(fs_path)]:
                    self.files[destination + path[len(fs_path) :]] = self.files.pop(path)
                return httpx.Response(201)
            if fs_path in self.files:
                self.files[destination] = self.files.pop(fs_path)
                return httpx.Response(201)
            return httpx.Response(404)
        if method == "DELETE":
            if self.files.pop(fs_path, None) is None and fs_path not in self.dirs:
                return httpx.Response(404)
            self.dirs.discard(fs_path)
            return httpx.Response(204)
        return httpx.Response(405)


@pytest.fixture
def device() -> FakeDevice:
    return FakeDevice()


@pytest.fixture
def client(device: FakeDevice):
    c = WebWorkflowClient(
        address="dev.local",
        password=PASSWORD,
        retry_delay=0.0,
        transport=httpx.MockTransport(device.handler),
    )
    yield c
    c.close()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)
