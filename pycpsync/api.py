"""API client for the CircuitPython web workflow."""

from __future__ import annotations

import logging
import random
import time
from typing import Any

import httpx

from .config import config, normalize_address
from .exceptions import (
    CpAPIError,
    CpAuthenticationError,
    CpConfigError,
    CpInvalidResponseError,
    CpNetworkError,
    CpNotFoundError,
    CpPermissionError,
)
from .models import DiskInfo, RemoteDirectoryListing, VersionInfo
from .utils import DEFAULT_MAX_RETRIES, DEFAULT_RETRY_DELAY

logger = logging.getLogger(__name__)

FS_BASE = "/fs"
CP_BASE = "/cp"

HEADER_TIMESTAMP = "X-Timestamp"  # ms since epoch
HEADER_DESTINATION = "X-Destination"  # absolute /fs path

HTTP_CREATED = 201
HTTP_ACCEPTED = 202
HTTP_NO_CONTENT = 204
HTTP_CONFLICT = 409


def is_conflict(status: int) -> bool:
    """True if ``status`` signals that the device storage is write-locked."""
    return status == HTTP_CONFLICT


def is_success(status: int) -> bool:
    return 200 <= status < 300


class WebWorkflowClient:
    """Client for the ``/fs`` and ``/cp`` endpoints of a CircuitPython device.

    Network errors and 5xx answers are retried with exponential backoff.
    Read operations raise :class:`CpAPIError` subclasses; mutating operations
    return the HTTP status code so callers can treat 409 as flow control.
    """

    def __init__(
        self,
        address: str | None = None,
        password: str | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            address: Device host, host:port or URL (uses config if not provided)
            password: Web workflow password (uses config if not provided)
            max_retries: Maximum number of retry attempts (default: 3)
            retry_delay: Initial delay between retries in seconds (default: 0.5)
            timeout: Request timeout in seconds (default: 30.0)
            transport: Optional httpx transport (used by tests)
        """
        address = address or config.address
        password = password or config.password
        if not address:
            raise CpConfigError(
                "Device address not configured. "
                "Please set CPSYNC_ADDRESS or pass --address."
            )
        if not password:
            raise CpConfigError(
                "Password not configured. "
                "Please set CPSYNC_PASSWORD or pass --password."
            )

        self.base_url = normalize_address(address)
        self.password = password
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                base_url=self.base_url,
                auth=httpx.BasicAuth("", self.password),
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections.

        Closing also aborts requests still in flight on other threads, which
        is how shutdown cancels long-running loops promptly.
        """
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def __enter__(self) -> WebWorkflowClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # Add jitter: +/- 25% of base delay
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _send(
        self,
        method: str,
        path: str,
        headers: dict[str, str] | None = None,
        content: bytes | None = None,
    ) -> httpx.Response:
        """Send a request, retrying transient failures.

        Returns the final response whatever its status; only 5xx answers and
        transport errors are retried.

        Raises:
            CpNetworkError: If the device stays unreachable after all retries
        """
        client = self._get_client()
        last_response: httpx.Response | None = None

        for attempt in range(self.max_retries + 1):
            try:
                response = client.request(method, path, headers=headers, content=content)
            except httpx.RequestError as e:
                if attempt >= self.max_retries:
                    raise CpNetworkError(f"Network error: {e}") from e
                delay = self._calculate_retry_delay(attempt)
                logger.debug(
                    "%s %s failed (%s), retrying in %.2fs", method, path, e, delay
                )
                time.sleep(delay)
                continue

            last_response = response
            if 500 <= response.status_code < 600 and attempt < self.max_retries:
                delay = self._calculate_retry_delay(attempt)
                logger.debug(
                    "%s %s returned %d, retrying in %.2fs",
                    method,
                    path,
                    response.status_code,
                    delay,
                )
                time.sleep(delay)
                continue
            return response

        # If we get here, we've exhausted all retries
        if last_response is not None:
            return last_response
        raise CpAPIError("Request failed after all retry attempts")

    def _raise_for_status(self, response: httpx.Response, target: str) -> None:
        """Map a non-2xx response to the matching exception."""
        status_code = response.status_code
        if is_success(status_code):
            return
        if status_code == 401:
            raise CpAuthenticationError(
                "Invalid password or unauthorized access", status_code
            )
        if status_code == 403:
            raise CpPermissionError(
                "Access forbidden - is the web workflow enabled?", status_code
            )
        if status_code == 404:
            raise CpNotFoundError(f"Not found: {target}", status_code)
        raise CpAPIError(
            f"Request for {target} failed with status {status_code}", status_code
        )

    def _get_json(self, path: str) -> Any:
        response = self._send("GET", path, headers={"Accept": "application/json"})
        self._raise_for_status(response, path)
        try:
            return response.json()
        except ValueError as e:
            raise CpInvalidResponseError(
                f"Invalid JSON response from {path}", response.status_code
            ) from e

    # =========================
    # Device information
    # =========================

    def get_version(self) -> VersionInfo:
        """Fetch ``/cp/version.json``; used as the startup connectivity check."""
        return VersionInfo.from_dict(self._get_json(f"{CP_BASE}/version.json"))

    def get_disk_info(self) -> list[DiskInfo]:
        """Fetch the status of every disk exposed by the device."""
        data = self._get_json(f"{CP_BASE}/diskinfo.json")
        if not isinstance(data, list):
            raise CpInvalidResponseError("diskinfo.json is not an array")
        return [DiskInfo.from_dict(d) for d in data]

    # =========================
    # Filesystem reads
    # =========================

    def list_directory(self, dir_path: str) -> RemoteDirectoryListing:
        """List one remote directory (not recursive).

        Args:
            dir_path: Absolute remote directory path, e.g. ``/lib/``

        Raises:
            CpNotFoundError: If the directory does not exist
        """
        if not dir_path.endswith("/"):
            dir_path += "/"
        data = self._get_json(f"{FS_BASE}{dir_path}")
        if not isinstance(data, dict):
            raise CpInvalidResponseError(f"Unexpected listing for {dir_path}")
        return RemoteDirectoryListing.from_dict(data)

    def get_file(self, file_path: str) -> bytes:
        """Download the content of a remote file.

        Raises:
            CpNotFoundError: If the file vanished
        """
        if file_path.endswith("/"):
            raise ValueError("File path must not end with /")
        path = f"{FS_BASE}{file_path}"
        response = self._send("GET", path)
        self._raise_for_status(response, path)
        return response.content

    # =========================
    # Filesystem mutations
    # =========================

    def put_file(
        self, file_path: str, content: bytes, timestamp_ms: int | None = None
    ) -> int:
        """Create or overwrite a remote file.

        Args:
            file_path: Absolute remote file path
            content: File bytes
            timestamp_ms: Modification time to record, in epoch milliseconds

        Returns:
            HTTP status (201 on success, 409 while write-locked)
        """
        if file_path.endswith("/"):
            raise ValueError("File path must not end with /")
        headers = {"Expect": "100-continue"}
        if timestamp_ms is not None:
            headers[HEADER_TIMESTAMP] = str(timestamp_ms)
        response = self._send("PUT", f"{FS_BASE}{file_path}", headers, content)
        return response.status_code

    def put_directory(self, dir_path: str, timestamp_ms: int | None = None) -> int:
        """Create a remote directory."""
        if not dir_path.endswith("/"):
            dir_path += "/"
        headers = {}
        if timestamp_ms is not None:
            headers[HEADER_TIMESTAMP] = str(timestamp_ms)
        response = self._send("PUT", f"{FS_BASE}{dir_path}", headers)
        return response.status_code

    def move(self, source_path: str, destination_path: str, is_directory: bool) -> int:
        """Rename a remote file or directory."""
        if is_directory:
            if not source_path.endswith("/"):
                source_path += "/"
            if not destination_path.endswith("/"):
                destination_path += "/"
        headers = {HEADER_DESTINATION: f"{FS_BASE}{destination_path}"}
        response = self._send("MOVE", f"{FS_BASE}{source_path}", headers)
        return response.status_code

    def delete(self, path: str, is_directory: bool) -> int:
        """Delete a remote file or directory (204 on success)."""
        if is_directory and not path.endswith("/"):
            path += "/"
        response = self._send("DELETE", f"{FS_BASE}{path}")
        return response.status_code
