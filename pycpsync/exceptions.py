"""Exceptions raised by pycpsync."""

from typing import Optional


class CpSyncError(Exception):
    """Base exception for all pycpsync errors."""


class CpConfigError(CpSyncError):
    """Raised when the configuration is missing or invalid."""


class CpAPIError(CpSyncError):
    """Raised when the device answers with an unexpected status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class CpAuthenticationError(CpAPIError):
    """Raised when the device rejects the configured password (401)."""


class CpPermissionError(CpAPIError):
    """Raised when the device forbids the request (403)."""


class CpNotFoundError(CpAPIError):
    """Raised when a remote file or directory does not exist (404)."""


class CpNetworkError(CpAPIError):
    """Raised when the device cannot be reached after all retries."""


class CpInvalidResponseError(CpAPIError):
    """Raised when the device returns a body that cannot be decoded."""


class PathMappingError(CpSyncError, ValueError):
    """Raised when a local path lies outside the mirrored root."""
