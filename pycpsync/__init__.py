"""pycpsync - keep a local folder in sync with a CircuitPython web workflow device."""

from .api import WebWorkflowClient
from .exceptions import (
    CpAPIError,
    CpAuthenticationError,
    CpConfigError,
    CpInvalidResponseError,
    CpNetworkError,
    CpNotFoundError,
    CpPermissionError,
    CpSyncError,
    PathMappingError,
)
from .utils import ns_to_ms, set_mtime_from_ns

__all__ = [
    "WebWorkflowClient",
    "CpAPIError",
    "CpAuthenticationError",
    "CpConfigError",
    "CpInvalidResponseError",
    "CpNetworkError",
    "CpNotFoundError",
    "CpPermissionError",
    "CpSyncError",
    "PathMappingError",
    "ns_to_ms",
    "set_mtime_from_ns",
]
