"""
Exception hierarchy for the grant tracker.

    GrantTrackerError (base)
    ├── ValidationError       user-correctable input problem (HTTP 400)
    ├── NotFoundError         missing tracked list or grant (HTTP 404)
    ├── UpstreamUnavailable   every search source failed (HTTP 503)
    ├── StorageUnavailable    cache/persistence backend unreachable
    └── AdapterError          single source failure, never leaves the adapter
"""

from typing import Any, Optional


class GrantTrackerError(Exception):
    """Base exception for all grant tracker errors."""

    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        details: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.headers = headers or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable error body."""
        return {"error": True, "message": self.message, **self.details}


class ValidationError(GrantTrackerError):
    """Missing or malformed request parameter."""

    status_code = 400


class NotFoundError(GrantTrackerError):
    """Requested tracked grant data does not exist."""

    status_code = 404


class UpstreamUnavailable(GrantTrackerError):
    """All grant sources failed or timed out."""

    status_code = 503


class StorageUnavailable(GrantTrackerError):
    """Key-value store could not be read or written."""

    status_code = 503


class AdapterError(GrantTrackerError):
    """A single source adapter failed to fetch or parse its data."""

    status_code = 502
