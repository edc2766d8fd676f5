"""Exception hierarchy for nostr-wot.

Validation errors are raised before any I/O happens. Relay errors only
surface when connectivity cannot be established at all; a subscription
that times out is a partial result, not an error. Storage errors always
propagate to the caller of the operation in progress.
"""

from __future__ import annotations

from typing import Any


class WoTException(Exception):
    """Base exception for all nostr-wot errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message


class ValidationException(WoTException):
    """Raised when an argument fails validation."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, {"field": field} if field else None)
        self.field = field


class RelayError(WoTException):
    """Base exception for relay (data source) errors."""

    def __init__(self, relay: str, message: str | None = None):
        super().__init__(message or f"Relay connection failed: {relay}", {"relay": relay})
        self.relay = relay


class SourceUnavailableError(RelayError):
    """Raised when a single relay connection cannot be established."""
    pass


class AllSourcesUnavailableError(RelayError):
    """Raised when no configured relay could be connected."""

    def __init__(self, message: str = "Failed to connect to any relay"):
        super().__init__("all", message)


class StorageUnavailableError(WoTException):
    """Raised when a storage backend operation fails."""

    def __init__(self, operation: str, message: str | None = None):
        super().__init__(message or f"Storage operation failed: {operation}", {"operation": operation})
        self.operation = operation


class OracleError(WoTException):
    """Raised when a request to the remote oracle fails."""

    def __init__(self, message: str, status: int | None = None, url: str | None = None):
        details: dict[str, Any] = {}
        if status is not None:
            details["status"] = status
        if url:
            details["url"] = url
        super().__init__(message, details)
        self.status = status
        self.url = url


class OracleTimeoutError(OracleError):
    """Raised when a request to the remote oracle times out."""

    def __init__(self, timeout: float, url: str | None = None):
        super().__init__(f"Request timed out after {timeout}s", url=url)
        self.timeout = timeout
