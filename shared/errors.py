"""
Shared error handling for the Offline Edge Cache.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class EdgeCacheException(Exception):
    """Base exception for edge cache services."""

    status_code = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(EdgeCacheException):
    """Validation-related errors."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class NetworkFailure(EdgeCacheException):
    """A fetch against the origin could not complete."""

    status_code = 502

    def __init__(self, url: str, message: str = "Network request failed", details: Optional[Dict[str, Any]] = None):
        self.url = url
        super().__init__("NETWORK_FAILURE", f"{url}: {message}", details)


class StorageFailure(EdgeCacheException):
    """A cache store read or write failed."""

    def __init__(self, operation: str, message: str = "Cache storage error", details: Optional[Dict[str, Any]] = None):
        self.operation = operation
        super().__init__("STORAGE_FAILURE", f"{operation}: {message}", details)


class ManifestFetchFailure(EdgeCacheException):
    """A precache resource could not be retrieved during install."""

    status_code = 503

    def __init__(self, message: str = "Precache failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("MANIFEST_FETCH_FAILURE", message, details)
