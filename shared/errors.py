"""
Shared error handling for the Places cache proxy.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class ProxyException(Exception):
    """Base exception for proxy services."""

    status_code = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(ProxyException):
    """Required request input is missing or malformed."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class UpstreamRejection(ProxyException):
    """Upstream answered, but reported a non-OK status in its payload."""

    def __init__(self, payload: Dict[str, Any]):
        self.payload = payload
        status = payload.get("status") if isinstance(payload, dict) else None
        super().__init__(
            "UPSTREAM_REJECTION",
            f"Upstream returned status {status}",
            {"status": status}
        )


class TransportFailure(ProxyException):
    """Network or protocol failure talking to an external service."""

    status_code = 500

    def __init__(self, service: str, message: str = "Transport failure", details: Optional[Dict[str, Any]] = None):
        self.service = service
        super().__init__("TRANSPORT_FAILURE", f"{service}: {message}", details)


class CacheFailure(ProxyException):
    """Cache backend operation failed."""

    status_code = 500

    def __init__(self, operation: str, message: str = "Cache operation failed", details: Optional[Dict[str, Any]] = None):
        self.operation = operation
        super().__init__("CACHE_FAILURE", f"cache {operation}: {message}", details)


class ServiceError(ProxyException):
    """Service-related errors."""

    status_code = 503

    def __init__(self, message: str = "Service error", details: Optional[Dict[str, Any]] = None):
        super().__init__("SERVICE_ERROR", message, details)
