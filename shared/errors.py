"""
Shared error handling for the HTTP Status Lab.

Every failure a handler or admission stage can produce is one of the
exceptions below. Each maps to exactly one status code and renders the
same JSON envelope: an ``error`` label, a human-readable ``message`` and
optional extras such as ``details`` or ``retryAfter``.
"""

from typing import Any, Dict, List, Optional

from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    model_config = ConfigDict(populate_by_name=True)

    error: str
    message: str
    code: str
    details: Optional[Dict[str, Any]] = None
    retry_after: Optional[int] = Field(default=None, alias="retryAfter")
    available_endpoints: Optional[List[str]] = Field(default=None, alias="availableEndpoints")


class StatusLabException(Exception):
    """Base exception for Status Lab services."""

    status_code: int = 500
    default_error: str = "Internal Server Error"

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        self.error = error or self.default_error
        super().__init__(message)

    @property
    def headers(self) -> Dict[str, str]:
        """Extra response headers for this error."""
        return {}

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            error=self.error,
            message=self.message,
            code=self.code,
            details=self.details or None,
        )

    def to_json_response(self) -> JSONResponse:
        """Render as a JSON response with the matching status code."""
        return JSONResponse(
            status_code=self.status_code,
            content=self.to_response().model_dump(by_alias=True, exclude_none=True),
            headers=self.headers or None,
        )


class ValidationError(StatusLabException):
    """Validation-related errors."""

    status_code = 400
    default_error = "Bad Request"

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class AuthenticationError(StatusLabException):
    """Authentication-related errors."""

    status_code = 401
    default_error = "Authentication required"

    def __init__(
        self,
        message: str = "Authentication failed",
        details: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
        reason: str = "invalid",
    ):
        self.reason = reason
        super().__init__("AUTHENTICATION_ERROR", message, details, error)


class AuthorizationError(StatusLabException):
    """Authorization-related errors."""

    status_code = 403
    default_error = "Forbidden"

    def __init__(self, message: str = "Authorization failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHORIZATION_ERROR", message, details)


class NotFoundError(StatusLabException):
    """Missing resource or route."""

    status_code = 404
    default_error = "Not Found"

    def __init__(
        self,
        message: str = "Resource not found",
        error: Optional[str] = None,
        available_endpoints: Optional[List[str]] = None,
    ):
        self.available_endpoints = available_endpoints
        super().__init__("NOT_FOUND", message, error=error)

    def to_response(self) -> ErrorResponse:
        response = super().to_response()
        response.available_endpoints = self.available_endpoints
        return response


class _RetryableError(StatusLabException):
    """Errors that tell the client when to come back."""

    def __init__(self, code: str, message: str, retry_after: int, error: Optional[str] = None):
        self.retry_after = retry_after
        super().__init__(code, message, error=error)

    @property
    def headers(self) -> Dict[str, str]:
        return {"Retry-After": str(self.retry_after)}

    def to_response(self) -> ErrorResponse:
        response = super().to_response()
        response.retry_after = self.retry_after
        return response


class RateLimitError(_RetryableError):
    """Rate limiting errors."""

    status_code = 429
    default_error = "Too many requests. Please try again later."

    def __init__(self, retry_after: int, message: str = "Rate limit exceeded"):
        super().__init__("RATE_LIMIT_ERROR", message, retry_after)


class MaintenanceError(_RetryableError):
    """Service is switched into maintenance mode."""

    status_code = 503
    default_error = "Service temporarily unavailable"

    def __init__(
        self,
        retry_after: int = 3600,
        message: str = "Server is undergoing maintenance. Please try again later.",
    ):
        super().__init__("MAINTENANCE_MODE", message, retry_after)


class UnhandledServerError(StatusLabException):
    """Unexpected failure inside a handler."""

    status_code = 500
    default_error = "Internal Server Error"

    def __init__(
        self,
        message: str = "An unexpected error occurred on the server",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__("INTERNAL_ERROR", message, details)


class UpstreamError(StatusLabException):
    """Upstream service answered with something unusable."""

    status_code = 502
    default_error = "Bad Gateway"

    def __init__(self, service: str, message: str = "Upstream server returned an invalid response"):
        self.service = service
        super().__init__("UPSTREAM_ERROR", message, {"service": service})


class UpstreamTimeoutError(StatusLabException):
    """Upstream service did not answer in time."""

    status_code = 504
    default_error = "Gateway Timeout"

    def __init__(
        self,
        service: str,
        timeout_seconds: float,
        message: str = "Upstream server took too long to respond",
    ):
        self.service = service
        self.timeout_seconds = timeout_seconds
        super().__init__("UPSTREAM_TIMEOUT", message, {"service": service, "timeout_seconds": timeout_seconds})
