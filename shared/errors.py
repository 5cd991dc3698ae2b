"""
Shared error handling for the rate limit gate.
"""

from typing import Dict, Any, Optional

from opentelemetry import trace
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class RateLimitException(Exception):
    """Base exception for the rate limit gate."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        trace_id = None
        current_span = trace.get_current_span()
        if current_span and current_span.is_recording():
            span_context = current_span.get_span_context()
            if span_context.trace_id != 0:
                trace_id = f"{span_context.trace_id:032x}"

        return ErrorResponse(
            trace_id=trace_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class MissingAnnotationError(RateLimitException):
    """A required annotation is not present on the Pod."""

    def __init__(self, key: str):
        self.key = key
        super().__init__("MISSING_ANNOTATION", f"annotation not found: {key}", {"annotation": key})


class InvalidAnnotationError(RateLimitException):
    """An annotation is present but its value cannot be used."""

    def __init__(self, key: str, value: str, reason: str = "expected a non-negative integer"):
        self.key = key
        self.value = value
        super().__init__(
            "INVALID_ANNOTATION",
            f"invalid annotation {key}: {value!r} ({reason})",
            {"annotation": key, "value": value}
        )


class StoreError(RateLimitException):
    """Pod store errors."""

    def __init__(self, message: str = "Pod store error", details: Optional[Dict[str, Any]] = None,
                 code: str = "STORE_ERROR"):
        super().__init__(code, message, details)


class StoreUnavailableError(StoreError):
    """The Pod store could not be reached."""

    def __init__(self, message: str = "Pod store unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, code="STORE_UNAVAILABLE")


class StoreRequestError(StoreError):
    """The Pod store rejected a request (conflict, not found, bad selector...)."""

    def __init__(self, status_code: int, message: str, details: Optional[Dict[str, Any]] = None):
        self.status_code = status_code
        details = dict(details or {})
        details.setdefault("status_code", status_code)
        super().__init__(message, details, code="STORE_REQUEST_ERROR")


class InvalidSelectorError(StoreRequestError):
    """A label selector could not be parsed."""

    def __init__(self, selector: str, reason: str):
        self.selector = selector
        super().__init__(
            400,
            f"unable to parse requirement: {reason}",
            {"selector": selector}
        )
        self.code = "INVALID_SELECTOR"


class EncodingError(RateLimitException):
    """Serialising a Pod or building a patch failed."""

    def __init__(self, message: str = "Encoding error", details: Optional[Dict[str, Any]] = None):
        super().__init__("ENCODING_ERROR", message, details)


class DeadlineExceededError(RateLimitException):
    """The caller's deadline passed before a store call completed."""

    def __init__(self, message: str = "context deadline exceeded", details: Optional[Dict[str, Any]] = None):
        super().__init__("DEADLINE_EXCEEDED", message, details)


class ContextCanceledError(RateLimitException):
    """The caller canceled the scheduling attempt."""

    def __init__(self, message: str = "context canceled", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONTEXT_CANCELED", message, details)


class PluginError(RateLimitException):
    """Plugin registration and lookup errors."""

    def __init__(self, message: str = "Plugin error", details: Optional[Dict[str, Any]] = None):
        super().__init__("PLUGIN_ERROR", message, details)
