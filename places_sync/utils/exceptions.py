"""
Custom exception classes for Places Sync.

Provides a hierarchy of exceptions for different failure scenarios
with appropriate context and debugging information. Every error carries a
``kind`` naming its category in the error taxonomy exposed to callers.
"""

from typing import Any, Optional


def _preview(text: Optional[str], limit: int = 200) -> Optional[str]:
    if text is None:
        return None
    return text[:limit] + "..." if len(text) > limit else text


class PlacesSyncError(Exception):
    """Base exception for all Places Sync errors.

    All custom exceptions inherit from this class, allowing
    catch-all error handling when needed.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
    """

    kind: str = "internal"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Serializable error payload."""
        return {"error": self.kind, "message": self.message, "details": self.details}


class ConfigurationError(PlacesSyncError):
    """Raised at startup when mandatory configuration is missing or invalid.

    Attributes:
        errors: Individual configuration problems
    """

    kind = "configuration"

    def __init__(self, message: str = "Invalid configuration", errors: Optional[list[str]] = None):
        self.errors = list(errors or [])
        super().__init__(message, {"errors": "; ".join(self.errors)} if self.errors else None)


class BadRequestError(PlacesSyncError):
    """Raised when a caller-supplied query is missing required fields.

    Never retried; surfaced immediately without any external call.

    Attributes:
        missing_fields: Names of the empty or absent fields
    """

    kind = "bad-request"

    def __init__(self, message: str = "Missing required parameters", missing_fields: Optional[list[str]] = None):
        self.missing_fields = list(missing_fields or [])
        details = {"missing_fields": ", ".join(self.missing_fields)} if self.missing_fields else None
        super().__init__(message, details)


class APIError(PlacesSyncError):
    """Raised when a single provider HTTP attempt fails.

    Covers HTTP errors, network failures and timeouts. Instances are
    retryable by the backoff executor unless a subclass says otherwise.

    Attributes:
        endpoint: API endpoint that failed
        status_code: HTTP status code (if applicable)
        response_body: Response content (if available)
        request_params: Request parameters used
    """

    kind = "upstream-transport"

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_params: Optional[dict[str, Any]] = None,
        **kwargs
    ):
        details = {
            "endpoint": endpoint,
            "status_code": status_code,
            "request_params": request_params,
            "response_preview": _preview(response_body),
            **kwargs
        }
        details = {k: v for k, v in details.items() if v is not None}
        super().__init__(message, details)
        self.endpoint = endpoint
        self.status_code = status_code
        self.response_body = response_body
        self.request_params = request_params


class RateLimitError(APIError):
    """Raised when the provider reports its quota is exceeded (429 / OVER_QUERY_LIMIT).

    Attributes:
        retry_after: Seconds to wait before retrying (if provided by API)
    """

    def __init__(
        self,
        message: str = "API rate limit exceeded",
        retry_after: Optional[int] = None,
        **kwargs
    ):
        super().__init__(message, retry_after=retry_after, **kwargs)
        self.retry_after = retry_after


class ServerError(APIError):
    """Raised when the provider returns a 5xx error."""


class AuthError(APIError):
    """Raised when the provider rejects credentials (401/403 / REQUEST_DENIED).

    Not retried: repeating the call cannot succeed.
    """

    kind = "upstream-auth"


class UpstreamResponseError(PlacesSyncError):
    """Raised when the provider answered with a status or payload shape
    that cannot be interpreted.

    Terminal for the call that produced it; never retried by this layer.

    Attributes:
        endpoint: Endpoint that produced the response
        status: Provider or HTTP status reported
    """

    kind = "upstream-response"

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        status: Optional[Any] = None,
        payload: Optional[str] = None,
        **kwargs
    ):
        details = {
            "endpoint": endpoint,
            "status": status,
            "payload_preview": _preview(payload),
            **kwargs
        }
        details = {k: v for k, v in details.items() if v is not None}
        super().__init__(message, details)
        self.endpoint = endpoint
        self.status = status


class UpstreamExhaustionError(PlacesSyncError):
    """Raised when every backoff attempt for one external call failed.

    Recoverable: callers degrade (stale record, provisional shell) or
    surface it as the overall result.

    Attributes:
        operation: Description of the wrapped call
        attempts: Number of attempts made
        last_error: Final underlying failure
    """

    kind = "upstream-exhaustion"

    def __init__(
        self,
        message: str = "Upstream call failed after all retry attempts",
        operation: Optional[str] = None,
        attempts: Optional[int] = None,
        last_error: Optional[BaseException] = None,
    ):
        details = {
            "operation": operation,
            "attempts": attempts,
            "last_error": f"{type(last_error).__name__}: {last_error}" if last_error else None,
        }
        details = {k: v for k, v in details.items() if v is not None}
        super().__init__(message, details)
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error


class RecordUnavailableError(PlacesSyncError):
    """Raised when a caller demands a record that could not be obtained.

    Attributes:
        place_id: Identifier of the missing record
    """

    kind = "unavailable"

    def __init__(self, place_id: str, message: str = "Record unavailable"):
        super().__init__(message, {"place_id": place_id})
        self.place_id = place_id


class InternalError(PlacesSyncError):
    """Raised for unexpected failures during mapping or persistence.

    Attributes:
        operation: Operation in progress when the failure happened
    """

    kind = "internal"

    def __init__(self, message: str, operation: Optional[str] = None, **context):
        details = {"operation": operation, **context}
        details = {k: v for k, v in details.items() if v is not None}
        super().__init__(message, details)
        self.operation = operation


class StorageError(PlacesSyncError):
    """Raised when record store operations fail.

    Attributes:
        operation: The store operation that failed (read/upsert/list/...)
        record_id: The record involved in the failed operation
    """

    kind = "storage"

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        record_id: Optional[str] = None,
        **kwargs
    ):
        details = {
            "operation": operation,
            "record_id": record_id,
            **kwargs
        }
        details = {k: v for k, v in details.items() if v is not None}
        super().__init__(message, details)
        self.operation = operation
        self.record_id = record_id


class DataNormalizationError(PlacesSyncError):
    """Raised when a provider payload lacks the fields a record requires.

    Attributes:
        source: Payload generation being normalized (legacy/v1)
        field: Specific field that caused the error
        value: Value that failed normalization
    """

    kind = "normalization"

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        details = {
            "source": source,
            "field": field,
            **kwargs
        }
        if value is not None:
            value_str = str(value)
            details["value"] = value_str[:100] + "..." if len(value_str) > 100 else value_str

        details = {k: v for k, v in details.items() if v is not None}
        super().__init__(message, details)
        self.source = source
        self.field = field
        self.value = value
