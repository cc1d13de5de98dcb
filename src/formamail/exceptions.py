"""FormaMail SDK exceptions."""

from __future__ import annotations


class FormamailError(Exception):
    """Base exception for FormaMail SDK."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(self.message)


class ValidationError(FormamailError):
    """Raised when request validation fails (400)."""

    def __init__(self, message: str = "Invalid request", error_code: str | None = None):
        super().__init__(message, status_code=400, error_code=error_code)


class AuthenticationError(FormamailError):
    """Raised when authentication fails (401)."""

    def __init__(self, message: str = "Authentication required", error_code: str | None = None):
        super().__init__(message, status_code=401, error_code=error_code)


class ForbiddenError(FormamailError):
    """Raised when access is denied (403)."""

    def __init__(self, message: str = "Access denied", error_code: str | None = None):
        super().__init__(message, status_code=403, error_code=error_code)


class NotFoundError(FormamailError):
    """Raised when a resource is not found (404)."""

    def __init__(self, message: str = "Resource not found", error_code: str | None = None):
        super().__init__(message, status_code=404, error_code=error_code)


class RateLimitError(FormamailError):
    """Raised when rate limit is exceeded (429)."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: int | None = None,
        error_code: str | None = None,
    ):
        super().__init__(message, status_code=429, error_code=error_code)
        self.retry_after = retry_after


class WebhookSignatureError(FormamailError):
    """Base exception for rejected webhook deliveries.

    Messages never include the signing secret or the expected MAC.
    """


class MissingSignatureHeaderError(WebhookSignatureError):
    """Raised when the signature header is absent or empty."""

    def __init__(self, message: str = "Missing webhook signature header"):
        super().__init__(message)


class MalformedSignatureHeaderError(WebhookSignatureError):
    """Raised when the signature header cannot be parsed."""


class TimestampOutOfToleranceError(WebhookSignatureError):
    """Raised when the signed timestamp falls outside the tolerance window."""

    def __init__(self, timestamp: int, tolerance: float, now: float):
        self.timestamp = timestamp
        self.tolerance = tolerance
        self.drift = now - timestamp
        super().__init__(
            f"Webhook timestamp {timestamp} is outside the tolerance window "
            f"of {tolerance:g}s (drift {self.drift:.0f}s)"
        )


class SignatureMismatchError(WebhookSignatureError):
    """Raised when no signature in the header matches the payload."""

    def __init__(self, message: str = "No webhook signature matches the payload"):
        super().__init__(message)


class InvalidPayloadJsonError(WebhookSignatureError):
    """Raised when a verified payload is not a JSON object."""


class InvalidEventDataError(InvalidPayloadJsonError):
    """Raised when a verified payload has the wrong shape for its event type."""


class UnrecognizedEventTypeError(WebhookSignatureError):
    """Raised when the event ``type`` is missing or unknown."""

    def __init__(self, event_type: object = None):
        self.event_type = event_type
        if event_type is None:
            message = "Missing 'type' field in webhook payload"
        else:
            message = f"Unrecognized webhook event type: {event_type!r}"
        super().__init__(message)
