"""FormaMail Python SDK - Template-based email delivery."""

from .client import Formamail, create_client
from .events import (
    EmailBouncedEvent,
    EmailClickedEvent,
    EmailDeliveredEvent,
    EmailOpenedEvent,
    EmailSentEvent,
    UnsubscribeCreatedEvent,
    WebhookEvent,
    decode_event,
)
from .webhook import (
    SignatureHeader,
    VerificationResult,
    WebhookVerifier,
    compute_signature,
    parse_signature_header,
    try_verify_webhook_signature,
    verify_webhook_signature,
)
from .exceptions import (
    FormamailError,
    AuthenticationError,
    ValidationError,
    ForbiddenError,
    NotFoundError,
    RateLimitError,
    WebhookSignatureError,
    MissingSignatureHeaderError,
    MalformedSignatureHeaderError,
    TimestampOutOfToleranceError,
    SignatureMismatchError,
    InvalidPayloadJsonError,
    InvalidEventDataError,
    UnrecognizedEventTypeError,
)

__version__ = "0.1.0"
__all__ = [
    "Formamail",
    "create_client",
    "WebhookVerifier",
    "WebhookEvent",
    "EmailSentEvent",
    "EmailDeliveredEvent",
    "EmailOpenedEvent",
    "EmailClickedEvent",
    "EmailBouncedEvent",
    "UnsubscribeCreatedEvent",
    "SignatureHeader",
    "VerificationResult",
    "compute_signature",
    "parse_signature_header",
    "verify_webhook_signature",
    "try_verify_webhook_signature",
    "decode_event",
    "FormamailError",
    "AuthenticationError",
    "ValidationError",
    "ForbiddenError",
    "NotFoundError",
    "RateLimitError",
    "WebhookSignatureError",
    "MissingSignatureHeaderError",
    "MalformedSignatureHeaderError",
    "TimestampOutOfToleranceError",
    "SignatureMismatchError",
    "InvalidPayloadJsonError",
    "InvalidEventDataError",
    "UnrecognizedEventTypeError",
]
