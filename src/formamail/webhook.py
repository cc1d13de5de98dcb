"""Webhook signature verification and parsing utilities.

FormaMail signs every webhook delivery with HMAC-SHA256 and sends the result
in the ``x-formamail-signature`` header::

    x-formamail-signature: t=1718000000,v1=5257a869...[,v1=...]

The signed string is ``<t>.<raw request body>``. A header may carry several
``v1`` entries while a subscription secret is being rotated.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import re
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Mapping, Sequence, Union

from .events import WebhookEvent, decode_event
from .exceptions import (
    MalformedSignatureHeaderError,
    MissingSignatureHeaderError,
    SignatureMismatchError,
    TimestampOutOfToleranceError,
    WebhookSignatureError,
)

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-formamail-signature"
SIGNATURE_SCHEME = "v1"
DEFAULT_TOLERANCE = 300

_TIMESTAMP_RE = re.compile(r"\d{1,15}", re.ASCII)
_V1_RE = re.compile(r"[0-9a-fA-F]{64}", re.ASCII)

Secret = Union[str, bytes]
Tolerance = Union[int, float, timedelta]


def _to_bytes(value: str | bytes) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def _secrets(secret: Secret | Sequence[Secret]) -> list[bytes]:
    if isinstance(secret, (str, bytes)):
        secrets = [secret]
    else:
        secrets = list(secret)
    if not secrets or not all(secrets):
        raise ValueError("A non-empty webhook secret is required")
    return [_to_bytes(s) for s in secrets]


@dataclass(frozen=True)
class SignatureHeader:
    """Parsed ``x-formamail-signature`` header."""

    timestamp: int
    signatures: tuple[tuple[str, str], ...]

    def candidates(self, scheme: str = SIGNATURE_SCHEME) -> list[str]:
        """Signatures listed under the given scheme, in header order."""
        return [mac for tag, mac in self.signatures if tag == scheme]


def compute_signature(timestamp: int, payload: str | bytes, secret: str | bytes) -> str:
    """Compute the lowercase hex HMAC-SHA256 of ``<timestamp>.<payload>``."""
    message = f"{timestamp}.".encode("ascii") + _to_bytes(payload)
    return hmac.new(_to_bytes(secret), message, hashlib.sha256).hexdigest()


def parse_signature_header(header: str | None) -> SignatureHeader:
    """Parse a signature header value.

    Unknown keys are ignored so that new signature schemes can be added
    alongside ``v1``.

    Raises:
        MissingSignatureHeaderError: If the header is absent or blank.
        MalformedSignatureHeaderError: If ``t`` is missing or not numeric,
            or no well-formed ``v1`` signature is present.
    """
    if header is None or not header.strip():
        raise MissingSignatureHeaderError()

    timestamp: str | None = None
    signatures: list[tuple[str, str]] = []

    for element in header.split(","):
        key, sep, value = element.partition("=")
        if not sep:
            continue
        key = key.strip()
        value = value.strip()
        if key == "t":
            timestamp = value
        elif key == SIGNATURE_SCHEME:
            if not _V1_RE.fullmatch(value):
                raise MalformedSignatureHeaderError(
                    "Signature header contains a malformed v1 signature"
                )
            signatures.append((key, value.lower()))

    if timestamp is None:
        raise MalformedSignatureHeaderError("Signature header is missing the 't' timestamp")
    if not _TIMESTAMP_RE.fullmatch(timestamp):
        raise MalformedSignatureHeaderError("Signature header timestamp is not a valid unix timestamp")
    if not signatures:
        raise MalformedSignatureHeaderError("Signature header contains no v1 signature")

    return SignatureHeader(timestamp=int(timestamp), signatures=tuple(signatures))


def build_signature_header(
    payload: str | bytes,
    secret: Secret | Sequence[Secret],
    timestamp: int | None = None,
) -> str:
    """Build a signature header value, one ``v1`` entry per secret.

    Intended for tests and local tooling that need to simulate a delivery.
    """
    ts = int(time.time()) if timestamp is None else timestamp
    parts = [f"t={ts}"]
    parts.extend(
        f"{SIGNATURE_SCHEME}={compute_signature(ts, payload, key)}" for key in _secrets(secret)
    )
    return ",".join(parts)


def check_freshness(timestamp: int, tolerance: Tolerance, now: float) -> None:
    """Reject timestamps more than ``tolerance`` seconds away from ``now``.

    Both stale (replayed) and future-dated timestamps are rejected.

    Raises:
        TimestampOutOfToleranceError: If ``|now - timestamp| > tolerance``.
    """
    if isinstance(tolerance, timedelta):
        tolerance = tolerance.total_seconds()
    if tolerance < 0:
        raise ValueError("tolerance must not be negative")
    if abs(now - timestamp) > tolerance:
        raise TimestampOutOfToleranceError(timestamp, tolerance, now)


def _matches_any(expected: Sequence[str], candidates: Sequence[str]) -> bool:
    # Every pair is compared so the time taken does not reveal which one matched.
    matched = False
    for mac in expected:
        for candidate in candidates:
            if hmac.compare_digest(mac.encode("ascii"), candidate.encode("ascii")):
                matched = True
    return matched


def verify_webhook_signature(
    payload: str | bytes,
    signature: str | None,
    secret: Secret | Sequence[Secret],
    tolerance: Tolerance = DEFAULT_TOLERANCE,
    now: float | None = None,
) -> WebhookEvent:
    """Verify a webhook delivery and decode its event.

    Args:
        payload: Raw request body, exactly as received. Do not re-serialize
            parsed JSON; any byte difference breaks the signature.
        signature: Value of the ``x-formamail-signature`` header.
        secret: Subscription secret, or several secrets during rotation.
        tolerance: Allowed clock drift in seconds (default: 300).
        now: Current unix time; defaults to ``time.time()``.

    Returns:
        The decoded, typed webhook event.

    Raises:
        MissingSignatureHeaderError: The header is absent or blank.
        MalformedSignatureHeaderError: The header cannot be parsed.
        TimestampOutOfToleranceError: The signature is stale or future-dated.
        SignatureMismatchError: No signature matches the payload.
        InvalidPayloadJsonError: The payload is not a JSON object.
        UnrecognizedEventTypeError: The event type is missing or unknown.
    """
    keys = _secrets(secret)
    try:
        header = parse_signature_header(signature)
        check_freshness(header.timestamp, tolerance, time.time() if now is None else now)

        expected = [compute_signature(header.timestamp, payload, key) for key in keys]
        if not _matches_any(expected, header.candidates()):
            raise SignatureMismatchError()

        return decode_event(payload)
    except WebhookSignatureError as e:
        logger.debug("Rejected webhook delivery: %s", type(e).__name__)
        raise


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of a verification that does not raise on rejection."""

    event: WebhookEvent | None = None
    error: WebhookSignatureError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def try_verify_webhook_signature(
    payload: str | bytes,
    signature: str | None,
    secret: Secret | Sequence[Secret],
    tolerance: Tolerance = DEFAULT_TOLERANCE,
    now: float | None = None,
) -> VerificationResult:
    """Like :func:`verify_webhook_signature`, but returns the rejection.

    Example:
        ```python
        result = try_verify_webhook_signature(body, header, secret)
        if not result.ok:
            return {"error": type(result.error).__name__}, 400
        handle(result.event)
        ```
    """
    try:
        event = verify_webhook_signature(payload, signature, secret, tolerance, now)
    except WebhookSignatureError as e:
        return VerificationResult(error=e)
    return VerificationResult(event=event)


class WebhookVerifier:
    """Verify and parse FormaMail webhook payloads.

    Example:
        ```python
        from formamail import WebhookVerifier
        from formamail.exceptions import WebhookSignatureError

        verifier = WebhookVerifier(secret="your-webhook-secret")

        @app.post("/webhooks/formamail")
        def handle_webhook(request):
            body = request.get_data()
            try:
                signature = verifier.extract_signature(request.headers)
                event = verifier.verify(body, signature)
            except WebhookSignatureError as e:
                return {"error": str(e)}, 400

            if event.type == "email.bounced":
                print(f"Bounced: {event.data.email_id} ({event.data.bounce_reason})")

            return {"status": "ok"}
        ```
    """

    def __init__(
        self,
        secret: Secret | Sequence[Secret],
        tolerance: Tolerance = DEFAULT_TOLERANCE,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize webhook verifier.

        Args:
            secret: Webhook secret from FormaMail, or a list of secrets
                while rotating.
            tolerance: Maximum clock drift in seconds (default: 300s / 5min).
            clock: Returns the current unix time.
        """
        self._secrets = tuple(_secrets(secret))
        self.tolerance = tolerance
        self.clock = clock

    def __repr__(self) -> str:
        return f"WebhookVerifier(secrets={len(self._secrets)}, tolerance={self.tolerance!r})"

    def verify(self, payload: str | bytes, signature: str | None) -> WebhookEvent:
        """Verify a delivery and return its event. See :func:`verify_webhook_signature`."""
        return verify_webhook_signature(
            payload, signature, self._secrets, self.tolerance, now=self.clock()
        )

    def try_verify(self, payload: str | bytes, signature: str | None) -> VerificationResult:
        """Verify a delivery without raising on rejection."""
        return try_verify_webhook_signature(
            payload, signature, self._secrets, self.tolerance, now=self.clock()
        )

    @staticmethod
    def extract_signature(headers: Mapping[str, str]) -> str:
        """Extract the signature header from request headers.

        Raises:
            MissingSignatureHeaderError: If the header is missing or empty.
        """
        # Handle case-insensitive headers
        normalized = {k.lower(): v for k, v in headers.items()}

        signature = normalized.get(SIGNATURE_HEADER)
        if not signature:
            raise MissingSignatureHeaderError(f"Missing {SIGNATURE_HEADER} header")
        return signature
