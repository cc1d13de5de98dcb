"""Typed webhook events and payload decoding."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Union

from .exceptions import (
    InvalidEventDataError,
    InvalidPayloadJsonError,
    UnrecognizedEventTypeError,
)


WebhookEventType = Literal[
    "email.sent",
    "email.delivered",
    "email.opened",
    "email.clicked",
    "email.bounced",
    "unsubscribe.created",
]


@dataclass(frozen=True)
class EmailSentData:
    email_id: str
    to: list[str] = field(default_factory=list)
    template_id: str | None = None
    provider_message_id: str | None = None


@dataclass(frozen=True)
class EmailDeliveredData:
    email_id: str
    recipient: str | None = None
    delivered_at: str | None = None


@dataclass(frozen=True)
class EmailOpenedData:
    email_id: str
    recipient: str | None = None
    user_agent: str | None = None
    ip_address: str | None = None


@dataclass(frozen=True)
class EmailClickedData:
    email_id: str
    url: str
    recipient: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True)
class EmailBouncedData:
    email_id: str
    bounce_reason: str
    recipient: str | None = None
    bounce_type: str | None = None


@dataclass(frozen=True)
class UnsubscribeCreatedData:
    email: str
    email_id: str | None = None
    reason: str | None = None


@dataclass(frozen=True)
class _BaseEvent:
    id: str
    timestamp: str

    @property
    def occurred_at(self) -> datetime | None:
        """Event time as a datetime, or None if the timestamp is not ISO-8601."""
        try:
            return datetime.fromisoformat(self.timestamp.replace("Z", "+00:00"))
        except ValueError:
            return None


@dataclass(frozen=True)
class EmailSentEvent(_BaseEvent):
    data: EmailSentData
    type: Literal["email.sent"] = "email.sent"


@dataclass(frozen=True)
class EmailDeliveredEvent(_BaseEvent):
    data: EmailDeliveredData
    type: Literal["email.delivered"] = "email.delivered"


@dataclass(frozen=True)
class EmailOpenedEvent(_BaseEvent):
    data: EmailOpenedData
    type: Literal["email.opened"] = "email.opened"


@dataclass(frozen=True)
class EmailClickedEvent(_BaseEvent):
    data: EmailClickedData
    type: Literal["email.clicked"] = "email.clicked"


@dataclass(frozen=True)
class EmailBouncedEvent(_BaseEvent):
    data: EmailBouncedData
    type: Literal["email.bounced"] = "email.bounced"


@dataclass(frozen=True)
class UnsubscribeCreatedEvent(_BaseEvent):
    data: UnsubscribeCreatedData
    type: Literal["unsubscribe.created"] = "unsubscribe.created"


WebhookEvent = Union[
    EmailSentEvent,
    EmailDeliveredEvent,
    EmailOpenedEvent,
    EmailClickedEvent,
    EmailBouncedEvent,
    UnsubscribeCreatedEvent,
]


# event type -> (event class, data class, {json key: (attribute, expected type, required)})
_SCHEMAS: dict[str, tuple[type, type, dict[str, tuple[str, type, bool]]]] = {
    "email.sent": (
        EmailSentEvent,
        EmailSentData,
        {
            "emailId": ("email_id", str, True),
            "to": ("to", list, False),
            "templateId": ("template_id", str, False),
            "providerMessageId": ("provider_message_id", str, False),
        },
    ),
    "email.delivered": (
        EmailDeliveredEvent,
        EmailDeliveredData,
        {
            "emailId": ("email_id", str, True),
            "recipient": ("recipient", str, False),
            "deliveredAt": ("delivered_at", str, False),
        },
    ),
    "email.opened": (
        EmailOpenedEvent,
        EmailOpenedData,
        {
            "emailId": ("email_id", str, True),
            "recipient": ("recipient", str, False),
            "userAgent": ("user_agent", str, False),
            "ipAddress": ("ip_address", str, False),
        },
    ),
    "email.clicked": (
        EmailClickedEvent,
        EmailClickedData,
        {
            "emailId": ("email_id", str, True),
            "url": ("url", str, True),
            "recipient": ("recipient", str, False),
            "userAgent": ("user_agent", str, False),
        },
    ),
    "email.bounced": (
        EmailBouncedEvent,
        EmailBouncedData,
        {
            "emailId": ("email_id", str, True),
            "bounceReason": ("bounce_reason", str, True),
            "recipient": ("recipient", str, False),
            "bounceType": ("bounce_type", str, False),
        },
    ),
    "unsubscribe.created": (
        UnsubscribeCreatedEvent,
        UnsubscribeCreatedData,
        {
            "email": ("email", str, True),
            "emailId": ("email_id", str, False),
            "reason": ("reason", str, False),
        },
    ),
}

EVENT_TYPES: frozenset[str] = frozenset(_SCHEMAS)


def _decode_data(event_type: str, data: Any, fields: dict[str, tuple[str, type, bool]]) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise InvalidEventDataError(f"'data' for {event_type} must be an object")

    kwargs: dict[str, Any] = {}
    for key, (attr, expected, required) in fields.items():
        value = data.get(key)
        if value is None:
            if required:
                raise InvalidEventDataError(f"Missing 'data.{key}' for {event_type}")
            continue
        if not isinstance(value, expected):
            raise InvalidEventDataError(
                f"'data.{key}' for {event_type} must be of type {expected.__name__}"
            )
        if expected is list:
            if not all(isinstance(item, str) for item in value):
                raise InvalidEventDataError(f"'data.{key}' for {event_type} must contain strings")
            value = list(value)
        kwargs[attr] = value
    return kwargs


def decode_event(payload: str | bytes) -> WebhookEvent:
    """Decode a verified webhook payload into a typed event.

    Args:
        payload: Raw request body (JSON).

    Returns:
        One of the ``WebhookEvent`` variants.

    Raises:
        InvalidPayloadJsonError: If the payload is not a JSON object.
        InvalidEventDataError: If common fields or event data are malformed.
        UnrecognizedEventTypeError: If ``type`` is missing or unknown.
    """
    try:
        body = json.loads(payload)
    except (ValueError, RecursionError) as e:
        raise InvalidPayloadJsonError(f"Invalid JSON payload: {e}") from e

    if not isinstance(body, dict):
        raise InvalidPayloadJsonError("Webhook payload must be a JSON object")

    event_type = body.get("type")
    if event_type is None:
        raise UnrecognizedEventTypeError()
    if not isinstance(event_type, str) or event_type not in _SCHEMAS:
        raise UnrecognizedEventTypeError(event_type)

    for key in ("id", "timestamp"):
        if not isinstance(body.get(key), str):
            raise InvalidEventDataError(f"Missing or invalid '{key}' field in payload")

    event_cls, data_cls, fields = _SCHEMAS[event_type]
    data = data_cls(**_decode_data(event_type, body.get("data"), fields))
    return event_cls(id=body["id"], timestamp=body["timestamp"], data=data)
