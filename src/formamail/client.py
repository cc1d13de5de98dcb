"""FormaMail API client."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Literal, Union

import httpx

from .events import EVENT_TYPES
from .exceptions import (
    AuthenticationError,
    ForbiddenError,
    FormamailError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.formamail.com"
DEFAULT_TIMEOUT = 30.0
USER_AGENT = "formamail-python/0.1.0"

Recipient = Union[str, dict[str, str]]
RecipientInput = Union[Recipient, list[Recipient]]
TemplateType = Literal["email", "pdf", "excel"]


def normalize_recipients(recipients: RecipientInput) -> list[dict[str, str]]:
    """Normalize recipient input to a list of ``{"email", "name"?}`` dicts."""
    items = recipients if isinstance(recipients, list) else [recipients]
    return [{"email": r} if isinstance(r, str) else dict(r) for r in items]


def _query(params: dict[str, Any]) -> dict[str, Any]:
    query: dict[str, Any] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, (datetime, date)):
            value = value.isoformat()
        query[key] = value
    return query


def _compact(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


class Formamail:
    """Client for interacting with the FormaMail API.

    Example:
        ```python
        from formamail import Formamail

        client = Formamail(api_key="your-api-key")

        # Send an email
        result = client.emails.send(
            template_id="welcome-email",
            to="customer@example.com",
            variables={"firstName": "John"},
        )

        # Create webhook (store the returned secret for verification)
        webhook = client.webhooks.create(
            url="https://your-app.com/webhooks/formamail",
            events=["email.sent", "email.delivered", "email.bounced"],
        )
        ```
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        headers: dict[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the FormaMail client.

        Args:
            api_key: Your FormaMail API key.
            base_url: Base URL for the FormaMail API.
            timeout: Request timeout in seconds.
            headers: Extra headers sent with every request.
            transport: Custom httpx transport (e.g. for testing).
        """
        if not api_key:
            raise ValueError("api_key is required")

        self.api_key = api_key
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout

        default_headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }
        default_headers.update(headers or {})

        self._client = httpx.Client(
            base_url=self.base_url,
            headers=default_headers,
            timeout=timeout,
            transport=transport,
        )

        # Resource endpoints
        self.emails = EmailsResource(self)
        self.templates = TemplatesResource(self)
        self.webhooks = WebhooksResource(self)

    def __repr__(self) -> str:
        return f"Formamail(base_url={self.base_url!r})"

    def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make an API request and return the response envelope."""
        logger.debug("%s %s", method, path)
        response = self._client.request(
            method=method,
            url=path,
            json=json,
            params=_query(params) if params else None,
        )
        return self._handle_response(response)

    def _handle_response(self, response: httpx.Response) -> dict[str, Any]:
        """Handle API response and raise appropriate exceptions."""
        if response.status_code >= 400:
            try:
                data = response.json() if response.content else {}
            except ValueError:
                data = {}
            if not isinstance(data, dict):
                data = {}
            error_code = data.get("error")
            message = data.get("message") or error_code

            logger.debug("Request failed with status %s: %s", response.status_code, error_code)

            if response.status_code == 400:
                raise ValidationError(message or "Invalid request", error_code=error_code)
            if response.status_code == 401:
                raise AuthenticationError(message or "Authentication required", error_code=error_code)
            if response.status_code == 403:
                raise ForbiddenError(message or "Access denied", error_code=error_code)
            if response.status_code == 404:
                raise NotFoundError(message or "Resource not found", error_code=error_code)
            if response.status_code == 429:
                retry_after = response.headers.get("Retry-After")
                raise RateLimitError(
                    message or "Rate limit exceeded",
                    retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
                    error_code=error_code,
                )
            raise FormamailError(
                message or f"Request failed with status {response.status_code}",
                status_code=response.status_code,
                error_code=error_code,
            )

        if response.status_code == 204 or not response.content:
            return {}

        return response.json()

    def _get_data(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return self._request("GET", path, params=params).get("data")

    def _get_page(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        body = self._request("GET", path, params=params)
        return {"data": body.get("data", []), "meta": body.get("meta")}

    def me(self) -> dict[str, Any]:
        """Get the currently authenticated user.

        Returns:
            User details (id, email, name, teamId, teamName).
        """
        return self._get_data("/api/v1/me")

    def verify_api_key(self) -> bool:
        """Check whether the configured API key is accepted.

        Returns:
            True if the key is valid, False if the API rejects the request.
        """
        try:
            self.me()
        except FormamailError:
            return False
        return True

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> Formamail:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


def create_client(api_key: str, **kwargs: Any) -> Formamail:
    """Create a FormaMail client. Accepts the same arguments as :class:`Formamail`."""
    return Formamail(api_key, **kwargs)


class EmailsResource:
    """Emails API resource."""

    def __init__(self, client: Formamail):
        self._client = client

    def send(
        self,
        template_id: str,
        to: RecipientInput,
        cc: RecipientInput | None = None,
        bcc: RecipientInput | None = None,
        version: Literal["published", "draft"] | None = None,
        sender_email: str | None = None,
        sender_id: str | None = None,
        from_name: str | None = None,
        reply_to: str | None = None,
        variables: dict[str, Any] | None = None,
        priority: Literal["low", "normal", "high"] | None = None,
        scheduled_at: str | datetime | None = None,
        headers: dict[str, str] | None = None,
        tags: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
        attachments: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        """Send an email using a template.

        Args:
            template_id: Template ID (UUID, short ID like ``etpl_xxx``, or slug).
            to: Recipient(s): an address, ``{"email", "name"}`` dict, or a list of either.
            cc: CC recipient(s), same format as ``to``.
            bcc: BCC recipient(s), same format as ``to``.
            version: Template version (published or draft).
            sender_email: Verified sender address.
            sender_id: Sender ID (legacy, prefer ``sender_email``).
            from_name: Display name for the From field.
            reply_to: Reply-to address override.
            variables: Template variables.
            priority: Email priority (low, normal, high).
            scheduled_at: Scheduled send time (ISO 8601 or datetime).
            headers: Custom email headers.
            tags: Tags for tracking.
            metadata: Arbitrary metadata.
            attachments: Generated attachments
                (``{"type", "templateId", "fileName"?, "variables"?}``).

        Returns:
            Send result (id, status, message, createdAt, ...).
        """
        if isinstance(scheduled_at, datetime):
            scheduled_at = scheduled_at.isoformat()

        data = _compact({
            "templateId": template_id,
            "to": normalize_recipients(to),
            "cc": normalize_recipients(cc) if cc else None,
            "bcc": normalize_recipients(bcc) if bcc else None,
            "version": version,
            "senderEmail": sender_email,
            "senderId": sender_id,
            "fromName": from_name,
            "replyTo": reply_to,
            "variables": variables,
            "priority": priority,
            "scheduledAt": scheduled_at,
            "headers": headers,
            "tags": tags,
            "metadata": metadata,
            "attachments": attachments,
        })
        return self._client._request("POST", "/api/v1/emails/send", json=data).get("data")

    def send_with_attachment(
        self,
        template_id: str,
        to: RecipientInput,
        attachment_template_id: str,
        attachment_type: Literal["pdf", "excel"],
        file_name: str | None = None,
        attachment_variables: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Send an email with a generated PDF or Excel attachment.

        Args:
            template_id: Email template ID.
            to: Recipient(s).
            attachment_template_id: Template used to generate the attachment.
            attachment_type: pdf or excel.
            file_name: File name without extension.
            attachment_variables: Variables for the attachment template.
            **kwargs: Any other :meth:`send` argument except ``attachments``.

        Returns:
            Send result.
        """
        attachment = _compact({
            "type": attachment_type,
            "templateId": attachment_template_id,
            "fileName": file_name,
            "variables": attachment_variables,
        })
        return self.send(template_id, to, attachments=[attachment], **kwargs)

    def send_bulk(
        self,
        template_id: str,
        recipients: list[dict[str, Any]],
        base_variables: dict[str, Any] | None = None,
        attachments: list[dict[str, Any]] | None = None,
        version: Literal["published", "draft"] | None = None,
        sender_email: str | None = None,
        sender_id: str | None = None,
        from_name: str | None = None,
        reply_to: str | None = None,
        priority: Literal["low", "normal", "high"] | None = None,
        headers: dict[str, str] | None = None,
        tags: list[str] | None = None,
        metadata: dict[str, Any] | None = None,
        batch_name: str | None = None,
        dry_run: bool | None = None,
        scheduled_at: str | datetime | None = None,
    ) -> dict[str, Any]:
        """Send a personalized email to many recipients.

        Recipient and attachment structures are forwarded as given; variable
        merging happens server-side.

        Args:
            template_id: Email template ID.
            recipients: Up to 1000 ``{"email", "name"?, "variables",
                "attachmentOverrides"?}`` dicts.
            base_variables: Variables shared by all recipients.
            attachments: Attachments for all recipients.
            batch_name: Name for tracking the batch.
            dry_run: Validate without sending.

        Returns:
            Batch result (batchId, status, totalEmails, ...).
        """
        if isinstance(scheduled_at, datetime):
            scheduled_at = scheduled_at.isoformat()

        data = _compact({
            "templateId": template_id,
            "recipients": recipients,
            "baseVariables": base_variables,
            "attachments": attachments,
            "version": version,
            "senderEmail": sender_email,
            "senderId": sender_id,
            "fromName": from_name,
            "replyTo": reply_to,
            "priority": priority,
            "headers": headers,
            "tags": tags,
            "metadata": metadata,
            "batchName": batch_name,
            "dryRun": dry_run,
            "scheduledAt": scheduled_at,
        })
        return self._client._request("POST", "/api/v1/emails/send/bulk", json=data).get("data")

    def get(self, email_id: str) -> dict[str, Any]:
        """Get an email by ID.

        Args:
            email_id: Email ID.

        Returns:
            Email details.
        """
        return self._client._get_data(f"/api/v1/emails/{email_id}")

    def list(
        self,
        recipient: str | None = None,
        status: str | None = None,
        template_id: str | None = None,
        date_from: str | datetime | date | None = None,
        date_to: str | datetime | date | None = None,
        limit: int | None = None,
        page: int | None = None,
    ) -> dict[str, Any]:
        """List emails.

        Args:
            recipient: Filter by recipient address.
            status: Filter by status (sent, delivered, bounced, ...).
            template_id: Filter by template ID.
            date_from: Start of date range.
            date_to: End of date range.
            limit: Items per page (default: 20).
            page: Page number (default: 1).

        Returns:
            Dict with ``data`` (emails) and ``meta`` (pagination).
        """
        params = {
            "recipient": recipient,
            "status": status,
            "templateId": template_id,
            "dateFrom": date_from,
            "dateTo": date_to,
            "limit": limit,
            "page": page,
        }
        return self._client._get_page("/api/v1/emails", params=params)


class TemplatesResource:
    """Templates API resource."""

    def __init__(self, client: Formamail):
        self._client = client

    def get(self, template_id: str) -> dict[str, Any]:
        """Get a template by ID.

        Args:
            template_id: Template ID.

        Returns:
            Template details, including its variables.
        """
        return self._client._get_data(f"/api/v1/templates/{template_id}")

    def list(
        self,
        type: TemplateType | None = None,
        limit: int | None = None,
        page: int | None = None,
    ) -> dict[str, Any]:
        """List templates.

        Args:
            type: Filter by template type (email, pdf, excel).
            limit: Items per page.
            page: Page number.

        Returns:
            Dict with ``data`` (templates) and ``meta`` (pagination).
        """
        params = {"type": type, "limit": limit, "page": page}
        return self._client._get_page("/api/v1/templates", params=params)

    def list_email(self, limit: int | None = None, page: int | None = None) -> dict[str, Any]:
        """List email templates."""
        return self.list(type="email", limit=limit, page=page)

    def list_pdf(self, limit: int | None = None, page: int | None = None) -> dict[str, Any]:
        """List PDF templates."""
        return self.list(type="pdf", limit=limit, page=page)

    def list_excel(self, limit: int | None = None, page: int | None = None) -> dict[str, Any]:
        """List Excel templates."""
        return self.list(type="excel", limit=limit, page=page)


class WebhooksResource:
    """Webhook subscriptions API resource."""

    def __init__(self, client: Formamail):
        self._client = client

    @staticmethod
    def _check_events(events: list[str]) -> None:
        unknown = sorted(set(events) - EVENT_TYPES)
        if unknown:
            raise ValueError(f"Unknown webhook event type(s): {', '.join(unknown)}")

    def create(
        self,
        url: str,
        events: list[str],
        name: str | None = None,
    ) -> dict[str, Any]:
        """Create a webhook subscription.

        Args:
            url: URL that receives webhook events.
            events: Event types to subscribe to.
            name: Optional webhook name.

        Returns:
            Created subscription with its secret (only shown once).

        Events:
            - email.sent
            - email.delivered
            - email.opened
            - email.clicked
            - email.bounced
            - unsubscribe.created
        """
        self._check_events(events)
        data = _compact({"url": url, "events": events, "name": name})
        return self._client._request("POST", "/api/v1/webhook-subscriptions", json=data).get("data")

    def get(self, webhook_id: str) -> dict[str, Any]:
        """Get a webhook subscription by ID.

        Args:
            webhook_id: Webhook ID.

        Returns:
            Webhook details.
        """
        return self._client._get_data(f"/api/v1/webhook-subscriptions/{webhook_id}")

    def list(self) -> dict[str, Any]:
        """List webhook subscriptions.

        Returns:
            Dict with ``data`` (subscriptions) and ``meta`` (pagination).
        """
        return self._client._get_page("/api/v1/webhook-subscriptions")

    def update(
        self,
        webhook_id: str,
        url: str | None = None,
        events: list[str] | None = None,
        name: str | None = None,
        active: bool | None = None,
    ) -> dict[str, Any]:
        """Update a webhook subscription.

        Args:
            webhook_id: Webhook ID.
            url: New webhook URL.
            events: New list of events.
            name: New webhook name.
            active: Enable/disable webhook.

        Returns:
            Updated webhook.
        """
        if events is not None:
            self._check_events(events)
        data = _compact({"url": url, "events": events, "name": name, "active": active})
        return self._client._request(
            "PUT", f"/api/v1/webhook-subscriptions/{webhook_id}", json=data
        ).get("data")

    def delete(self, webhook_id: str) -> None:
        """Delete a webhook subscription.

        Args:
            webhook_id: Webhook ID.
        """
        self._client._request("DELETE", f"/api/v1/webhook-subscriptions/{webhook_id}")
