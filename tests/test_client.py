"""Tests for the API client."""

import json
from datetime import datetime

import httpx
import pytest

from formamail import Formamail, create_client
from formamail.exceptions import (
    AuthenticationError,
    ForbiddenError,
    FormamailError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)


class Recorder:
    """Mock transport handler that records requests and replies with a canned response."""

    def __init__(self, status_code=200, body=None, headers=None):
        self.status_code = status_code
        self.body = {"success": True, "data": {}} if body is None else body
        self.headers = headers or {}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.body, headers=self.headers)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    @property
    def last_json(self):
        return json.loads(self.last.content)


def make_client(recorder, **kwargs):
    return Formamail(api_key="test_api_key", transport=httpx.MockTransport(recorder), **kwargs)


class TestClient:
    def test_requires_api_key(self):
        with pytest.raises(ValueError, match="api_key is required"):
            Formamail(api_key="")

    def test_create_client(self):
        client = create_client("test_api_key", base_url="https://custom.api.com/", timeout=60.0)
        assert isinstance(client, Formamail)
        assert client.base_url == "https://custom.api.com"
        assert client.timeout == 60.0
        assert client.emails is not None
        assert client.templates is not None
        assert client.webhooks is not None
        client.close()

    def test_headers(self):
        recorder = Recorder(body={"success": True, "data": {"id": "usr_1"}})
        with make_client(recorder, headers={"X-Trace": "abc"}) as client:
            assert client.me() == {"id": "usr_1"}

        request = recorder.last
        assert request.url == "https://api.formamail.com/api/v1/me"
        assert request.headers["Authorization"] == "Bearer test_api_key"
        assert request.headers["X-Trace"] == "abc"
        assert request.headers["User-Agent"].startswith("formamail-python/")

    def test_verify_api_key(self):
        assert make_client(Recorder()).verify_api_key() is True
        assert make_client(Recorder(status_code=401, body={"error": "unauthorized"})).verify_api_key() is False

    @pytest.mark.parametrize(
        "status_code,exc_type",
        [
            (400, ValidationError),
            (401, AuthenticationError),
            (403, ForbiddenError),
            (404, NotFoundError),
            (500, FormamailError),
        ],
    )
    def test_error_mapping(self, status_code, exc_type):
        body = {"success": False, "error": "some_code", "message": "Something happened", "statusCode": status_code}
        client = make_client(Recorder(status_code=status_code, body=body))

        with pytest.raises(exc_type) as exc_info:
            client.emails.get("em_1")

        assert exc_info.value.status_code == status_code
        assert exc_info.value.error_code == "some_code"
        assert exc_info.value.message == "Something happened"

    def test_rate_limit(self):
        recorder = Recorder(status_code=429, body={"error": "rate_limited"}, headers={"Retry-After": "30"})
        with pytest.raises(RateLimitError) as exc_info:
            make_client(recorder).templates.list()
        assert exc_info.value.retry_after == 30

    def test_error_without_json_body(self):
        def handler(request):
            return httpx.Response(502, text="Bad Gateway")

        client = Formamail(api_key="k", transport=httpx.MockTransport(handler))
        with pytest.raises(FormamailError, match="status 502"):
            client.me()


class TestEmailsResource:
    def test_send_normalizes_recipients(self):
        recorder = Recorder(body={"success": True, "data": {"id": "em_1", "status": "queued"}})
        client = make_client(recorder)

        result = client.emails.send(
            template_id="welcome-email",
            to=[{"email": "john@example.com", "name": "John"}, "jane@example.com"],
            cc="manager@example.com",
            variables={"firstName": "Team"},
            scheduled_at=datetime(2025, 1, 1, 9, 0),
        )

        assert result == {"id": "em_1", "status": "queued"}
        assert recorder.last.method == "POST"
        assert recorder.last.url.path == "/api/v1/emails/send"
        assert recorder.last_json == {
            "templateId": "welcome-email",
            "to": [{"email": "john@example.com", "name": "John"}, {"email": "jane@example.com"}],
            "cc": [{"email": "manager@example.com"}],
            "variables": {"firstName": "Team"},
            "scheduledAt": "2025-01-01T09:00:00",
        }

    def test_send_with_attachment(self):
        recorder = Recorder()
        make_client(recorder).emails.send_with_attachment(
            template_id="invoice-email",
            to="customer@example.com",
            attachment_template_id="invoice-pdf",
            attachment_type="pdf",
            file_name="Invoice-001",
            tags=["invoice"],
        )

        assert recorder.last_json["attachments"] == [
            {"type": "pdf", "templateId": "invoice-pdf", "fileName": "Invoice-001"}
        ]
        assert recorder.last_json["tags"] == ["invoice"]

    def test_send_bulk_forwards_structure(self):
        recipients = [
            {"email": "c1@example.com", "variables": {"name": "Alice"}},
            {"email": "c2@example.com", "variables": {"name": "Bob"}},
        ]
        recorder = Recorder(body={"success": True, "data": {"batchId": "b_1", "totalEmails": 2}})

        result = make_client(recorder).emails.send_bulk(
            template_id="newsletter",
            recipients=recipients,
            base_variables={"companyName": "Acme"},
            dry_run=True,
        )

        assert result["batchId"] == "b_1"
        assert recorder.last.url.path == "/api/v1/emails/send/bulk"
        assert recorder.last_json == {
            "templateId": "newsletter",
            "recipients": recipients,
            "baseVariables": {"companyName": "Acme"},
            "dryRun": True,
        }

    def test_list_filters_query(self):
        meta = {"total": 1, "page": 1, "limit": 10, "totalPages": 1}
        recorder = Recorder(body={"success": True, "data": [{"id": "em_1"}], "meta": meta})

        result = make_client(recorder).emails.list(
            status="delivered",
            date_from=datetime(2025, 1, 1),
            limit=10,
        )

        assert result == {"data": [{"id": "em_1"}], "meta": meta}
        assert dict(recorder.last.url.params) == {
            "status": "delivered",
            "dateFrom": "2025-01-01T00:00:00",
            "limit": "10",
        }


class TestTemplatesResource:
    def test_get(self):
        recorder = Recorder(body={"success": True, "data": {"id": "tmpl_1"}})
        assert make_client(recorder).templates.get("tmpl_1") == {"id": "tmpl_1"}
        assert recorder.last.url.path == "/api/v1/templates/tmpl_1"

    @pytest.mark.parametrize("method,expected", [("list_email", "email"), ("list_pdf", "pdf"), ("list_excel", "excel")])
    def test_list_by_type(self, method, expected):
        recorder = Recorder(body={"success": True, "data": []})
        getattr(make_client(recorder).templates, method)(page=2)
        assert dict(recorder.last.url.params) == {"type": expected, "page": "2"}


class TestWebhooksResource:
    def test_create(self):
        recorder = Recorder(body={"success": True, "data": {"id": "wh_1", "secret": "whsec_abc"}})

        webhook = make_client(recorder).webhooks.create(
            url="https://my-app.com/webhooks/formamail",
            events=["email.sent", "email.bounced"],
        )

        assert webhook["secret"] == "whsec_abc"
        assert recorder.last.url.path == "/api/v1/webhook-subscriptions"
        assert recorder.last_json == {
            "url": "https://my-app.com/webhooks/formamail",
            "events": ["email.sent", "email.bounced"],
        }

    def test_create_unknown_event(self):
        recorder = Recorder()
        with pytest.raises(ValueError, match="contact.created"):
            make_client(recorder).webhooks.create(url="https://x", events=["contact.created"])
        assert recorder.requests == []

    def test_update(self):
        recorder = Recorder()
        make_client(recorder).webhooks.update("wh_1", active=False)
        assert recorder.last.method == "PUT"
        assert recorder.last.url.path == "/api/v1/webhook-subscriptions/wh_1"
        assert recorder.last_json == {"active": False}

    def test_delete(self):
        def handler(request):
            return httpx.Response(204)

        client = Formamail(api_key="k", transport=httpx.MockTransport(handler))
        assert client.webhooks.delete("wh_1") is None

    def test_list(self):
        recorder = Recorder(body={"success": True, "data": [{"id": "wh_1"}], "meta": {"total": 1}})
        result = make_client(recorder).webhooks.list()
        assert result["data"] == [{"id": "wh_1"}]
        assert result["meta"] == {"total": 1}


class TestPackageExports:
    def test_error_taxonomy_exported(self):
        import formamail
        from formamail import exceptions

        for name in (
            "FormamailError",
            "ValidationError",
            "AuthenticationError",
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
        ):
            assert name in formamail.__all__
            assert getattr(formamail, name) is getattr(exceptions, name)
