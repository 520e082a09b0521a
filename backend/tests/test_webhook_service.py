"""Tests for WebhookService - webhook queuing, HMAC signing, delivery and retry."""

import hashlib
import hmac
import json
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock, patch
from uuid import uuid4

import httpx
import pytest

from quoteflow.core.config import settings
from quoteflow.core.database import get_db
from quoteflow.models.webhook import WebhookStatus
from quoteflow.repositories.webhook_endpoint_repository import WebhookEndpointRepository
from quoteflow.repositories.webhook_repository import WebhookRepository
from quoteflow.schemas.webhook import WebhookEndpointCreate, WebhookEndpointUpdate
from quoteflow.services.webhook_service import (
    WEBHOOK_EVENT_TYPES,
    WebhookService,
    generate_hmac_signature,
)


@pytest.fixture
def db_session():
    """Create a database session for testing."""
    gen = get_db()
    db = next(gen)
    try:
        yield db
    finally:
        for _ in gen:
            pass


@pytest.fixture
def service(db_session):
    """Create a WebhookService instance."""
    return WebhookService(db_session)


@pytest.fixture
def active_endpoint(db_session):
    """Create an active webhook endpoint."""
    repo = WebhookEndpointRepository(db_session)
    return repo.create(WebhookEndpointCreate(url="https://example.com/webhooks"))


@pytest.fixture
def inactive_endpoint(db_session):
    """Create an inactive webhook endpoint."""
    repo = WebhookEndpointRepository(db_session)
    endpoint = repo.create(WebhookEndpointCreate(url="https://example.com/webhooks-inactive"))
    return repo.update(endpoint.id, WebhookEndpointUpdate(status="inactive"))


@pytest.fixture
def webhook(db_session, active_endpoint):
    """A pending payment.applied webhook for the active endpoint."""
    webhooks = WebhookRepository(db_session).enqueue(
        [active_endpoint],
        "payment.applied",
        {"event_type": "payment.applied", "amount": "100.00"},
    )
    return webhooks[0]


def _mock_client(status_code=200, text="OK"):
    mock_response = MagicMock()
    mock_response.status_code = status_code
    mock_response.text = text
    mock_client = MagicMock()
    mock_client.__enter__ = MagicMock(return_value=mock_client)
    mock_client.__exit__ = MagicMock(return_value=False)
    mock_client.post.return_value = mock_response
    return mock_client


class TestGenerateHmacSignature:
    def test_generates_valid_hmac_sha256(self):
        payload = b'{"event_type": "payment.applied"}'
        expected = hmac.new(b"secret", payload, hashlib.sha256).hexdigest()

        assert generate_hmac_signature(payload, "secret") == expected

    def test_different_secrets_produce_different_signatures(self):
        payload = b"{}"
        assert generate_hmac_signature(payload, "a") != generate_hmac_signature(payload, "b")


class TestWebhookEventTypes:
    def test_covers_every_domain_event(self):
        assert set(WEBHOOK_EVENT_TYPES) == {
            "invoice.master_created",
            "invoice.child_created",
            "invoice.child_voided",
            "payment.applied",
            "payment.removed",
        }


class TestSendWebhook:
    def test_creates_webhook_for_active_endpoint(self, service, active_endpoint):
        object_id = uuid4()

        webhooks = service.send_webhook(
            webhook_type="invoice.child_created",
            object_type="invoice",
            object_id=object_id,
            payload={"invoice_number": "INV-2026-0001"},
        )

        assert len(webhooks) == 1
        assert webhooks[0].webhook_endpoint_id == active_endpoint.id
        assert webhooks[0].status == "pending"
        assert webhooks[0].object_id == object_id
        assert webhooks[0].payload == {"invoice_number": "INV-2026-0001"}

    def test_skips_inactive_endpoints(self, service, active_endpoint, inactive_endpoint):
        webhooks = service.send_webhook(webhook_type="payment.applied")

        assert [w.webhook_endpoint_id for w in webhooks] == [active_endpoint.id]
        assert webhooks[0].payload == {}

    def test_no_endpoints(self, service):
        assert service.send_webhook(webhook_type="payment.removed") == []

    def test_unknown_type_rejected(self, service, active_endpoint):
        with pytest.raises(ValueError, match="Unknown webhook type"):
            service.send_webhook(webhook_type="invoice.created")


class TestDeliverWebhook:
    def test_successful_delivery(self, service, db_session, webhook):
        mock_client = _mock_client(200)
        with patch("quoteflow.services.webhook_service.httpx.Client", return_value=mock_client):
            result = service.deliver_webhook(webhook.id)

        assert result is True
        updated = WebhookRepository(db_session).get_by_id(webhook.id)
        assert updated.status == "succeeded"
        assert updated.http_status == 200

    def test_failed_delivery_500(self, service, db_session, webhook):
        mock_client = _mock_client(500, "Internal Server Error")
        with patch("quoteflow.services.webhook_service.httpx.Client", return_value=mock_client):
            result = service.deliver_webhook(webhook.id)

        assert result is False
        updated = WebhookRepository(db_session).get_by_id(webhook.id)
        assert updated.status == "failed"
        assert updated.http_status == 500
        assert updated.response == "Internal Server Error"

    def test_connection_error(self, service, db_session, webhook):
        mock_client = _mock_client()
        mock_client.post.side_effect = httpx.ConnectError("Connection refused")
        with patch("quoteflow.services.webhook_service.httpx.Client", return_value=mock_client):
            result = service.deliver_webhook(webhook.id)

        assert result is False
        updated = WebhookRepository(db_session).get_by_id(webhook.id)
        assert updated.status == "failed"
        assert updated.http_status is None
        assert "Connection refused" in updated.response

    def test_sends_signed_payload(self, service, webhook, active_endpoint):
        mock_client = _mock_client()
        with patch("quoteflow.services.webhook_service.httpx.Client", return_value=mock_client):
            service.deliver_webhook(webhook.id)

        call = mock_client.post.call_args
        assert call.args[0] == active_endpoint.url
        body = call.kwargs["content"]
        assert json.loads(body) == {"event_type": "payment.applied", "amount": "100.00"}
        headers = call.kwargs["headers"]
        assert headers["X-Quoteflow-Signature"] == generate_hmac_signature(
            body, settings.webhook_secret
        )
        assert headers["X-Quoteflow-Signature-Algorithm"] == "hmac"
        assert headers["X-Quoteflow-Webhook-Id"] == str(webhook.id)
        assert headers["X-Quoteflow-Event"] == "payment.applied"

    def test_nonexistent_webhook(self, service):
        assert service.deliver_webhook(uuid4()) is False

    def test_deleted_endpoint(self, service, db_session, webhook, active_endpoint):
        with patch.object(service.endpoint_repo, "get_by_id", return_value=None):
            result = service.deliver_webhook(webhook.id)

        assert result is False
        updated = WebhookRepository(db_session).get_by_id(webhook.id)
        assert updated.status == "failed"
        assert updated.response == "Endpoint not found"


class TestDeliverPending:
    def test_delivers_each_pending_webhook(self, service, db_session, active_endpoint):
        repo = WebhookRepository(db_session)
        for _ in range(3):
            repo.enqueue([active_endpoint], "invoice.master_created", {})

        with patch.object(service, "deliver_webhook", side_effect=[True, False, True]) as deliver:
            delivered = service.deliver_pending()

        assert delivered == 2
        assert deliver.call_count == 3

    def test_nothing_pending(self, service):
        assert service.deliver_pending() == 0


class TestRetryFailedWebhooks:
    def test_retries_eligible_failed_webhooks(self, service, db_session, webhook):
        repo = WebhookRepository(db_session)
        repo.record_delivery(webhook, False, http_status=500)

        with patch.object(service, "deliver_webhook") as mock_deliver:
            count = service.retry_failed_webhooks()

        assert count == 1
        mock_deliver.assert_called_once_with(webhook.id)
        updated = repo.get_by_id(webhook.id)
        assert updated.retries == 1
        assert updated.status == "pending"

    def test_skips_webhooks_within_backoff_period(self, service, db_session, webhook):
        repo = WebhookRepository(db_session)
        repo.record_delivery(webhook, False, http_status=500)
        repo.schedule_retry(webhook)
        repo.record_delivery(webhook, False, http_status=500)

        with patch.object(service, "deliver_webhook") as mock_deliver:
            count = service.retry_failed_webhooks()

        assert count == 0
        mock_deliver.assert_not_called()

    def test_retries_after_backoff_period(self, service, db_session, webhook):
        repo = WebhookRepository(db_session)
        repo.record_delivery(webhook, False, http_status=500)
        repo.schedule_retry(webhook)

        wh = repo.get_by_id(webhook.id)
        wh.last_retried_at = datetime.now(UTC) - timedelta(minutes=3)  # type: ignore[assignment]
        wh.status = "failed"  # type: ignore[assignment]
        db_session.commit()

        with patch.object(service, "deliver_webhook") as mock_deliver:
            count = service.retry_failed_webhooks()

        assert count == 1
        mock_deliver.assert_called_once()

    def test_does_not_retry_when_max_retries_reached(self, service, db_session, webhook):
        repo = WebhookRepository(db_session)
        repo.record_delivery(webhook, False, http_status=500)
        wh = repo.get_by_id(webhook.id)
        wh.retries = 5  # type: ignore[assignment]
        db_session.commit()

        with patch.object(service, "deliver_webhook") as mock_deliver:
            count = service.retry_failed_webhooks()

        assert count == 0
        mock_deliver.assert_not_called()


class TestWebhookRepository:
    def test_enqueue_without_endpoints_writes_nothing(self, db_session):
        repo = WebhookRepository(db_session)

        assert repo.enqueue([], "payment.applied", {}) == []
        assert repo.search() == []

    def test_enqueue_one_row_per_endpoint(self, db_session, active_endpoint):
        second = WebhookEndpointRepository(db_session).create(
            WebhookEndpointCreate(url="https://example.com/second")
        )
        object_id = uuid4()

        webhooks = WebhookRepository(db_session).enqueue(
            [active_endpoint, second],
            "invoice.child_voided",
            {"reason": "Milestone cancelled"},
            object_type="invoice",
            object_id=object_id,
        )

        assert {w.webhook_endpoint_id for w in webhooks} == {active_endpoint.id, second.id}
        assert all(w.status == WebhookStatus.PENDING.value for w in webhooks)
        assert all(w.object_id == object_id for w in webhooks)

    def test_success_discards_response_body(self, db_session, webhook):
        repo = WebhookRepository(db_session)

        updated = repo.record_delivery(webhook, True, http_status=204, response="ignored")

        assert updated.status == WebhookStatus.SUCCEEDED.value
        assert updated.http_status == 204
        assert updated.response is None

    def test_schedule_retry_requeues(self, db_session, webhook):
        repo = WebhookRepository(db_session)
        repo.record_delivery(webhook, False, http_status=503, response="busy")

        updated = repo.schedule_retry(webhook)

        assert updated.status == WebhookStatus.PENDING.value
        assert updated.retries == 1
        assert updated.last_retried_at is not None
        assert repo.due_for_delivery() == [updated]
        assert repo.due_for_retry() == []

    def test_search_filters(self, db_session, active_endpoint):
        repo = WebhookRepository(db_session)
        invoice_id = uuid4()
        (for_invoice,) = repo.enqueue(
            [active_endpoint], "invoice.child_created", {}, object_id=invoice_id
        )
        (other,) = repo.enqueue([active_endpoint], "payment.applied", {}, object_id=uuid4())
        repo.record_delivery(other, False, http_status=500)

        assert repo.search(object_id=invoice_id) == [for_invoice]
        assert repo.search(status=WebhookStatus.FAILED) == [other]
        assert repo.search(webhook_type="invoice.child_created") == [for_invoice]
