"""Webhook delivery service for sending and managing webhooks."""

import hashlib
import hmac
import json
import logging
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

import httpx
from sqlalchemy.orm import Session

from quoteflow.core.config import settings
from quoteflow.models.webhook import Webhook
from quoteflow.repositories.webhook_endpoint_repository import WebhookEndpointRepository
from quoteflow.repositories.webhook_repository import WebhookRepository

logger = logging.getLogger(__name__)

WEBHOOK_EVENT_TYPES = [
    "invoice.master_created",
    "invoice.child_created",
    "invoice.child_voided",
    "payment.applied",
    "payment.removed",
]


def generate_hmac_signature(payload_bytes: bytes, secret: str) -> str:
    """Generate HMAC-SHA256 signature for a webhook payload.

    Args:
        payload_bytes: The raw payload bytes to sign.
        secret: The secret key for HMAC generation.

    Returns:
        Hex-encoded HMAC-SHA256 signature.
    """
    return hmac.new(
        secret.encode("utf-8"),
        payload_bytes,
        hashlib.sha256,
    ).hexdigest()


class WebhookService:
    """Service for webhook delivery and management."""

    def __init__(self, db: Session):
        self.db = db
        self.endpoint_repo = WebhookEndpointRepository(db)
        self.webhook_repo = WebhookRepository(db)

    def send_webhook(
        self,
        webhook_type: str,
        object_type: str | None = None,
        object_id: UUID | None = None,
        payload: dict[str, Any] | None = None,
    ) -> list[Webhook]:
        """Create a pending webhook record for every active endpoint.

        Delivery happens later in the worker (see ``deliver_pending``).
        """
        if webhook_type not in WEBHOOK_EVENT_TYPES:
            raise ValueError(f"Unknown webhook type: {webhook_type}")

        return self.webhook_repo.enqueue(
            self.endpoint_repo.get_active(),
            webhook_type,
            payload or {},
            object_type=object_type,
            object_id=object_id,
        )

    def deliver_webhook(self, webhook_id: UUID) -> bool:
        """POST a webhook's payload to its endpoint and record the outcome.

        Returns:
            True if the endpoint answered with a 2xx status, False otherwise.
        """
        webhook = self.webhook_repo.get_by_id(webhook_id)
        if not webhook:
            logger.error("Webhook %s not found", webhook_id)
            return False

        endpoint = self.endpoint_repo.get_by_id(webhook.webhook_endpoint_id)  # type: ignore[arg-type]
        if not endpoint:
            logger.error(
                "Endpoint %s not found for webhook %s",
                webhook.webhook_endpoint_id,
                webhook_id,
            )
            self.webhook_repo.record_delivery(webhook, False, response="Endpoint not found")
            return False

        payload_bytes = json.dumps(webhook.payload, default=str).encode("utf-8")
        signature = generate_hmac_signature(payload_bytes, settings.webhook_secret)

        headers = {
            "Content-Type": "application/json",
            "X-Quoteflow-Signature": signature,
            "X-Quoteflow-Signature-Algorithm": str(endpoint.signature_algo),
            "X-Quoteflow-Webhook-Id": str(webhook.id),
            "X-Quoteflow-Event": str(webhook.webhook_type),
        }

        try:
            with httpx.Client(timeout=30.0) as client:
                resp = client.post(
                    str(endpoint.url),
                    content=payload_bytes,
                    headers=headers,
                )
        except httpx.HTTPError as exc:
            logger.warning("Webhook delivery failed for %s: %s", webhook_id, exc)
            self.webhook_repo.record_delivery(webhook, False, response=str(exc)[:1000])
            return False

        if 200 <= resp.status_code < 300:
            self.webhook_repo.record_delivery(webhook, True, http_status=resp.status_code)
            return True

        self.webhook_repo.record_delivery(
            webhook,
            False,
            http_status=resp.status_code,
            response=resp.text[:1000] if resp.text else None,
        )
        return False

    def deliver_pending(self) -> int:
        """Deliver every pending webhook once.

        Returns:
            Number of webhooks delivered successfully.
        """
        delivered = 0
        for webhook in self.webhook_repo.due_for_delivery():
            if self.deliver_webhook(webhook.id):  # type: ignore[arg-type]
                delivered += 1
        return delivered

    def retry_failed_webhooks(self) -> int:
        """Retry failed webhooks with exponential backoff.

        Finds all failed webhooks eligible for retry (retries < max_retries)
        and re-delivers those whose backoff period has elapsed.
        Backoff: 2^retries minutes.

        Returns:
            Number of webhooks retried.
        """
        failed_webhooks = self.webhook_repo.due_for_retry()
        retried_count = 0
        now = datetime.now(UTC)

        for webhook in failed_webhooks:
            backoff_minutes = 2 ** int(webhook.retries)
            if webhook.last_retried_at:
                next_retry_at = webhook.last_retried_at.replace(tzinfo=UTC) + timedelta(
                    minutes=backoff_minutes
                )
                if now < next_retry_at:
                    continue

            self.webhook_repo.schedule_retry(webhook)
            self.deliver_webhook(webhook.id)  # type: ignore[arg-type]
            retried_count += 1

        return retried_count
