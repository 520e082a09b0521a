"""Outbox of domain event webhooks, one row per event and endpoint."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from quoteflow.models.webhook import Webhook, WebhookStatus
from quoteflow.models.webhook_endpoint import WebhookEndpoint


class WebhookRepository:
    def __init__(self, db: Session):
        self.db = db

    def enqueue(
        self,
        endpoints: list[WebhookEndpoint],
        webhook_type: str,
        payload: dict[str, Any],
        object_type: str | None = None,
        object_id: UUID | None = None,
    ) -> list[Webhook]:
        """Queue one pending delivery of an event per endpoint in a single commit."""
        webhooks = [
            Webhook(
                webhook_endpoint_id=endpoint.id,
                webhook_type=webhook_type,
                object_type=object_type,
                object_id=object_id,
                payload=payload,
                status=WebhookStatus.PENDING.value,
            )
            for endpoint in endpoints
        ]
        if not webhooks:
            return []
        self.db.add_all(webhooks)
        self.db.commit()
        for webhook in webhooks:
            self.db.refresh(webhook)
        return webhooks

    def get_by_id(self, webhook_id: UUID) -> Webhook | None:
        return self.db.query(Webhook).filter(Webhook.id == webhook_id).first()

    def search(
        self,
        skip: int = 0,
        limit: int = 100,
        webhook_type: str | None = None,
        status: WebhookStatus | None = None,
        object_id: UUID | None = None,
    ) -> list[Webhook]:
        """Newest first, narrowed by event type, delivery status or related object."""
        query = self.db.query(Webhook)
        if webhook_type:
            query = query.filter(Webhook.webhook_type == webhook_type)
        if status:
            query = query.filter(Webhook.status == status.value)
        if object_id:
            query = query.filter(Webhook.object_id == object_id)
        return query.order_by(Webhook.created_at.desc()).offset(skip).limit(limit).all()

    def due_for_delivery(self) -> list[Webhook]:
        return (
            self.db.query(Webhook)
            .filter(Webhook.status == WebhookStatus.PENDING.value)
            .order_by(Webhook.created_at.asc())
            .all()
        )

    def due_for_retry(self) -> list[Webhook]:
        """Failed deliveries that still have retries left, oldest first."""
        return (
            self.db.query(Webhook)
            .filter(
                Webhook.status == WebhookStatus.FAILED.value,
                Webhook.retries < Webhook.max_retries,
            )
            .order_by(Webhook.created_at.asc())
            .all()
        )

    def record_delivery(
        self,
        webhook: Webhook,
        succeeded: bool,
        http_status: int | None = None,
        response: str | None = None,
    ) -> Webhook:
        """Store the outcome of one delivery attempt.

        The endpoint's response body is only kept for failures.
        """
        status = WebhookStatus.SUCCEEDED if succeeded else WebhookStatus.FAILED
        webhook.status = status.value  # type: ignore[assignment]
        webhook.http_status = http_status  # type: ignore[assignment]
        webhook.response = None if succeeded else response  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(webhook)
        return webhook

    def schedule_retry(self, webhook: Webhook) -> Webhook:
        """Count another attempt and put the webhook back in the pending queue."""
        webhook.retries = webhook.retries + 1  # type: ignore[assignment]
        webhook.last_retried_at = datetime.now(UTC)  # type: ignore[assignment]
        webhook.status = WebhookStatus.PENDING.value  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(webhook)
        return webhook
