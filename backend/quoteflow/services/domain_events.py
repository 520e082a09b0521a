"""Domain events published after ledger mutations commit.

Handlers run synchronously once the unit of work is committed. A failing
handler is logged and never affects the committed state or the caller.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any, ClassVar
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from quoteflow.services.webhook_service import WebhookService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DomainEvent(ABC):
    event_type: ClassVar[str] = ""
    object_type: ClassVar[str] = "invoice"

    @property
    @abstractmethod
    def object_id(self) -> UUID:
        """Id of the invoice or payment the event is about."""

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"event_type": self.event_type}
        for key, value in asdict(self).items():
            if isinstance(value, UUID | Decimal):
                payload[key] = str(value)
            else:
                payload[key] = value
        return payload


@dataclass(frozen=True)
class MasterInvoiceCreated(DomainEvent):
    event_type: ClassVar[str] = "invoice.master_created"

    invoice_id: UUID
    invoice_number: str
    total: Decimal

    @property
    def object_id(self) -> UUID:
        return self.invoice_id


@dataclass(frozen=True)
class ChildInvoiceCreated(DomainEvent):
    event_type: ClassVar[str] = "invoice.child_created"

    invoice_id: UUID
    master_invoice_id: UUID
    invoice_number: str
    total: Decimal
    quantities: dict[str, int]

    @property
    def object_id(self) -> UUID:
        return self.invoice_id


@dataclass(frozen=True)
class ChildInvoiceVoided(DomainEvent):
    event_type: ClassVar[str] = "invoice.child_voided"

    invoice_id: UUID
    master_invoice_id: UUID
    invoice_number: str
    released: dict[str, int]
    reason: str

    @property
    def object_id(self) -> UUID:
        return self.invoice_id


@dataclass(frozen=True)
class PaymentApplied(DomainEvent):
    event_type: ClassVar[str] = "payment.applied"
    object_type: ClassVar[str] = "payment"

    payment_id: UUID
    invoice_id: UUID
    amount: Decimal
    remaining_amount: Decimal
    invoice_status: str

    @property
    def object_id(self) -> UUID:
        return self.payment_id


@dataclass(frozen=True)
class PaymentRemoved(DomainEvent):
    event_type: ClassVar[str] = "payment.removed"
    object_type: ClassVar[str] = "payment"

    payment_id: UUID
    invoice_id: UUID
    amount: Decimal
    remaining_amount: Decimal
    invoice_status: str

    @property
    def object_id(self) -> UUID:
        return self.payment_id


EventHandler = Callable[[DomainEvent], None]


class EventBus:
    """In-process publish/subscribe for domain events."""

    def __init__(self) -> None:
        self._handlers: list[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> None:
        self._handlers.append(handler)

    def publish(self, event: DomainEvent) -> None:
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler %r failed for %s", handler, event.event_type)


class WebhookEventSubscriber:
    """Queues one webhook per active endpoint for every published event."""

    def __init__(self, db: Session):
        self.db = db

    def __call__(self, event: DomainEvent) -> None:
        try:
            WebhookService(self.db).send_webhook(
                webhook_type=event.event_type,
                object_type=event.object_type,
                object_id=event.object_id,
                payload=event.to_payload(),
            )
        except SQLAlchemyError:
            self.db.rollback()
            raise


def build_event_bus(db: Session) -> EventBus:
    bus = EventBus()
    bus.subscribe(WebhookEventSubscriber(db))
    return bus
