"""Payment ledger: applies and removes payments against a single invoice.

The balance check and the payment insert run in one unit of work with the
invoice row locked, so ``sum(payments) <= invoice.total`` holds even when
payments for the same invoice arrive concurrently.
"""

import logging
from datetime import UTC, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from quoteflow.core.exceptions import (
    InvalidPaymentAmountError,
    InvoiceNotFoundError,
    InvoiceVoidedError,
    OverpaymentError,
)
from quoteflow.models.invoice import Invoice, InvoiceStatus
from quoteflow.models.payment import Payment, PaymentMethod
from quoteflow.models.shared import generate_uuid
from quoteflow.repositories.invoice_repository import InvoiceRepository
from quoteflow.repositories.payment_repository import PaymentRepository
from quoteflow.services.audit_service import AuditService
from quoteflow.services.domain_events import (
    EventBus,
    PaymentApplied,
    PaymentRemoved,
    build_event_bus,
)
from quoteflow.services.proration import ZERO, quantize_money, to_decimal
from quoteflow.services.unit_of_work import run_atomically

logger = logging.getLogger(__name__)


def status_for_balance(invoice: Invoice, remaining: Decimal) -> str:
    """Payment status implied by the remaining balance.

    ``paid`` at zero, ``partially_paid`` strictly between zero and the total,
    otherwise the invoice falls back to ``sent`` or ``draft`` depending on
    whether it was issued.
    """
    total = to_decimal(invoice.total)
    if remaining == 0 and total > 0:
        return InvoiceStatus.PAID.value
    if 0 < remaining < total:
        return InvoiceStatus.PARTIALLY_PAID.value
    if invoice.status in (InvoiceStatus.PAID.value, InvoiceStatus.PARTIALLY_PAID.value):
        return InvoiceStatus.SENT.value if invoice.issued_at else InvoiceStatus.DRAFT.value
    return str(invoice.status)


class PaymentLedger:
    def __init__(self, db: Session, events: EventBus | None = None):
        self.db = db
        self.invoice_repo = InvoiceRepository(db)
        self.payment_repo = PaymentRepository(db)
        self.audit = AuditService(db)
        self.events = events or build_event_bus(db)

    def apply_payment(
        self,
        invoice_id: UUID,
        amount: Decimal,
        method: PaymentMethod = PaymentMethod.BANK_TRANSFER,
        payment_date: datetime | None = None,
        transaction_id: str | None = None,
        notes: str | None = None,
    ) -> Payment:
        """Record a payment against an invoice and update its balance.

        Raises:
            InvalidPaymentAmountError: amount is not positive or has more
                than two decimal places.
            OverpaymentError: amount exceeds the remaining balance; carries
                the allowed maximum.
        """
        amount = to_decimal(amount)
        if amount <= 0 or amount != quantize_money(amount):
            raise InvalidPaymentAmountError(amount)

        payment = run_atomically(
            self.db,
            lambda: self._apply_payment_once(
                invoice_id, amount, method, payment_date, transaction_id, notes
            ),
            "apply_payment",
        )
        self.db.refresh(payment)
        invoice = self._get_invoice(invoice_id)

        logger.info(
            "Applied payment %s of %s to invoice %s, remaining %s",
            payment.id,
            amount,
            invoice.invoice_number,
            invoice.remaining_amount,
        )
        self.events.publish(
            PaymentApplied(
                payment_id=payment.id,  # type: ignore[arg-type]
                invoice_id=invoice_id,
                amount=amount,
                remaining_amount=to_decimal(invoice.remaining_amount),
                invoice_status=str(invoice.status),
            )
        )
        return payment

    def _apply_payment_once(
        self,
        invoice_id: UUID,
        amount: Decimal,
        method: PaymentMethod,
        payment_date: datetime | None,
        transaction_id: str | None,
        notes: str | None,
    ) -> Payment:
        invoice = self._get_invoice(invoice_id, for_update=True)
        if invoice.status == InvoiceStatus.VOIDED.value:
            raise InvoiceVoidedError(invoice_id)

        total = to_decimal(invoice.total)
        paid = self.payment_repo.total_paid(invoice_id)
        current_remaining = total - paid
        if amount > current_remaining:
            max_allowed = max(current_remaining, ZERO)
            logger.warning(
                "Rejected payment of %s on invoice %s, max allowed %s",
                amount,
                invoice_id,
                max_allowed,
            )
            raise OverpaymentError(invoice_id, amount, max_allowed)

        now = datetime.now(UTC)
        payment = Payment(
            id=generate_uuid(),
            invoice_id=invoice_id,
            amount=amount,
            method=method.value,
            transaction_id=transaction_id,
            notes=notes,
            payment_date=payment_date or now,
            recorded_at=now,
        )
        self.payment_repo.add(payment)

        remaining = current_remaining - amount
        old_status = invoice.status
        invoice.paid_amount = paid + amount  # type: ignore[assignment]
        invoice.remaining_amount = remaining  # type: ignore[assignment]
        invoice.last_payment_date = payment.payment_date  # type: ignore[assignment]
        invoice.status = status_for_balance(invoice, remaining)  # type: ignore[assignment]
        if invoice.status == InvoiceStatus.PAID.value:
            invoice.paid_at = now  # type: ignore[assignment]

        self.audit.log_action(
            resource_type="invoice",
            resource_id=invoice_id,
            action="payment_applied",
            changes={
                "payment_id": str(payment.id),
                "amount": str(amount),
                "remaining_amount": str(remaining),
                "status": {"old": old_status, "new": invoice.status},
            },
        )
        return payment

    def list_payments(self, invoice_id: UUID) -> list[Payment]:
        """Payments on an invoice in the order they were recorded."""
        self._get_invoice(invoice_id)
        return self.payment_repo.get_by_invoice_id(invoice_id)

    def get_payment(self, payment_id: UUID) -> Payment:
        payment = self.payment_repo.get_by_id(payment_id)
        if not payment:
            raise InvoiceNotFoundError(payment_id, resource="Payment")
        return payment

    def remove_payment(self, payment_id: UUID) -> Invoice:
        """Delete a payment and recompute its invoice's balance and status."""
        removed: dict[str, Decimal] = {}

        def work() -> Invoice:
            payment = self.get_payment(payment_id)
            invoice = self._get_invoice(payment.invoice_id, for_update=True)  # type: ignore[arg-type]
            removed["amount"] = to_decimal(payment.amount)
            self.payment_repo.delete(payment)

            total = to_decimal(invoice.total)
            paid = self.payment_repo.total_paid(invoice.id)  # type: ignore[arg-type]
            remaining = total - paid
            remaining_payments = self.payment_repo.get_by_invoice_id(invoice.id)  # type: ignore[arg-type]

            old_status = invoice.status
            invoice.paid_amount = paid  # type: ignore[assignment]
            invoice.remaining_amount = remaining  # type: ignore[assignment]
            invoice.status = status_for_balance(invoice, remaining)  # type: ignore[assignment]
            invoice.last_payment_date = (  # type: ignore[assignment]
                remaining_payments[-1].payment_date if remaining_payments else None
            )
            if invoice.status != InvoiceStatus.PAID.value:
                invoice.paid_at = None  # type: ignore[assignment]

            self.audit.log_action(
                resource_type="invoice",
                resource_id=invoice.id,  # type: ignore[arg-type]
                action="payment_removed",
                changes={
                    "payment_id": str(payment_id),
                    "amount": str(removed["amount"]),
                    "remaining_amount": str(remaining),
                    "status": {"old": old_status, "new": invoice.status},
                },
            )
            return invoice

        invoice = run_atomically(self.db, work, "remove_payment")
        self.db.refresh(invoice)
        logger.info(
            "Removed payment %s from invoice %s, remaining %s",
            payment_id,
            invoice.invoice_number,
            invoice.remaining_amount,
        )
        self.events.publish(
            PaymentRemoved(
                payment_id=payment_id,
                invoice_id=invoice.id,  # type: ignore[arg-type]
                amount=removed["amount"],
                remaining_amount=to_decimal(invoice.remaining_amount),
                invoice_status=str(invoice.status),
            )
        )
        return invoice

    def _get_invoice(self, invoice_id: UUID, for_update: bool = False) -> Invoice:
        invoice = self.invoice_repo.get_by_id(invoice_id, for_update=for_update)
        if not invoice:
            raise InvoiceNotFoundError(invoice_id)
        return invoice
