"""Master invoice creation and decomposition into child invoices."""

import logging
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from quoteflow.core.config import settings
from quoteflow.core.exceptions import (
    InvalidStatusTransitionError,
    InvoiceHasPaymentsError,
    InvoiceNotEditableError,
    InvoiceNotFoundError,
    InvoiceVoidedError,
    InvoicingError,
    MasterInvoiceNotConfirmedError,
    NotAChildInvoiceError,
    NotAMasterInvoiceError,
    NumberingServiceError,
    VoidReasonRequiredError,
)
from quoteflow.models.invoice import Invoice, InvoiceStatus, MasterInvoiceStatus
from quoteflow.models.invoice_item import InvoiceItem
from quoteflow.models.shared import generate_uuid
from quoteflow.repositories.invoice_item_repository import InvoiceItemRepository
from quoteflow.repositories.invoice_repository import InvoiceRepository
from quoteflow.repositories.payment_repository import PaymentRepository
from quoteflow.schemas.invoice import (
    ChildInvoiceCreate,
    ChildItemSelection,
    InvoiceDetailsUpdate,
    MasterInvoiceCreate,
)
from quoteflow.services.audit_service import AuditService
from quoteflow.services.domain_events import (
    ChildInvoiceCreated,
    ChildInvoiceVoided,
    EventBus,
    MasterInvoiceCreated,
    build_event_bus,
)
from quoteflow.services.numbering_service import (
    DocumentType,
    NumberingService,
    SequentialNumberingService,
)
from quoteflow.services.proration import (
    ZERO,
    MasterLine,
    ProrationCalculator,
    ProrationResult,
    quantize_money,
    to_decimal,
)
from quoteflow.services.quantity_ledger import QuantityLedger
from quoteflow.services.unit_of_work import run_atomically

logger = logging.getLogger(__name__)

MASTER_STATUS_TRANSITIONS: dict[str, set[str]] = {
    MasterInvoiceStatus.DRAFT.value: {MasterInvoiceStatus.CONFIRMED.value},
    MasterInvoiceStatus.CONFIRMED.value: {MasterInvoiceStatus.LOCKED.value},
    MasterInvoiceStatus.LOCKED.value: set(),
}

SPLITTABLE_MASTER_STATUSES = {
    MasterInvoiceStatus.CONFIRMED.value,
    MasterInvoiceStatus.LOCKED.value,
}

CONFIRMED_MASTER_EDITABLE_FIELDS = {"notes", "milestone_description", "delivery_notes"}


def _audit_value(value: Any) -> Any:
    return value.isoformat() if isinstance(value, datetime) else value


class InvoiceSplitService:
    """Creates master invoices and carves child invoices out of them.

    Every mutation runs as one unit of work: validation, proration, numbering,
    persistence and quantity reservation commit together or not at all.
    Domain events are published only after the commit.
    """

    def __init__(
        self,
        db: Session,
        numbering: NumberingService | None = None,
        events: EventBus | None = None,
    ):
        self.db = db
        self.invoice_repo = InvoiceRepository(db)
        self.item_repo = InvoiceItemRepository(db)
        self.payment_repo = PaymentRepository(db)
        self.ledger = QuantityLedger(db)
        self.audit = AuditService(db)
        self.numbering = numbering or SequentialNumberingService(db)
        self.events = events or build_event_bus(db)

    # ------------------------------------------------------------------
    # Master invoices
    # ------------------------------------------------------------------

    def create_master_invoice(self, data: MasterInvoiceCreate) -> Invoice:
        """Create a master invoice from the quote/sales-order item list.

        The amounts run through the same proration path with every item at
        full quantity, so the stored master amounts are the rounded inputs.
        Master items start with nothing fulfilled.
        """
        master = run_atomically(
            self.db,
            lambda: self._create_master_invoice_once(data),
            "create_master_invoice",
        )
        self.db.refresh(master)
        logger.info("Created master invoice %s (%s)", master.invoice_number, master.id)
        self.events.publish(
            MasterInvoiceCreated(
                invoice_id=master.id,  # type: ignore[arg-type]
                invoice_number=str(master.invoice_number),
                total=to_decimal(master.total),
            )
        )
        return master

    def _create_master_invoice_once(self, data: MasterInvoiceCreate) -> Invoice:
        item_ids = [generate_uuid() for _ in data.items]
        calculator = ProrationCalculator(
            lines=[
                MasterLine(item_id=item_id, total_quantity=item.quantity, unit_price=item.unit_price)
                for item_id, item in zip(item_ids, data.items, strict=True)
            ],
            discount=data.discount,
            cgst=data.cgst,
            sgst=data.sgst,
            igst=data.igst,
            shipping_charges=data.shipping_charges,
        )
        result = calculator.calculate(
            {item_id: item.quantity for item_id, item in zip(item_ids, data.items, strict=True)}
        ).rounded()

        invoice_number = self._next_number(DocumentType.MASTER_INVOICE)
        now = datetime.now(UTC)

        master = Invoice(
            id=generate_uuid(),
            invoice_number=invoice_number,
            master_invoice_id=None,
            is_master=True,
            master_status=MasterInvoiceStatus.DRAFT.value,
            status=InvoiceStatus.DRAFT.value,
            quote_id=data.quote_id,
            sales_order_id=data.sales_order_id,
            client_id=data.client_id,
            currency=data.currency or settings.DEFAULT_CURRENCY,
            due_date=data.due_date or now + timedelta(days=settings.DEFAULT_PAYMENT_TERMS_DAYS),
            notes=data.notes,
            **self._amount_fields(result),
        )
        self.invoice_repo.add(master)

        lines_by_id = {line.item_id: line for line in result.lines}
        self.item_repo.add_bulk(
            [
                InvoiceItem(
                    id=item_id,
                    invoice_id=master.id,
                    product_id=item.product_id,
                    description=item.description,
                    hsn_sac=item.hsn_sac,
                    total_quantity=item.quantity,
                    fulfilled_quantity=0,
                    unit_price=item.unit_price,
                    subtotal=lines_by_id[item_id].subtotal,
                    sort_order=index,
                )
                for index, (item_id, item) in enumerate(zip(item_ids, data.items, strict=True))
            ]
        )

        self.audit.log_create(
            resource_type="invoice",
            resource_id=master.id,  # type: ignore[arg-type]
            data={
                "invoice_number": invoice_number,
                "is_master": True,
                "total": str(result.total),
                "item_count": len(item_ids),
            },
        )
        return master

    def update_master_status(self, invoice_id: UUID, master_status: MasterInvoiceStatus) -> Invoice:
        """Move a master along draft -> confirmed -> locked."""

        def work() -> Invoice:
            master = self._get_master(invoice_id, for_update=True)
            current = master.master_status
            if master_status.value not in MASTER_STATUS_TRANSITIONS.get(str(current), set()):
                raise InvalidStatusTransitionError(current, master_status.value)  # type: ignore[arg-type]

            master.master_status = master_status.value  # type: ignore[assignment]
            self.audit.log_status_change(
                resource_type="invoice",
                resource_id=master.id,  # type: ignore[arg-type]
                old_status=current,  # type: ignore[arg-type]
                new_status=master_status.value,
                field="master_status",
            )
            return master

        master = run_atomically(self.db, work, "update_master_status")
        self.db.refresh(master)
        return master

    def update_invoice_details(self, invoice_id: UUID, data: InvoiceDetailsUpdate) -> Invoice:
        """Edit descriptive fields of an invoice. Items and amounts are never touched.

        A draft master accepts every field, a confirmed master only the text
        fields, and a locked master nothing. Child invoices stay editable
        until they are paid.
        """

        def work() -> Invoice:
            invoice = self._get_invoice(invoice_id, for_update=True)
            requested = {field: getattr(data, field) for field in data.model_fields_set}
            self._check_details_editable(invoice, requested)

            changes: dict[str, dict[str, Any]] = {}
            for field, value in requested.items():
                old = getattr(invoice, field)
                if old == value:
                    continue
                setattr(invoice, field, value)
                changes[field] = {"old": _audit_value(old), "new": _audit_value(value)}

            if changes:
                self.audit.log_action(
                    resource_type="invoice",
                    resource_id=invoice.id,  # type: ignore[arg-type]
                    action="details_updated",
                    changes=changes,
                )
            return invoice

        invoice = run_atomically(self.db, work, "update_invoice_details")
        self.db.refresh(invoice)
        return invoice

    def _check_details_editable(self, invoice: Invoice, requested: dict[str, Any]) -> None:
        if invoice.status == InvoiceStatus.VOIDED.value:
            raise InvoiceVoidedError(invoice.id)  # type: ignore[arg-type]
        if not invoice.is_master:
            if invoice.status == InvoiceStatus.PAID.value:
                raise InvoiceNotEditableError(
                    invoice.id, "Cannot edit a paid invoice"  # type: ignore[arg-type]
                )
            return
        if invoice.master_status == MasterInvoiceStatus.LOCKED.value:
            raise InvoiceNotEditableError(
                invoice.id, "Cannot edit a locked master invoice"  # type: ignore[arg-type]
            )
        if invoice.master_status == MasterInvoiceStatus.CONFIRMED.value:
            for field in requested:
                if field not in CONFIRMED_MASTER_EDITABLE_FIELDS:
                    raise InvoiceNotEditableError(
                        invoice.id,  # type: ignore[arg-type]
                        f"{field} cannot be changed on a confirmed master invoice",
                        field=field,
                    )

    def send_invoice(self, invoice_id: UUID) -> Invoice:
        """Issue a draft invoice (master or child)."""

        def work() -> Invoice:
            invoice = self._get_invoice(invoice_id, for_update=True)
            if invoice.status == InvoiceStatus.VOIDED.value:
                raise InvoiceVoidedError(invoice_id)
            if invoice.status != InvoiceStatus.DRAFT.value:
                raise InvalidStatusTransitionError(
                    invoice.status, InvoiceStatus.SENT.value  # type: ignore[arg-type]
                )

            invoice.status = InvoiceStatus.SENT.value  # type: ignore[assignment]
            invoice.issued_at = datetime.now(UTC)  # type: ignore[assignment]
            self.audit.log_status_change(
                resource_type="invoice",
                resource_id=invoice.id,  # type: ignore[arg-type]
                old_status=InvoiceStatus.DRAFT.value,
                new_status=InvoiceStatus.SENT.value,
            )
            return invoice

        invoice = run_atomically(self.db, work, "send_invoice")
        self.db.refresh(invoice)
        return invoice

    # ------------------------------------------------------------------
    # Child invoices
    # ------------------------------------------------------------------

    def preview_child_invoice(
        self,
        master_invoice_id: UUID,
        selection: list[ChildItemSelection],
    ) -> ProrationResult:
        """Validate and prorate a selection without persisting anything."""
        master = self._get_master(master_invoice_id)
        if master.status == InvoiceStatus.VOIDED.value:
            raise InvoiceVoidedError(master_invoice_id)

        items = self.item_repo.get_by_invoice_id(master_invoice_id)
        selected = self.ledger.check_selection(
            items, [(entry.item_id, entry.quantity) for entry in selection]
        )
        return ProrationCalculator.from_invoice(master, items).calculate(selected).rounded()

    def create_child_invoice(self, master_invoice_id: UUID, data: ChildInvoiceCreate) -> Invoice:
        """Carve a child invoice out of a master's remaining quantities."""
        child = run_atomically(
            self.db,
            lambda: self._create_child_invoice_once(master_invoice_id, data),
            "create_child_invoice",
        )
        self.db.refresh(child)

        child_items = self.item_repo.get_by_invoice_id(child.id)  # type: ignore[arg-type]
        logger.info(
            "Created child invoice %s from master %s (%d lines, total %s)",
            child.invoice_number,
            master_invoice_id,
            len(child_items),
            child.total,
        )
        self.events.publish(
            ChildInvoiceCreated(
                invoice_id=child.id,  # type: ignore[arg-type]
                master_invoice_id=master_invoice_id,
                invoice_number=str(child.invoice_number),
                total=to_decimal(child.total),
                quantities={str(item.master_item_id): int(item.total_quantity) for item in child_items},
            )
        )
        return child

    def _create_child_invoice_once(self, master_invoice_id: UUID, data: ChildInvoiceCreate) -> Invoice:
        master = self._get_master(master_invoice_id, for_update=True)
        if master.status == InvoiceStatus.VOIDED.value:
            raise InvoiceVoidedError(master_invoice_id)
        if master.master_status not in SPLITTABLE_MASTER_STATUSES:
            raise MasterInvoiceNotConfirmedError(master_invoice_id)

        items = self.ledger.lock_items(master_invoice_id)
        selected = self.ledger.check_selection(
            items, [(entry.item_id, entry.quantity) for entry in data.items]
        )
        result = ProrationCalculator.from_invoice(master, items).calculate(selected).rounded()

        # Numbering must succeed before any quantity is reserved
        invoice_number = self._next_number(DocumentType.CHILD_INVOICE)
        now = datetime.now(UTC)

        child = Invoice(
            id=generate_uuid(),
            invoice_number=invoice_number,
            master_invoice_id=master.id,
            is_master=False,
            master_status=None,
            status=InvoiceStatus.DRAFT.value,
            quote_id=master.quote_id,
            sales_order_id=master.sales_order_id,
            client_id=master.client_id,
            currency=master.currency,
            milestone_description=data.milestone_description,
            delivery_notes=data.delivery_notes,
            notes=data.notes if data.notes is not None else master.notes,
            due_date=data.due_date or now + timedelta(days=settings.DEFAULT_PAYMENT_TERMS_DAYS),
            **self._amount_fields(result),
        )
        self.invoice_repo.add(child)

        items_by_id = {item.id: item for item in items}
        self.item_repo.add_bulk(
            [
                InvoiceItem(
                    id=generate_uuid(),
                    invoice_id=child.id,
                    master_item_id=line.item_id,
                    product_id=items_by_id[line.item_id].product_id,
                    description=items_by_id[line.item_id].description,
                    hsn_sac=items_by_id[line.item_id].hsn_sac,
                    total_quantity=line.quantity,
                    fulfilled_quantity=0,
                    unit_price=line.unit_price,
                    subtotal=line.subtotal,
                    sort_order=index,
                )
                for index, line in enumerate(result.lines)
            ]
        )

        for item_id, quantity in selected.items():
            self.ledger.reserve(items_by_id[item_id], quantity)

        self.audit.log_create(
            resource_type="invoice",
            resource_id=child.id,  # type: ignore[arg-type]
            data={
                "invoice_number": invoice_number,
                "master_invoice_id": str(master.id),
                "quantities": {str(item_id): quantity for item_id, quantity in selected.items()},
                "total": str(result.total),
            },
        )
        return child

    def void_child_invoice(self, invoice_id: UUID, reason: str) -> Invoice:
        """Void an unpaid child invoice and give its quantities back to the master.

        The reason is stored on the invoice and in the audit trail.
        """
        reason = reason.strip()
        if not reason:
            raise VoidReasonRequiredError(invoice_id)
        released: dict[str, int] = {}

        def work() -> Invoice:
            released.clear()
            child = self._get_invoice(invoice_id, for_update=True)
            if child.is_master or child.master_invoice_id is None:
                raise NotAChildInvoiceError(invoice_id)
            if child.status == InvoiceStatus.VOIDED.value:
                raise InvoiceVoidedError(invoice_id)
            if self.payment_repo.get_by_invoice_id(invoice_id):
                raise InvoiceHasPaymentsError(invoice_id)

            master_items = {
                item.id: item
                for item in self.ledger.lock_items(child.master_invoice_id)  # type: ignore[arg-type]
            }
            for child_item in self.item_repo.get_by_invoice_id(invoice_id):
                master_item = master_items[child_item.master_item_id]
                self.ledger.release(master_item, int(child_item.total_quantity))
                released[str(master_item.id)] = int(child_item.total_quantity)

            old_status = child.status
            child.status = InvoiceStatus.VOIDED.value  # type: ignore[assignment]
            child.remaining_amount = ZERO  # type: ignore[assignment]
            child.voided_at = datetime.now(UTC)  # type: ignore[assignment]
            child.void_reason = reason  # type: ignore[assignment]
            self.audit.log_action(
                resource_type="invoice",
                resource_id=child.id,  # type: ignore[arg-type]
                action="voided",
                changes={
                    "status": {"old": old_status, "new": InvoiceStatus.VOIDED.value},
                    "released": dict(released),
                    "reason": reason,
                },
            )
            return child

        child = run_atomically(self.db, work, "void_child_invoice")
        self.db.refresh(child)
        logger.info("Voided child invoice %s, released %s", child.invoice_number, released)
        self.events.publish(
            ChildInvoiceVoided(
                invoice_id=child.id,  # type: ignore[arg-type]
                master_invoice_id=child.master_invoice_id,  # type: ignore[arg-type]
                invoice_number=str(child.invoice_number),
                released=dict(released),
                reason=reason,
            )
        )
        return child

    # ------------------------------------------------------------------
    # Read projections
    # ------------------------------------------------------------------

    def master_summary(self, master_invoice_id: UUID) -> dict[str, Any]:
        """Remaining quantities and invoiced totals for a master. Read only."""
        master = self._get_master(master_invoice_id)
        items = self.item_repo.get_by_invoice_id(master_invoice_id)
        children = self.invoice_repo.get_children(master_invoice_id)
        active_children = [c for c in children if c.status != InvoiceStatus.VOIDED.value]

        invoiced_total = sum((to_decimal(c.total) for c in active_children), ZERO)
        children_paid_total = sum((to_decimal(c.paid_amount) for c in children), ZERO)

        summary_items = []
        for item in items:
            remaining = QuantityLedger.remaining(item)
            unit_price = to_decimal(item.unit_price)
            summary_items.append(
                {
                    "id": item.id,
                    "description": item.description,
                    "unit_price": unit_price,
                    "total_quantity": int(item.total_quantity),
                    "fulfilled_quantity": int(item.fulfilled_quantity),
                    "remaining_quantity": remaining,
                    "remaining_amount": quantize_money(unit_price * remaining),
                }
            )

        return {
            "master_invoice_id": master.id,
            "invoice_number": master.invoice_number,
            "master_status": master.master_status,
            "total": to_decimal(master.total),
            "child_count": len(active_children),
            "invoiced_total": quantize_money(invoiced_total),
            "uninvoiced_total": quantize_money(to_decimal(master.total) - invoiced_total),
            "children_paid_total": quantize_money(children_paid_total),
            "items": summary_items,
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_invoice(self, invoice_id: UUID, for_update: bool = False) -> Invoice:
        invoice = self.invoice_repo.get_by_id(invoice_id, for_update=for_update)
        if not invoice:
            raise InvoiceNotFoundError(invoice_id)
        return invoice

    def _get_master(self, invoice_id: UUID, for_update: bool = False) -> Invoice:
        invoice = self._get_invoice(invoice_id, for_update=for_update)
        if not invoice.is_master:
            raise NotAMasterInvoiceError(invoice_id)
        return invoice

    def _next_number(self, document_type: DocumentType) -> str:
        try:
            return self.numbering.next_number(document_type, datetime.now(UTC).year)
        except (InvoicingError, StaleDataError):
            raise
        except Exception as e:
            logger.error("Numbering service failed for %s: %s", document_type.value, e)
            raise NumberingServiceError(f"Numbering service failed: {e}") from e

    @staticmethod
    def _amount_fields(result: ProrationResult) -> dict[str, Decimal]:
        return {
            "subtotal": result.subtotal,
            "discount": result.discount,
            "cgst": result.cgst,
            "sgst": result.sgst,
            "igst": result.igst,
            "shipping_charges": result.shipping_charges,
            "total": result.total,
            "paid_amount": ZERO,
            "remaining_amount": result.total,
        }
