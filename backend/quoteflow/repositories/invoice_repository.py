from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from quoteflow.models.invoice import Invoice, InvoiceStatus


class InvoiceRepository:
    """Data access for master and child invoices.

    Write helpers only flush; the calling service owns the transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        is_master: bool | None = None,
        master_invoice_id: UUID | None = None,
        status: InvoiceStatus | None = None,
    ) -> list[Invoice]:
        query = self.db.query(Invoice)

        if is_master is not None:
            query = query.filter(Invoice.is_master == is_master)
        if master_invoice_id:
            query = query.filter(Invoice.master_invoice_id == master_invoice_id)
        if status:
            query = query.filter(Invoice.status == status.value)

        return query.order_by(Invoice.created_at.desc()).offset(skip).limit(limit).all()

    def count(self) -> int:
        return self.db.query(func.count(Invoice.id)).scalar() or 0

    def get_by_id(self, invoice_id: UUID, for_update: bool = False) -> Invoice | None:
        query = self.db.query(Invoice).filter(Invoice.id == invoice_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_children(self, master_invoice_id: UUID, include_voided: bool = True) -> list[Invoice]:
        """Child invoices of a master, oldest first."""
        query = self.db.query(Invoice).filter(Invoice.master_invoice_id == master_invoice_id)
        if not include_voided:
            query = query.filter(Invoice.status != InvoiceStatus.VOIDED.value)
        return query.order_by(Invoice.created_at.asc(), Invoice.invoice_number.asc()).all()

    def add(self, invoice: Invoice) -> Invoice:
        self.db.add(invoice)
        self.db.flush()
        return invoice
