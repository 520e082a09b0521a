from uuid import UUID

from sqlalchemy.orm import Session

from quoteflow.models.invoice_item import InvoiceItem


class InvoiceItemRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_invoice_id(self, invoice_id: UUID, for_update: bool = False) -> list[InvoiceItem]:
        """Items of an invoice in display order.

        With ``for_update`` the rows are locked until the transaction ends
        (row-level lock on PostgreSQL; ignored by SQLite, where the version
        column still detects concurrent writers).
        """
        query = self.db.query(InvoiceItem).filter(InvoiceItem.invoice_id == invoice_id)
        if for_update:
            query = query.with_for_update()
        return query.order_by(InvoiceItem.sort_order.asc(), InvoiceItem.id.asc()).all()

    def get_by_master_item_id(self, master_item_id: UUID) -> list[InvoiceItem]:
        return (
            self.db.query(InvoiceItem)
            .filter(InvoiceItem.master_item_id == master_item_id)
            .all()
        )

    def add_bulk(self, items: list[InvoiceItem]) -> list[InvoiceItem]:
        self.db.add_all(items)
        self.db.flush()
        return items
