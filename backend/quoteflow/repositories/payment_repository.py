"""Payment repository for data access."""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from quoteflow.models.payment import Payment


class PaymentRepository:
    """Repository for Payment model."""

    def __init__(self, db: Session):
        self.db = db

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        invoice_id: UUID | None = None,
    ) -> list[Payment]:
        """Get payments in the order they were recorded."""
        query = self.db.query(Payment)
        if invoice_id:
            query = query.filter(Payment.invoice_id == invoice_id)
        return query.order_by(Payment.recorded_at.asc()).offset(skip).limit(limit).all()

    def get_by_id(self, payment_id: UUID) -> Payment | None:
        """Get a payment by ID."""
        return self.db.query(Payment).filter(Payment.id == payment_id).first()

    def get_by_invoice_id(self, invoice_id: UUID) -> list[Payment]:
        return (
            self.db.query(Payment)
            .filter(Payment.invoice_id == invoice_id)
            .order_by(Payment.recorded_at.asc())
            .all()
        )

    def total_paid(self, invoice_id: UUID) -> Decimal:
        """Sum of all payment amounts recorded against an invoice."""
        result = (
            self.db.query(func.coalesce(func.sum(Payment.amount), 0))
            .filter(Payment.invoice_id == invoice_id)
            .scalar()
        )
        return Decimal(str(result)).quantize(Decimal("0.01"))

    def add(self, payment: Payment) -> Payment:
        self.db.add(payment)
        self.db.flush()
        return payment

    def delete(self, payment: Payment) -> None:
        self.db.delete(payment)
        self.db.flush()
