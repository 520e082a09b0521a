"""Payment model for recording amounts received against an invoice."""

from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, Text, func

from quoteflow.core.database import Base
from quoteflow.models.shared import UUIDType, generate_uuid, utc_now


class PaymentMethod(str, Enum):
    """How the payment was received."""

    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"
    CHEQUE = "cheque"
    CARD = "card"
    UPI = "upi"
    OTHER = "other"


class Payment(Base):
    """Payment model - one received amount applied to exactly one invoice."""

    __tablename__ = "payments"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    invoice_id = Column(
        UUIDType, ForeignKey("invoices.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    amount = Column(Numeric(14, 2), nullable=False)
    method = Column(String(30), nullable=False, default=PaymentMethod.BANK_TRANSFER.value)
    transaction_id = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    payment_date = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    # Insertion order; payments are listed by this column
    recorded_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
