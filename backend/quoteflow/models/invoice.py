from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text, func

from quoteflow.core.database import Base
from quoteflow.models.shared import UUIDType, generate_uuid


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"
    VOIDED = "voided"


class MasterInvoiceStatus(str, Enum):
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    LOCKED = "locked"


class Invoice(Base):
    """Master or child invoice.

    A row with ``master_invoice_id`` unset is a master holding the full item
    set; child invoices point at their master and carry prorated amounts.
    """

    __tablename__ = "invoices"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    invoice_number = Column(String(50), unique=True, index=True, nullable=False)
    master_invoice_id = Column(
        UUIDType, ForeignKey("invoices.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    is_master = Column(Boolean, nullable=False, default=False)
    master_status = Column(String(20), nullable=True)
    status = Column(String(20), nullable=False, default=InvoiceStatus.DRAFT.value)

    # External references (quote / sales order / client live outside this service)
    quote_id = Column(UUIDType, nullable=True, index=True)
    sales_order_id = Column(UUIDType, nullable=True, index=True)
    client_id = Column(UUIDType, nullable=True, index=True)

    currency = Column(String(3), nullable=False, default="INR")

    # Stored amounts, rounded to 2 decimal places
    subtotal = Column(Numeric(14, 2), nullable=False, default=0)
    discount = Column(Numeric(14, 2), nullable=False, default=0)
    cgst = Column(Numeric(14, 2), nullable=False, default=0)
    sgst = Column(Numeric(14, 2), nullable=False, default=0)
    igst = Column(Numeric(14, 2), nullable=False, default=0)
    shipping_charges = Column(Numeric(14, 2), nullable=False, default=0)
    total = Column(Numeric(14, 2), nullable=False, default=0)

    # Maintained by the payment ledger
    paid_amount = Column(Numeric(14, 2), nullable=False, default=0)
    remaining_amount = Column(Numeric(14, 2), nullable=False, default=0)

    milestone_description = Column(Text, nullable=True)
    delivery_notes = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    due_date = Column(DateTime(timezone=True), nullable=True)
    issued_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    last_payment_date = Column(DateTime(timezone=True), nullable=True)
    voided_at = Column(DateTime(timezone=True), nullable=True)
    void_reason = Column(Text, nullable=True)

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}
