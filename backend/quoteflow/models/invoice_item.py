"""Invoice line items and their fulfilment counters."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    func,
)

from quoteflow.core.database import Base
from quoteflow.models.shared import UUIDType, generate_uuid


class InvoiceItem(Base):
    """Line item on a master or child invoice.

    On a master, ``total_quantity`` is the ordered quantity and
    ``fulfilled_quantity`` counts units already drawn into child invoices.
    On a child, ``total_quantity`` is the quantity taken and
    ``master_item_id`` points back at the master line it was drawn from.
    Neither ``total_quantity`` nor ``unit_price`` changes after creation.
    """

    __tablename__ = "invoice_items"
    __table_args__ = (
        CheckConstraint("total_quantity >= 0", name="ck_invoice_items_total_quantity"),
        CheckConstraint(
            "fulfilled_quantity >= 0 AND fulfilled_quantity <= total_quantity",
            name="ck_invoice_items_fulfilled_quantity",
        ),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    invoice_id = Column(
        UUIDType, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True
    )
    master_item_id = Column(
        UUIDType, ForeignKey("invoice_items.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    product_id = Column(UUIDType, nullable=True)
    description = Column(String(500), nullable=False)
    hsn_sac = Column(String(20), nullable=True)

    total_quantity = Column(Integer, nullable=False)
    fulfilled_quantity = Column(Integer, nullable=False, default=0)
    unit_price = Column(Numeric(14, 4), nullable=False)
    subtotal = Column(Numeric(14, 2), nullable=False, default=0)
    sort_order = Column(Integer, nullable=False, default=0)

    version = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}
