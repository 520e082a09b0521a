from datetime import datetime
from decimal import Decimal
from typing import Self
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from quoteflow.models.invoice import InvoiceStatus, MasterInvoiceStatus


class MasterInvoiceItemCreate(BaseModel):
    description: str = Field(min_length=1, max_length=500)
    quantity: int = Field(gt=0)
    unit_price: Decimal = Field(ge=0, max_digits=14, decimal_places=4)
    product_id: UUID | None = None
    hsn_sac: str | None = Field(default=None, max_length=20)


class MasterInvoiceCreate(BaseModel):
    """Item list and computed amounts handed over by the quote/sales-order bridge."""

    items: list[MasterInvoiceItemCreate] = Field(min_length=1)
    discount: Decimal = Field(default=Decimal("0"), ge=0, max_digits=14, decimal_places=2)
    cgst: Decimal = Field(default=Decimal("0"), ge=0, max_digits=14, decimal_places=2)
    sgst: Decimal = Field(default=Decimal("0"), ge=0, max_digits=14, decimal_places=2)
    igst: Decimal = Field(default=Decimal("0"), ge=0, max_digits=14, decimal_places=2)
    shipping_charges: Decimal = Field(default=Decimal("0"), ge=0, max_digits=14, decimal_places=2)
    quote_id: UUID | None = None
    sales_order_id: UUID | None = None
    client_id: UUID | None = None
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    due_date: datetime | None = None
    notes: str | None = None

    @model_validator(mode="after")
    def validate_amounts_against_subtotal(self) -> Self:
        """Discount may not exceed the item subtotal and taxes need a positive taxable base."""
        subtotal = sum((item.unit_price * item.quantity for item in self.items), Decimal("0"))
        if self.discount > subtotal:
            msg = f"discount {self.discount} exceeds item subtotal {subtotal}"
            raise ValueError(msg)
        has_tax = self.cgst > 0 or self.sgst > 0 or self.igst > 0
        if has_tax and subtotal - self.discount <= 0:
            msg = "tax amounts require a positive subtotal after discount"
            raise ValueError(msg)
        return self


class ChildItemSelection(BaseModel):
    item_id: UUID
    quantity: int = Field(ge=0)


class ChildInvoiceMetadata(BaseModel):
    milestone_description: str | None = None
    delivery_notes: str | None = None
    notes: str | None = None
    due_date: datetime | None = None


class ChildInvoiceCreate(ChildInvoiceMetadata):
    items: list[ChildItemSelection] = Field(min_length=1)


class InvoiceDetailsUpdate(ChildInvoiceMetadata):
    """Descriptive fields only; items and amounts never change after creation."""


class VoidInvoiceRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)

    @field_validator("reason")
    @classmethod
    def reason_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            msg = "a reason is required to void an invoice"
            raise ValueError(msg)
        return value


class ChildInvoicePreviewRequest(BaseModel):
    items: list[ChildItemSelection] = Field(min_length=1)


class MasterStatusUpdate(BaseModel):
    master_status: MasterInvoiceStatus


class InvoiceItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    invoice_id: UUID
    master_item_id: UUID | None = None
    product_id: UUID | None = None
    description: str
    hsn_sac: str | None = None
    total_quantity: int
    fulfilled_quantity: int
    unit_price: Decimal
    subtotal: Decimal
    sort_order: int


class InvoiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    invoice_number: str
    master_invoice_id: UUID | None = None
    is_master: bool
    master_status: MasterInvoiceStatus | None = None
    status: InvoiceStatus
    quote_id: UUID | None = None
    sales_order_id: UUID | None = None
    client_id: UUID | None = None
    currency: str
    subtotal: Decimal
    discount: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    shipping_charges: Decimal
    total: Decimal
    paid_amount: Decimal
    remaining_amount: Decimal
    milestone_description: str | None = None
    delivery_notes: str | None = None
    notes: str | None = None
    due_date: datetime | None = None
    issued_at: datetime | None = None
    paid_at: datetime | None = None
    last_payment_date: datetime | None = None
    voided_at: datetime | None = None
    void_reason: str | None = None
    created_at: datetime
    updated_at: datetime


class InvoiceDetailResponse(InvoiceResponse):
    items: list[InvoiceItemResponse] = Field(default_factory=list)


class TaxRatesResponse(BaseModel):
    cgst: Decimal
    sgst: Decimal
    igst: Decimal


class ProratedLineResponse(BaseModel):
    item_id: UUID
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    discount: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    shipping_charges: Decimal
    total: Decimal


class ChildInvoicePreviewResponse(BaseModel):
    master_invoice_id: UUID
    subtotal: Decimal
    discount: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    shipping_charges: Decimal
    total: Decimal
    tax_rates: TaxRatesResponse
    lines: list[ProratedLineResponse]


class MasterSummaryItem(BaseModel):
    id: UUID
    description: str
    unit_price: Decimal
    total_quantity: int
    fulfilled_quantity: int
    remaining_quantity: int
    remaining_amount: Decimal


class MasterSummaryResponse(BaseModel):
    master_invoice_id: UUID
    invoice_number: str
    master_status: MasterInvoiceStatus | None = None
    total: Decimal
    child_count: int
    invoiced_total: Decimal
    uninvoiced_total: Decimal
    children_paid_total: Decimal
    items: list[MasterSummaryItem]
