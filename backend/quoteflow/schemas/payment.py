"""Payment schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from quoteflow.models.payment import PaymentMethod


class PaymentCreate(BaseModel):
    """Schema for applying a payment to an invoice."""

    invoice_id: UUID
    amount: Decimal = Field(gt=0, decimal_places=2)
    method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    payment_date: datetime | None = None
    transaction_id: str | None = Field(default=None, max_length=255)
    notes: str | None = None


class PaymentResponse(BaseModel):
    """Schema for payment response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    invoice_id: UUID
    amount: Decimal
    method: PaymentMethod
    transaction_id: str | None = None
    notes: str | None = None
    payment_date: datetime
    recorded_at: datetime
