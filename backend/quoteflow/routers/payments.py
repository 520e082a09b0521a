from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from quoteflow.core.database import get_db
from quoteflow.core.idempotency import (
    IdempotencyResult,
    check_idempotency,
    record_idempotency_response,
)
from quoteflow.models.invoice import Invoice
from quoteflow.models.payment import Payment
from quoteflow.repositories.payment_repository import PaymentRepository
from quoteflow.schemas.invoice import InvoiceResponse
from quoteflow.schemas.payment import PaymentCreate, PaymentResponse
from quoteflow.services.payment_ledger import PaymentLedger

router = APIRouter()


@router.get(
    "/",
    response_model=list[PaymentResponse],
    summary="List payments",
)
async def list_payments(
    response: Response,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    invoice_id: UUID | None = None,
    db: Session = Depends(get_db),
) -> list[Payment]:
    """List payments, optionally for one invoice."""
    payments = PaymentRepository(db).get_all(skip=skip, limit=limit, invoice_id=invoice_id)
    response.headers["X-Total-Count"] = str(len(payments))
    return payments


@router.post(
    "/",
    response_model=PaymentResponse,
    status_code=201,
    summary="Apply payment",
    responses={
        400: {"description": "Overpayment, invalid amount, or voided invoice"},
        404: {"description": "Invoice not found"},
        409: {"description": "Concurrent modification, retry the request"},
        422: {"description": "Validation error"},
    },
)
async def apply_payment(
    data: PaymentCreate,
    request: Request,
    db: Session = Depends(get_db),
) -> Payment | JSONResponse:
    """Record a payment against an invoice.

    Rejected with the maximum allowed amount when it would exceed the
    invoice's remaining balance.
    """
    idempotency = check_idempotency(request, db, payload=data.model_dump(mode="json"))
    if isinstance(idempotency, JSONResponse):
        return idempotency

    payment = PaymentLedger(db).apply_payment(
        invoice_id=data.invoice_id,
        amount=data.amount,
        method=data.method,
        payment_date=data.payment_date,
        transaction_id=data.transaction_id,
        notes=data.notes,
    )

    if isinstance(idempotency, IdempotencyResult):
        body = PaymentResponse.model_validate(payment).model_dump(mode="json")
        record_idempotency_response(db, idempotency.key, 201, body)

    return payment


@router.get(
    "/{payment_id}",
    response_model=PaymentResponse,
    summary="Get payment",
    responses={404: {"description": "Payment not found"}},
)
async def get_payment(
    payment_id: UUID,
    db: Session = Depends(get_db),
) -> Payment:
    """Get a payment by ID."""
    return PaymentLedger(db).get_payment(payment_id)


@router.delete(
    "/{payment_id}",
    response_model=InvoiceResponse,
    summary="Remove payment",
    responses={404: {"description": "Payment not found"}},
)
async def remove_payment(
    payment_id: UUID,
    db: Session = Depends(get_db),
) -> Invoice:
    """Delete a payment and return the invoice with its recomputed balance."""
    return PaymentLedger(db).remove_payment(payment_id)
