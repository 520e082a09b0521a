from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from quoteflow.core.database import get_db
from quoteflow.core.idempotency import (
    IdempotencyResult,
    check_idempotency,
    record_idempotency_response,
)
from quoteflow.models.invoice import Invoice, InvoiceStatus
from quoteflow.models.invoice_item import InvoiceItem
from quoteflow.models.payment import Payment
from quoteflow.repositories.invoice_item_repository import InvoiceItemRepository
from quoteflow.repositories.invoice_repository import InvoiceRepository
from quoteflow.schemas.invoice import (
    ChildInvoiceCreate,
    ChildInvoicePreviewRequest,
    ChildInvoicePreviewResponse,
    InvoiceDetailResponse,
    InvoiceDetailsUpdate,
    InvoiceItemResponse,
    InvoiceResponse,
    MasterInvoiceCreate,
    MasterStatusUpdate,
    MasterSummaryResponse,
    ProratedLineResponse,
    TaxRatesResponse,
    VoidInvoiceRequest,
)
from quoteflow.schemas.payment import PaymentResponse
from quoteflow.services.invoice_split_service import InvoiceSplitService
from quoteflow.services.payment_ledger import PaymentLedger

router = APIRouter()


def _detail(invoice: Invoice, db: Session) -> InvoiceDetailResponse:
    items = InvoiceItemRepository(db).get_by_invoice_id(invoice.id)  # type: ignore[arg-type]
    response = InvoiceDetailResponse.model_validate(invoice)
    response.items = [InvoiceItemResponse.model_validate(item) for item in items]
    return response


@router.post(
    "/",
    response_model=InvoiceDetailResponse,
    status_code=201,
    summary="Create master invoice",
    responses={
        422: {"description": "Validation error"},
        502: {"description": "Numbering service failure"},
    },
)
async def create_master_invoice(
    data: MasterInvoiceCreate,
    request: Request,
    db: Session = Depends(get_db),
) -> InvoiceDetailResponse | JSONResponse:
    """Create a master invoice from a quote or sales order item list."""
    idempotency = check_idempotency(request, db, payload=data.model_dump(mode="json"))
    if isinstance(idempotency, JSONResponse):
        return idempotency

    master = InvoiceSplitService(db).create_master_invoice(data)
    response = _detail(master, db)

    if isinstance(idempotency, IdempotencyResult):
        body = response.model_dump(mode="json")
        record_idempotency_response(db, idempotency.key, 201, body)

    return response


@router.get(
    "/",
    response_model=list[InvoiceResponse],
    summary="List invoices",
)
async def list_invoices(
    response: Response,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    is_master: bool | None = None,
    master_invoice_id: UUID | None = None,
    status: InvoiceStatus | None = None,
    db: Session = Depends(get_db),
) -> list[Invoice]:
    """List invoices with optional filters."""
    repo = InvoiceRepository(db)
    response.headers["X-Total-Count"] = str(repo.count())
    return repo.get_all(
        skip=skip,
        limit=limit,
        is_master=is_master,
        master_invoice_id=master_invoice_id,
        status=status,
    )


@router.get(
    "/{invoice_id}",
    response_model=InvoiceDetailResponse,
    summary="Get invoice",
    responses={404: {"description": "Invoice not found"}},
)
async def get_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
) -> InvoiceDetailResponse:
    """Get an invoice with its line items."""
    invoice = InvoiceRepository(db).get_by_id(invoice_id)
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return _detail(invoice, db)


@router.get(
    "/{invoice_id}/items",
    response_model=list[InvoiceItemResponse],
    summary="List invoice items",
    responses={404: {"description": "Invoice not found"}},
)
async def list_invoice_items(
    invoice_id: UUID,
    db: Session = Depends(get_db),
) -> list[InvoiceItem]:
    """List the line items of an invoice, with fulfilled quantities for masters."""
    if not InvoiceRepository(db).get_by_id(invoice_id):
        raise HTTPException(status_code=404, detail="Invoice not found")
    return InvoiceItemRepository(db).get_by_invoice_id(invoice_id)


@router.put(
    "/{invoice_id}/master_status",
    response_model=InvoiceResponse,
    summary="Change master invoice status",
    responses={
        400: {"description": "Not a master invoice or invalid transition"},
        404: {"description": "Invoice not found"},
    },
)
async def update_master_status(
    invoice_id: UUID,
    data: MasterStatusUpdate,
    db: Session = Depends(get_db),
) -> Invoice:
    """Move a master invoice from draft to confirmed, or confirmed to locked."""
    return InvoiceSplitService(db).update_master_status(invoice_id, data.master_status)


@router.put(
    "/{invoice_id}/details",
    response_model=InvoiceResponse,
    summary="Update invoice details",
    responses={
        400: {"description": "Invoice is voided, paid, or locked, or the field is not editable"},
        404: {"description": "Invoice not found"},
        422: {"description": "Validation error"},
    },
)
async def update_invoice_details(
    invoice_id: UUID,
    data: InvoiceDetailsUpdate,
    db: Session = Depends(get_db),
) -> Invoice:
    """Edit notes, milestone description, delivery notes or due date."""
    return InvoiceSplitService(db).update_invoice_details(invoice_id, data)


@router.post(
    "/{invoice_id}/send",

    response_model=InvoiceResponse,
    summary="Send invoice",
    responses={
        400: {"description": "Invoice is not a draft"},
        404: {"description": "Invoice not found"},
    },
)
async def send_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
) -> Invoice:
    """Issue a draft invoice."""
    return InvoiceSplitService(db).send_invoice(invoice_id)


@router.post(
    "/{invoice_id}/void",
    response_model=InvoiceResponse,
    summary="Void child invoice",
    responses={
        400: {"description": "Not a child invoice, already voided, or has payments"},
        404: {"description": "Invoice not found"},
        422: {"description": "Missing void reason"},
    },
)
async def void_child_invoice(
    invoice_id: UUID,
    data: VoidInvoiceRequest,
    db: Session = Depends(get_db),
) -> Invoice:
    """Void a child invoice with a reason and return its quantities to the master."""
    return InvoiceSplitService(db).void_child_invoice(invoice_id, data.reason)


@router.get(
    "/{invoice_id}/master_summary",
    response_model=MasterSummaryResponse,
    summary="Get master invoice summary",
    responses={
        400: {"description": "Not a master invoice"},
        404: {"description": "Invoice not found"},
    },
)
async def get_master_summary(
    invoice_id: UUID,
    db: Session = Depends(get_db),
) -> MasterSummaryResponse:
    """Remaining quantities per item and invoiced totals across child invoices."""
    summary = InvoiceSplitService(db).master_summary(invoice_id)
    return MasterSummaryResponse.model_validate(summary)


@router.get(
    "/{invoice_id}/child_invoices",
    response_model=list[InvoiceResponse],
    summary="List child invoices",
    responses={
        400: {"description": "Not a master invoice"},
        404: {"description": "Invoice not found"},
    },
)
async def list_child_invoices(
    invoice_id: UUID,
    include_voided: bool = True,
    db: Session = Depends(get_db),
) -> list[Invoice]:
    """List the child invoices created from a master invoice."""
    repo = InvoiceRepository(db)
    master = repo.get_by_id(invoice_id)
    if not master:
        raise HTTPException(status_code=404, detail="Invoice not found")
    if not master.is_master:
        raise HTTPException(status_code=400, detail="Invoice is not a master invoice")
    return repo.get_children(invoice_id, include_voided=include_voided)


@router.post(
    "/{invoice_id}/child_invoices/preview",
    response_model=ChildInvoicePreviewResponse,
    summary="Preview child invoice",
    responses={
        400: {"description": "Invalid selection or over-allocation"},
        404: {"description": "Invoice not found"},
    },
)
async def preview_child_invoice(
    invoice_id: UUID,
    data: ChildInvoicePreviewRequest,
    db: Session = Depends(get_db),
) -> ChildInvoicePreviewResponse:
    """Compute the prorated amounts of a child invoice without creating it."""
    result = InvoiceSplitService(db).preview_child_invoice(invoice_id, data.items)
    return ChildInvoicePreviewResponse(
        master_invoice_id=invoice_id,
        subtotal=result.subtotal,
        discount=result.discount,
        cgst=result.cgst,
        sgst=result.sgst,
        igst=result.igst,
        shipping_charges=result.shipping_charges,
        total=result.total,
        tax_rates=TaxRatesResponse(
            cgst=result.tax_rates.cgst,
            sgst=result.tax_rates.sgst,
            igst=result.tax_rates.igst,
        ),
        lines=[
            ProratedLineResponse(
                item_id=line.item_id,
                quantity=line.quantity,
                unit_price=line.unit_price,
                subtotal=line.subtotal,
                discount=line.discount,
                cgst=line.cgst,
                sgst=line.sgst,
                igst=line.igst,
                shipping_charges=line.shipping_charges,
                total=line.total,
            )
            for line in result.lines
        ],
    )


@router.post(
    "/{invoice_id}/child_invoices",
    response_model=InvoiceDetailResponse,
    status_code=201,
    summary="Create child invoice",
    responses={
        400: {"description": "Invalid selection, over-allocation, or master not confirmed"},
        404: {"description": "Invoice not found"},
        409: {"description": "Concurrent modification, retry the request"},
        502: {"description": "Numbering service failure"},
    },
)
async def create_child_invoice(
    invoice_id: UUID,
    data: ChildInvoiceCreate,
    request: Request,
    db: Session = Depends(get_db),
) -> InvoiceDetailResponse | JSONResponse:
    """Create a partial invoice from the remaining quantities of a master invoice."""
    idempotency = check_idempotency(request, db, payload=data.model_dump(mode="json"))
    if isinstance(idempotency, JSONResponse):
        return idempotency

    child = InvoiceSplitService(db).create_child_invoice(invoice_id, data)
    response = _detail(child, db)

    if isinstance(idempotency, IdempotencyResult):
        body = response.model_dump(mode="json")
        record_idempotency_response(db, idempotency.key, 201, body)

    return response


@router.get(
    "/{invoice_id}/payments",
    response_model=list[PaymentResponse],
    summary="List invoice payments",
    responses={404: {"description": "Invoice not found"}},
)
async def list_invoice_payments(
    invoice_id: UUID,
    db: Session = Depends(get_db),
) -> list[Payment]:
    """Payment history of an invoice in the order payments were recorded."""
    return PaymentLedger(db).list_payments(invoice_id)
