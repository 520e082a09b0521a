from quoteflow.schemas.invoice import (
    ChildInvoiceCreate,
    ChildInvoiceMetadata,
    ChildInvoicePreviewRequest,
    ChildInvoicePreviewResponse,
    ChildItemSelection,
    InvoiceDetailResponse,
    InvoiceDetailsUpdate,
    InvoiceItemResponse,
    InvoiceResponse,
    MasterInvoiceCreate,
    MasterInvoiceItemCreate,
    MasterStatusUpdate,
    MasterSummaryItem,
    MasterSummaryResponse,
    VoidInvoiceRequest,
)
from quoteflow.schemas.payment import PaymentCreate, PaymentResponse
from quoteflow.schemas.webhook import (
    WebhookEndpointCreate,
    WebhookEndpointResponse,
    WebhookEndpointUpdate,
    WebhookResponse,
)

__all__ = [
    "ChildInvoiceCreate",
    "ChildInvoiceMetadata",
    "ChildInvoicePreviewRequest",
    "ChildInvoicePreviewResponse",
    "ChildItemSelection",
    "InvoiceDetailResponse",
    "InvoiceDetailsUpdate",
    "InvoiceItemResponse",
    "InvoiceResponse",
    "MasterInvoiceCreate",
    "MasterInvoiceItemCreate",
    "MasterStatusUpdate",
    "MasterSummaryItem",
    "MasterSummaryResponse",
    "PaymentCreate",
    "PaymentResponse",
    "VoidInvoiceRequest",
    "WebhookEndpointCreate",
    "WebhookEndpointResponse",
    "WebhookEndpointUpdate",
    "WebhookResponse",
]
