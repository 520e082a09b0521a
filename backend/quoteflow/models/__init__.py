from quoteflow.models.audit_log import AuditLog
from quoteflow.models.document_counter import DocumentCounter
from quoteflow.models.idempotency_record import IdempotencyRecord
from quoteflow.models.invoice import Invoice, InvoiceStatus, MasterInvoiceStatus
from quoteflow.models.invoice_item import InvoiceItem
from quoteflow.models.payment import Payment, PaymentMethod
from quoteflow.models.webhook import Webhook, WebhookStatus
from quoteflow.models.webhook_endpoint import WebhookEndpoint

__all__ = [
    "AuditLog",
    "DocumentCounter",
    "IdempotencyRecord",
    "Invoice",
    "InvoiceItem",
    "InvoiceStatus",
    "MasterInvoiceStatus",
    "Payment",
    "PaymentMethod",
    "Webhook",
    "WebhookEndpoint",
    "WebhookStatus",
]
