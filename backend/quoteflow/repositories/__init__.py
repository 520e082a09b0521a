from quoteflow.repositories.audit_log_repository import AuditLogRepository
from quoteflow.repositories.document_counter_repository import DocumentCounterRepository
from quoteflow.repositories.idempotency_repository import IdempotencyRepository
from quoteflow.repositories.invoice_item_repository import InvoiceItemRepository
from quoteflow.repositories.invoice_repository import InvoiceRepository
from quoteflow.repositories.payment_repository import PaymentRepository
from quoteflow.repositories.webhook_endpoint_repository import WebhookEndpointRepository
from quoteflow.repositories.webhook_repository import WebhookRepository

__all__ = [
    "AuditLogRepository",
    "DocumentCounterRepository",
    "IdempotencyRepository",
    "InvoiceItemRepository",
    "InvoiceRepository",
    "PaymentRepository",
    "WebhookEndpointRepository",
    "WebhookRepository",
]
