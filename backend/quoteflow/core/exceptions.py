"""Typed errors raised by the invoicing core.

Every error carries a machine-readable ``code``, the HTTP status the API layer
answers with, and the structured fields a caller needs to correct its input.
All of them subclass ``ValueError`` so callers that only care about "bad
request" can keep catching that.
"""

from decimal import Decimal
from typing import Any
from uuid import UUID


class InvoicingError(ValueError):
    """Base class for all invoicing core errors."""

    code: str = "invoicing_error"
    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def details(self) -> dict[str, Any]:
        """Structured fields included in the API error body."""
        return {}

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code, **self.details()}


class InvoiceNotFoundError(InvoicingError):
    code = "invoice_not_found"
    status_code = 404

    def __init__(self, invoice_id: UUID, resource: str = "Invoice"):
        self.invoice_id = invoice_id
        super().__init__(f"{resource} {invoice_id} not found")


class NotAMasterInvoiceError(InvoicingError):
    code = "not_a_master_invoice"

    def __init__(self, invoice_id: UUID):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice {invoice_id} is not a master invoice")


class NotAChildInvoiceError(InvoicingError):
    code = "not_a_child_invoice"

    def __init__(self, invoice_id: UUID):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice {invoice_id} is not a child invoice")


class MasterInvoiceNotConfirmedError(InvoicingError):
    code = "master_invoice_not_confirmed"

    def __init__(self, invoice_id: UUID):
        self.invoice_id = invoice_id
        super().__init__("Master invoice must be confirmed before creating child invoices")


class InvalidStatusTransitionError(InvoicingError):
    code = "invalid_status_transition"

    def __init__(self, current: str | None, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot transition from {current} to {requested}")

    def details(self) -> dict[str, Any]:
        return {"current": self.current, "requested": self.requested}


class InvoiceVoidedError(InvoicingError):
    code = "invoice_voided"

    def __init__(self, invoice_id: UUID):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice {invoice_id} is voided")


class InvalidSelectionError(InvoicingError):
    code = "invalid_selection"

    def __init__(self, message: str, item_id: UUID | None = None):
        self.item_id = item_id
        super().__init__(message)

    def details(self) -> dict[str, Any]:
        return {"item_id": str(self.item_id) if self.item_id else None}


class EmptySelectionError(InvoicingError):
    code = "empty_selection"

    def __init__(self) -> None:
        super().__init__("Select at least one item with a quantity greater than zero")


class OverAllocationError(InvoicingError):
    code = "over_allocation"

    def __init__(self, item_id: UUID, description: str, requested: int, max_allowed: int):
        self.item_id = item_id
        self.description = description
        self.requested = requested
        self.max_allowed = max_allowed
        super().__init__(
            f'Item "{description}" quantity ({requested}) exceeds remaining quantity '
            f"({max_allowed})"
        )

    def details(self) -> dict[str, Any]:
        return {
            "item_id": str(self.item_id),
            "requested": self.requested,
            "max_allowed": self.max_allowed,
        }


class InvalidReleaseError(InvoicingError):
    code = "invalid_release"

    def __init__(self, item_id: UUID, requested: int, fulfilled: int):
        self.item_id = item_id
        self.requested = requested
        self.fulfilled = fulfilled
        super().__init__(
            f"Cannot release {requested} units of item {item_id}: only {fulfilled} fulfilled"
        )

    def details(self) -> dict[str, Any]:
        return {"item_id": str(self.item_id), "requested": self.requested, "fulfilled": self.fulfilled}


class InvalidPaymentAmountError(InvoicingError):
    code = "invalid_payment_amount"

    def __init__(self, amount: Decimal):
        self.amount = amount
        super().__init__(
            f"Payment amount {amount} must be greater than zero with at most 2 decimal places"
        )


class OverpaymentError(InvoicingError):
    code = "overpayment"

    def __init__(self, invoice_id: UUID, amount: Decimal, max_allowed: Decimal):
        self.invoice_id = invoice_id
        self.amount = amount
        self.max_allowed = max_allowed
        super().__init__(
            f"Payment amount {amount} exceeds remaining balance {max_allowed}"
        )

    def details(self) -> dict[str, Any]:
        return {"max_allowed": str(self.max_allowed)}


class InvoiceHasPaymentsError(InvoicingError):
    code = "invoice_has_payments"

    def __init__(self, invoice_id: UUID):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice {invoice_id} has recorded payments and cannot be voided")


class InvoiceNotEditableError(InvoicingError):
    code = "invoice_not_editable"

    def __init__(self, invoice_id: UUID, message: str, field: str | None = None):
        self.invoice_id = invoice_id
        self.field = field
        super().__init__(message)

    def details(self) -> dict[str, Any]:
        return {"field": self.field}


class VoidReasonRequiredError(InvoicingError):
    code = "void_reason_required"

    def __init__(self, invoice_id: UUID):
        self.invoice_id = invoice_id
        super().__init__("A reason is required to void an invoice")


class NumberingServiceError(InvoicingError):
    code = "numbering_failed"
    status_code = 502


class PersistenceError(InvoicingError):
    code = "persistence_failed"
    status_code = 500


class ConcurrentModificationError(InvoicingError):
    code = "concurrent_modification"
    status_code = 409


class LedgerConsistencyError(InvoicingError):
    """Rollback after a failed unit of work did not succeed; needs an operator."""

    code = "ledger_inconsistent"
    status_code = 500


class IdempotencyKeyReusedError(InvoicingError):
    code = "idempotency_key_reused"
    status_code = 422

    def __init__(self, key: str):
        self.key = key
        super().__init__(
            f"Idempotency-Key {key} was already used for a different request"
        )
