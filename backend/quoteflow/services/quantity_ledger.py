"""Quantity ledger over master invoice items.

Tracks how many units of each master line have been drawn into child
invoices. ``fulfilled_quantity`` only moves through ``reserve`` and
``release``, and always stays within ``0..total_quantity``.
"""

import logging
from collections.abc import Iterable, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from quoteflow.core.exceptions import (
    EmptySelectionError,
    InvalidReleaseError,
    InvalidSelectionError,
    OverAllocationError,
)
from quoteflow.models.invoice_item import InvoiceItem
from quoteflow.repositories.invoice_item_repository import InvoiceItemRepository

logger = logging.getLogger(__name__)


class QuantityLedger:
    def __init__(self, db: Session):
        self.db = db
        self.item_repo = InvoiceItemRepository(db)

    @staticmethod
    def remaining(item: InvoiceItem) -> int:
        return int(item.total_quantity) - int(item.fulfilled_quantity)

    def lock_items(self, invoice_id: UUID) -> list[InvoiceItem]:
        """Load a master's items with a row lock for the current transaction."""
        return self.item_repo.get_by_invoice_id(invoice_id, for_update=True)

    def check_selection(
        self,
        items: Sequence[InvoiceItem],
        selection: Iterable[tuple[UUID, int]],
    ) -> dict[UUID, int]:
        """Validate a selection against the items' remaining quantities.

        Returns the selected quantities keyed by item id, zero entries
        dropped, in the master's item order. Nothing is mutated.
        """
        items_by_id = {item.id: item for item in items}
        requested: dict[UUID, int] = {}

        for item_id, quantity in selection:
            if item_id not in items_by_id:
                raise InvalidSelectionError(
                    f"Item {item_id} does not belong to this invoice", item_id=item_id
                )
            if item_id in requested:
                raise InvalidSelectionError(
                    f"Item {item_id} is selected more than once", item_id=item_id
                )
            if quantity < 0:
                raise InvalidSelectionError(
                    f"Quantity for item {item_id} cannot be negative", item_id=item_id
                )
            requested[item_id] = quantity

        if not any(quantity > 0 for quantity in requested.values()):
            raise EmptySelectionError()

        for item_id, quantity in requested.items():
            item = items_by_id[item_id]
            max_allowed = self.remaining(item)
            if quantity > max_allowed:
                logger.warning(
                    "Rejected selection of %d units of item %s, %d remaining",
                    quantity,
                    item_id,
                    max_allowed,
                )
                raise OverAllocationError(
                    item_id=item_id,
                    description=str(item.description),
                    requested=quantity,
                    max_allowed=max_allowed,
                )

        selected: dict[UUID, int] = {}
        for item in items:
            quantity = requested.get(item.id, 0)  # type: ignore[call-overload]
            if quantity > 0:
                selected[item.id] = quantity  # type: ignore[index]
        return selected

    def reserve(self, item: InvoiceItem, quantity: int) -> InvoiceItem:
        if quantity < 0:
            raise InvalidSelectionError(
                f"Quantity for item {item.id} cannot be negative", item_id=item.id  # type: ignore[arg-type]
            )
        max_allowed = self.remaining(item)
        if quantity > max_allowed:
            raise OverAllocationError(
                item_id=item.id,  # type: ignore[arg-type]
                description=str(item.description),
                requested=quantity,
                max_allowed=max_allowed,
            )
        item.fulfilled_quantity = int(item.fulfilled_quantity) + quantity  # type: ignore[assignment]
        self.db.flush()
        return item

    def release(self, item: InvoiceItem, quantity: int) -> InvoiceItem:
        fulfilled = int(item.fulfilled_quantity)
        if quantity < 0 or quantity > fulfilled:
            raise InvalidReleaseError(
                item_id=item.id,  # type: ignore[arg-type]
                requested=quantity,
                fulfilled=fulfilled,
            )
        item.fulfilled_quantity = fulfilled - quantity  # type: ignore[assignment]
        self.db.flush()
        return item
