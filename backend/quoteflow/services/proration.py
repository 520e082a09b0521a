"""Proration of master invoice amounts onto a selected subset of quantities.

Discount is split in proportion to value, shipping in proportion to unit
count, and taxes are re-applied at the effective rates derived from the
master's stored tax amounts. All arithmetic runs on ``Decimal`` at full
precision; values are rounded to two places only when a stored field is
produced (see ``ProrationResult.rounded``).
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID

from quoteflow.core.exceptions import InvalidSelectionError
from quoteflow.models.invoice import Invoice
from quoteflow.models.invoice_item import InvoiceItem

ZERO = Decimal("0")
HUNDRED = Decimal("100")
MONEY_QUANTUM = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """Convert a column value (Decimal, int, float or str) to Decimal."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_money(value: Decimal) -> Decimal:
    """Round a monetary amount to 2 decimal places, half up."""
    return value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class MasterLine:
    item_id: UUID
    total_quantity: int
    unit_price: Decimal


@dataclass(frozen=True)
class TaxRates:
    """Effective tax rates in percent."""

    cgst: Decimal = ZERO
    sgst: Decimal = ZERO
    igst: Decimal = ZERO


@dataclass(frozen=True)
class ProratedLine:
    item_id: UUID
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    discount: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    shipping_charges: Decimal

    @property
    def total(self) -> Decimal:
        return self.subtotal - self.discount + self.cgst + self.sgst + self.igst + self.shipping_charges

    def rounded(self) -> "ProratedLine":
        return ProratedLine(
            item_id=self.item_id,
            quantity=self.quantity,
            unit_price=self.unit_price,
            subtotal=quantize_money(self.subtotal),
            discount=quantize_money(self.discount),
            cgst=quantize_money(self.cgst),
            sgst=quantize_money(self.sgst),
            igst=quantize_money(self.igst),
            shipping_charges=quantize_money(self.shipping_charges),
        )


@dataclass(frozen=True)
class ProrationResult:
    subtotal: Decimal
    discount: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    shipping_charges: Decimal
    total: Decimal
    tax_rates: TaxRates
    lines: list[ProratedLine] = field(default_factory=list)

    @property
    def after_discount(self) -> Decimal:
        return self.subtotal - self.discount

    def rounded(self) -> "ProrationResult":
        """Stored view: every field rounded independently from its exact value.

        ``total`` is rounded from the unrounded sum, so it may differ by a cent
        from the sum of the rounded components.
        """
        return ProrationResult(
            subtotal=quantize_money(self.subtotal),
            discount=quantize_money(self.discount),
            cgst=quantize_money(self.cgst),
            sgst=quantize_money(self.sgst),
            igst=quantize_money(self.igst),
            shipping_charges=quantize_money(self.shipping_charges),
            total=quantize_money(self.total),
            tax_rates=self.tax_rates,
            lines=[line.rounded() for line in self.lines],
        )


class ProrationCalculator:
    """Computes child invoice amounts from a master invoice's stored amounts."""

    def __init__(
        self,
        lines: Iterable[MasterLine],
        discount: Decimal = ZERO,
        cgst: Decimal = ZERO,
        sgst: Decimal = ZERO,
        igst: Decimal = ZERO,
        shipping_charges: Decimal = ZERO,
    ):
        self.lines = {line.item_id: line for line in lines}
        self.discount = discount
        self.cgst = cgst
        self.sgst = sgst
        self.igst = igst
        self.shipping_charges = shipping_charges

    @classmethod
    def from_invoice(cls, invoice: Invoice, items: Iterable[InvoiceItem]) -> "ProrationCalculator":
        return cls(
            lines=[
                MasterLine(
                    item_id=item.id,  # type: ignore[arg-type]
                    total_quantity=int(item.total_quantity),
                    unit_price=to_decimal(item.unit_price),
                )
                for item in items
            ],
            discount=to_decimal(invoice.discount),
            cgst=to_decimal(invoice.cgst),
            sgst=to_decimal(invoice.sgst),
            igst=to_decimal(invoice.igst),
            shipping_charges=to_decimal(invoice.shipping_charges),
        )

    @property
    def master_subtotal(self) -> Decimal:
        """Value of every master line at full quantity; the discount base."""
        return sum(
            (line.unit_price * line.total_quantity for line in self.lines.values()),
            ZERO,
        )

    @property
    def master_quantity(self) -> int:
        """Unit count of every master line; the shipping base."""
        return sum(line.total_quantity for line in self.lines.values())

    @property
    def master_after_discount(self) -> Decimal:
        return self.master_subtotal - self.discount

    def tax_rates(self) -> TaxRates:
        """Back-derive the effective rates the master paid on its discounted base."""
        base = self.master_after_discount
        if self.master_subtotal <= 0 or base <= 0:
            return TaxRates()
        return TaxRates(
            cgst=self.cgst / base * HUNDRED,
            sgst=self.sgst / base * HUNDRED,
            igst=self.igst / base * HUNDRED,
        )

    def calculate(self, selection: Mapping[UUID, int]) -> ProrationResult:
        """Prorate the master amounts onto ``selection`` (item id -> quantity).

        Quantities are expected to be validated against the ledger already;
        zero quantities produce no line.
        """
        master_subtotal = self.master_subtotal
        master_quantity = self.master_quantity
        rates = self.tax_rates()
        apply_discount = master_subtotal > 0 and self.discount > 0

        lines: list[ProratedLine] = []
        for item_id, quantity in selection.items():
            master_line = self.lines.get(item_id)
            if master_line is None:
                raise InvalidSelectionError(
                    f"Item {item_id} does not belong to this invoice", item_id=item_id
                )
            if quantity < 0:
                raise InvalidSelectionError(
                    f"Quantity for item {item_id} cannot be negative", item_id=item_id
                )
            if quantity == 0:
                continue

            subtotal = master_line.unit_price * quantity
            discount = subtotal / master_subtotal * self.discount if apply_discount else ZERO
            after_discount = subtotal - discount
            shipping = (
                self.shipping_charges * quantity / master_quantity if master_quantity > 0 else ZERO
            )
            lines.append(
                ProratedLine(
                    item_id=item_id,
                    quantity=quantity,
                    unit_price=master_line.unit_price,
                    subtotal=subtotal,
                    discount=discount,
                    cgst=after_discount * rates.cgst / HUNDRED,
                    sgst=after_discount * rates.sgst / HUNDRED,
                    igst=after_discount * rates.igst / HUNDRED,
                    shipping_charges=shipping,
                )
            )

        subtotal = sum((line.subtotal for line in lines), ZERO)
        selected_quantity = sum(line.quantity for line in lines)
        discount = subtotal / master_subtotal * self.discount if apply_discount else ZERO
        after_discount = subtotal - discount
        cgst = after_discount * rates.cgst / HUNDRED
        sgst = after_discount * rates.sgst / HUNDRED
        igst = after_discount * rates.igst / HUNDRED
        shipping = (
            self.shipping_charges * selected_quantity / master_quantity
            if master_quantity > 0
            else ZERO
        )

        return ProrationResult(
            subtotal=subtotal,
            discount=discount,
            cgst=cgst,
            sgst=sgst,
            igst=igst,
            shipping_charges=shipping,
            total=after_discount + cgst + sgst + igst + shipping,
            tax_rates=rates,
            lines=lines,
        )
