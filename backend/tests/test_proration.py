"""Tests for the proration calculator."""

from decimal import Decimal
from uuid import uuid4

import pytest

from quoteflow.core.exceptions import InvalidSelectionError
from quoteflow.services.proration import (
    MasterLine,
    ProrationCalculator,
    TaxRates,
    quantize_money,
    to_decimal,
)

ITEM_A = uuid4()
ITEM_B = uuid4()


@pytest.fixture
def calculator() -> ProrationCalculator:
    """Master: 2 x (10 @ 50), discount 100, cgst 81, sgst 81, shipping 50."""
    return ProrationCalculator(
        lines=[
            MasterLine(item_id=ITEM_A, total_quantity=10, unit_price=Decimal("50")),
            MasterLine(item_id=ITEM_B, total_quantity=10, unit_price=Decimal("50")),
        ],
        discount=Decimal("100"),
        cgst=Decimal("81"),
        sgst=Decimal("81"),
        shipping_charges=Decimal("50"),
    )


class TestHelpers:
    def test_quantize_money_rounds_half_up(self):
        assert quantize_money(Decimal("2.345")) == Decimal("2.35")
        assert quantize_money(Decimal("2.344")) == Decimal("2.34")
        assert quantize_money(Decimal("-0.005")) == Decimal("-0.01")

    def test_to_decimal(self):
        assert to_decimal(None) == Decimal("0")
        assert to_decimal(0.1) == Decimal("0.1")
        assert to_decimal("12.50") == Decimal("12.50")
        value = Decimal("3.14")
        assert to_decimal(value) is value


class TestMasterBases:
    def test_master_subtotal_and_quantity(self, calculator):
        assert calculator.master_subtotal == Decimal("1000")
        assert calculator.master_quantity == 20
        assert calculator.master_after_discount == Decimal("900")

    def test_tax_rates_derived_from_amounts(self, calculator):
        rates = calculator.tax_rates()
        assert rates.cgst == Decimal("9")
        assert rates.sgst == Decimal("9")
        assert rates.igst == Decimal("0")


class TestCalculate:
    def test_half_of_one_item(self, calculator):
        result = calculator.calculate({ITEM_A: 5}).rounded()

        assert result.subtotal == Decimal("250.00")
        assert result.discount == Decimal("25.00")
        assert result.after_discount == Decimal("225.00")
        assert result.cgst == Decimal("20.25")
        assert result.sgst == Decimal("20.25")
        assert result.igst == Decimal("0.00")
        assert result.shipping_charges == Decimal("12.50")
        assert result.total == Decimal("278.00")

    def test_lines_sum_to_aggregate(self, calculator):
        result = calculator.calculate({ITEM_A: 3, ITEM_B: 7})

        assert len(result.lines) == 2
        assert sum(line.subtotal for line in result.lines) == result.subtotal
        assert sum(line.discount for line in result.lines) == result.discount
        assert sum(line.shipping_charges for line in result.lines) == result.shipping_charges
        assert quantize_money(sum(line.total for line in result.lines)) == quantize_money(
            result.total
        )

    def test_zero_quantity_produces_no_line(self, calculator):
        result = calculator.calculate({ITEM_A: 4, ITEM_B: 0})

        assert [line.item_id for line in result.lines] == [ITEM_A]
        assert result.subtotal == Decimal("200")

    def test_full_selection_reproduces_master_amounts(self, calculator):
        result = calculator.calculate({ITEM_A: 10, ITEM_B: 10}).rounded()

        assert result.subtotal == Decimal("1000.00")
        assert result.discount == Decimal("100.00")
        assert result.cgst == Decimal("81.00")
        assert result.sgst == Decimal("81.00")
        assert result.shipping_charges == Decimal("50.00")
        assert result.total == Decimal("1112.00")

    def test_unknown_item_rejected(self, calculator):
        with pytest.raises(InvalidSelectionError):
            calculator.calculate({uuid4(): 1})

    def test_negative_quantity_rejected(self, calculator):
        with pytest.raises(InvalidSelectionError):
            calculator.calculate({ITEM_A: -1})

    def test_intermediate_values_keep_full_precision(self):
        item = uuid4()
        calculator = ProrationCalculator(
            lines=[MasterLine(item_id=item, total_quantity=3, unit_price=Decimal("10"))],
            discount=Decimal("10"),
            shipping_charges=Decimal("10"),
        )
        result = calculator.calculate({item: 1})

        assert result.discount == Decimal("10") / Decimal("3")
        assert result.shipping_charges == Decimal("10") / Decimal("3")
        rounded = result.rounded()
        assert rounded.discount == Decimal("3.33")
        assert rounded.shipping_charges == Decimal("3.33")
        assert rounded.total == quantize_money(result.total)


class TestRatePolicy:
    def test_taxes_follow_value_not_quantity(self):
        """Cheap units carry tax on their own discounted value, not a unit share."""
        expensive, cheap = uuid4(), uuid4()
        calculator = ProrationCalculator(
            lines=[
                MasterLine(item_id=expensive, total_quantity=10, unit_price=Decimal("100")),
                MasterLine(item_id=cheap, total_quantity=10, unit_price=Decimal("10")),
            ],
            discount=Decimal("110"),
            cgst=Decimal("89.10"),
            shipping_charges=Decimal("40"),
        )

        result = calculator.calculate({cheap: 10}).rounded()

        assert result.subtotal == Decimal("100.00")
        assert result.discount == Decimal("10.00")
        # 9% of 90; scaling the master's tax by unit count would give 44.55
        assert result.cgst == Decimal("8.10")
        # shipping follows unit count: half the units
        assert result.shipping_charges == Decimal("20.00")
        assert result.total == Decimal("118.10")

    def test_rates_from_rounded_master_amounts(self):
        item = uuid4()
        calculator = ProrationCalculator(
            lines=[MasterLine(item_id=item, total_quantity=7, unit_price=Decimal("13"))],
            cgst=Decimal("16.38"),
        )

        rates = calculator.tax_rates()

        assert rates.cgst == Decimal("16.38") / Decimal("91") * Decimal("100")
        result = calculator.calculate({item: 7}).rounded()
        assert result.cgst == Decimal("16.38")


class TestDegenerateMasters:
    def test_zero_priced_master(self):
        item = uuid4()
        calculator = ProrationCalculator(
            lines=[MasterLine(item_id=item, total_quantity=4, unit_price=Decimal("0"))],
            discount=Decimal("10"),
            cgst=Decimal("5"),
            sgst=Decimal("5"),
            igst=Decimal("5"),
            shipping_charges=Decimal("8"),
        )

        assert calculator.tax_rates() == TaxRates()
        result = calculator.calculate({item: 2}).rounded()

        assert result.subtotal == Decimal("0.00")
        assert result.discount == Decimal("0.00")
        assert result.cgst == Decimal("0.00")
        assert result.sgst == Decimal("0.00")
        assert result.igst == Decimal("0.00")
        assert result.shipping_charges == Decimal("4.00")
        assert result.total == Decimal("4.00")

    def test_fully_discounted_master_has_zero_rates(self):
        item = uuid4()
        calculator = ProrationCalculator(
            lines=[MasterLine(item_id=item, total_quantity=2, unit_price=Decimal("50"))],
            discount=Decimal("100"),
            cgst=Decimal("9"),
        )

        assert calculator.tax_rates() == TaxRates()
        result = calculator.calculate({item: 1}).rounded()
        assert result.discount == Decimal("50.00")
        assert result.cgst == Decimal("0.00")
        assert result.total == Decimal("0.00")

    def test_no_shipping_base(self):
        calculator = ProrationCalculator(lines=[], shipping_charges=Decimal("10"))

        result = calculator.calculate({})

        assert result.shipping_charges == Decimal("0")
        assert result.total == Decimal("0")
        assert result.lines == []
