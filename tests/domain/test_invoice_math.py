"""Tests for invoice pricing (jobflow_kernel/domain/invoice_math.py)."""

from decimal import Decimal

import pytest

from jobflow_kernel.domain.invoice_math import (
    build_invoice_lines,
    calculate_invoice_totals,
    round_money,
    to_decimal,
)


class TestBuildInvoiceLines:

    def test_only_selected_items_are_billed(self):
        lines = build_invoice_lines(
            [
                {"description": "Tree removal", "price": 500, "selected": True},
                {"description": "Pruning", "price": 300, "selected": True},
                {"description": "Cabling", "price": 250, "selected": False},
                {"description": "Hedge trim", "price": 90},
            ]
        )
        assert [line.description for line in lines] == ["Tree removal", "Pruning"]
        assert [line.amount for line in lines] == [Decimal("500.00"), Decimal("300.00")]

    def test_quantity_times_unit_price_without_price(self):
        (line,) = build_invoice_lines(
            [{"description": "Limb haul", "quantity": 3, "unit_price": "45.50", "selected": True}]
        )
        assert line.quantity == Decimal("3")
        assert line.unit_price == Decimal("45.50")
        assert line.amount == Decimal("136.50")

    def test_stump_grinding_and_add_ons(self):
        lines = build_invoice_lines(
            [],
            stump_grinding_price="150",
            add_ons=[
                {"name": "Wood chips delivered", "price": 40},
                {"name": "Free estimate", "price": 0},
            ],
        )
        assert [(line.description, line.amount) for line in lines] == [
            ("Stump grinding", Decimal("150.00")),
            ("Wood chips delivered", Decimal("40.00")),
        ]

    def test_missing_description_uses_default(self):
        (line,) = build_invoice_lines(
            [{"price": 10, "selected": True}], default_description="Tree Service"
        )
        assert line.description == "Tree Service"

    def test_none_inputs(self):
        assert build_invoice_lines(None, None, None) == []

    def test_line_to_dict_is_json_ready(self):
        (line,) = build_invoice_lines([{"description": "A", "price": 5, "selected": True}])
        assert line.to_dict() == {
            "description": "A",
            "quantity": "1",
            "unit_price": "5.00",
            "amount": "5.00",
        }


class TestCalculateInvoiceTotals:

    def test_plain_sum(self):
        totals = calculate_invoice_totals([500, 300])
        assert totals.subtotal == Decimal("800.00")
        assert totals.discount_amount == Decimal("0.00")
        assert totals.tax_amount == Decimal("0.00")
        assert totals.grand_total == Decimal("800.00")

    def test_percentage_discount_wins_over_amount(self):
        totals = calculate_invoice_totals([200], discount_amount=50, discount_percentage=10)
        assert totals.discount_amount == Decimal("20.00")
        assert totals.total_amount == Decimal("180.00")

    def test_flat_discount_then_tax(self):
        totals = calculate_invoice_totals([1000], discount_amount="100", tax_rate="8.25")
        assert totals.total_amount == Decimal("900.00")
        assert totals.tax_amount == Decimal("74.25")
        assert totals.grand_total == Decimal("974.25")

    def test_half_up_rounding(self):
        totals = calculate_invoice_totals([Decimal("10.00")], tax_rate=Decimal("0.05"))
        # 10.00 * 0.05% = 0.005 -> 0.01
        assert totals.tax_amount == Decimal("0.01")
        assert totals.grand_total == Decimal("10.01")


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, Decimal("0")),
        ("", Decimal("0")),
        ("abc", Decimal("0")),
        ("12.5", Decimal("12.5")),
        (0.1, Decimal("0.1")),
        (7, Decimal("7")),
    ],
)
def test_to_decimal(raw, expected):
    assert to_decimal(raw) == expected


def test_round_money():
    assert round_money(Decimal("2.345")) == Decimal("2.35")
    assert round_money(Decimal("2.344")) == Decimal("2.34")
