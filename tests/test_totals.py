"""Totals, coercion of typed-in amounts and money formatting."""

from decimal import Decimal

import pytest

from autoshop.models.invoice import Invoice, LineItem
from autoshop.services.totals import (
    coerce_price,
    coerce_quantity,
    compute_totals,
    format_money,
    round_money,
)

D = Decimal


class TestComputeTotals:
    """compute_totals(items, rate) -> subtotal, tax, total."""

    def test_total_is_subtotal_plus_tax(self):
        items = [{"quantity": 3, "unit_price": "12.10"}, {"quantity": 1, "unit_price": "7.35"}]
        t = compute_totals(items, D("8.5"))
        assert t.subtotal == D("43.65")
        assert t.total == t.subtotal + t.tax_amount

    def test_zero_rate_means_no_tax(self):
        t = compute_totals([{"quantity": 2, "unit_price": "10"}], 0)
        assert t.tax_amount == 0
        assert t.total == t.subtotal == D("20")

    def test_no_items(self):
        t = compute_totals([], D("8.5"))
        assert t == (D("0"), D("0"), D("0"))

    def test_is_idempotent(self):
        items = [LineItem(name="Pads", quantity=2, unit_price=D("89.99"))]
        assert compute_totals(items, D("8.5")) == compute_totals(items, D("8.5"))

    def test_bad_inputs_count_as_zero(self):
        items = [
            {"quantity": -4, "unit_price": "10"},
            {"quantity": "abc", "unit_price": "10"},
            {"quantity": 1, "unit_price": "-5"},
            {"quantity": 2, "unit_price": "$1.50"},
        ]
        assert compute_totals(items, 10).subtotal == D("3.00")

    def test_accepts_models_and_dicts(self):
        items = [LineItem(name="Filter", quantity=1, unit_price=D("24.99")), {"quantity": 1, "unit_price": "49.99"}]
        assert compute_totals(items, 0).subtotal == D("74.98")

    def test_no_rounding_before_display(self):
        t = compute_totals([{"quantity": 1, "unit_price": "74.98"}], D("8.5"))
        assert t.tax_amount == D("6.3733")
        assert t.total == D("81.3533")


class TestDocumentTotals:
    """Derived fields on documents follow the items and rate."""

    def test_totals_follow_item_changes(self):
        inv = Invoice(customer_id="1", vehicle_id="1", items=[LineItem(name="Oil", unit_price=D("49.99"))])
        assert inv.subtotal == D("49.99")
        inv.items[0].quantity = 2
        assert inv.subtotal == D("99.98")
        inv.tax_rate = D("0")
        assert inv.total == D("99.98")

    def test_line_total(self):
        assert LineItem(name="Pads", quantity=2, unit_price=D("89.99")).line_total == D("179.98")

    def test_dump_contains_totals(self):
        inv = Invoice(customer_id="1", vehicle_id="1", items=[LineItem(name="Oil", unit_price=D("10"))], tax_rate=D("10"))
        data = inv.model_dump()
        assert data["subtotal"] == D("10")
        assert data["tax_amount"] == D("1")
        assert data["total"] == D("11")


class TestCoercion:
    @pytest.mark.parametrize("raw, expected", [
        ("$49.99", D("49.99")),
        ("49,99", D("49.99")),
        (49.99, D("49.99")),
        ("", D("0")),
        (None, D("0")),
        ("-3", D("0")),
        ("n/a", D("0")),
    ])
    def test_coerce_price(self, raw, expected):
        assert coerce_price(raw) == expected

    @pytest.mark.parametrize("raw, expected", [(3, 3), ("2", 2), ("2.7", 2), (-1, 0), ("x", 0), (True, 0)])
    def test_coerce_quantity(self, raw, expected):
        assert coerce_quantity(raw) == expected


class TestFormatting:
    def test_round_half_up(self):
        assert round_money(D("238.6783")) == D("238.68")
        assert round_money(D("0.005")) == D("0.01")

    def test_format_money(self):
        assert format_money(D("81.3533")) == "$81.35"
        assert format_money(D("1234.5"), "£") == "£1,234.50"

    def test_format_garbage(self):
        assert format_money("oops") == "$0.00"
