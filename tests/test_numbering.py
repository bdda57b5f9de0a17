from datetime import datetime

from autoshop.services.numbering import next_estimate_number, next_invoice_number


class TestNumbering:
    """PREFIX-YYYYMM-NNNN, sequence = existing count + 1."""

    def test_invoice_number(self):
        assert next_invoice_number(0, datetime(2024, 7, 3)) == "INV-202407-0001"
        assert next_invoice_number(41, datetime(2024, 12, 31)) == "INV-202412-0042"

    def test_estimate_number(self):
        assert next_estimate_number(0, datetime(2024, 7, 1)) == "EST-202407-0001"

    def test_sequence_does_not_reset_monthly(self):
        assert next_invoice_number(9, datetime(2025, 1, 1)) == "INV-202501-0010"

    def test_custom_prefix(self):
        assert next_invoice_number(0, datetime(2024, 7, 1), prefix="FAC") == "FAC-202407-0001"

    def test_wide_sequence(self):
        assert next_invoice_number(12345, datetime(2024, 7, 1)) == "INV-202407-12346"


class TestAllocation:
    """Numbers handed out by the services stay unique within a session."""

    def test_next_after_demo_invoices(self, app):
        inv = app.invoices.create_invoice("2", "2", [{"name": "Labour", "unit_price": "40"}], now=datetime(2024, 7, 5))
        assert inv.number == "INV-202407-0004"

    def test_skips_number_freed_by_delete(self, app):
        now = datetime(2024, 7, 5)
        first = app.estimates.create_estimate("1", "1", [{"name": "A", "unit_price": "1"}], now=now)
        second = app.estimates.create_estimate("1", "1", [{"name": "B", "unit_price": "1"}], now=now)
        app.estimates.delete_estimate(first.id)
        third = app.estimates.create_estimate("1", "1", [{"name": "C", "unit_price": "1"}], now=now)
        assert second.number == "EST-202407-0002"
        assert third.number == "EST-202407-0003"
        assert len({e.number for e in app.store.estimates.list_all()}) == 2
