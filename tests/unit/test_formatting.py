"""
Tests para el formateo de monedas y fechas.
"""
from datetime import date, datetime, timezone
from decimal import Decimal

from festival_portal.services.formatting import format_currency, format_date, format_number, NBSP


class TestFormatCurrency:
    """Montos enteros con agrupación según locale."""

    def test_norwegian_kroner(self):
        assert format_currency(Decimal("1234567.6"), "NOK", "nb") == f"1{NBSP}234{NBSP}568{NBSP}kr"

    def test_english_dollars(self):
        assert format_currency(1234.4, "USD", "en") == "$1,234"

    def test_negative_amount(self):
        assert format_currency(-2500, "NOK", "nb") == f"-2{NBSP}500{NBSP}kr"

    def test_small_amount_has_no_separator(self):
        assert format_currency(999, "NOK", "nb-NO") == f"999{NBSP}kr"

    def test_unknown_currency_uses_code(self):
        assert format_currency(10, "ISK", "nb") == f"10{NBSP}ISK"

    def test_none_is_zero(self):
        assert format_currency(None, "NOK", "nb") == f"0{NBSP}kr"


class TestFormatNumber:

    def test_two_decimals(self):
        assert format_number(Decimal("12.345")) == "12.35"
        assert format_number(7) == "7.00"

    def test_none_is_empty(self):
        assert format_number(None) == ""


class TestFormatDate:

    def test_norwegian_date(self):
        assert format_date(date(2026, 7, 10), "nb") == "10.07.2026"

    def test_datetime_and_iso_string(self):
        assert format_date(datetime(2026, 7, 11, 18, tzinfo=timezone.utc), "nb") == "11.07.2026"
        assert format_date("2026-07-12T10:00:00Z", "nb") == "12.07.2026"

    def test_empty(self):
        assert format_date(None) == ""
