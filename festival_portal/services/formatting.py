"""
Presentation formatting for exports.

Rounding happens here and only here.
"""
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from festival_portal.services.ledger_aggregator import to_decimal

NBSP = "\u00a0"

# locale -> (group separator, currency after amount)
LOCALE_CONVENTIONS = {
    "nb": (NBSP, True),
    "nn": (NBSP, True),
    "no": (NBSP, True),
    "sv": (NBSP, True),
    "da": (".", True),
    "de": (".", True),
    "en": (",", False),
}

CURRENCY_SYMBOLS = {
    "NOK": "kr",
    "SEK": "kr",
    "DKK": "kr.",
    "EUR": "€",
    "USD": "$",
    "GBP": "£",
}

# locale -> strftime pattern
DATE_PATTERNS = {
    "nb": "%d.%m.%Y",
    "nn": "%d.%m.%Y",
    "no": "%d.%m.%Y",
    "de": "%d.%m.%Y",
    "da": "%d.%m.%Y",
    "sv": "%Y-%m-%d",
    "en": "%d/%m/%Y",
}


def format_number(value) -> str:
    """Two decimals for CSV cells; None renders as an empty cell"""
    if value is None:
        return ""
    return str(to_decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _group(digits: str, separator: str) -> str:
    parts = []
    while len(digits) > 3:
        parts.insert(0, digits[-3:])
        digits = digits[:-3]
    parts.insert(0, digits)
    return separator.join(parts)


def _language(locale: Optional[str]) -> str:
    return (locale or "nb").replace("_", "-").split("-")[0].lower()


def format_currency(amount, currency: str = "NOK", locale: Optional[str] = "nb") -> str:
    """
    Whole currency units with locale grouping.

        format_currency(1234567.6, "NOK", "nb") -> "1 234 568 kr"
        format_currency(1234.4, "USD", "en")    -> "$1,234"
    """
    separator, symbol_after = LOCALE_CONVENTIONS.get(_language(locale), LOCALE_CONVENTIONS["en"])
    whole = to_decimal(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    sign = "-" if whole < 0 else ""
    grouped = _group(str(abs(whole)), separator)
    symbol = CURRENCY_SYMBOLS.get((currency or "").upper(), (currency or "").upper())

    if symbol_after:
        return f"{sign}{grouped}{NBSP}{symbol}"
    return f"{sign}{symbol}{grouped}"


def format_date(value: Union[date, datetime, str, None], locale: Optional[str] = "nb") -> str:
    if value is None or value == "":
        return ""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    pattern = DATE_PATTERNS.get(_language(locale), DATE_PATTERNS["en"])
    return value.strftime(pattern)
