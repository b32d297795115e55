"""
CSV exports for accountants and board members.

Every export is built completely in memory and returned as one
ExportArtifact, or fails with ExportError without producing anything.

Cell escaping order matters: text that starts with a formula character is
prefixed with a single quote first, then the usual CSV quoting is applied.
Numeric cells are formatted with two decimals and are not formula-guarded,
so negative amounts stay numbers in the spreadsheet.
"""
import logging
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional, Sequence

from festival_portal.core.exceptions import ExportError
from festival_portal.models.ledger import TicketSale, Income, Expense, LedgerEntry, SaleCategory
from festival_portal.models.reports import ExportKind, ExportArtifact, DateWindow, AmountTotals
from festival_portal.services import ledger_aggregator as agg
from festival_portal.services.formatting import format_number

logger = logging.getLogger(__name__)

BOM = "\ufeff"
CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")
QUOTE_TRIGGERS = (",", '"', "\n")

CATEGORY_LABELS = {
    SaleCategory.TICKET: "Billett",
    SaleCategory.FB: "Mat/drikke",
}


def escape_csv(value) -> str:
    """Formula-guard, then quote if the cell contains a comma, quote or newline"""
    text = "" if value is None else str(value)
    if text.startswith(FORMULA_PREFIXES):
        text = f"'{text}"
    if any(trigger in text for trigger in QUOTE_TRIGGERS):
        return '"' + text.replace('"', '""') + '"'
    return text


def render_csv(header: Sequence[str], rows: Iterable[Sequence[str]]) -> bytes:
    """
    Join already-rendered cells into BOM-prefixed UTF-8.

    Cells in `rows` must be escaped (text) or formatted (numbers) by the caller.
    csv.writer is not used: the formula guard has to be applied before quoting,
    numeric cells must skip the guard, and the writer would quote the
    pre-escaped cells a second time. Lines end with a bare newline.
    """
    lines = [",".join(escape_csv(h) for h in header)]
    lines.extend(",".join(row) for row in rows)
    return (BOM + "\n".join(lines)).encode("utf-8")


def export_filename(
    kind: ExportKind,
    window: Optional[DateWindow] = None,
    today: Optional[date] = None,
    extension: str = "csv"
) -> str:
    """<report-kind>-<date-or-range>.<ext>"""
    today = today or datetime.now(timezone.utc).date()
    if window and (window.start or window.end):
        if window.start:
            period = f"{window.start.isoformat()}_{(window.end or today).isoformat()}"
        else:
            period = f"til-{window.end.isoformat()}"
    else:
        period = today.isoformat()
    return f"{kind.value}-{period}.{extension}"


@contextmanager
def export_guard(kind: ExportKind):
    """Turn any composition failure into ExportError so nothing partial escapes"""
    try:
        yield
    except ExportError:
        raise
    except Exception as e:
        logger.error(f"Failed to generate {kind.value} export: {e}", exc_info=True)
        raise ExportError(f"Could not generate {kind.value} export", {"kind": kind.value}) from e


def _rate_cell(rate, empty_when_missing: bool = True) -> str:
    if rate is None:
        return "" if empty_when_missing else "0%"
    return agg.vat_label(rate)


def _sale_vat(sale: TicketSale):
    """Per-unit VAT, derived when missing and derivable; None otherwise"""
    if sale.vat_amount is not None:
        return sale.vat_amount
    if sale.price_ex_vat is not None and sale.vat_rate is not None:
        return agg.sale_vat_amount(sale)
    return None


def _sale_inc_vat(sale: TicketSale):
    if sale.price_inc_vat is not None:
        return sale.price_inc_vat
    if sale.price_ex_vat is not None:
        return agg.sale_price_inc_vat(sale)
    return None


def _sold_date(sale: TicketSale) -> str:
    return agg.day_key(sale.sold_at) or ""


def _channel(sale: TicketSale) -> str:
    return sale.sale_channel.value if sale.sale_channel else ""


def _build(kind: ExportKind, header, rows, window=None, today=None) -> ExportArtifact:
    return ExportArtifact(
        filename=export_filename(kind, window, today),
        media_type=CSV_MEDIA_TYPE,
        content=render_csv(header, rows),
    )


# ============================================================================
# Sales export
# ============================================================================

SALES_HEADER = [
    "Dato",
    "Billettype",
    "Kategori",
    "Antall",
    "Pris eks. MVA",
    "MVA-sats",
    "MVA-beløp",
    "Pris inkl. MVA",
    "Salgskanal",
]


def export_sales_csv(
    sales: Sequence[TicketSale],
    kind: ExportKind = ExportKind.SALES,
    today: Optional[date] = None
) -> ExportArtifact:
    """One row per sale line with per-unit prices"""
    with export_guard(kind):
        rows = [
            [
                _sold_date(s),
                escape_csv(s.ticket_type),
                CATEGORY_LABELS.get(s.category, CATEGORY_LABELS[SaleCategory.TICKET]),
                str(s.quantity),
                format_number(s.price_ex_vat),
                _rate_cell(s.vat_rate),
                format_number(_sale_vat(s)),
                format_number(_sale_inc_vat(s)),
                _channel(s),
            ]
            for s in sales
        ]
        return _build(kind, SALES_HEADER, rows, today=today)


# ============================================================================
# Economy export
# ============================================================================

ECONOMY_HEADER = [
    "Type",
    "Kategori",
    "Skildring",
    "Beløp eks. MVA",
    "MVA-sats",
    "MVA-beløp",
    "Beløp inkl. MVA",
    "Kjelde/Leverandør",
    "Budsjett/Faktisk",
    "Dato",
]


def _economy_row(type_label: str, entry: LedgerEntry, counterpart: Optional[str]) -> List[str]:
    amounts = agg.entry_amounts(entry)
    return [
        type_label,
        escape_csv(entry.category),
        escape_csv(entry.description or ""),
        format_number(amounts.ex_vat),
        agg.vat_label(entry.vat_rate) if agg.to_decimal(entry.vat_rate) else "",
        format_number(amounts.vat_amount),
        format_number(amounts.inc_vat),
        escape_csv(counterpart or ""),
        "Budsjett" if entry.is_budget else "Faktisk",
        entry.date.isoformat() if entry.date else "",
    ]


def export_economy_csv(
    income: Sequence[Income],
    expenses: Sequence[Expense],
    today: Optional[date] = None
) -> ExportArtifact:
    """All income then all expenses, budget and actual alike"""
    kind = ExportKind.ECONOMY
    with export_guard(kind):
        rows = [_economy_row("Inntekt", i, i.source) for i in income]
        rows.extend(_economy_row("Kostnad", e, e.supplier) for e in expenses)
        return _build(kind, ECONOMY_HEADER, rows, today=today)


# ============================================================================
# Accounting exports
# ============================================================================

ACCOUNTING_TICKETS_HEADER = [
    "Dato",
    "Billettype",
    "Antall",
    "Enh.pris eks. MVA",
    "Sum eks. MVA",
    "MVA-sats",
    "MVA-beløp",
    "Sum inkl. MVA",
    "Salgskanal",
]


def export_accounting_tickets_csv(
    sales: Sequence[TicketSale],
    window: Optional[DateWindow] = None,
    today: Optional[date] = None
) -> ExportArtifact:
    """Sale lines by date with line totals, followed by a TOTALT row"""
    kind = ExportKind.ACCOUNTING_TICKETS
    with export_guard(kind):
        ordered = sorted(sales, key=lambda s: _sold_date(s))
        rows = []
        for s in ordered:
            line = agg.sale_line_amounts(s)
            rows.append([
                _sold_date(s),
                escape_csv(s.ticket_type),
                str(s.quantity),
                format_number(agg.to_decimal(s.price_ex_vat)),
                format_number(line.ex_vat),
                _rate_cell(s.vat_rate, empty_when_missing=False),
                format_number(line.vat_amount),
                format_number(line.inc_vat),
                _channel(s),
            ])

        totals = agg.sum_amounts(ordered)
        rows.append([])
        rows.append([
            "TOTALT",
            "",
            str(sum(s.quantity for s in ordered)),
            "",
            format_number(totals.ex_vat),
            "",
            format_number(totals.vat_amount),
            format_number(totals.inc_vat),
            "",
        ])
        return _build(kind, ACCOUNTING_TICKETS_HEADER, rows, window, today)


VAT_HEADER = ["Kilde", "MVA-sats", "Grunnlag eks. MVA", "MVA-beløp", "Sum inkl. MVA"]


def export_accounting_vat_csv(
    sales: Sequence[TicketSale],
    income: Sequence[Income],
    expenses: Sequence[Expense],
    window: Optional[DateWindow] = None,
    today: Optional[date] = None
) -> ExportArtifact:
    """VAT buckets for sales, actual income and actual expenses"""
    kind = ExportKind.ACCOUNTING_VAT
    with export_guard(kind):
        sources = [
            ("Billettsalg/F&B", sales),
            ("Øvrig inntekt", agg.actual_only(income)),
            ("Kostnad", agg.actual_only(expenses)),
        ]
        rows = []
        for label, records in sources:
            for bucket in agg.group_by_vat(records):
                rows.append([
                    escape_csv(label),
                    bucket.label,
                    format_number(bucket.ex_vat),
                    format_number(bucket.vat_amount),
                    format_number(bucket.inc_vat),
                ])
        return _build(kind, VAT_HEADER, rows, window, today)


SUMMARY_HEADER = ["Kategori", "Beløp eks. MVA", "MVA-beløp", "Beløp inkl. MVA"]


def _totals_row(label: str, totals: AmountTotals) -> List[str]:
    return [
        escape_csv(label),
        format_number(totals.ex_vat),
        format_number(totals.vat_amount),
        format_number(totals.inc_vat),
    ]


def export_accounting_summary_csv(
    sales: Sequence[TicketSale],
    income: Sequence[Income],
    expenses: Sequence[Expense],
    window: Optional[DateWindow] = None,
    today: Optional[date] = None
) -> ExportArtifact:
    """Income lines, SUM INNTEKTER, SUM KOSTNADER and RESULTAT (income - expenses)"""
    kind = ExportKind.ACCOUNTING_SUMMARY
    with export_guard(kind):
        tickets, fnb = agg.split_by_category(sales)
        ticket_totals = agg.sum_amounts(tickets)
        fnb_totals = agg.sum_amounts(fnb)
        other_income = agg.sum_amounts(agg.actual_only(income))
        income_totals = ticket_totals + fnb_totals + other_income
        expense_totals = agg.sum_amounts(agg.actual_only(expenses))

        rows = [
            _totals_row("Billettsalg", ticket_totals),
            _totals_row("Mat/drikke", fnb_totals),
            _totals_row("Øvrig inntekt", other_income),
            [],
            _totals_row("SUM INNTEKTER", income_totals),
            [],
            _totals_row("SUM KOSTNADER", expense_totals),
            [],
            _totals_row("RESULTAT", income_totals - expense_totals),
        ]
        return _build(kind, SUMMARY_HEADER, rows, window, today)
