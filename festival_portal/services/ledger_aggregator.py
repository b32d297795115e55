"""
Ledger aggregation

Pure functions over already festival-scoped collections of ticket sales,
income and expenses. No I/O happens here.

All sums are Decimal and nothing is rounded until presentation. Whenever a
record has no VAT amount it is derived as `amount_ex_vat * vat_rate` (or
`price_ex_vat * vat_rate` for sales), and every total below goes through the
same helpers so the fallback is applied identically everywhere.
"""
import logging
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from festival_portal.models.ledger import TicketSale, LedgerEntry, Income, Expense, SaleCategory, SaleChannel
from festival_portal.models.reports import (
    DailySales, TypeSales, ChannelSales, VatBucket, BudgetActualRow, LedgerKind,
    Forecast, SalesTotals, AmountTotals, SalesSummary, EconomySummary
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
ONE = Decimal("1")

MonetaryRecord = Union[TicketSale, LedgerEntry]


# ============================================================================
# Record-level amounts
# ============================================================================

def to_decimal(value) -> Decimal:
    """Coerce a stored numeric (Decimal, int, float, str or None) to Decimal"""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def sale_vat_amount(sale: TicketSale) -> Decimal:
    """Per-unit VAT of a sale line"""
    if sale.vat_amount is not None:
        return to_decimal(sale.vat_amount)
    return to_decimal(sale.price_ex_vat) * to_decimal(sale.vat_rate)


def sale_price_inc_vat(sale: TicketSale) -> Decimal:
    """Per-unit price including VAT of a sale line"""
    if sale.price_inc_vat is not None:
        return to_decimal(sale.price_inc_vat)
    return to_decimal(sale.price_ex_vat) + sale_vat_amount(sale)


def sale_line_amounts(sale: TicketSale) -> AmountTotals:
    """Line totals (unit amounts times quantity)"""
    qty = Decimal(sale.quantity or 0)
    return AmountTotals(
        ex_vat=to_decimal(sale.price_ex_vat) * qty,
        vat_amount=sale_vat_amount(sale) * qty,
        inc_vat=sale_price_inc_vat(sale) * qty,
    )


def entry_vat_amount(entry: LedgerEntry) -> Decimal:
    if entry.vat_amount is not None:
        return to_decimal(entry.vat_amount)
    return to_decimal(entry.amount_ex_vat) * to_decimal(entry.vat_rate)


def entry_amounts(entry: LedgerEntry) -> AmountTotals:
    ex_vat = to_decimal(entry.amount_ex_vat)
    vat = entry_vat_amount(entry)
    return AmountTotals(ex_vat=ex_vat, vat_amount=vat, inc_vat=ex_vat + vat)


def record_amounts(record: MonetaryRecord) -> AmountTotals:
    if isinstance(record, TicketSale):
        return sale_line_amounts(record)
    return entry_amounts(record)


def vat_label(rate) -> str:
    """0.25 -> '25%'"""
    percent = (to_decimal(rate) * 100).quantize(ONE, rounding=ROUND_HALF_UP)
    return f"{percent}%"


def day_key(sold_at: Union[datetime, date, str, None]) -> Optional[str]:
    """Calendar day (YYYY-MM-DD) of a timestamp; aware datetimes are read in UTC"""
    if sold_at is None:
        return None
    if isinstance(sold_at, str):
        return sold_at[:10] or None
    if isinstance(sold_at, datetime):
        if sold_at.tzinfo is not None:
            sold_at = sold_at.astimezone(timezone.utc)
        return sold_at.date().isoformat()
    return sold_at.isoformat()


# ============================================================================
# Group-by reducers
# ============================================================================

def group_by_date(sales: Iterable[TicketSale]) -> List[DailySales]:
    """Daily tickets/revenue in chronological order; undated sales are skipped"""
    days: dict[str, DailySales] = {}
    for sale in sales:
        key = day_key(sale.sold_at)
        if not key:
            continue
        day = days.setdefault(key, DailySales(date=key))
        day.tickets += sale.quantity
        day.revenue += sale_line_amounts(sale).inc_vat
    return sorted(days.values(), key=lambda d: d.date)


def group_by_type(sales: Iterable[TicketSale]) -> List[TypeSales]:
    """Per ticket type, most tickets first"""
    types: dict[str, TypeSales] = {}
    for sale in sales:
        row = types.setdefault(sale.ticket_type, TypeSales(type=sale.ticket_type))
        row.tickets += sale.quantity
        row.revenue += sale_line_amounts(sale).inc_vat
    return sorted(types.values(), key=lambda t: t.tickets, reverse=True)


def group_by_channel(sales: Iterable[TicketSale]) -> List[ChannelSales]:
    """Per sale channel in first-seen order; a missing channel counts as web"""
    channels: dict[str, ChannelSales] = {}
    for sale in sales:
        channel = SaleChannel(sale.sale_channel).value if sale.sale_channel else SaleChannel.WEB.value
        row = channels.setdefault(channel, ChannelSales(channel=channel))
        row.tickets += sale.quantity
        row.revenue += sale_line_amounts(sale).inc_vat
    return list(channels.values())


def split_by_category(sales: Iterable[TicketSale]) -> Tuple[List[TicketSale], List[TicketSale]]:
    """(tickets, food & beverage); anything not tagged fb is a ticket"""
    tickets, fnb = [], []
    for sale in sales:
        (fnb if sale.category == SaleCategory.FB else tickets).append(sale)
    return tickets, fnb


def group_by_vat(records: Iterable[MonetaryRecord]) -> List[VatBucket]:
    """
    Bucket sales, income or expenses by VAT rate, highest rate first.

    A record without a rate lands in the 0% bucket. For sales `count` is the
    number of units sold; for income/expenses it is the number of entries.
    """
    buckets: dict[Decimal, VatBucket] = {}
    for record in records:
        rate = to_decimal(record.vat_rate)
        bucket = buckets.get(rate)
        if bucket is None:
            bucket = VatBucket(rate=rate, label=vat_label(rate))
            buckets[rate] = bucket
        amounts = record_amounts(record)
        bucket.ex_vat += amounts.ex_vat
        bucket.vat_amount += amounts.vat_amount
        bucket.inc_vat += amounts.inc_vat
        bucket.count += record.quantity if isinstance(record, TicketSale) else 1
    return sorted(buckets.values(), key=lambda b: b.rate, reverse=True)


def actual_only(entries: Iterable[LedgerEntry]) -> list:
    return [e for e in entries if not e.is_budget]


def budget_vs_actual(income: Sequence[Income], expenses: Sequence[Expense]) -> List[BudgetActualRow]:
    """
    One row per (income|expense, category) with budget and actual ex-VAT sums.

    Income and expense categories are kept apart even when their labels match.
    """
    rows: dict[tuple, BudgetActualRow] = {}
    for kind, entries in ((LedgerKind.INCOME, income), (LedgerKind.EXPENSE, expenses)):
        for entry in entries:
            row = rows.setdefault(
                (kind, entry.category), BudgetActualRow(kind=kind, category=entry.category)
            )
            if entry.is_budget:
                row.budget += to_decimal(entry.amount_ex_vat)
            else:
                row.actual += to_decimal(entry.amount_ex_vat)

    for row in rows.values():
        row.variance = row.actual - row.budget
    return list(rows.values())


def totals_by_category(entries: Iterable[LedgerEntry]) -> List[Tuple[str, Decimal]]:
    """(category, amount incl. VAT) pairs, largest first"""
    categories: dict[str, Decimal] = {}
    for entry in entries:
        categories[entry.category] = categories.get(entry.category, ZERO) + entry_amounts(entry).inc_vat
    return sorted(categories.items(), key=lambda item: item[1], reverse=True)


# ============================================================================
# Totals
# ============================================================================

def sum_amounts(records: Iterable[MonetaryRecord]) -> AmountTotals:
    total = AmountTotals()
    for record in records:
        total = total + record_amounts(record)
    return total


def sales_totals(sales: Iterable[TicketSale], today: Optional[date] = None) -> SalesTotals:
    """Tickets, revenue incl. VAT, VAT collected and tickets sold today"""
    today_key = (today or datetime.now(timezone.utc).date()).isoformat()
    totals = SalesTotals()
    for sale in sales:
        amounts = sale_line_amounts(sale)
        totals.total_tickets += sale.quantity
        totals.total_revenue += amounts.inc_vat
        totals.total_vat += amounts.vat_amount
        if day_key(sale.sold_at) == today_key:
            totals.today_tickets += sale.quantity
    return totals


def _as_date(value: Union[date, datetime, str]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value[:10])


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(ONE, rounding=ROUND_HALF_UP))


def compute_forecast(
    daily_sales: Sequence[DailySales],
    festival_start: Union[date, datetime, str, None],
    today: Optional[date] = None
) -> Optional[Forecast]:
    """
    Project total tickets at festival start from the average daily rate.

    Needs at least two days of data and a start date, otherwise None.
    """
    if len(daily_sales) < 2 or not festival_start:
        return None

    today = today or datetime.now(timezone.utc).date()
    total_tickets = sum(d.tickets for d in daily_sales)
    avg_per_day = Decimal(total_tickets) / Decimal(len(daily_sales))
    days_until = max(0, (_as_date(festival_start) - today).days)

    return Forecast(
        current_total=total_tickets,
        avg_per_day=_round_half_up(avg_per_day),
        projected_total=_round_half_up(total_tickets + avg_per_day * days_until),
        days_until_festival=days_until,
    )


# ============================================================================
# Summaries
# ============================================================================

def build_sales_summary(
    sales: Sequence[TicketSale],
    festival_start: Union[date, str, None] = None,
    today: Optional[date] = None
) -> SalesSummary:
    tickets, fnb = split_by_category(sales)
    by_date = group_by_date(sales)
    return SalesSummary(
        totals=sales_totals(sales, today),
        by_date=by_date,
        by_type=group_by_type(sales),
        by_channel=group_by_channel(sales),
        vat_buckets=group_by_vat(sales),
        forecast=compute_forecast(by_date, festival_start, today),
        ticket_count=sum(s.quantity for s in tickets),
        fb_count=sum(s.quantity for s in fnb),
    )


def build_economy_summary(income: Sequence[Income], expenses: Sequence[Expense]) -> EconomySummary:
    """Budget vs actual, VAT over actual entries, and result = income - expenses (ex VAT)"""
    actual_income = actual_only(income)
    actual_expenses = actual_only(expenses)
    income_total = sum((to_decimal(i.amount_ex_vat) for i in actual_income), ZERO)
    expense_total = sum((to_decimal(e.amount_ex_vat) for e in actual_expenses), ZERO)
    return EconomySummary(
        budget_vs_actual=budget_vs_actual(income, expenses),
        vat_buckets=group_by_vat([*actual_income, *actual_expenses]),
        actual_income=income_total,
        actual_expenses=expense_total,
        result=income_total - expense_total,
    )
