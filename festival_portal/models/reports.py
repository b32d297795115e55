from pydantic import BaseModel
from typing import Optional, List
from datetime import date
from decimal import Decimal
from enum import Enum


class DailySales(BaseModel):
    """Tickets and VAT-inclusive revenue for one calendar day"""
    date: str
    tickets: int = 0
    revenue: Decimal = Decimal("0")


class TypeSales(BaseModel):
    """Tickets and VAT-inclusive revenue for one ticket type"""
    type: str
    tickets: int = 0
    revenue: Decimal = Decimal("0")


class ChannelSales(BaseModel):
    """Tickets and VAT-inclusive revenue for one sale channel"""
    channel: str
    tickets: int = 0
    revenue: Decimal = Decimal("0")


class VatBucket(BaseModel):
    """Records sharing one VAT rate"""
    rate: Decimal
    label: str
    ex_vat: Decimal = Decimal("0")
    vat_amount: Decimal = Decimal("0")
    inc_vat: Decimal = Decimal("0")
    count: int = 0


class LedgerKind(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class BudgetActualRow(BaseModel):
    """Budget and actual sums (ex VAT) for one income or expense category"""
    kind: LedgerKind
    category: str
    budget: Decimal = Decimal("0")
    actual: Decimal = Decimal("0")
    variance: Decimal = Decimal("0")  # actual - budget


class Forecast(BaseModel):
    """Ticket projection up to the festival start date"""
    current_total: int
    avg_per_day: int
    projected_total: int
    days_until_festival: int


class SalesTotals(BaseModel):
    total_tickets: int = 0
    total_revenue: Decimal = Decimal("0")
    total_vat: Decimal = Decimal("0")
    today_tickets: int = 0


class AmountTotals(BaseModel):
    """Ex VAT, VAT and inc VAT sums"""
    ex_vat: Decimal = Decimal("0")
    vat_amount: Decimal = Decimal("0")
    inc_vat: Decimal = Decimal("0")

    def __add__(self, other: "AmountTotals") -> "AmountTotals":
        return AmountTotals(
            ex_vat=self.ex_vat + other.ex_vat,
            vat_amount=self.vat_amount + other.vat_amount,
            inc_vat=self.inc_vat + other.inc_vat,
        )

    def __sub__(self, other: "AmountTotals") -> "AmountTotals":
        return AmountTotals(
            ex_vat=self.ex_vat - other.ex_vat,
            vat_amount=self.vat_amount - other.vat_amount,
            inc_vat=self.inc_vat - other.inc_vat,
        )


class SalesSummary(BaseModel):
    """Payload for GET /sales/summary"""
    totals: SalesTotals
    by_date: List[DailySales]
    by_type: List[TypeSales]
    by_channel: List[ChannelSales]
    vat_buckets: List[VatBucket]
    forecast: Optional[Forecast] = None
    ticket_count: int = 0
    fb_count: int = 0


class EconomySummary(BaseModel):
    """Payload for GET /economy/summary"""
    budget_vs_actual: List[BudgetActualRow]
    vat_buckets: List[VatBucket]
    actual_income: Decimal
    actual_expenses: Decimal
    result: Decimal


class ExportKind(str, Enum):
    """Download artifacts and their filename stems"""
    SALES = "billettsalg"
    FB_SALES = "mat-drikke"
    ECONOMY = "okonomi"
    ACCOUNTING_TICKETS = "regnskap-billetter"
    ACCOUNTING_VAT = "regnskap-mva"
    ACCOUNTING_SUMMARY = "regnskap-sammendrag"
    SPONSOR_REPORT = "sponsorrapport"
    ANNUAL_REPORT = "arsrapport"


class ExportArtifact(BaseModel):
    """A complete, in-memory export ready to hand to the caller"""
    filename: str
    media_type: str
    content: bytes


class DateWindow(BaseModel):
    """Optional inclusive date filter for accounting exports"""
    start: Optional[date] = None
    end: Optional[date] = None
