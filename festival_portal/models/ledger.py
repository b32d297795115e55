from pydantic import BaseModel, Field
from typing import Optional
import datetime as dt
from decimal import Decimal
from enum import Enum


class SaleCategory(str, Enum):
    """Sale line category"""
    TICKET = "ticket"
    FB = "fb"  # food & beverage


class SaleChannel(str, Enum):
    """Where the sale happened"""
    WEB = "web"
    POS = "pos"


class TicketSale(BaseModel):
    """
    One line-item of a ticket or food/beverage order.

    Written only by the ticket sync job (upsert on `ticketco_id`),
    read-only everywhere else. Monetary fields are per unit.
    """
    id: Optional[str] = None
    festival_id: str
    ticketco_id: Optional[str] = None
    ticket_type: str
    category: Optional[SaleCategory] = None
    quantity: int = Field(default=0, ge=0)
    price_ex_vat: Optional[Decimal] = None
    vat_rate: Optional[Decimal] = None
    vat_amount: Optional[Decimal] = None
    price_inc_vat: Optional[Decimal] = None
    sale_channel: Optional[SaleChannel] = None
    sold_at: Optional[dt.datetime] = None
    synced_at: Optional[dt.datetime] = None

    class Config:
        from_attributes = True


class LedgerEntry(BaseModel):
    """Fields shared by income and expense entries"""
    id: Optional[str] = None
    festival_id: str
    category: str
    description: Optional[str] = None
    amount_ex_vat: Optional[Decimal] = None
    vat_rate: Optional[Decimal] = None
    vat_amount: Optional[Decimal] = None
    is_budget: bool = False
    date: Optional[dt.date] = None
    created_at: Optional[dt.datetime] = None

    class Config:
        from_attributes = True


class Income(LedgerEntry):
    source: Optional[str] = None


class Expense(LedgerEntry):
    supplier: Optional[str] = None


class LedgerEntryCreate(BaseModel):
    """Schema to create an income or expense entry; VAT amount is derived"""
    category: str = Field(..., min_length=1)
    description: Optional[str] = None
    amount_ex_vat: Decimal = Decimal("0")
    vat_rate: Decimal = Field(default=Decimal("0"), ge=0, le=1, description="Fraction, 0.25 = 25%")
    is_budget: bool = False
    date: Optional[dt.date] = None

    @property
    def vat_amount(self) -> Decimal:
        return self.amount_ex_vat * self.vat_rate


class IncomeCreate(LedgerEntryCreate):
    source: Optional[str] = None


class ExpenseCreate(LedgerEntryCreate):
    supplier: Optional[str] = None
