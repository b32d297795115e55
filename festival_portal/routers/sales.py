from fastapi import APIRouter, Depends, Query
from typing import Optional
from festival_portal.core.dependencies import get_ledger_repository
from festival_portal.models.ledger import SaleCategory
from festival_portal.models.reports import SalesSummary
from festival_portal.services import ledger_aggregator
from festival_portal.services.ledger_repository import LedgerRepository

router = APIRouter()


@router.get("/summary", response_model=SalesSummary)
async def get_sales_summary(
    category: Optional[SaleCategory] = Query(None, description="ticket or fb"),
    repo: LedgerRepository = Depends(get_ledger_repository)
):
    """
    Sales overview for the caller's festival.

    Totals, sales per day, per ticket type and per channel, VAT buckets and
    a forecast up to the festival start date.
    """
    festival = await repo.get_festival()
    sales = await repo.list_sales(category=category)
    return ledger_aggregator.build_sales_summary(sales, festival.start_date)
