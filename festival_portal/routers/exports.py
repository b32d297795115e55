import logging
from datetime import date
from fastapi import APIRouter, Depends, Query, Response
from typing import Optional
from festival_portal.core.access import Resource, Action, authorize
from festival_portal.core.dependencies import get_ledger_repository
from festival_portal.core.exceptions import ValidationError
from festival_portal.models.ledger import SaleCategory
from festival_portal.models.reports import ExportKind, ExportArtifact, DateWindow
from festival_portal.services import csv_export, pdf_report
from festival_portal.services.ledger_repository import LedgerRepository

logger = logging.getLogger(__name__)

router = APIRouter()


def _download(artifact: ExportArtifact) -> Response:
    return Response(
        content=artifact.content,
        media_type=artifact.media_type,
        headers={"Content-Disposition": f'attachment; filename="{artifact.filename}"'}
    )


def date_window(
    start: Optional[date] = Query(None, description="First day (inclusive)"),
    end: Optional[date] = Query(None, description="Last day (inclusive)")
) -> DateWindow:
    if start and end and start > end:
        raise ValidationError("start must not be after end", {"start": str(start), "end": str(end)})
    return DateWindow(start=start, end=end)


# ============================================================================
# CSV
# ============================================================================

@router.get("/sales.csv")
async def export_sales(
    category: Optional[SaleCategory] = Query(None, description="ticket or fb"),
    repo: LedgerRepository = Depends(get_ledger_repository)
):
    """All sale lines; `category=fb` exports food & beverage only"""
    sales = await repo.list_sales(category=category)
    kind = ExportKind.FB_SALES if category == SaleCategory.FB else ExportKind.SALES
    return _download(csv_export.export_sales_csv(sales, kind=kind))


@router.get("/economy.csv")
async def export_economy(repo: LedgerRepository = Depends(get_ledger_repository)):
    income = await repo.list_income()
    expenses = await repo.list_expenses()
    return _download(csv_export.export_economy_csv(income, expenses))


@router.get("/accounting/tickets.csv")
async def export_accounting_tickets(
    window: DateWindow = Depends(date_window),
    repo: LedgerRepository = Depends(get_ledger_repository)
):
    """Sale lines with line totals and a TOTALT row"""
    sales = await repo.list_sales(window=window)
    return _download(csv_export.export_accounting_tickets_csv(sales, window))


@router.get("/accounting/vat.csv")
async def export_accounting_vat(
    window: DateWindow = Depends(date_window),
    repo: LedgerRepository = Depends(get_ledger_repository)
):
    sales = await repo.list_sales(window=window)
    income = await repo.list_income(window=window)
    expenses = await repo.list_expenses(window=window)
    return _download(csv_export.export_accounting_vat_csv(sales, income, expenses, window))


@router.get("/accounting/summary.csv")
async def export_accounting_summary(
    window: DateWindow = Depends(date_window),
    repo: LedgerRepository = Depends(get_ledger_repository)
):
    """Income and expense totals with the RESULTAT line"""
    sales = await repo.list_sales(window=window)
    income = await repo.list_income(window=window)
    expenses = await repo.list_expenses(window=window)
    return _download(csv_export.export_accounting_summary_csv(sales, income, expenses, window))


# ============================================================================
# PDF
# ============================================================================

@router.get("/reports/sponsors.pdf")
async def export_sponsor_report(repo: LedgerRepository = Depends(get_ledger_repository)):
    authorize(repo.principal, Resource.REPORTS, Action.READ)
    festival = await repo.get_festival()
    sponsors = await repo.list_sponsors()
    deliverables = await repo.list_deliverables()
    return _download(pdf_report.generate_sponsor_report(festival, sponsors, deliverables))


@router.get("/reports/annual.pdf")
async def export_annual_report(repo: LedgerRepository = Depends(get_ledger_repository)):
    authorize(repo.principal, Resource.REPORTS, Action.READ)
    festival = await repo.get_festival()
    sales = await repo.list_sales()
    income = await repo.list_income()
    expenses = await repo.list_expenses()
    sponsors = await repo.list_sponsors()
    return _download(pdf_report.generate_annual_report(festival, sales, income, expenses, sponsors))
