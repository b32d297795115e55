from fastapi import APIRouter, Depends, HTTPException
from typing import List
from festival_portal.core.dependencies import get_ledger_repository
from festival_portal.models.ledger import Income, IncomeCreate, Expense, ExpenseCreate
from festival_portal.models.reports import EconomySummary
from festival_portal.services import ledger_aggregator
from festival_portal.services.ledger_repository import LedgerRepository

router = APIRouter()


@router.get("/summary", response_model=EconomySummary)
async def get_economy_summary(repo: LedgerRepository = Depends(get_ledger_repository)):
    """
    Budget vs actual per category, VAT over actual income and expenses,
    and the result line (actual income - actual expenses, ex VAT).
    """
    income = await repo.list_income()
    expenses = await repo.list_expenses()
    return ledger_aggregator.build_economy_summary(income, expenses)


@router.get("/income", response_model=List[Income])
async def list_income(repo: LedgerRepository = Depends(get_ledger_repository)):
    return await repo.list_income()


@router.post("/income", response_model=Income, status_code=201)
async def create_income(
    data: IncomeCreate,
    repo: LedgerRepository = Depends(get_ledger_repository)
):
    """
    Record an income line, actual or budget (admin only).
    VAT amount is amount_ex_vat * vat_rate.
    """
    return await repo.create_income(data)


@router.delete("/income/{income_id}", status_code=204)
async def delete_income(
    income_id: str,
    repo: LedgerRepository = Depends(get_ledger_repository)
):
    deleted = await repo.delete_income(income_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Income entry not found")


@router.get("/expenses", response_model=List[Expense])
async def list_expenses(repo: LedgerRepository = Depends(get_ledger_repository)):
    return await repo.list_expenses()


@router.post("/expenses", response_model=Expense, status_code=201)
async def create_expense(
    data: ExpenseCreate,
    repo: LedgerRepository = Depends(get_ledger_repository)
):
    """
    Record an expense line, actual or budget (admin only).
    """
    return await repo.create_expense(data)


@router.delete("/expenses/{expense_id}", status_code=204)
async def delete_expense(
    expense_id: str,
    repo: LedgerRepository = Depends(get_ledger_repository)
):
    deleted = await repo.delete_expense(expense_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Expense entry not found")
