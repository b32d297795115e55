from fastapi import APIRouter, Depends, HTTPException
from typing import List
from festival_portal.core.dependencies import get_ledger_repository
from festival_portal.models.sponsor import (
    Sponsor, SponsorCreate, SponsorStatusUpdate,
    SponsorDeliverable, DeliverableCreate, DeliverableUpdate
)
from festival_portal.services.ledger_repository import LedgerRepository

router = APIRouter()


@router.get("", response_model=List[Sponsor])
async def list_sponsors(repo: LedgerRepository = Depends(get_ledger_repository)):
    """
    Sponsors of the caller's festival. A sponsor user only gets the rows
    whose contact email matches their own.
    """
    return await repo.list_sponsors()


@router.get("/deliverables", response_model=List[SponsorDeliverable])
async def list_deliverables(repo: LedgerRepository = Depends(get_ledger_repository)):
    return await repo.list_deliverables()


@router.post("", response_model=Sponsor, status_code=201)
async def create_sponsor(
    data: SponsorCreate,
    repo: LedgerRepository = Depends(get_ledger_repository)
):
    """
    Register a sponsor. It starts in the pipeline as `contacted`.
    """
    return await repo.create_sponsor(data)


@router.patch("/{sponsor_id}/status", response_model=Sponsor)
async def update_sponsor_status(
    sponsor_id: str,
    data: SponsorStatusUpdate,
    repo: LedgerRepository = Depends(get_ledger_repository)
):
    """
    Move a sponsor to any pipeline stage, forwards or backwards.
    """
    sponsor = await repo.update_sponsor_status(sponsor_id, data.status)
    if not sponsor:
        raise HTTPException(status_code=404, detail="Sponsor not found")
    return sponsor


@router.delete("/{sponsor_id}", status_code=204)
async def delete_sponsor(
    sponsor_id: str,
    repo: LedgerRepository = Depends(get_ledger_repository)
):
    """
    Delete a sponsor and all of its deliverables.
    """
    deleted = await repo.delete_sponsor(sponsor_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Sponsor not found")


@router.post("/{sponsor_id}/deliverables", response_model=SponsorDeliverable, status_code=201)
async def add_deliverable(
    sponsor_id: str,
    data: DeliverableCreate,
    repo: LedgerRepository = Depends(get_ledger_repository)
):
    deliverable = await repo.add_deliverable(sponsor_id, data)
    if not deliverable:
        raise HTTPException(status_code=404, detail="Sponsor not found")
    return deliverable


@router.patch("/{sponsor_id}/deliverables/{deliverable_id}", response_model=SponsorDeliverable)
async def update_deliverable(
    sponsor_id: str,
    deliverable_id: str,
    data: DeliverableUpdate,
    repo: LedgerRepository = Depends(get_ledger_repository)
):
    """
    Check or uncheck a deliverable. Checking stamps delivered_at.
    """
    deliverable = await repo.set_deliverable_delivered(sponsor_id, deliverable_id, data.delivered)
    if not deliverable:
        raise HTTPException(status_code=404, detail="Deliverable not found")
    return deliverable


@router.delete("/{sponsor_id}/deliverables/{deliverable_id}", status_code=204)
async def delete_deliverable(
    sponsor_id: str,
    deliverable_id: str,
    repo: LedgerRepository = Depends(get_ledger_repository)
):
    deleted = await repo.delete_deliverable(sponsor_id, deliverable_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Deliverable not found")
