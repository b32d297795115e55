import logging
from fastapi import APIRouter, Depends, Query
from typing import List
from festival_portal.core.access import Principal, Resource, Action, authorize
from festival_portal.core.dependencies import require_principal, get_ledger_repository, get_sync_runner
from festival_portal.models.sync import SyncLog, SyncRunResponse
from festival_portal.services.ledger_repository import LedgerRepository

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/run", response_model=SyncRunResponse)
async def run_sync(
    principal: Principal = Depends(require_principal),
    runner=Depends(get_sync_runner)
):
    """
    Sync ticket sales for the caller's festival now (admin only).

    A festival without ticketing credentials is skipped and yields no result.
    """
    authorize(principal, Resource.INTEGRATIONS, Action.SYNC)
    logger.info(f"Manual ticket sync requested by {principal.user_id} for festival {principal.festival_id}")
    results = await runner(festival_id=principal.festival_id)
    return SyncRunResponse(results=results)


@router.get("/logs", response_model=List[SyncLog])
async def list_sync_logs(
    limit: int = Query(20, ge=1, le=100),
    repo: LedgerRepository = Depends(get_ledger_repository)
):
    return await repo.list_sync_logs(limit=limit)
