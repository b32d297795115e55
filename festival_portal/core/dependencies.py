from fastapi import Depends, Request
from festival_portal.core.access import Principal
from festival_portal.core.exceptions import AuthenticationError
from festival_portal.core.middleware import get_principal
from festival_portal.services.ledger_repository import LedgerRepository
from festival_portal.services.ticket_sync_service import run_ticket_sync
import logging

logger = logging.getLogger(__name__)


def require_principal(request: Request) -> Principal:
    """
    Dependency that requires an authenticated principal.
    Raises AuthenticationError if not authenticated.
    """
    principal = get_principal(request)
    if principal is None:
        raise AuthenticationError("Authentication required")
    return principal


def get_ledger_repository(principal: Principal = Depends(require_principal)) -> LedgerRepository:
    """Repository scoped to the caller's festival"""
    return LedgerRepository(principal)


def get_sync_runner():
    """Callable that runs the ticket sync; `festival_id=None` syncs every festival"""
    return run_ticket_sync
