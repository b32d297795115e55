"""
Mocks para servicios externos y dependencias.
"""
from unittest.mock import patch
from typing import Optional, List, Any, Dict, Callable
from datetime import datetime, timezone

import httpx

from festival_portal.core.access import Principal, Resource, Action, authorize, sponsor_matches
from festival_portal.models.festival import Festival, FestivalIntegration
from festival_portal.models.ledger import TicketSale, Income, Expense
from festival_portal.models.sponsor import Sponsor, SponsorDeliverable
from festival_portal.models.sync import SyncLog, SyncStatus
from festival_portal.services.ledger_repository import LedgerRepository
from festival_portal.services.ticket_sync_service import SyncStore


class MockDBConnection:
    """Mock de conexión a base de datos asyncpg."""

    def __init__(self):
        self.fetchrow_returns = {}
        self.fetch_returns = {}
        self.fetchval_returns = {}
        self.execute_returns = {}
        self._call_history = []

    def set_fetchrow_return(self, query_contains: str, value: Any):
        """Configura valor de retorno para fetchrow según query."""
        self.fetchrow_returns[query_contains] = value

    def set_fetch_return(self, query_contains: str, value: List[Any]):
        """Configura valor de retorno para fetch según query."""
        self.fetch_returns[query_contains] = value

    def set_fetchval_return(self, query_contains: str, value: Any):
        self.fetchval_returns[query_contains] = value

    def set_execute_return(self, query_contains: str, value: str):
        """Configura el status que devuelve execute, p. ej. "DELETE 1"."""
        self.execute_returns[query_contains] = value

    @staticmethod
    def _match(returns: dict, query: str, args, default):
        for key, value in returns.items():
            if key in query:
                if callable(value):
                    return value(*args)
                return value
        return default

    async def fetchrow(self, query: str, *args) -> Optional[dict]:
        self._call_history.append(("fetchrow", query, args))
        return self._match(self.fetchrow_returns, query, args, None)

    async def fetch(self, query: str, *args) -> List[dict]:
        self._call_history.append(("fetch", query, args))
        return self._match(self.fetch_returns, query, args, [])

    async def fetchval(self, query: str, *args) -> Any:
        self._call_history.append(("fetchval", query, args))
        return self._match(self.fetchval_returns, query, args, None)

    async def execute(self, query: str, *args) -> str:
        self._call_history.append(("execute", query, args))
        return self._match(self.execute_returns, query, args, "INSERT 0 1")

    async def executemany(self, query: str, args) -> None:
        self._call_history.append(("executemany", query, list(args)))

    def get_call_history(self) -> List[tuple]:
        """Retorna historial de llamadas."""
        return self._call_history

    def was_called_with(self, method: str, query_contains: str) -> bool:
        """Verifica si se llamó un método con cierta query."""
        for call in self._call_history:
            if call[0] == method and query_contains in call[1]:
                return True
        return False

    def last_call(self, method: str) -> Optional[tuple]:
        for call in reversed(self._call_history):
            if call[0] == method:
                return call
        return None


class MockDBContextManager:
    """Context manager mock para get_db_connection."""

    def __init__(self, connection: MockDBConnection = None):
        self.connection = connection or MockDBConnection()

    async def __aenter__(self):
        return self.connection

    async def __aexit__(self, *args):
        pass


def create_db_mock(module: str, connection: MockDBConnection = None):
    """Patch de get_db_connection en el módulo indicado."""
    conn = connection or MockDBConnection()
    return patch(
        f'{module}.get_db_connection',
        return_value=MockDBContextManager(conn)
    ), conn


class FakeLedgerRepository(LedgerRepository):
    """
    Repositorio en memoria.

    Aplica los mismos permisos y el mismo filtro por festival y por email
    de sponsor que el repositorio real.
    """

    def __init__(
        self,
        principal: Principal,
        festival: Festival,
        sales: List[TicketSale] = None,
        income: List[Income] = None,
        expenses: List[Expense] = None,
        sponsors: List[Sponsor] = None,
        deliverables: List[SponsorDeliverable] = None,
        sync_logs: List[SyncLog] = None
    ):
        super().__init__(principal)
        self.festival = festival
        self.sales = sales or []
        self.income = income or []
        self.expenses = expenses or []
        self.sponsors = sponsors or []
        self.deliverables = deliverables or []
        self.sync_logs = sync_logs or []

    def _own(self, rows):
        return [r for r in rows if r.festival_id == self.festival_id]

    async def get_festival(self) -> Festival:
        return self.festival

    async def list_sales(self, category=None, window=None) -> List[TicketSale]:
        authorize(self.principal, Resource.TICKET_SALES, Action.READ)
        rows = self._own(self.sales)
        if category is not None:
            rows = [r for r in rows if r.category == category]
        if window and window.start:
            rows = [r for r in rows if r.sold_at and r.sold_at.date() >= window.start]
        if window and window.end:
            rows = [r for r in rows if r.sold_at and r.sold_at.date() <= window.end]
        return rows

    async def list_income(self, window=None) -> List[Income]:
        authorize(self.principal, Resource.INCOME, Action.READ)
        return self._own(self.income)

    async def list_expenses(self, window=None) -> List[Expense]:
        authorize(self.principal, Resource.EXPENSES, Action.READ)
        return self._own(self.expenses)

    async def list_sponsors(self) -> List[Sponsor]:
        authorize(self.principal, Resource.SPONSORS, Action.READ)
        rows = self._own(self.sponsors)
        if self.principal.is_sponsor:
            rows = [s for s in rows if sponsor_matches(self.principal, s.contact_email)]
        return rows

    async def list_deliverables(self) -> List[SponsorDeliverable]:
        authorize(self.principal, Resource.SPONSOR_DELIVERABLES, Action.READ)
        visible = {s.id for s in await self.list_sponsors()}
        return [d for d in self._own(self.deliverables) if d.sponsor_id in visible]

    async def list_sync_logs(self, limit: int = 20) -> List[SyncLog]:
        authorize(self.principal, Resource.SYNC_LOGS, Action.READ)
        rows = sorted(self._own(self.sync_logs), key=lambda l: l.synced_at, reverse=True)
        return rows[:limit]

    async def create_income(self, data) -> Income:
        authorize(self.principal, Resource.INCOME, Action.WRITE)
        income = Income(
            id=f"income-{len(self.income) + 1}", festival_id=self.festival_id,
            vat_amount=data.vat_amount, **data.model_dump()
        )
        self.income.append(income)
        return income

    async def delete_income(self, income_id: str) -> bool:
        authorize(self.principal, Resource.INCOME, Action.WRITE)
        return self._remove("income", income_id)

    async def create_expense(self, data) -> Expense:
        authorize(self.principal, Resource.EXPENSES, Action.WRITE)
        expense = Expense(
            id=f"expense-{len(self.expenses) + 1}", festival_id=self.festival_id,
            vat_amount=data.vat_amount, **data.model_dump()
        )
        self.expenses.append(expense)
        return expense

    async def delete_expense(self, expense_id: str) -> bool:
        authorize(self.principal, Resource.EXPENSES, Action.WRITE)
        return self._remove("expenses", expense_id)

    async def create_sponsor(self, data) -> Sponsor:
        authorize(self.principal, Resource.SPONSORS, Action.WRITE)
        sponsor = Sponsor(id=f"sponsor-{len(self.sponsors) + 1}", festival_id=self.festival_id, **data.model_dump())
        self.sponsors.append(sponsor)
        return sponsor

    async def update_sponsor_status(self, sponsor_id: str, status) -> Optional[Sponsor]:
        authorize(self.principal, Resource.SPONSORS, Action.WRITE)
        for i, sponsor in enumerate(self.sponsors):
            if sponsor.id == sponsor_id and sponsor.festival_id == self.festival_id:
                self.sponsors[i] = sponsor.model_copy(update={"status": status})
                return self.sponsors[i]
        return None

    async def delete_sponsor(self, sponsor_id: str) -> bool:
        authorize(self.principal, Resource.SPONSORS, Action.WRITE)
        authorize(self.principal, Resource.SPONSOR_DELIVERABLES, Action.WRITE)
        self.deliverables = [
            d for d in self.deliverables
            if not (d.sponsor_id == sponsor_id and d.festival_id == self.festival_id)
        ]
        return self._remove("sponsors", sponsor_id)

    async def add_deliverable(self, sponsor_id: str, data) -> Optional[SponsorDeliverable]:
        authorize(self.principal, Resource.SPONSOR_DELIVERABLES, Action.WRITE)
        if not any(s.id == sponsor_id for s in self._own(self.sponsors)):
            return None
        deliverable = SponsorDeliverable(
            id=f"deliverable-{len(self.deliverables) + 1}", sponsor_id=sponsor_id,
            festival_id=self.festival_id, description=data.description
        )
        self.deliverables.append(deliverable)
        return deliverable

    async def set_deliverable_delivered(self, sponsor_id: str, deliverable_id: str, delivered: bool):
        authorize(self.principal, Resource.SPONSOR_DELIVERABLES, Action.WRITE)
        for i, d in enumerate(self.deliverables):
            if d.id == deliverable_id and d.sponsor_id == sponsor_id and d.festival_id == self.festival_id:
                self.deliverables[i] = d.model_copy(update={
                    "delivered": delivered,
                    "delivered_at": datetime.now(timezone.utc) if delivered else None,
                })
                return self.deliverables[i]
        return None

    async def delete_deliverable(self, sponsor_id: str, deliverable_id: str) -> bool:
        authorize(self.principal, Resource.SPONSOR_DELIVERABLES, Action.WRITE)
        before = len(self.deliverables)
        self.deliverables = [
            d for d in self.deliverables
            if not (d.id == deliverable_id and d.sponsor_id == sponsor_id and d.festival_id == self.festival_id)
        ]
        return len(self.deliverables) < before

    def _remove(self, attr: str, row_id: str) -> bool:
        rows = getattr(self, attr)
        kept = [r for r in rows if not (r.id == row_id and r.festival_id == self.festival_id)]
        setattr(self, attr, kept)
        return len(kept) < len(rows)


class InMemorySyncStore(SyncStore):
    """
    Almacenamiento en memoria para el job de sincronización.

    `sales` se indexa por ticketco_id, igual que el upsert real.
    """

    def __init__(
        self,
        integrations: List[FestivalIntegration] = None,
        fail_upsert_for: str = None,
        fail_success_log_for: str = None
    ):
        self.integrations = integrations or []
        self.sales: Dict[str, TicketSale] = {}
        self.logs: List[SyncLog] = []
        self.upsert_calls: List[int] = []
        self.fail_upsert_for = fail_upsert_for
        self.fail_success_log_for = fail_success_log_for

    async def list_integrations(self, festival_id: Optional[str] = None) -> List[FestivalIntegration]:
        return [
            i for i in self.integrations
            if i.is_configured and (festival_id is None or i.festival_id == festival_id)
        ]

    async def get_watermark(self, festival_id: str) -> Optional[datetime]:
        successes = [
            l.synced_at for l in self.logs
            if l.festival_id == festival_id and l.status == SyncStatus.SUCCESS
        ]
        return max(successes) if successes else None

    async def upsert_sales(self, rows) -> int:
        if self.fail_upsert_for and any(r.festival_id == self.fail_upsert_for for r in rows):
            raise RuntimeError("database unavailable")
        self.upsert_calls.append(len(rows))
        for row in rows:
            self.sales[row.ticketco_id] = row
        return len(rows)

    async def insert_sync_log(self, log: SyncLog) -> None:
        if log.festival_id == self.fail_success_log_for and log.status == SyncStatus.SUCCESS:
            raise RuntimeError("sync log table unavailable")
        self.logs.append(log)


def ticketco_transport(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.MockTransport:
    """MockTransport que registra cada request en `transport.requests`."""
    requests: List[httpx.Request] = []

    def _handle(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    transport = httpx.MockTransport(_handle)
    transport.requests = requests
    return transport


def paged_orders(pages_by_event: Dict[str, List[list]]) -> Callable[[httpx.Request], httpx.Response]:
    """
    Handler que sirve páginas de órdenes por event id.

    Las páginas fuera de rango devuelven `{"orders": []}`.
    """
    def handler(request: httpx.Request) -> httpx.Response:
        event_id = request.url.path.split("/events/")[1].split("/")[0]
        page = int(request.url.params.get("page", "1"))
        pages = pages_by_event.get(event_id, [])
        orders = pages[page - 1] if page <= len(pages) else []
        return httpx.Response(200, json={"orders": orders})

    return handler
