"""
Festival-scoped access to ledger, sponsor and sync data.

Every query is filtered by the principal's festival id and checked against
the permission matrix first. Callers cannot pass a festival id; writes to a
row of another festival match nothing.
"""
import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from festival_portal.config import settings
from festival_portal.core.access import Principal, Resource, Action, authorize, normalize_email
from festival_portal.core.exceptions import TenantError
from festival_portal.database import get_db_connection
from festival_portal.models.festival import Festival, FestivalIntegration
from festival_portal.models.ledger import (
    TicketSale, Income, Expense, SaleCategory, LedgerEntryCreate, IncomeCreate, ExpenseCreate
)
from festival_portal.models.reports import DateWindow
from festival_portal.models.sponsor import (
    Sponsor, SponsorDeliverable, SponsorStatus, SponsorCreate, DeliverableCreate
)
from festival_portal.models.sync import SyncLog

logger = logging.getLogger(__name__)

DEFAULT_SYNC_LOG_LIMIT = 20

SPONSOR_COLUMNS = """
    id, festival_id, name, level, contact_name, contact_email,
    contact_phone, invoice_address, logo_url, agreement_amount,
    status, notes, created_at
"""
DELIVERABLE_COLUMNS = "id, sponsor_id, festival_id, description, delivered, delivered_at, documentation_url"


def _record(row) -> Dict[str, Any]:
    """asyncpg Record -> dict with UUIDs as strings"""
    return {k: str(v) if isinstance(v, UUID) else v for k, v in dict(row).items()}


class LedgerRepository:
    """Data access for one authenticated principal"""

    def __init__(self, principal: Principal):
        self.principal = principal

    @property
    def festival_id(self) -> str:
        return self.principal.festival_id

    async def get_festival(self) -> Festival:
        async with get_db_connection(use_transaction=False) as conn:
            row = await conn.fetchrow(
                """
                SELECT id, name, slug, logo_url, start_date, end_date, location,
                       capacity, website, default_locale, currency, created_at
                FROM festivals
                WHERE id = $1
                """,
                self.festival_id
            )
        if not row:
            raise TenantError(f"Festival {self.festival_id} not found")
        record = _record(row)
        record["currency"] = record.get("currency") or settings.default_currency
        record["default_locale"] = record.get("default_locale") or settings.default_locale
        return Festival(**record)

    async def list_sales(
        self,
        category: Optional[SaleCategory] = None,
        window: Optional[DateWindow] = None
    ) -> List[TicketSale]:
        """Sale lines ordered by sold_at, optionally filtered by category and sale day"""
        authorize(self.principal, Resource.TICKET_SALES, Action.READ)

        query = """
            SELECT id, festival_id, ticketco_id, ticket_type, category, quantity,
                   price_ex_vat, vat_rate, vat_amount, price_inc_vat,
                   sale_channel, sold_at, synced_at
            FROM ticket_sales
            WHERE festival_id = $1
        """
        params: List[Any] = [self.festival_id]
        param_idx = 2

        if category is not None:
            query += f" AND category = ${param_idx}"
            params.append(SaleCategory(category).value)
            param_idx += 1

        if window and window.start:
            query += f" AND sold_at >= ${param_idx}"
            params.append(window.start)
            param_idx += 1

        if window and window.end:
            query += f" AND sold_at < ${param_idx}"
            params.append(window.end + timedelta(days=1))
            param_idx += 1

        query += " ORDER BY sold_at ASC NULLS LAST"

        async with get_db_connection(use_transaction=False) as conn:
            rows = await conn.fetch(query, *params)
        return [TicketSale(**_record(row)) for row in rows]

    async def _list_entries(self, table: str, counterpart: str, window: Optional[DateWindow]) -> list:
        query = f"""
            SELECT id, festival_id, category, description, amount_ex_vat, vat_rate,
                   vat_amount, is_budget, date, created_at, {counterpart}
            FROM {table}
            WHERE festival_id = $1
        """
        params: List[Any] = [self.festival_id]
        param_idx = 2

        if window and window.start:
            query += f" AND date >= ${param_idx}"
            params.append(window.start)
            param_idx += 1

        if window and window.end:
            query += f" AND date <= ${param_idx}"
            params.append(window.end)
            param_idx += 1

        query += " ORDER BY date ASC NULLS LAST, created_at ASC"

        async with get_db_connection(use_transaction=False) as conn:
            return await conn.fetch(query, *params)

    async def list_income(self, window: Optional[DateWindow] = None) -> List[Income]:
        authorize(self.principal, Resource.INCOME, Action.READ)
        rows = await self._list_entries("income", "source", window)
        return [Income(**_record(row)) for row in rows]

    async def list_expenses(self, window: Optional[DateWindow] = None) -> List[Expense]:
        authorize(self.principal, Resource.EXPENSES, Action.READ)
        rows = await self._list_entries("expenses", "supplier", window)
        return [Expense(**_record(row)) for row in rows]

    async def list_sponsors(self) -> List[Sponsor]:
        """All sponsors, or for the sponsor role only the rows matching the caller's email"""
        authorize(self.principal, Resource.SPONSORS, Action.READ)

        query = f"""
            SELECT {SPONSOR_COLUMNS}
            FROM sponsors
            WHERE festival_id = $1
        """
        params: List[Any] = [self.festival_id]

        if self.principal.is_sponsor:
            own_email = normalize_email(self.principal.email)
            if own_email is None:
                return []
            query += " AND lower(trim(contact_email)) = $2"
            params.append(own_email)

        query += " ORDER BY name ASC"

        async with get_db_connection(use_transaction=False) as conn:
            rows = await conn.fetch(query, *params)
        return [Sponsor(**_record(row)) for row in rows]

    async def list_deliverables(self) -> List[SponsorDeliverable]:
        """Deliverables of the sponsors this principal may see"""
        authorize(self.principal, Resource.SPONSOR_DELIVERABLES, Action.READ)

        query = """
            SELECT d.id, d.sponsor_id, d.festival_id, d.description, d.delivered,
                   d.delivered_at, d.documentation_url
            FROM sponsor_deliverables d
            JOIN sponsors s ON s.id = d.sponsor_id AND s.festival_id = d.festival_id
            WHERE d.festival_id = $1
        """
        params: List[Any] = [self.festival_id]

        if self.principal.is_sponsor:
            own_email = normalize_email(self.principal.email)
            if own_email is None:
                return []
            query += " AND lower(trim(s.contact_email)) = $2"
            params.append(own_email)

        query += " ORDER BY s.name ASC, d.description ASC"

        async with get_db_connection(use_transaction=False) as conn:
            rows = await conn.fetch(query, *params)
        return [SponsorDeliverable(**_record(row)) for row in rows]

    async def list_sync_logs(self, limit: int = DEFAULT_SYNC_LOG_LIMIT) -> List[SyncLog]:
        """Most recent sync runs first"""
        authorize(self.principal, Resource.SYNC_LOGS, Action.READ)

        async with get_db_connection(use_transaction=False) as conn:
            rows = await conn.fetch(
                """
                SELECT id, festival_id, synced_at, records_synced, status, error_message
                FROM ticketco_sync_logs
                WHERE festival_id = $1
                ORDER BY synced_at DESC
                LIMIT $2
                """,
                self.festival_id,
                limit
            )
        return [SyncLog(**_record(row)) for row in rows]

    async def get_integration(self) -> Optional[FestivalIntegration]:
        authorize(self.principal, Resource.INTEGRATIONS, Action.READ)

        async with get_db_connection(use_transaction=False) as conn:
            row = await conn.fetchrow(
                """
                SELECT festival_id, ticketco_api_key, ticketco_event_id
                FROM festival_integrations
                WHERE festival_id = $1
                """,
                self.festival_id
            )
        return FestivalIntegration(**_record(row)) if row else None

    # ========================================================================
    # Writes (admin only)
    # ========================================================================

    async def _delete(self, table: str, row_id: str, extra_filter: str = "", *extra_params) -> bool:
        async with get_db_connection() as conn:
            result = await conn.execute(
                f"DELETE FROM {table} WHERE id = $1 AND festival_id = $2{extra_filter}",
                row_id, self.festival_id, *extra_params
            )

        deleted = result == "DELETE 1"
        if deleted:
            logger.info(f"Deleted {table} {row_id} (festival: {self.festival_id}, by: {self.principal.user_id})")
        return deleted

    async def _create_entry(self, table: str, counterpart: str, data: LedgerEntryCreate, counterpart_value):
        async with get_db_connection() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO {table} (
                    festival_id, category, description, amount_ex_vat, vat_rate,
                    vat_amount, is_budget, date, {counterpart}
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                RETURNING id, festival_id, category, description, amount_ex_vat, vat_rate,
                          vat_amount, is_budget, date, created_at, {counterpart}
                """,
                self.festival_id,
                data.category,
                data.description,
                data.amount_ex_vat,
                data.vat_rate,
                data.vat_amount,
                data.is_budget,
                data.date,
                counterpart_value
            )
        logger.info(f"Created {table} entry {row['id']} ({data.category}) for festival {self.festival_id}")
        return _record(row)

    async def create_income(self, data: IncomeCreate) -> Income:
        authorize(self.principal, Resource.INCOME, Action.WRITE)
        return Income(**await self._create_entry("income", "source", data, data.source))

    async def delete_income(self, income_id: str) -> bool:
        authorize(self.principal, Resource.INCOME, Action.WRITE)
        return await self._delete("income", income_id)

    async def create_expense(self, data: ExpenseCreate) -> Expense:
        authorize(self.principal, Resource.EXPENSES, Action.WRITE)
        return Expense(**await self._create_entry("expenses", "supplier", data, data.supplier))

    async def delete_expense(self, expense_id: str) -> bool:
        authorize(self.principal, Resource.EXPENSES, Action.WRITE)
        return await self._delete("expenses", expense_id)

    async def create_sponsor(self, data: SponsorCreate) -> Sponsor:
        authorize(self.principal, Resource.SPONSORS, Action.WRITE)

        async with get_db_connection() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO sponsors (
                    festival_id, name, level, contact_name, contact_email, contact_phone,
                    invoice_address, agreement_amount, notes, status
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                RETURNING {SPONSOR_COLUMNS}
                """,
                self.festival_id,
                data.name,
                data.level.value if data.level else None,
                data.contact_name,
                data.contact_email,
                data.contact_phone,
                data.invoice_address,
                data.agreement_amount,
                data.notes,
                SponsorStatus.CONTACTED.value
            )
        logger.info(f"Created sponsor {row['id']} ({data.name}) for festival {self.festival_id}")
        return Sponsor(**_record(row))

    async def update_sponsor_status(self, sponsor_id: str, status: SponsorStatus) -> Optional[Sponsor]:
        """Move a sponsor to any pipeline stage; None when the sponsor is not in this festival"""
        authorize(self.principal, Resource.SPONSORS, Action.WRITE)

        async with get_db_connection() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE sponsors
                SET status = $1
                WHERE id = $2 AND festival_id = $3
                RETURNING {SPONSOR_COLUMNS}
                """,
                SponsorStatus(status).value,
                sponsor_id,
                self.festival_id
            )
        if not row:
            return None
        logger.info(f"Sponsor {sponsor_id} moved to {SponsorStatus(status).value}")
        return Sponsor(**_record(row))

    async def delete_sponsor(self, sponsor_id: str) -> bool:
        """Delete a sponsor together with its deliverables"""
        authorize(self.principal, Resource.SPONSORS, Action.WRITE)
        authorize(self.principal, Resource.SPONSOR_DELIVERABLES, Action.WRITE)

        async with get_db_connection() as conn:
            # Delete deliverables first
            await conn.execute(
                "DELETE FROM sponsor_deliverables WHERE sponsor_id = $1 AND festival_id = $2",
                sponsor_id, self.festival_id
            )
            result = await conn.execute(
                "DELETE FROM sponsors WHERE id = $1 AND festival_id = $2",
                sponsor_id, self.festival_id
            )

        deleted = result == "DELETE 1"
        if deleted:
            logger.info(f"Deleted sponsor {sponsor_id} (festival: {self.festival_id}, by: {self.principal.user_id})")
        return deleted

    async def add_deliverable(self, sponsor_id: str, data: DeliverableCreate) -> Optional[SponsorDeliverable]:
        """None when the sponsor is not in this festival"""
        authorize(self.principal, Resource.SPONSOR_DELIVERABLES, Action.WRITE)

        async with get_db_connection() as conn:
            existing = await conn.fetchval(
                "SELECT id FROM sponsors WHERE id = $1 AND festival_id = $2",
                sponsor_id, self.festival_id
            )
            if not existing:
                return None

            row = await conn.fetchrow(
                f"""
                INSERT INTO sponsor_deliverables (sponsor_id, festival_id, description)
                VALUES ($1, $2, $3)
                RETURNING {DELIVERABLE_COLUMNS}
                """,
                sponsor_id, self.festival_id, data.description
            )
        return SponsorDeliverable(**_record(row))

    async def set_deliverable_delivered(
        self,
        sponsor_id: str,
        deliverable_id: str,
        delivered: bool
    ) -> Optional[SponsorDeliverable]:
        """Check or uncheck a deliverable; delivered_at is stamped now or cleared"""
        authorize(self.principal, Resource.SPONSOR_DELIVERABLES, Action.WRITE)

        async with get_db_connection() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE sponsor_deliverables
                SET delivered = $1,
                    delivered_at = CASE WHEN $1 THEN NOW() ELSE NULL END
                WHERE id = $2 AND sponsor_id = $3 AND festival_id = $4
                RETURNING {DELIVERABLE_COLUMNS}
                """,
                delivered, deliverable_id, sponsor_id, self.festival_id
            )
        return SponsorDeliverable(**_record(row)) if row else None

    async def delete_deliverable(self, sponsor_id: str, deliverable_id: str) -> bool:
        authorize(self.principal, Resource.SPONSOR_DELIVERABLES, Action.WRITE)
        return await self._delete("sponsor_deliverables", deliverable_id, " AND sponsor_id = $3", sponsor_id)
