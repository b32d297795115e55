"""
Ticket sync

Pulls orders from each festival's ticketing provider since the last
successful sync and merges them into ticket_sales, keyed on the provider's
order-line id. Each festival runs in isolation: a failure or timeout is
recorded in the sync log and the next festival is processed.

Pages are all fetched before anything is written, so a failed page leaves
storage untouched. Upsert batches commit independently; batches that were
written before a failure stand, and re-running from the same watermark
merges onto them.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Iterator, List, Optional, Sequence

import httpx

from festival_portal.config import settings
from festival_portal.database import get_db_connection
from festival_portal.models.festival import FestivalIntegration
from festival_portal.models.ledger import TicketSale, SaleCategory, SaleChannel
from festival_portal.models.sync import SyncLog, SyncResult, SyncStatus
from festival_portal.services.ticketing import get_provider
from festival_portal.services.ticketing.base import BaseTicketingProvider, ProviderOrder

logger = logging.getLogger(__name__)

FB_KEYWORDS = ("food", "mat", "drikke", "beverage")
HUNDRED = Decimal("100")

ProviderFactory = Callable[[FestivalIntegration, httpx.AsyncClient], BaseTicketingProvider]


def classify_line(category: Optional[str]) -> SaleCategory:
    """Food & beverage when the category mentions food, mat, drikke or beverage"""
    text = (category or "").lower()
    if any(keyword in text for keyword in FB_KEYWORDS):
        return SaleCategory.FB
    return SaleCategory.TICKET


def transform_orders(
    festival_id: str,
    orders: Sequence[ProviderOrder],
    synced_at: datetime
) -> List[TicketSale]:
    """One ticket_sales row per order line"""
    rows = []
    for order in orders:
        channel = SaleChannel.POS if order.source == "pos" else SaleChannel.WEB
        for line in order.lines:
            rows.append(TicketSale(
                festival_id=festival_id,
                ticketco_id=f"{order.id}-{line.id}",
                ticket_type=line.title,
                category=classify_line(line.category),
                quantity=line.quantity,
                price_ex_vat=line.price - line.vat_amount,
                vat_rate=line.vat_rate / HUNDRED,
                vat_amount=line.vat_amount,
                price_inc_vat=line.price,
                sale_channel=channel,
                sold_at=order.created_at,
                synced_at=synced_at,
            ))
    return rows


def chunked(rows: Sequence, size: int) -> Iterator[Sequence]:
    for start in range(0, len(rows), size):
        yield rows[start:start + size]


def parse_epoch(value: str) -> datetime:
    epoch = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if epoch.tzinfo is None:
        epoch = epoch.replace(tzinfo=timezone.utc)
    return epoch


# ============================================================================
# Storage
# ============================================================================

class SyncStore(ABC):
    """Storage the sync job needs; runs with system privileges across festivals"""

    @abstractmethod
    async def list_integrations(self, festival_id: Optional[str] = None) -> List[FestivalIntegration]:
        """Integrations with credentials, optionally for one festival"""
        pass

    @abstractmethod
    async def get_watermark(self, festival_id: str) -> Optional[datetime]:
        """synced_at of the latest successful sync log"""
        pass

    @abstractmethod
    async def upsert_sales(self, rows: Sequence[TicketSale]) -> int:
        """Insert or overwrite by ticketco_id in one transaction; returns rows written"""
        pass

    @abstractmethod
    async def insert_sync_log(self, log: SyncLog) -> None:
        pass


UPSERT_SALE_QUERY = """
    INSERT INTO ticket_sales (
        festival_id, ticketco_id, ticket_type, category, quantity,
        price_ex_vat, vat_rate, vat_amount, price_inc_vat,
        sale_channel, sold_at, synced_at
    )
    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12)
    ON CONFLICT (ticketco_id) DO UPDATE SET
        ticket_type = EXCLUDED.ticket_type,
        category = EXCLUDED.category,
        quantity = EXCLUDED.quantity,
        price_ex_vat = EXCLUDED.price_ex_vat,
        vat_rate = EXCLUDED.vat_rate,
        vat_amount = EXCLUDED.vat_amount,
        price_inc_vat = EXCLUDED.price_inc_vat,
        sale_channel = EXCLUDED.sale_channel,
        sold_at = EXCLUDED.sold_at,
        synced_at = EXCLUDED.synced_at
    WHERE ticket_sales.festival_id = EXCLUDED.festival_id
"""


class PostgresSyncStore(SyncStore):
    """asyncpg-backed store"""

    async def list_integrations(self, festival_id: Optional[str] = None) -> List[FestivalIntegration]:
        query = """
            SELECT festival_id, ticketco_api_key, ticketco_event_id
            FROM festival_integrations
            WHERE ticketco_api_key IS NOT NULL AND ticketco_api_key <> ''
        """
        params = []
        if festival_id:
            query += " AND festival_id = $1"
            params.append(festival_id)

        async with get_db_connection(use_transaction=False) as conn:
            rows = await conn.fetch(query, *params)
        return [
            FestivalIntegration(
                festival_id=str(row['festival_id']),
                ticketco_api_key=row['ticketco_api_key'],
                ticketco_event_id=str(row['ticketco_event_id']) if row['ticketco_event_id'] is not None else None,
            )
            for row in rows
        ]

    async def get_watermark(self, festival_id: str) -> Optional[datetime]:
        async with get_db_connection(use_transaction=False) as conn:
            return await conn.fetchval(
                """
                SELECT synced_at FROM ticketco_sync_logs
                WHERE festival_id = $1 AND status = 'success'
                ORDER BY synced_at DESC
                LIMIT 1
                """,
                festival_id
            )

    async def upsert_sales(self, rows: Sequence[TicketSale]) -> int:
        args = [
            (
                r.festival_id, r.ticketco_id, r.ticket_type, r.category.value, r.quantity,
                r.price_ex_vat, r.vat_rate, r.vat_amount, r.price_inc_vat,
                r.sale_channel.value, r.sold_at, r.synced_at,
            )
            for r in rows
        ]
        async with get_db_connection() as conn:
            await conn.executemany(UPSERT_SALE_QUERY, args)
        return len(args)

    async def insert_sync_log(self, log: SyncLog) -> None:
        async with get_db_connection() as conn:
            await conn.execute(
                """
                INSERT INTO ticketco_sync_logs (festival_id, synced_at, records_synced, status, error_message)
                VALUES ($1, $2, $3, $4, $5)
                """,
                log.festival_id, log.synced_at, log.records_synced, log.status.value, log.error_message
            )


# ============================================================================
# Service
# ============================================================================

class TicketSyncService:
    """Runs the sync for one or all festivals with configured credentials"""

    def __init__(
        self,
        store: SyncStore,
        client: httpx.AsyncClient,
        provider_factory: ProviderFactory = get_provider,
        batch_size: Optional[int] = None,
        tenant_timeout: Optional[float] = None,
        epoch: Optional[datetime] = None
    ):
        self.store = store
        self.client = client
        self.provider_factory = provider_factory
        self.batch_size = batch_size or settings.sync_batch_size
        self.tenant_timeout = tenant_timeout or settings.sync_tenant_timeout
        self.epoch = epoch or parse_epoch(settings.sync_epoch)

    async def run(self, festival_id: Optional[str] = None) -> List[SyncResult]:
        """Sync every configured festival (or just `festival_id`) one after another"""
        integrations = await self.store.list_integrations(festival_id)
        if not integrations:
            logger.info("No festivals with ticketing credentials to sync")
            return []

        results = []
        for integration in integrations:
            if not integration.is_configured:
                continue
            results.append(await self.sync_festival(integration))

        synced = sum(1 for r in results if r.status == SyncStatus.SUCCESS)
        logger.info(f"Ticket sync finished: {synced}/{len(results)} festivals synced")
        return results

    async def sync_festival(self, integration: FestivalIntegration) -> SyncResult:
        festival_id = integration.festival_id
        started_at = datetime.now(timezone.utc)

        try:
            records, pages = await asyncio.wait_for(
                self._sync(integration, started_at), timeout=self.tenant_timeout
            )
            await self.store.insert_sync_log(SyncLog(
                festival_id=festival_id,
                synced_at=started_at,
                records_synced=records,
                status=SyncStatus.SUCCESS,
            ))
        except asyncio.TimeoutError:
            message = f"Sync timed out after {self.tenant_timeout:g}s"
            logger.error(f"Ticket sync for festival {festival_id} failed: {message}")
            return await self._record_error(festival_id, started_at, message)
        except Exception as e:
            logger.error(f"Ticket sync for festival {festival_id} failed: {e}", exc_info=True)
            return await self._record_error(festival_id, started_at, str(e))

        logger.info(f"Ticket sync for festival {festival_id}: {records} rows from {pages} pages")
        return SyncResult(
            festival_id=festival_id,
            status=SyncStatus.SUCCESS,
            records_synced=records,
            pages_fetched=pages,
        )

    async def _sync(self, integration: FestivalIntegration, started_at: datetime):
        watermark = await self.store.get_watermark(integration.festival_id) or self.epoch
        provider = self.provider_factory(integration, self.client)

        orders, pages = await provider.fetch_orders_since(watermark)
        rows = transform_orders(integration.festival_id, orders, started_at)

        written = 0
        for batch in chunked(rows, self.batch_size):
            written += await self.store.upsert_sales(batch)
        return written, pages

    async def _record_error(self, festival_id: str, started_at: datetime, message: str) -> SyncResult:
        try:
            await self.store.insert_sync_log(SyncLog(
                festival_id=festival_id,
                synced_at=started_at,
                records_synced=0,
                status=SyncStatus.ERROR,
                error_message=message,
            ))
        except Exception as e:
            logger.error(f"Could not write sync error log for festival {festival_id}: {e}", exc_info=True)
        return SyncResult(festival_id=festival_id, status=SyncStatus.ERROR, error=message)


async def run_ticket_sync(festival_id: Optional[str] = None) -> List[SyncResult]:
    """Run the sync against Postgres with a fresh HTTP client"""
    async with httpx.AsyncClient(timeout=settings.sync_request_timeout) as client:
        service = TicketSyncService(PostgresSyncStore(), client)
        return await service.run(festival_id)
