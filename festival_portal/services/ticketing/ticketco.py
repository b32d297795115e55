"""
TicketCo ticketing provider (ticketco.events)

Orders endpoint: GET {base}/events/{event_id}/orders?since=&page=&per_page=
Authentication: `Authorization: Token token=<api key>`
"""
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import httpx

from festival_portal.config import settings
from festival_portal.services.ticketing.base import (
    BaseTicketingProvider, ProviderOrder, ProviderOrderLine, TicketingProviderError
)

logger = logging.getLogger(__name__)


def _decimal(value: Any, field_name: str) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise TicketingProviderError(f"Invalid {field_name} in TicketCo order line: {value!r}")


def _timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise TicketingProviderError(f"Invalid created_at in TicketCo order: {value!r}")


def parse_order_line(data: Dict[str, Any]) -> ProviderOrderLine:
    if not isinstance(data, dict) or data.get("id") is None:
        raise TicketingProviderError("TicketCo order line without id")
    return ProviderOrderLine(
        id=str(data["id"]),
        title=str(data.get("title") or ""),
        quantity=int(data.get("quantity") or 0),
        price=_decimal(data.get("price"), "price"),
        vat_amount=_decimal(data.get("vat_amount"), "vat_amount"),
        vat_rate=_decimal(data.get("vat_rate"), "vat_rate"),
        category=data.get("category"),
    )


def parse_order(data: Dict[str, Any]) -> ProviderOrder:
    if not isinstance(data, dict) or data.get("id") is None:
        raise TicketingProviderError("TicketCo order without id")
    return ProviderOrder(
        id=str(data["id"]),
        created_at=_timestamp(data.get("created_at")),
        lines=[parse_order_line(line) for line in data.get("order_lines") or []],
        source=data.get("source"),
    )


def parse_orders_page(payload: Any) -> List[ProviderOrder]:
    """
    A page is either `{"orders": [...]}` or a bare list.

    Only an empty list ends pagination. A dict without an orders list (an
    error body served with 200, for instance) is rejected so the run is not
    recorded as a success.
    """
    orders = payload.get("orders") if isinstance(payload, dict) else payload
    if not isinstance(orders, list):
        raise TicketingProviderError("Malformed TicketCo orders page")
    return [parse_order(order) for order in orders]


class TicketCoProvider(BaseTicketingProvider):
    """TicketCo public API client for one event"""

    def __init__(
        self,
        api_key: str,
        event_id: str,
        client: httpx.AsyncClient,
        base_url: Optional[str] = None,
        page_size: Optional[int] = None,
        timeout: Optional[float] = None,
        max_pages: Optional[int] = None
    ):
        super().__init__(max_pages=max_pages if max_pages is not None else settings.sync_max_pages)
        self.api_key = api_key
        self.event_id = event_id
        self.client = client
        self.base_url = (base_url or settings.ticketco_api_base).rstrip("/")
        self.page_size = page_size or settings.sync_page_size
        self.timeout = timeout or settings.sync_request_timeout

    @property
    def name(self) -> str:
        return "ticketco"

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Token token={self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json"
        }

    async def fetch_orders_page(self, since: datetime, page: int) -> List[ProviderOrder]:
        url = f"{self.base_url}/events/{self.event_id}/orders"
        params = {
            "since": since.isoformat(),
            "page": page,
            "per_page": self.page_size,
        }

        try:
            response = await self.client.get(
                url,
                params=params,
                headers=self._get_headers(),
                timeout=self.timeout
            )
        except httpx.RequestError as e:
            logger.error(f"TicketCo request failed for event {self.event_id}: {e}")
            raise TicketingProviderError(f"Failed to connect to TicketCo: {e}")

        if response.status_code < 200 or response.status_code >= 300:
            raise TicketingProviderError(
                f"TicketCo API error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code
            )

        try:
            payload = response.json()
        except ValueError:
            raise TicketingProviderError("TicketCo returned a non-JSON page")

        orders = parse_orders_page(payload)
        logger.debug(f"TicketCo event {self.event_id} page {page}: {len(orders)} orders")
        return orders
