"""
Base Ticketing Provider Interface

A ticketing provider pages through the orders of one festival's event.
Providers are created per festival integration and share an injected
httpx client.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple


class TicketingProviderError(Exception):
    """Non-2xx response, transport failure or malformed page from a provider"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


@dataclass
class ProviderOrderLine:
    """One line of a provider order. Amounts are per unit, VAT rate is a percentage"""
    id: str
    title: str
    quantity: int
    price: Decimal
    vat_amount: Decimal
    vat_rate: Decimal
    category: Optional[str] = None


@dataclass
class ProviderOrder:
    id: str
    created_at: Optional[datetime]
    lines: List[ProviderOrderLine] = field(default_factory=list)
    source: Optional[str] = None


class BaseTicketingProvider(ABC):
    """
    Abstract base class for ticketing providers.

    Subclasses implement single-page fetches; `fetch_orders_since` pages until
    an empty page comes back.
    """

    def __init__(self, max_pages: Optional[int] = None):
        self.max_pages = max_pages

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier (e.g., 'ticketco')"""
        pass

    @abstractmethod
    async def fetch_orders_page(self, since: datetime, page: int) -> List[ProviderOrder]:
        """
        Fetch one page of orders created or changed since `since`.

        Args:
            since: Watermark (aware datetime)
            page: 1-based page number

        Returns:
            Orders on that page; an empty list means there are no more pages
        """
        pass

    async def fetch_orders_since(self, since: datetime) -> Tuple[List[ProviderOrder], int]:
        """
        Accumulate every page after `since`.

        Returns:
            (orders, number of non-empty pages fetched)
        """
        orders: List[ProviderOrder] = []
        page = 1
        while True:
            if self.max_pages is not None and page > self.max_pages:
                raise TicketingProviderError(
                    f"{self.name} returned more than {self.max_pages} pages"
                )
            batch = await self.fetch_orders_page(since, page)
            if not batch:
                return orders, page - 1
            orders.extend(batch)
            page += 1
