"""
Tests para el cliente de TicketCo.
"""
from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest

from festival_portal.services.ticketing import get_provider
from festival_portal.services.ticketing.base import TicketingProviderError
from festival_portal.services.ticketing.ticketco import TicketCoProvider, parse_orders_page
from festival_portal.models.festival import FestivalIntegration

from tests.utils.factories import TicketCoOrderFactory
from tests.utils.mocks import ticketco_transport, paged_orders

SINCE = datetime(2026, 6, 1, tzinfo=timezone.utc)


def _provider(transport, **kwargs) -> TicketCoProvider:
    client = httpx.AsyncClient(transport=transport)
    return TicketCoProvider(
        api_key="secret-key",
        event_id="42",
        client=client,
        base_url="https://ticketco.test/api/public/v1",
        **kwargs
    )


class TestFetchPage:
    """Tests para fetch_orders_page."""

    @pytest.mark.asyncio
    async def test_request_shape(self):
        """Header Token token=, parámetros since/page/per_page."""
        transport = ticketco_transport(lambda r: httpx.Response(200, json={"orders": []}))
        provider = _provider(transport, page_size=50)

        await provider.fetch_orders_page(SINCE, 3)

        request = transport.requests[0]
        assert request.url.path == "/api/public/v1/events/42/orders"
        assert request.headers["Authorization"] == "Token token=secret-key"
        assert request.url.params["since"] == SINCE.isoformat()
        assert request.url.params["page"] == "3"
        assert request.url.params["per_page"] == "50"

    @pytest.mark.asyncio
    async def test_parses_order_lines(self):
        order = TicketCoOrderFactory.create(
            id=7,
            source="pos",
            lines=[TicketCoOrderFactory.line(1, title="Ølbillett", quantity=2, price=125, vat_amount=25,
                                             vat_rate=25, category="Mat/drikke")],
        )
        transport = ticketco_transport(lambda r: httpx.Response(200, json={"orders": [order]}))

        orders = await _provider(transport).fetch_orders_page(SINCE, 1)

        assert len(orders) == 1
        assert orders[0].id == "7"
        assert orders[0].source == "pos"
        assert orders[0].created_at == datetime(2026, 7, 1, 10, tzinfo=timezone.utc)
        line = orders[0].lines[0]
        assert line.id == "1"
        assert line.quantity == 2
        assert line.price == Decimal("125")
        assert line.vat_rate == Decimal("25")
        assert line.category == "Mat/drikke"

    @pytest.mark.asyncio
    async def test_bare_list_page(self):
        transport = ticketco_transport(lambda r: httpx.Response(200, json=[TicketCoOrderFactory.create()]))

        orders = await _provider(transport).fetch_orders_page(SINCE, 1)

        assert len(orders) == 1

    @pytest.mark.asyncio
    async def test_non_2xx_raises(self):
        transport = ticketco_transport(lambda r: httpx.Response(401, json={"error": "unauthorized"}))

        with pytest.raises(TicketingProviderError) as exc_info:
            await _provider(transport).fetch_orders_page(SINCE, 1)

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_non_json_raises(self):
        transport = ticketco_transport(lambda r: httpx.Response(200, text="<html>maintenance</html>"))

        with pytest.raises(TicketingProviderError):
            await _provider(transport).fetch_orders_page(SINCE, 1)

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TicketingProviderError):
            await _provider(ticketco_transport(handler)).fetch_orders_page(SINCE, 1)


class TestPagination:
    """Tests para fetch_orders_since."""

    @pytest.mark.asyncio
    async def test_stops_at_empty_page(self):
        pages = [
            [TicketCoOrderFactory.create(), TicketCoOrderFactory.create()],
            [TicketCoOrderFactory.create()],
        ]
        transport = ticketco_transport(paged_orders({"42": pages}))

        orders, fetched = await _provider(transport).fetch_orders_since(SINCE)

        assert len(orders) == 3
        assert fetched == 2
        assert [r.url.params["page"] for r in transport.requests] == ["1", "2", "3"]

    @pytest.mark.asyncio
    async def test_max_pages_guard(self):
        """Un proveedor que nunca devuelve una página vacía se corta."""
        transport = ticketco_transport(lambda r: httpx.Response(200, json={"orders": [TicketCoOrderFactory.create()]}))

        with pytest.raises(TicketingProviderError):
            await _provider(transport, max_pages=3).fetch_orders_since(SINCE)

        assert len(transport.requests) == 3


class TestParsing:

    def test_malformed_page(self):
        with pytest.raises(TicketingProviderError):
            parse_orders_page({"orders": "nope"})

    @pytest.mark.parametrize("payload", [{"error": "rate limited"}, {"orders": None}, {}, None, "ok"])
    def test_page_without_orders_list(self, payload):
        """Un cuerpo sin lista de órdenes es un error, no una página vacía."""
        with pytest.raises(TicketingProviderError, match="Malformed TicketCo orders page"):
            parse_orders_page(payload)

    @pytest.mark.parametrize("payload", [[], {"orders": []}])
    def test_empty_page(self, payload):
        assert parse_orders_page(payload) == []

    def test_order_without_id(self):
        with pytest.raises(TicketingProviderError):
            parse_orders_page([{"order_lines": []}])


class TestGetProvider:

    def test_configured_integration(self):
        integration = FestivalIntegration(festival_id="f1", ticketco_api_key="k", ticketco_event_id="9")

        provider = get_provider(integration, httpx.AsyncClient())

        assert provider.name == "ticketco"
        assert provider.event_id == "9"

    def test_unconfigured_integration(self):
        with pytest.raises(ValueError):
            get_provider(FestivalIntegration(festival_id="f1"), httpx.AsyncClient())
