# Ticketing providers
import httpx

from festival_portal.models.festival import FestivalIntegration
from festival_portal.services.ticketing.base import (
    BaseTicketingProvider, ProviderOrder, ProviderOrderLine, TicketingProviderError
)
from festival_portal.services.ticketing.ticketco import TicketCoProvider


def get_provider(integration: FestivalIntegration, client: httpx.AsyncClient) -> BaseTicketingProvider:
    """Provider instance for a festival's configured integration"""
    if not integration.is_configured:
        raise ValueError(f"Festival {integration.festival_id} has no ticketing credentials")
    return TicketCoProvider(
        api_key=integration.ticketco_api_key,
        event_id=integration.ticketco_event_id,
        client=client,
    )
