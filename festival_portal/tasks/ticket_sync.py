import asyncio
import logging

from festival_portal.config import settings
from festival_portal.services.ticket_sync_service import run_ticket_sync

logger = logging.getLogger(__name__)


async def run_sync_loop(interval_seconds: int = None):
    """
    Scheduled ticket sync for every festival with credentials.

    Runs once at startup and then every `SYNC_INTERVAL_SECONDS`.
    """
    interval = interval_seconds or settings.sync_interval_seconds
    logger.info(f"Starting ticket sync background task (every {interval}s)...")

    while True:
        try:
            results = await run_ticket_sync()
            failed = [r.festival_id for r in results if r.error]
            if failed:
                logger.warning(f"Ticket sync failed for festivals: {', '.join(failed)}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error in ticket sync loop: {e}", exc_info=True)

        await asyncio.sleep(interval)
