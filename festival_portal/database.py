import asyncpg
from contextlib import asynccontextmanager
from festival_portal.config import settings
import logging

logger = logging.getLogger(__name__)

# Sale timestamps are grouped by UTC day; sessions read them in UTC too
SERVER_SETTINGS = {
    "application_name": "festival-portal",
    "timezone": "UTC",
}


class DatabasePool:
    """Process-wide asyncpg pool shared by the API and the sync job"""
    _pool = None

    @classmethod
    async def create_pool(cls):
        if cls._pool is None:
            try:
                cls._pool = await asyncpg.create_pool(
                    **settings.db_connection_params,
                    min_size=settings.db_pool_min_size,
                    max_size=settings.db_pool_max_size,
                    max_inactive_connection_lifetime=300,
                    command_timeout=settings.db_command_timeout,
                    server_settings=SERVER_SETTINGS,
                    timeout=10
                )
                logger.info(
                    f"Database pool created: {settings.db_name}@{settings.db_host} "
                    f"(size {settings.db_pool_min_size}-{settings.db_pool_max_size})"
                )
            except Exception as e:
                logger.error(f"Failed to create database pool: {e}")
                raise
        return cls._pool

    @classmethod
    async def close_pool(cls):
        if cls._pool:
            await cls._pool.close()
            cls._pool = None
            logger.info("Database pool closed")


@asynccontextmanager
async def get_db_connection(use_transaction: bool = True):
    """
    Get database connection from pool.

    Args:
        use_transaction: If True, wraps operations in a transaction.
                        Report reads pass False; sync upserts and sync
                        log writes keep the transaction.

    Usage:
    async with get_db_connection() as conn:
        await conn.executemany(UPSERT_SALE_QUERY, rows)

    Read-only usage:
    async with get_db_connection(use_transaction=False) as conn:
        rows = await conn.fetch("SELECT ... FROM income WHERE festival_id = $1", festival_id)
    """
    pool = await DatabasePool.create_pool()
    async with pool.acquire() as connection:
        if use_transaction:
            async with connection.transaction():
                yield connection
        else:
            yield connection


async def check_database() -> bool:
    """True when a pooled connection answers a trivial query"""
    try:
        async with get_db_connection(use_transaction=False) as conn:
            await conn.fetchval("SELECT 1")
        return True
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        return False
