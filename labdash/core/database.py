"""
Async connection pool module for the laboratory data store.

This module owns the single asyncpg connection pool shared by every request.
It is the only place that creates or closes the pool; query execution and
scoped connection checkout live in labdash.services.gateway.

Key Components:
- Global connection pool singleton (_pool)
- init_db(): Initialize the connection pool at application startup
- get_db_pool(): Get the pool instance (initializes if needed)
- close_db(): Gracefully close the pool at application shutdown

Connection Pool Configuration (see labdash.core.config.Settings):
- min_size: db_pool_min_size (default 2)
- max_size: db_pool_max_size (default 10)
- command_timeout: db_command_timeout seconds (default 60)

Failure Semantics:
    Any failure to create the pool is re-raised as DataSourceUnavailable so
    the HTTP layer reports it as a 500 with a structured body, the same way
    it reports a failed connection checkout.

Usage:
    # At application startup (in FastAPI lifespan)
    await init_db()

    # In dependencies
    pool = await get_db_pool()

    # At application shutdown
    await close_db()
"""

import asyncio
import logging
from typing import Optional

import asyncpg
from asyncpg import Pool

from labdash.core.config import get_settings
from labdash.core.errors import DataSourceUnavailable


logger = logging.getLogger(__name__)


# =============================================================================
# Global Pool Singleton
# =============================================================================

# None until init_db() succeeds
_pool: Optional[Pool] = None


# =============================================================================
# Pool Lifecycle Functions
# =============================================================================

async def init_db() -> Pool:
    """
    Initialize the database connection pool.

    Creates an asyncpg connection pool for the laboratory store. Called once
    at application startup from the FastAPI lifespan. If the pool is already
    initialized the existing pool is returned (idempotent).

    Returns:
        Pool: The asyncpg connection pool instance.

    Raises:
        DataSourceUnavailable: If the store cannot be reached or rejects the
            credentials.
    """
    global _pool

    if _pool is None:
        settings = get_settings()
        try:
            _pool = await asyncpg.create_pool(
                dsn=settings.database_url,
                min_size=settings.db_pool_min_size,
                max_size=settings.db_pool_max_size,
                command_timeout=settings.db_command_timeout,
            )
        except (OSError, asyncio.TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            logger.error(f"Connection pool creation failed: {e}")
            raise DataSourceUnavailable(
                "Connection pool is not initialized",
                detail=str(e),
            ) from e

        logger.info(
            f"Connection pool created (min={settings.db_pool_min_size}, "
            f"max={settings.db_pool_max_size}, env={settings.environment})"
        )

    return _pool


async def get_db_pool() -> Pool:
    """
    Get the database connection pool, initializing if needed.

    Lazy initialization lets a request succeed once the store comes back
    even if the pool could not be created at startup.

    Returns:
        Pool: The asyncpg connection pool instance.

    Raises:
        DataSourceUnavailable: If the pool cannot be created.
    """
    if _pool is None:
        await init_db()

    assert _pool is not None, "Pool should be initialized after init_db()"

    return _pool


async def close_db() -> None:
    """
    Close the database connection pool gracefully.

    Waits for checked-out connections to be released before closing. After
    closing, the singleton is reset so a later get_db_pool() creates a fresh
    pool. Calling it when no pool exists has no effect.
    """
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None
        logger.info("Connection pool closed")
