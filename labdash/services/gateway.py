"""
Data access gateway for the laboratory store.

SampleRepository is the only component that touches a database connection.
Each public call checks a connection out of the shared asyncpg pool for its
own duration and returns it on every exit path, including failures raised
while the query runs or while the caller is still consuming the block.

Failure Mapping:
    - pool missing, checkout failed, checkout timed out -> DataSourceUnavailable
    - query rejected by the server, connection lost, statement timeout
      -> QueryExecutionError

Callers receive plain dicts, one per row, keyed by column name.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import asyncpg
from asyncpg import Connection, Pool

from labdash.core.errors import DataSourceUnavailable, QueryExecutionError
from labdash.sql.builder import AggregationQuery


logger = logging.getLogger(__name__)


class SampleRepository:
    """
    Runs bound aggregation queries against the pooled laboratory store.

    Args:
        pool: asyncpg pool, or None when the pool could not be created.
        schema: Schema holding the sample tables; passed to query builders.
        acquire_timeout: Seconds to wait for a free connection.
    """

    def __init__(
        self,
        pool: Optional[Pool],
        schema: str,
        acquire_timeout: float = 30.0,
    ) -> None:
        self._pool = pool
        self.schema = schema
        self.acquire_timeout = acquire_timeout

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[Connection]:
        """
        Scoped connection checkout.

        The connection is released exactly once when the block exits,
        whether it exits normally or by exception.
        """
        if self._pool is None:
            raise DataSourceUnavailable("Connection pool is not initialized")

        try:
            conn = await self._pool.acquire(timeout=self.acquire_timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"Connection checkout timed out after {self.acquire_timeout}s")
            raise DataSourceUnavailable(
                "Timed out waiting for a database connection",
                detail=f"acquire timeout {self.acquire_timeout}s",
            ) from e
        except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
            logger.error(f"Connection checkout failed: {e}")
            raise DataSourceUnavailable(
                "Could not acquire a database connection",
                detail=str(e),
            ) from e

        try:
            yield conn
        finally:
            await self._pool.release(conn)

    async def _fetch(self, conn: Connection, query: AggregationQuery) -> List[Dict[str, Any]]:
        try:
            rows = await conn.fetch(query.sql, *query.params)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, asyncio.TimeoutError) as e:
            logger.error(f"Query '{query.name}' failed: {e}", exc_info=True)
            raise QueryExecutionError(
                f"Query '{query.name}' failed",
                detail=str(e),
                query_name=query.name,
            ) from e

        logger.debug(f"Query '{query.name}' returned {len(rows)} rows")
        return [dict(row) for row in rows]

    async def run_aggregation_query(self, query: AggregationQuery) -> List[Dict[str, Any]]:
        """
        Execute one bound query and return its rows.

        Raises:
            DataSourceUnavailable: No connection could be obtained.
            QueryExecutionError: The query failed after checkout.
        """
        async with self.connection() as conn:
            return await self._fetch(conn, query)

    async def run_many(
        self, queries: Sequence[AggregationQuery]
    ) -> List[List[Dict[str, Any]]]:
        """Execute several queries in order on a single checked-out connection."""
        results: List[List[Dict[str, Any]]] = []
        async with self.connection() as conn:
            for query in queries:
                results.append(await self._fetch(conn, query))
        return results
