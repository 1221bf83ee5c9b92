"""
Async database layer for the receipt flow.

Receipt generation is asynchronous (images are fetched over the network), so
the receipt counter is read through psycopg's AsyncConnectionPool instead of
blocking on the synchronous pool.
"""

import logging
from typing import Optional

from psycopg_pool import AsyncConnectionPool

from tesoreria_app.database import Database

logger = logging.getLogger(__name__)


class AsyncDatabase:
    """Async wrapper over Database using AsyncConnectionPool."""

    def __init__(self, db: Database):
        self.db = db
        self.dsn = db.dsn
        self.pool_min = db.pool_min
        self.pool_max = db.pool_max
        self._async_pool: Optional[AsyncConnectionPool] = None

    async def _get_pool(self) -> AsyncConnectionPool:
        """Lazily initialize async connection pool."""
        if self._async_pool is None:
            self._async_pool = AsyncConnectionPool(
                conninfo=self.dsn,
                min_size=self.pool_min,
                max_size=self.pool_max,
                open=False,
            )
            await self._async_pool.open()
        return self._async_pool

    async def close_async(self) -> None:
        """Close the async connection pool."""
        if self._async_pool:
            try:
                await self._async_pool.close()
            except Exception as e:
                logger.error(f"Error closing async pool: {e}")
            self._async_pool = None

    async def get_next_sequence_number(self, module: str) -> str:
        """
        Next receipt number for a ledger module from the transactional counter
        `get_next_receipt_number(module)`. Errors propagate to the caller.
        """
        pool = await self._get_pool()
        async with pool.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute("SELECT get_next_receipt_number(%s)", (module,))
                row = await cur.fetchone()
            await conn.commit()
        if not row or row[0] is None:
            raise LookupError(f"Sin número de recibo para el módulo {module}")
        return str(row[0])
