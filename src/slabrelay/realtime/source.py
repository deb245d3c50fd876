"""Subscriber connection source — dedicated asyncpg pool for LISTEN sessions.

Learn: Every SSE client holds one Postgres connection for as long as it is
connected. If those borrows came out of the SQLAlchemy query pool, a handful
of idle browser tabs could starve ordinary reads and writes. So the relay
gets its own small pool with its own lifecycle:

    source = SubscriberSource(dsn, max_sessions=5)
    await source.open()      # lifespan startup
    conn = await source.acquire()
    ...
    await source.release(conn)
    await source.close()     # lifespan shutdown

The source is constructed explicitly and handed to the Bridge. There is no
module-level singleton to lazily initialize.

Capacity is enforced here with an in-use counter. When every slot is taken,
acquire() fails immediately instead of queuing behind the pool.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

import asyncpg
import structlog

logger = structlog.get_logger()


class AcquisitionError(Exception):
    """Raised when no subscriber connection can be handed out."""
    pass


class SubscriberSource:
    """Bounded source of long-lived LISTEN connections."""

    def __init__(
        self,
        dsn: str,
        max_sessions: int = 5,
        acquire_timeout: float = 10.0,
        pool_factory: Optional[Callable[..., Awaitable[Any]]] = None,
    ):
        self.dsn = dsn
        self.max_sessions = max_sessions
        self.acquire_timeout = acquire_timeout
        self._pool_factory = pool_factory or asyncpg.create_pool
        self._pool: Optional[Any] = None
        self._in_use = 0

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    @property
    def in_use(self) -> int:
        return self._in_use

    @property
    def capacity(self) -> int:
        return self.max_sessions

    async def open(self) -> None:
        if self._pool is not None:
            return
        # min_size=0: no connections until the first stream arrives.
        # max_inactive_connection_lifetime=0: never reap a LISTEN connection.
        self._pool = await self._pool_factory(
            self.dsn,
            min_size=0,
            max_size=self.max_sessions,
            max_inactive_connection_lifetime=0,
        )
        logger.info("relay.source_opened", capacity=self.max_sessions)

    async def close(self) -> None:
        pool, self._pool = self._pool, None
        if pool is None:
            return
        await pool.close()
        logger.info("relay.source_closed")

    async def acquire(self):
        """Borrow a connection, or raise AcquisitionError without waiting.

        Learn: The counter is checked and bumped before the first await, so
        two streams racing for the last slot cannot both get it.
        """
        if self._pool is None:
            raise AcquisitionError("subscriber source is not open")
        if self._in_use >= self.max_sessions:
            raise AcquisitionError(
                f"subscriber capacity exhausted ({self.max_sessions} sessions)"
            )

        self._in_use += 1
        try:
            return await self._pool.acquire(timeout=self.acquire_timeout)
        except asyncio.CancelledError:
            self._in_use -= 1
            raise
        except Exception as e:
            self._in_use -= 1
            raise AcquisitionError(f"could not acquire subscriber connection: {e}") from e

    async def release(self, conn) -> None:
        """Return a borrowed connection. Frees the slot even if the pool errors."""
        try:
            if self._pool is not None:
                await self._pool.release(conn)
        finally:
            self._in_use -= 1
