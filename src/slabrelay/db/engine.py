"""Async SQLAlchemy engine and session factory.

Learn: This is the ordinary request/response pool. It serves the inventory
snapshot endpoint and the health check. Long-lived LISTEN connections never
come from here; they use realtime.source.SubscriberSource, which has its
own much smaller cap.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from slabrelay.config import settings

# Connection pool: min 5, max 20 connections.
# echo=True in dev to see SQL queries.
engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=5,
    max_overflow=15,
    pool_pre_ping=True,
)

# Session factory — each request gets its own session.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncSession:
    """FastAPI dependency — yields a session per request, auto-closes."""
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
