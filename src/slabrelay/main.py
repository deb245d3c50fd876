"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan owns the realtime relay: it builds the subscriber
source and the bridge at startup, puts them on app.state for the routes,
and closes them in order at shutdown (sessions first, then the pool they
borrow from, then the query engine).
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from slabrelay import __version__
from slabrelay.api import api_router
from slabrelay.config import settings
from slabrelay.log import configure_logging
from slabrelay.realtime.bridge import Bridge
from slabrelay.realtime.source import SubscriberSource

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at
    shutdown. Process shutdown is one of the three session teardown
    triggers, so bridge.close() must run before the source is closed.
    """
    logger.info(
        "slabrelay.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    source = SubscriberSource(
        settings.asyncpg_dsn,
        max_sessions=settings.subscriber_max_sessions,
        acquire_timeout=settings.subscriber_acquire_timeout,
    )
    await source.open()
    bridge = Bridge(source)
    app.state.subscriber_source = source
    app.state.bridge = bridge

    yield

    # Shutdown
    logger.info("slabrelay.shutdown", active_sessions=bridge.active_sessions)

    await bridge.close()
    await source.close()
    app.state.bridge = None

    # Close database engine
    from slabrelay.db.engine import engine
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    configure_logging(settings.log_level, json_logs=settings.environment != "development")

    app = FastAPI(
        title="Slabrelay",
        description="Live inventory change relay for the slab fabrication dashboard",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → CORS → handler

    from slabrelay.middleware.request_id import RequestIdMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIdMiddleware)

    # Mount API routes
    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: slabrelay.main:app)
app = create_app()
