"""Health check endpoint.

Learn: Simple GET endpoint that verifies the server is running, Postgres
is reachable through the query pool, and reports how much of the
subscriber capacity the live streams are using.
"""

from fastapi import APIRouter, Request
from sqlalchemy import text

from slabrelay import __version__
from slabrelay.db.engine import engine

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Check server health and dependency connectivity."""
    checks = {"server": "ok", "version": __version__}

    # Check Postgres
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["postgres"] = "ok"
    except Exception as e:
        checks["postgres"] = f"error: {e}"

    # Realtime relay
    bridge = getattr(request.app.state, "bridge", None)
    if bridge is None:
        checks["realtime"] = "error: not initialized"
        relay = None
    else:
        checks["realtime"] = "ok"
        relay = {
            "active_sessions": bridge.active_sessions,
            "subscribers_in_use": bridge.source.in_use,
            "subscriber_capacity": bridge.source.capacity,
        }

    status = "healthy" if all(
        v == "ok" for k, v in checks.items() if k != "version"
    ) else "degraded"

    return {"status": status, **checks, "relay": relay}
