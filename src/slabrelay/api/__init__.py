"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Authentication is handled by the dashboard in front of this
service, so every route here is open.
"""

from fastapi import APIRouter

from slabrelay.api.events import router as events_router
from slabrelay.api.health import router as health_router
from slabrelay.api.inventory import router as inventory_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(inventory_router, tags=["inventory"])
api_router.include_router(events_router, tags=["realtime"])
