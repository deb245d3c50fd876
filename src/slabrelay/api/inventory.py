"""Inventory snapshot — the read endpoint clients re-fetch on every event.

Learn: The realtime stream only says "something changed". This endpoint is
the source of truth: clients replace their whole local copy with whatever
it returns. Filtering and search live in the dashboard service.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from slabrelay.db.engine import get_db
from slabrelay.db.models import InventoryItem
from slabrelay.schemas.inventory import InventoryItemRead

router = APIRouter()


@router.get("/inventory", response_model=list[InventoryItemRead])
async def list_inventory(db: AsyncSession = Depends(get_db)):
    """Full current inventory, newest first."""
    result = await db.execute(
        select(InventoryItem).order_by(InventoryItem.created_at.desc())
    )
    return list(result.scalars().all())
