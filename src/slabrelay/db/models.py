"""SQLAlchemy ORM mapping for the inventory table the relay watches.

Learn: The `sales` table is owned by the upload/extraction side of the
application, which also manages its migrations. Only the columns the
snapshot endpoint returns are mapped here; SQLAlchemy ignores the rest.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, Numeric, String, func
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class InventoryItem(Base):
    """One extracted slab/line item from a packing list or invoice.

    Learn: document_type is either "transfer-consignment" (vendor stock on
    consignment) or "invoice-inhouse" (slabs the shop owns). Every INSERT,
    UPDATE and DELETE on this table fires inventory_notify_trigger.
    """

    __tablename__ = "sales"

    id: Mapped[uuid.UUID] = mapped_column(
        PG_UUID(as_uuid=True), primary_key=True, server_default=func.gen_random_uuid()
    )
    document_type: Mapped[str] = mapped_column(String(50), nullable=False)
    vendor_name: Mapped[Optional[str]] = mapped_column(String(255))
    transferred_to: Mapped[Optional[str]] = mapped_column(String(255))
    item_code: Mapped[Optional[str]] = mapped_column(String(255))
    item_name: Mapped[Optional[str]] = mapped_column(String(255))
    slab_name: Mapped[Optional[str]] = mapped_column(String(500))
    quantity_sf: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    quantity_slabs: Mapped[Optional[int]] = mapped_column(Integer)
    is_broken: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=False), server_default=func.now()
    )
