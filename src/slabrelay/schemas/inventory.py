"""Pydantic schemas for the inventory snapshot.

Learn: Field names are camelCase on the wire (serialization_alias) because
the dashboard already consumes them that way; Python code keeps snake_case.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class InventoryItemRead(BaseModel):
    id: uuid.UUID
    document_type: str
    vendor_name: Optional[str] = None
    transferred_to: Optional[str] = None
    item_code: Optional[str] = None
    item_name: Optional[str] = None
    slab_name: Optional[str] = None
    quantity_sf: Optional[Decimal] = Field(None, ge=0)
    quantity_slabs: Optional[int] = None
    is_broken: bool = False
    created_at: Optional[datetime] = None

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )
