from typing import List, Optional

from pydantic import BaseModel, Field


class InventoryEventResponse(BaseModel):
    """One stock / consume / import event of an item."""
    event_id: str
    kind: str
    quantity: int
    quantity_after: int
    job_id: Optional[str] = None
    note: Optional[str] = None
    reference: Optional[str] = None
    source_file: Optional[str] = None
    created_at: str


class InventoryItemResponse(BaseModel):
    """Schema for an inventory item root record and its running quantity."""
    item_id: str
    sku: str
    name: str
    quantity: int
    unit: str = "each"
    category: Optional[str] = None
    location: Optional[str] = None
    reorder_level: int = 0
    low_stock: bool = False
    updated_at: Optional[str] = None
    events: Optional[List[InventoryEventResponse]] = None


class InventoryQuery(BaseModel):
    item_id: Optional[str] = None
    category: Optional[str] = None
    search: Optional[str] = Field(None, description="Substring of the item's name or SKU.")
    low_stock: bool = Field(False, description="Only items at or below their reorder level.")
    include_events: bool = False
    event_limit: int = Field(20, ge=1, le=500)
