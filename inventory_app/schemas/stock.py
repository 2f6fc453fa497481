from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class MovementKind(str, Enum):
    STOCK = "stock"      # Stock received through POST /stock
    CONSUME = "consume"  # Stock used, optionally against a job
    IMPORT = "import"    # Opening stock from an uploaded inventory file


class StockRequest(BaseModel):
    """Schema for adding stock to an item."""
    item_id: str = Field(..., min_length=1, max_length=128)
    quantity: int = Field(..., gt=0, description="Units received.")
    request_id: Optional[str] = Field(
        None, min_length=1, max_length=64, pattern=r"^[A-Za-z0-9_.-]+$",
        description="Client idempotency key; replaying it returns the original movement.",
    )
    note: Optional[str] = Field(None, max_length=500)
    reference: Optional[str] = Field(None, max_length=128, description="Delivery note / PO number.")


class ConsumeRequest(BaseModel):
    """Schema for consuming stock, optionally against a job."""
    item_id: str = Field(..., min_length=1, max_length=128)
    quantity: int = Field(..., gt=0, description="Units consumed.")
    job_id: Optional[str] = Field(None, min_length=1, max_length=64)
    request_id: Optional[str] = Field(None, min_length=1, max_length=64, pattern=r"^[A-Za-z0-9_.-]+$")
    note: Optional[str] = Field(None, max_length=500)


class MovementResponse(BaseModel):
    event_id: str
    item_id: str
    kind: MovementKind
    quantity: int
    quantity_after: int
    job_id: Optional[str] = None
    created_at: str
    duplicate: bool = False
