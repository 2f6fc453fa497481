from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator


class JobSyncStatus(str, Enum):
    PENDING = "pending"  # No external id yet; eligible for reconciliation
    SYNCED = "synced"    # Holds a valid WFM identifier


class JobCreateRequest(BaseModel):
    """Schema for the job creation request body."""
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=4000)
    client_id: Optional[str] = Field(None, max_length=64, description="WFM client UUID; defaults from app config.")
    template_id: Optional[str] = Field(None, min_length=1, max_length=128)
    start_date: Optional[date] = None
    due_date: Optional[date] = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.start_date and self.due_date and self.due_date < self.start_date:
            raise ValueError("due_date must not be before start_date")
        return self


class JobMaterial(BaseModel):
    item_id: str
    quantity: int
    description: Optional[str] = None


class JobResponse(BaseModel):
    job_id: str
    name: str
    description: Optional[str] = None
    client_id: Optional[str] = None
    template_id: Optional[str] = None
    start_date: Optional[str] = None
    due_date: Optional[str] = None
    status: JobSyncStatus
    external_id: Optional[str] = None
    sync_attempts: int = 0
    last_sync_error: Optional[str] = None
    materials: List[JobMaterial] = []
    created_at: str
    synced_at: Optional[str] = None


class JobHistoryEntry(BaseModel):
    entry_id: str
    job_id: str
    action: str
    details: Dict[str, Any] = {}
    created_at: str


class JobHistoryQuery(BaseModel):
    job_id: Optional[str] = None
    since: Optional[str] = Field(None, description="ISO timestamp, inclusive.")
    until: Optional[str] = Field(None, description="ISO timestamp, exclusive.")
    limit: int = Field(100, ge=1, le=1000)
