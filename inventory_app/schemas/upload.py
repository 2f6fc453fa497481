from typing import List, Optional

from pydantic import BaseModel, Field


class UploadUrlRequest(BaseModel):
    filename: str = Field(..., min_length=1, max_length=255, description="Original file name, .csv or .xlsx.")
    content_type: Optional[str] = Field(None, max_length=128)


class UploadUrlResponse(BaseModel):
    upload_url: str
    bucket: str
    key: str
    file_id: str
    expires_in: int


class RowErrorResponse(BaseModel):
    row: int
    message: str


class FileStatusResponse(BaseModel):
    """Per-file processing result written by the ingestion pipeline."""
    file_id: str
    bucket: str
    key: str
    pipeline: str
    status: str
    success_count: int = 0
    failed_count: int = 0
    errors: List[RowErrorResponse] = []
    error: Optional[str] = None
    updated_at: Optional[str] = None
