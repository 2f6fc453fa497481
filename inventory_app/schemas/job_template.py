from typing import List, Optional

from pydantic import BaseModel, Field


class TemplateLine(BaseModel):
    """One inventory item a job built from the template will need."""
    sku: str = Field(..., min_length=1, max_length=128)
    quantity: int = Field(..., gt=0)
    description: Optional[str] = Field(None, max_length=500)


class JobTemplateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    lines: List[TemplateLine] = Field(default_factory=list)


class TemplateLineResponse(BaseModel):
    item_id: str
    sku: str
    quantity: int
    description: Optional[str] = None


class JobTemplateResponse(BaseModel):
    template_id: str
    name: str
    description: Optional[str] = None
    line_count: int = 0
    source_file: Optional[str] = None
    updated_at: Optional[str] = None
    lines: Optional[List[TemplateLineResponse]] = None
