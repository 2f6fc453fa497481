import uuid
from typing import Any, Optional

from pydantic import BaseModel, Field


def _rid() -> str:
    return uuid.uuid4().hex


class SuccessResponse(BaseModel):
    """
    Envelope for every successful inventory, job and file-status response.

    Carries the same ``request_id`` field as the error envelope so callers can
    correlate either outcome with the service logs.
    """
    success: bool = Field(default=True)
    request_id: str = Field(default_factory=_rid)
    data: Optional[Any] = None
