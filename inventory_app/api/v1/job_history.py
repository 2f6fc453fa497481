from typing import Optional

from fastapi import APIRouter, Depends, Query

from inventory_app.dependencies import get_store
from inventory_app.schemas.job import JobHistoryQuery
from inventory_app.schemas.response import SuccessResponse
from inventory_app.services.job_history_service import query_history
from inventory_app.store import KeyedStore

router = APIRouter()


@router.get("/job-history", response_model=SuccessResponse)
async def job_history_endpoint(
    job_id: Optional[str] = Query(None, max_length=64),
    since: Optional[str] = Query(None, description="ISO timestamp, inclusive."),
    until: Optional[str] = Query(None, description="ISO timestamp, exclusive."),
    limit: int = Query(100, ge=1, le=1000),
    store: KeyedStore = Depends(get_store),
):
    """Job history entries, newest first, for one job or across all jobs."""
    entries = await query_history(store, JobHistoryQuery(job_id=job_id, since=since, until=until, limit=limit))
    return SuccessResponse(data={"entries": [e.model_dump() for e in entries], "count": len(entries)})
