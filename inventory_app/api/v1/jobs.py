import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from inventory_app.dependencies import get_config_provider, get_store, get_wfm_client
from inventory_app.integrations.config_provider import ConfigProvider
from inventory_app.integrations.wfm_client import WfmClient
from inventory_app.schemas.job import JobCreateRequest, JobSyncStatus
from inventory_app.schemas.response import SuccessResponse
from inventory_app.services.job_service import create_job, get_job
from inventory_app.store import KeyedStore

log = logging.getLogger(__name__)

router = APIRouter()


@router.post("/jobs", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_job_endpoint(
    request_data: JobCreateRequest,
    store: KeyedStore = Depends(get_store),
    wfm: WfmClient = Depends(get_wfm_client),
    provider: ConfigProvider = Depends(get_config_provider),
):
    """
    Creates a job locally and in WorkflowMax. Returns 201 once synced, or
    202 when the job was stored but is still pending synchronization.
    """
    job = await create_job(store, wfm, provider, request_data)
    body = SuccessResponse(data=job.model_dump(mode="json"))
    if job.status == JobSyncStatus.PENDING:
        log.warning(f"Job {job.job_id} accepted but pending sync: {job.last_sync_error}")
        return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=body.model_dump())
    return body


@router.get("/jobs/{job_id}", response_model=SuccessResponse)
async def get_job_endpoint(job_id: str, store: KeyedStore = Depends(get_store)):
    job = await get_job(store, job_id)
    return SuccessResponse(data=job.model_dump(mode="json"))
