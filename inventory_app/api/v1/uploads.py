import logging

from fastapi import APIRouter, Depends

from inventory_app.core.config import TEMPLATE_BUCKET, UPLOAD_BUCKET
from inventory_app.dependencies import get_blob_store, get_store
from inventory_app.schemas.response import SuccessResponse
from inventory_app.schemas.upload import UploadUrlRequest
from inventory_app.services.upload_service import create_upload_url, get_file_status
from inventory_app.storage.base import BlobStore
from inventory_app.store import KeyedStore

log = logging.getLogger(__name__)

router = APIRouter()


@router.post("/upload-url", response_model=SuccessResponse)
async def inventory_upload_url_endpoint(request_data: UploadUrlRequest, blobs: BlobStore = Depends(get_blob_store)):
    """Presigned URL for uploading an inventory file (.csv or .xlsx)."""
    upload = await create_upload_url(blobs, UPLOAD_BUCKET, "inventory", request_data)
    return SuccessResponse(data=upload.model_dump())


@router.post("/job-template-upload-url", response_model=SuccessResponse)
async def template_upload_url_endpoint(request_data: UploadUrlRequest, blobs: BlobStore = Depends(get_blob_store)):
    """Presigned URL for uploading a job template file (.csv or .xlsx)."""
    upload = await create_upload_url(blobs, TEMPLATE_BUCKET, "templates", request_data)
    return SuccessResponse(data=upload.model_dump())


@router.get("/files/{file_id}", response_model=SuccessResponse)
async def file_status_endpoint(file_id: str, store: KeyedStore = Depends(get_store)):
    status_ = await get_file_status(store, file_id)
    return SuccessResponse(data=status_.model_dump())
