import logging
import re
import uuid
from datetime import date
from pathlib import PurePosixPath

from inventory_app.core.config import UPLOAD_URL_EXPIRY
from inventory_app.core.errors import NotFound, ValidationError
from inventory_app.schemas.upload import FileStatusResponse, RowErrorResponse, UploadUrlRequest, UploadUrlResponse
from inventory_app.storage.base import BlobStore
from inventory_app.store import FileKeys, KeyedStore
from inventory_app.store.keys import file_id_for

log = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {
    ".csv": "text/csv",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(filename: str) -> str:
    name = PurePosixPath(filename.replace("\\", "/")).name
    name = _UNSAFE_CHARS.sub("_", name).strip("._")
    if not name:
        raise ValidationError("Filename has no usable characters.")
    return name


async def create_upload_url(blobs: BlobStore, bucket: str, prefix: str, request: UploadUrlRequest,
                            expires_in: int = UPLOAD_URL_EXPIRY) -> UploadUrlResponse:
    """
    Issues a short-lived URL the client uploads the file to directly. The
    object key is unique per request, so every upload is a new file identity.
    """
    name = safe_filename(request.filename)
    extension = PurePosixPath(name).suffix.lower()
    if extension not in ALLOWED_EXTENSIONS:
        raise ValidationError(f"Unsupported file type '{extension or name}'. Allowed: .csv, .xlsx")

    key = f"{prefix}/{date.today().isoformat()}/{uuid.uuid4().hex}/{name}"
    content_type = request.content_type or ALLOWED_EXTENSIONS[extension]
    url = await blobs.presign_upload(bucket, key, content_type=content_type, expires_in=expires_in)
    log.info(f"Issued upload URL for {bucket}/{key}")
    return UploadUrlResponse(
        upload_url=url,
        bucket=bucket,
        key=key,
        file_id=file_id_for(bucket, key),
        expires_in=expires_in,
    )


async def get_file_status(store: KeyedStore, file_id: str) -> FileStatusResponse:
    record = await store.get(FileKeys.status(file_id))
    if record is None:
        raise NotFound(f"No processing status for file '{file_id}' yet")
    attrs = record.attributes
    return FileStatusResponse(
        file_id=attrs["file_id"],
        bucket=attrs["bucket"],
        key=attrs["key"],
        pipeline=attrs["pipeline"],
        status=attrs["status"],
        success_count=int(attrs.get("success_count") or 0),
        failed_count=int(attrs.get("failed_count") or 0),
        errors=[RowErrorResponse(**e) for e in attrs.get("errors") or []],
        error=attrs.get("error"),
        updated_at=attrs.get("updated_at"),
    )
