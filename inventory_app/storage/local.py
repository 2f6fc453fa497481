"""Local filesystem blob store backend."""

import asyncio
import hashlib
import logging
import mimetypes
from datetime import datetime
from pathlib import Path
from typing import Optional

from inventory_app.core.errors import ObjectMissing
from inventory_app.storage.base import BlobStore, ObjectCreatedEvent, ObjectInfo
from inventory_app.storage.notifier import BucketNotifier

log = logging.getLogger(__name__)


class LocalBlobStore(BlobStore):
    """
    Local filesystem blob store.

    Buckets are directories under ``base_path``. When a notifier is attached,
    every successful put publishes exactly one ObjectCreatedEvent, which is
    what S3 event notifications do in deployment.
    """

    def __init__(self, base_path: str | Path = "./data/blobs", notifier: Optional[BucketNotifier] = None):
        self.base_path = Path(base_path).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.notifier = notifier
        log.info(f"Local blob store initialized at {self.base_path}")

    def _resolve_path(self, bucket: str, key: str) -> Path:
        """Resolve (bucket, key) to an absolute filesystem path."""
        clean_key = Path(key).as_posix().lstrip("/")
        full_path = self.base_path / bucket / clean_key

        # Security: ensure path is within base_path
        try:
            full_path.resolve().relative_to(self.base_path)
        except ValueError:
            raise ValueError(f"Invalid object key: {key} (outside base directory)")

        return full_path

    async def put_object(self, bucket: str, key: str, data: bytes, content_type: Optional[str] = None) -> ObjectInfo:
        full_path = self._resolve_path(bucket, key)
        full_path.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(full_path.write_bytes, data)

        info = ObjectInfo(
            bucket=bucket,
            key=key,
            size=len(data),
            etag=hashlib.md5(data).hexdigest(),
            content_type=content_type or mimetypes.guess_type(key)[0],
            last_modified=datetime.now(),
        )
        log.info(f"Object written: {bucket}/{key} ({info.size} bytes)")

        if self.notifier is not None:
            await self.notifier.publish(ObjectCreatedEvent(bucket=bucket, key=key, size=info.size, etag=info.etag))
        return info

    async def get_object(self, bucket: str, key: str) -> bytes:
        full_path = self._resolve_path(bucket, key)
        if not full_path.is_file():
            raise ObjectMissing(f"Object not found: {bucket}/{key}")
        return await asyncio.to_thread(full_path.read_bytes)

    async def presign_upload(
        self, bucket: str, key: str, content_type: Optional[str] = None, expires_in: int = 300
    ) -> str:
        # No signing locally; the path is the upload target
        return self._resolve_path(bucket, key).as_uri()
