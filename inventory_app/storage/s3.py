"""S3 blob store backend."""

import asyncio
import logging
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from inventory_app.core.errors import ObjectMissing
from inventory_app.storage.base import BlobStore, ObjectInfo

log = logging.getLogger(__name__)

_MISSING_CODES = {"NoSuchKey", "404", "NotFound"}


class S3BlobStore(BlobStore):
    """
    S3-compatible object storage backend.

    Works with AWS S3, MinIO and LocalStack. Object-created notifications are
    emitted by S3 itself and arrive through parse_s3_notification.
    boto3 is blocking, so calls run in a worker thread.
    """

    def __init__(self, region: str = "us-east-1", endpoint_url: Optional[str] = None, client=None):
        self.region = region
        self.endpoint_url = endpoint_url
        self._client = client

    @property
    def client(self):
        # Created lazily: building a client needs a resolvable region/credentials
        if self._client is None:
            client_kwargs = {
                "service_name": "s3",
                "region_name": self.region,
                "config": Config(signature_version="s3v4"),
            }
            if self.endpoint_url:
                client_kwargs["endpoint_url"] = self.endpoint_url
            self._client = boto3.client(**client_kwargs)
            log.info(f"S3 client initialized (region={self.region}, endpoint={self.endpoint_url})")
        return self._client

    async def put_object(self, bucket: str, key: str, data: bytes, content_type: Optional[str] = None) -> ObjectInfo:
        extra_args = {"ContentType": content_type} if content_type else {}
        response = await asyncio.to_thread(
            self.client.put_object, Bucket=bucket, Key=key, Body=data, **extra_args
        )
        log.info(f"S3 object written: {bucket}/{key} ({len(data)} bytes)")
        return ObjectInfo(
            bucket=bucket,
            key=key,
            size=len(data),
            etag=(response.get("ETag") or "").strip('"') or None,
            content_type=content_type,
        )

    async def get_object(self, bucket: str, key: str) -> bytes:
        try:
            response = await asyncio.to_thread(self.client.get_object, Bucket=bucket, Key=key)
            return await asyncio.to_thread(response["Body"].read)
        except ClientError as e:
            if e.response["Error"]["Code"] in _MISSING_CODES:
                raise ObjectMissing(f"Object not found: {bucket}/{key}")
            raise

    async def presign_upload(
        self, bucket: str, key: str, content_type: Optional[str] = None, expires_in: int = 300
    ) -> str:
        params = {"Bucket": bucket, "Key": key}
        if content_type:
            params["ContentType"] = content_type
        return await asyncio.to_thread(
            self.client.generate_presigned_url,
            ClientMethod="put_object",
            Params=params,
            ExpiresIn=expires_in,
        )
