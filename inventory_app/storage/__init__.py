"""Blob storage for uploaded files and their creation notifications."""

from inventory_app.storage.base import BlobStore, ObjectCreatedEvent, ObjectInfo
from inventory_app.storage.local import LocalBlobStore
from inventory_app.storage.notifier import BucketNotifier, parse_s3_notification
from inventory_app.storage.s3 import S3BlobStore

__all__ = [
    "BlobStore",
    "BucketNotifier",
    "LocalBlobStore",
    "ObjectCreatedEvent",
    "ObjectInfo",
    "S3BlobStore",
    "parse_s3_notification",
]
