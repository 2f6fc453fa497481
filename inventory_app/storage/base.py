"""Base blob store interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class ObjectInfo:
    """Information about a stored object."""

    bucket: str
    key: str
    size: int
    etag: Optional[str] = None
    content_type: Optional[str] = None
    last_modified: Optional[datetime] = None


@dataclass(frozen=True)
class ObjectCreatedEvent:
    """One object-creation notification, as delivered to a pipeline stage."""

    bucket: str
    key: str
    size: int
    etag: Optional[str] = None


class BlobStore(ABC):
    """Abstract base class for blob storage backends."""

    @abstractmethod
    async def put_object(self, bucket: str, key: str, data: bytes, content_type: Optional[str] = None) -> ObjectInfo:
        """
        Store bytes under (bucket, key).

        Returns:
            ObjectInfo describing the stored object
        """
        ...

    @abstractmethod
    async def get_object(self, bucket: str, key: str) -> bytes:
        """
        Read an object's bytes.

        Raises:
            ObjectMissing: If the object doesn't exist
        """
        ...

    @abstractmethod
    async def presign_upload(
        self, bucket: str, key: str, content_type: Optional[str] = None, expires_in: int = 300
    ) -> str:
        """Short-lived URL a client can PUT the object's bytes to."""
        ...
