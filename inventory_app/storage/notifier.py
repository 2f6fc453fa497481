"""
Object-creation notifications.

Each bucket is wired to exactly one consumer (a pipeline stage). Wiring a
second consumer to the same bucket is a configuration error and is caught when
the wiring happens, not when an event arrives.
"""
import logging
from typing import Any, Dict, List, Optional, Protocol
from urllib.parse import unquote_plus

from inventory_app.core.errors import ConfigurationError
from inventory_app.storage.base import ObjectCreatedEvent

log = logging.getLogger(__name__)


class ObjectCreatedConsumer(Protocol):
    async def on_object_created(self, event: ObjectCreatedEvent) -> Any:
        ...


class BucketNotifier:
    def __init__(self):
        self._consumers: Dict[str, ObjectCreatedConsumer] = {}

    def register(self, bucket: str, consumer: ObjectCreatedConsumer) -> None:
        existing = self._consumers.get(bucket)
        if existing is not None and existing is not consumer:
            raise ConfigurationError(
                f"Bucket '{bucket}' is already wired to {type(existing).__name__}; "
                f"refusing to also wire {type(consumer).__name__}"
            )
        self._consumers[bucket] = consumer
        log.info(f"Bucket '{bucket}' wired to {type(consumer).__name__}")

    def consumer_for(self, bucket: str) -> Optional[ObjectCreatedConsumer]:
        return self._consumers.get(bucket)

    async def publish(self, event: ObjectCreatedEvent) -> Any:
        """Delivers one event to the bucket's consumer and returns its result."""
        consumer = self._consumers.get(event.bucket)
        if consumer is None:
            log.warning(f"No consumer wired for bucket '{event.bucket}', dropping event for {event.key}")
            return None
        return await consumer.on_object_created(event)


def parse_s3_notification(payload: Dict[str, Any]) -> List[ObjectCreatedEvent]:
    """
    Extracts ObjectCreated events from an S3 event notification payload.

    Object keys arrive URL-encoded (spaces as '+'); records for other event
    types (removals, test events) are ignored.
    """
    events = []
    for record in payload.get("Records", []) or []:
        if not str(record.get("eventName", "")).startswith("ObjectCreated"):
            continue
        s3 = record.get("s3") or {}
        bucket = (s3.get("bucket") or {}).get("name")
        obj = s3.get("object") or {}
        key = obj.get("key")
        if not bucket or not key:
            log.warning(f"Skipping malformed S3 notification record: {record}")
            continue
        events.append(ObjectCreatedEvent(
            bucket=bucket,
            key=unquote_plus(key),
            size=int(obj.get("size") or 0),
            etag=obj.get("eTag"),
        ))
    return events
