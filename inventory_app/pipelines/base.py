"""
Shared shape of an ingestion pipeline stage.

A stage is the single consumer of one bucket's object-created notifications.
It fetches the object, parses it into rows, hands the rows to the concrete
stage and records a per-file status record under ``FILE#<file_id>``.
Malformed rows never fail the file; they are collected as row errors.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from inventory_app.core.clock import utc_now_iso
from inventory_app.core.config import MAX_REPORTED_ROW_ERRORS, STORE_MAX_RETRIES, STORE_RETRY_BASE_DELAY
from inventory_app.core.errors import ObjectMissing, ParseError, StoreError
from inventory_app.core.retry import retry_async
from inventory_app.pipelines.parsers import Row, read_rows
from inventory_app.storage.base import BlobStore, ObjectCreatedEvent
from inventory_app.store import FileKeys, KeyedStore
from inventory_app.store.keys import file_id_for

log = logging.getLogger(__name__)

T = TypeVar("T")


class FileStatus:
    PROCESSING = "processing"
    COMPLETED = "completed"
    PARTIAL = "partial"        # Some rows failed
    FAILED = "failed"          # File unreadable or the store gave up
    DISCARDED = "discarded"    # Object vanished before it could be read


@dataclass
class RowError:
    row: int
    message: str


@dataclass
class ProcessingResult:
    file_id: str
    bucket: str
    key: str
    pipeline: str
    status: str = FileStatus.PROCESSING
    success_count: int = 0
    failed_count: int = 0
    errors: List[RowError] = field(default_factory=list)
    error: Optional[str] = None

    def add_error(self, row: int, message: str) -> None:
        self.failed_count += 1
        if len(self.errors) < MAX_REPORTED_ROW_ERRORS:
            self.errors.append(RowError(row, message))

    def finish(self) -> None:
        self.status = FileStatus.PARTIAL if self.failed_count else FileStatus.COMPLETED

    def to_attributes(self) -> Dict[str, Any]:
        return {
            "file_id": self.file_id,
            "bucket": self.bucket,
            "key": self.key,
            "pipeline": self.pipeline,
            "status": self.status,
            "success_count": self.success_count,
            "failed_count": self.failed_count,
            "errors": [{"row": e.row, "message": e.message} for e in self.errors],
            "error": self.error,
            "updated_at": utc_now_iso(),
        }


class IngestionPipeline(ABC):
    name = "ingestion"

    def __init__(self, store: KeyedStore, blobs: BlobStore, max_retries: int = STORE_MAX_RETRIES,
                 retry_base_delay: float = STORE_RETRY_BASE_DELAY):
        self.store = store
        self.blobs = blobs
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay

    async def _retrying(self, operation: Callable[[], Awaitable[T]], label: str) -> T:
        return await retry_async(operation, attempts=self.max_retries, base_delay=self.retry_base_delay,
                                 label=label)

    async def _write_status(self, result: ProcessingResult) -> None:
        attrs = result.to_attributes()
        await self._retrying(lambda: self.store.put(FileKeys.status(result.file_id), attrs),
                             label=f"status {result.file_id}")

    async def on_object_created(self, event: ObjectCreatedEvent) -> ProcessingResult:
        """
        Processes one uploaded file end to end and returns its result.

        Redelivery of the same event is safe: the concrete stages write rows
        under keys derived from the file and row identity.
        """
        result = ProcessingResult(
            file_id=file_id_for(event.bucket, event.key),
            bucket=event.bucket,
            key=event.key,
            pipeline=self.name,
        )

        try:
            data = await self.blobs.get_object(event.bucket, event.key)
        except ObjectMissing:
            log.warning(f"[{self.name}] {event.bucket}/{event.key} no longer exists, discarding event")
            result.status = FileStatus.DISCARDED
            return result

        log.info(f"[{self.name}] Processing {event.bucket}/{event.key} as file {result.file_id}")
        try:
            await self._write_status(result)
            try:
                rows = list(read_rows(data, event.key))
            except ParseError as exc:
                log.error(f"[{self.name}] Cannot parse {event.key}: {exc.message}")
                result.status = FileStatus.FAILED
                result.error = exc.message
                await self._write_status(result)
                return result

            await self.process_rows(result, event, rows)
            result.finish()
            await self._write_status(result)
        except StoreError as exc:
            log.error(f"[{self.name}] Store failure while processing {event.key}: {exc.message}")
            result.status = FileStatus.FAILED
            result.error = f"{exc.code}: {exc.message}"
            try:
                await self._write_status(result)
            except StoreError as status_exc:
                log.error(f"[{self.name}] Could not record failed status for {result.file_id}: {status_exc}")
            return result
        except Exception as exc:
            log.exception(f"[{self.name}] Unexpected failure while processing {event.key}")
            result.status = FileStatus.FAILED
            result.error = f"unexpected_error: {exc}"
            try:
                await self._write_status(result)
            except StoreError as status_exc:
                log.error(f"[{self.name}] Could not record failed status for {result.file_id}: {status_exc}")
            raise

        log.info(
            f"[{self.name}] {event.key}: {result.status}, "
            f"{result.success_count} succeeded, {result.failed_count} failed"
        )
        return result

    @abstractmethod
    async def process_rows(self, result: ProcessingResult, event: ObjectCreatedEvent, rows: List[Row]) -> None:
        """
        Writes the parsed rows, counting successes and row errors on ``result``.

        Raises StoreError only when the store stays unavailable; that fails the file.
        """
        ...
