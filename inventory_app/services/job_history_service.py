import logging
import uuid
from typing import Any, Dict, List, Optional

from inventory_app.core.clock import utc_now_iso
from inventory_app.core.errors import ConditionFailed
from inventory_app.schemas.job import JobHistoryEntry, JobHistoryQuery
from inventory_app.store import JobKeys, KeyedStore, Record

log = logging.getLogger(__name__)


def entry_from_record(record: Record) -> JobHistoryEntry:
    attrs = record.attributes
    return JobHistoryEntry(
        entry_id=attrs["entry_id"],
        job_id=attrs["job_id"],
        action=attrs["action"],
        details=attrs.get("details") or {},
        created_at=attrs["created_at"],
    )


async def append_history(
    store: KeyedStore,
    job_id: str,
    action: str,
    details: Optional[Dict[str, Any]] = None,
    *,
    entry_id: Optional[str] = None,
    timestamp: Optional[str] = None,
) -> JobHistoryEntry:
    """
    Appends one immutable history entry to a job. Passing a stable entry_id
    and timestamp makes the append idempotent.
    """
    entry_id = entry_id or uuid.uuid4().hex
    timestamp = timestamp or utc_now_iso()
    key = JobKeys.history(job_id, timestamp, entry_id)
    attrs = {
        "entry_id": entry_id,
        "job_id": job_id,
        "action": action,
        "details": details or {},
        "created_at": timestamp,
    }
    try:
        record = await store.put(key, attrs, if_absent=True)
    except ConditionFailed:
        record = await store.get(key)
        log.info(f"History entry {entry_id} for job {job_id} already recorded")
    return entry_from_record(record)


async def query_history(store: KeyedStore, query: JobHistoryQuery) -> List[JobHistoryEntry]:
    """History entries newest first, for one job or across all jobs."""
    if query.job_id:
        records = await store.query(JobKeys.partition(query.job_id), JobKeys.HISTORY, descending=True)
    else:
        records = await store.scan(JobKeys.PREFIX, sort_prefix=JobKeys.HISTORY)
        records.sort(key=lambda r: r.attributes.get("created_at", ""), reverse=True)

    entries = []
    for record in records:
        created_at = record.attributes.get("created_at", "")
        if query.since and created_at < query.since:
            continue
        if query.until and created_at >= query.until:
            continue
        entries.append(entry_from_record(record))
        if len(entries) >= query.limit:
            break
    return entries
