"""
Job creation and synchronization with WorkflowMax.

A job is first written locally as ``pending`` (no external id), then created
in WFM. Only a well-formed WFM identifier moves the record to ``synced``; any
sync failure leaves it ``pending`` with the error recorded, where the
reconciliation pass picks it up later.
"""
import logging
import uuid
from datetime import date
from typing import Any, Dict, List, Optional

from inventory_app.core.clock import utc_now_iso
from inventory_app.core.errors import ConditionFailed, ConfigurationError, ExternalRejected, ExternalSyncError, NotFound
from inventory_app.integrations.config_provider import ConfigProvider
from inventory_app.integrations.wfm_client import WfmClient, extract_external_id
from inventory_app.schemas.job import JobCreateRequest, JobMaterial, JobResponse, JobSyncStatus
from inventory_app.services.job_history_service import append_history
from inventory_app.services.job_template_service import get_template
from inventory_app.store import JobKeys, KeyedStore, Record
from inventory_app.store.keys import ROOT

log = logging.getLogger(__name__)

SAVE_ATTEMPTS = 3


def job_from_record(record: Record) -> JobResponse:
    attrs = record.attributes
    return JobResponse(
        job_id=attrs["job_id"],
        name=attrs["name"],
        description=attrs.get("description"),
        client_id=attrs.get("client_id"),
        template_id=attrs.get("template_id"),
        start_date=attrs.get("start_date"),
        due_date=attrs.get("due_date"),
        status=JobSyncStatus(attrs.get("status", JobSyncStatus.PENDING.value)),
        external_id=attrs.get("external_id"),
        sync_attempts=int(attrs.get("sync_attempts") or 0),
        last_sync_error=attrs.get("last_sync_error"),
        materials=[JobMaterial(**m) for m in attrs.get("materials") or []],
        created_at=attrs["created_at"],
        synced_at=attrs.get("synced_at"),
    )


def _wfm_date(value: Optional[str]) -> Optional[str]:
    # WFM expects yyyyMMdd
    return value.replace("-", "") if value else None


def build_wfm_payload(attrs: Dict[str, Any], app_config: Dict[str, Any]) -> Dict[str, Any]:
    """Maps a local job record plus the app config blob onto a WFM create-job body."""
    client_id = attrs.get("client_id") or app_config.get("wfm_client_uuid")
    if not client_id:
        raise ConfigurationError("No WFM client given and no wfm_client_uuid in app config")

    start = attrs.get("start_date") or date.today().isoformat()
    payload = {
        "Name": attrs["name"],
        "Description": attrs.get("description") or attrs["name"],
        "ClientUUID": client_id,
        "StartDate": _wfm_date(start),
        "DueDate": _wfm_date(attrs.get("due_date") or start),
        # Lets reconciliation find a job that was created but whose response was lost
        "ClientOrderNumber": attrs["job_id"],
    }
    template_uuid = (app_config.get("template_mappings") or {}).get(attrs.get("template_id") or "")
    if template_uuid:
        payload["TemplateUUID"] = template_uuid
    if app_config.get("job_category_uuid"):
        payload["CategoryUUID"] = app_config["job_category_uuid"]
    if app_config.get("job_manager_uuid"):
        payload["ManagerUUID"] = app_config["job_manager_uuid"]
    return payload


async def _save(store: KeyedStore, record: Record, changes: Dict[str, Any]) -> Record:
    """Version-checked update; a record that got synced meanwhile is never downgraded."""
    for _ in range(SAVE_ATTEMPTS):
        try:
            return await store.put(record.key, {**record.attributes, **changes}, expected_version=record.version)
        except ConditionFailed:
            current = await store.get(record.key)
            if current is None:
                raise NotFound(f"Job record {record.key} disappeared")
            if current.attributes.get("status") == JobSyncStatus.SYNCED.value:
                return current
            record = current
    raise ConditionFailed(record.key, "Too much contention updating job record")


async def _mark_synced(store: KeyedStore, record: Record, external_id: str, action: str) -> Record:
    now = utc_now_iso()
    saved = await _save(store, record, {
        "status": JobSyncStatus.SYNCED.value,
        "external_id": external_id,
        "synced_at": now,
        "sync_attempts": int(record.attributes.get("sync_attempts") or 0) + 1,
        "last_sync_error": None,
    })
    await append_history(store, record.attributes["job_id"], action, {"external_id": saved.attributes.get("external_id")})
    log.info(f"Job {record.attributes['job_id']} synced as WFM job {saved.attributes.get('external_id')}")
    return saved


async def sync_job(store: KeyedStore, wfm: WfmClient, provider: ConfigProvider, record: Record) -> Record:
    """Creates the job in WFM. Never raises for sync failures; the record stays pending."""
    attrs = record.attributes
    job_id = attrs["job_id"]
    try:
        payload = build_wfm_payload(attrs, await provider.get_app_config())
        response = await wfm.create_job(payload)
        external_id = extract_external_id(response)
        if external_id is None:
            raise ExternalRejected("WFM response carried no valid job identifier", details=response)
    except (ExternalSyncError, ConfigurationError) as exc:
        log.warning(f"Job {job_id} left pending: {exc.code}: {exc.message}")
        saved = await _save(store, record, {
            "sync_attempts": int(attrs.get("sync_attempts") or 0) + 1,
            "last_sync_error": f"{exc.code}: {exc.message}",
            "last_sync_at": utc_now_iso(),
        })
        await append_history(store, job_id, "sync_failed", {"code": exc.code, "error": exc.message})
        return saved

    return await _mark_synced(store, record, external_id, "synced")


async def create_job(store: KeyedStore, wfm: WfmClient, provider: ConfigProvider,
                     request: JobCreateRequest) -> JobResponse:
    materials = []
    if request.template_id:
        # Unknown template is a client error raised before anything is written
        template = await get_template(store, request.template_id)
        materials = [{"item_id": line.item_id, "quantity": line.quantity, "description": line.description}
                     for line in template.lines or []]

    job_id = uuid.uuid4().hex
    now = utc_now_iso()
    record = await store.put(JobKeys.root(job_id), {
        "job_id": job_id,
        "name": request.name,
        "description": request.description,
        "client_id": request.client_id,
        "template_id": request.template_id,
        "start_date": request.start_date.isoformat() if request.start_date else None,
        "due_date": request.due_date.isoformat() if request.due_date else None,
        "materials": materials,
        "status": JobSyncStatus.PENDING.value,
        "external_id": None,
        "sync_attempts": 0,
        "created_at": now,
    }, if_absent=True)
    await append_history(store, job_id, "created", {"name": request.name, "template_id": request.template_id},
                         timestamp=now)

    record = await sync_job(store, wfm, provider, record)
    return job_from_record(record)


async def get_job(store: KeyedStore, job_id: str) -> JobResponse:
    record = await store.get(JobKeys.root(job_id))
    if record is None:
        raise NotFound(f"Job '{job_id}' not found")
    return job_from_record(record)


async def list_pending_jobs(store: KeyedStore, limit: Optional[int] = None) -> List[Record]:
    roots = await store.scan(JobKeys.PREFIX, sort_key=ROOT)
    pending = [r for r in roots if r.attributes.get("status") == JobSyncStatus.PENDING.value]
    pending.sort(key=lambda r: r.attributes.get("created_at", ""))
    return pending[:limit] if limit else pending


async def reconcile_pending_jobs(store: KeyedStore, wfm: WfmClient, provider: ConfigProvider,
                                 limit: int = 50) -> Dict[str, int]:
    """
    Retries synchronization for pending jobs. A WFM job whose ClientOrderNumber
    matches the local job id is adopted instead of creating a duplicate.
    Failing to list WFM jobs aborts the pass, since creating blind could duplicate.
    """
    summary = {"checked": 0, "adopted": 0, "synced": 0, "still_pending": 0}
    pending = await list_pending_jobs(store, limit)
    if not pending:
        return summary

    remote = await wfm.list_jobs()
    by_reference = {str(j.get("ClientOrderNumber")): j for j in remote if j.get("ClientOrderNumber")}

    for record in pending:
        summary["checked"] += 1
        job_id = record.attributes["job_id"]
        match = by_reference.get(job_id)
        external_id = extract_external_id(match) if match else None
        if external_id:
            await _mark_synced(store, record, external_id, "adopted")
            summary["adopted"] += 1
            continue

        saved = await sync_job(store, wfm, provider, record)
        if saved.attributes.get("status") == JobSyncStatus.SYNCED.value:
            summary["synced"] += 1
        else:
            summary["still_pending"] += 1

    log.info(f"Reconciliation finished: {summary}")
    return summary
