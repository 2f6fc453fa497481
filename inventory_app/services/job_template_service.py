import logging
from collections import defaultdict
from typing import Dict, List, Optional

from inventory_app.core.clock import utc_now_iso
from inventory_app.core.errors import AlreadyExists, ConditionFailed, InvalidKey, NotFound, ValidationError
from inventory_app.schemas.job_template import (
    JobTemplateRequest,
    JobTemplateResponse,
    TemplateLine,
    TemplateLineResponse,
)
from inventory_app.store import JobTemplateKeys, KeyedStore, Record, Write
from inventory_app.store.keys import ROOT, slugify

log = logging.getLogger(__name__)


def template_id_for(name: str) -> str:
    try:
        return slugify(name)
    except InvalidKey as exc:
        raise ValidationError(f"Template name {name!r} has no usable characters") from exc


def item_id_for(sku: str) -> str:
    try:
        return slugify(sku)
    except InvalidKey as exc:
        raise ValidationError(f"SKU {sku!r} has no usable characters") from exc


def _line_from_record(record: Record) -> TemplateLineResponse:
    attrs = record.attributes
    return TemplateLineResponse(
        item_id=attrs["item_id"],
        sku=attrs["sku"],
        quantity=int(attrs["quantity"]),
        description=attrs.get("description"),
    )


def _template_from_records(root: Record, lines: List[Record], include_lines: bool) -> JobTemplateResponse:
    attrs = root.attributes
    return JobTemplateResponse(
        template_id=attrs["template_id"],
        name=attrs["name"],
        description=attrs.get("description"),
        line_count=len(lines),
        source_file=attrs.get("source_file"),
        updated_at=attrs.get("updated_at"),
        lines=[_line_from_record(r) for r in lines] if include_lines else None,
    )


def _template_writes(template_id: str, name: str, description: Optional[str], lines: List[TemplateLine],
                     source_file: Optional[str], now: str, create_only: bool) -> List[Write]:
    root = {
        "template_id": template_id,
        "name": name,
        "description": description,
        "source_file": source_file,
        "updated_at": now,
    }
    writes = [Write(JobTemplateKeys.root(template_id), root, if_absent=create_only)]
    for line in lines:
        item_id = item_id_for(line.sku)
        writes.append(Write(JobTemplateKeys.line(template_id, item_id), {
            "item_id": item_id,
            "sku": line.sku,
            "quantity": line.quantity,
            "description": line.description,
        }))
    return writes


def _check_unique_lines(lines: List[TemplateLine]) -> None:
    seen = set()
    for line in lines:
        item_id = item_id_for(line.sku)
        if item_id in seen:
            raise ValidationError(f"SKU '{line.sku}' appears more than once in the template")
        seen.add(item_id)


async def create_template(store: KeyedStore, request: JobTemplateRequest) -> JobTemplateResponse:
    """Creates a template and its lines atomically. Fails if the name is taken."""
    template_id = template_id_for(request.name)
    _check_unique_lines(request.lines)
    writes = _template_writes(template_id, request.name, request.description, request.lines,
                              source_file=None, now=utc_now_iso(), create_only=True)
    try:
        await store.transact_write(writes)
    except ConditionFailed as exc:
        raise AlreadyExists(f"Job template '{request.name}' already exists") from exc
    log.info(f"Job template {template_id} created with {len(request.lines)} lines")
    return await get_template(store, template_id)


async def upsert_template(store: KeyedStore, name: str, lines: List[TemplateLine],
                          description: Optional[str] = None, source_file: Optional[str] = None) -> str:
    """
    Creates or updates a template from an uploaded file. Lines are keyed by
    item, so writing the same file again overwrites them identically.
    """
    template_id = template_id_for(name)
    existing = await store.get(JobTemplateKeys.root(template_id))
    if description is None and existing is not None:
        description = existing.attributes.get("description")
    writes = _template_writes(template_id, name, description, lines, source_file=source_file,
                              now=utc_now_iso(), create_only=False)
    await store.transact_write(writes)
    return template_id


async def get_template(store: KeyedStore, template_id: str) -> JobTemplateResponse:
    records = await store.query(JobTemplateKeys.partition(template_id))
    root = next((r for r in records if r.sort == ROOT), None)
    if root is None:
        raise NotFound(f"Job template '{template_id}' not found")
    lines = [r for r in records if r.sort.startswith(JobTemplateKeys.LINE)]
    return _template_from_records(root, lines, include_lines=True)


async def list_templates(store: KeyedStore) -> List[JobTemplateResponse]:
    records = await store.scan(JobTemplateKeys.PREFIX)
    roots: Dict[str, Record] = {}
    lines: Dict[str, List[Record]] = defaultdict(list)
    for record in records:
        if record.sort == ROOT:
            roots[record.partition] = record
        elif record.sort.startswith(JobTemplateKeys.LINE):
            lines[record.partition].append(record)
    return [_template_from_records(root, lines[partition], include_lines=False)
            for partition, root in roots.items()]
