import logging
from typing import Any, Dict, List, Optional

from inventory_app.core.clock import utc_now_iso
from inventory_app.core.config import STOCK_CAS_MAX_ATTEMPTS
from inventory_app.core.errors import ConditionFailed, NotFound
from inventory_app.core.retry import contention_pause
from inventory_app.schemas.inventory import InventoryEventResponse, InventoryItemResponse, InventoryQuery
from inventory_app.store import InventoryKeys, KeyedStore, Record
from inventory_app.store.keys import ROOT

log = logging.getLogger(__name__)

# Attributes an uploaded file may set on an item; quantity only moves through events
METADATA_FIELDS = ("sku", "name", "unit", "category", "location", "reorder_level")


def item_from_record(record: Record, events: Optional[List[Record]] = None) -> InventoryItemResponse:
    attrs = record.attributes
    quantity = int(attrs.get("quantity", 0))
    reorder_level = int(attrs.get("reorder_level") or 0)
    return InventoryItemResponse(
        item_id=InventoryKeys.item_id(record.partition),
        sku=attrs.get("sku", ""),
        name=attrs.get("name", ""),
        quantity=quantity,
        unit=attrs.get("unit") or "each",
        category=attrs.get("category"),
        location=attrs.get("location"),
        reorder_level=reorder_level,
        low_stock=quantity <= reorder_level,
        updated_at=attrs.get("updated_at"),
        events=[event_from_record(e) for e in events] if events is not None else None,
    )


def event_from_record(record: Record) -> InventoryEventResponse:
    attrs = record.attributes
    return InventoryEventResponse(
        event_id=attrs["event_id"],
        kind=attrs["kind"],
        quantity=int(attrs["quantity"]),
        quantity_after=int(attrs["quantity_after"]),
        job_id=attrs.get("job_id"),
        note=attrs.get("note"),
        reference=attrs.get("reference"),
        source_file=attrs.get("source_file"),
        created_at=attrs["created_at"],
    )


def _matches(item: InventoryItemResponse, query: InventoryQuery) -> bool:
    if query.category and (item.category or "").lower() != query.category.lower():
        return False
    if query.search:
        needle = query.search.lower()
        if needle not in item.name.lower() and needle not in item.sku.lower():
            return False
    if query.low_stock and not item.low_stock:
        return False
    return True


async def get_item(store: KeyedStore, item_id: str, include_events: bool = False,
                   event_limit: int = 20) -> InventoryItemResponse:
    """Fetches one item root, optionally with its most recent events (newest first)."""
    root = await store.get(InventoryKeys.root(item_id))
    if root is None:
        raise NotFound(f"Inventory item '{item_id}' not found")
    events = None
    if include_events:
        events = await store.query(root.partition, InventoryKeys.EVENT, limit=event_limit, descending=True)
    return item_from_record(root, events)


async def list_inventory(store: KeyedStore, query: InventoryQuery) -> List[InventoryItemResponse]:
    """Read-only listing of item roots filtered by category, search text and stock level."""
    if query.item_id:
        item = await get_item(store, query.item_id, query.include_events, query.event_limit)
        return [item] if _matches(item, query) else []

    roots = await store.scan(InventoryKeys.PREFIX, sort_key=ROOT)
    items = [item_from_record(r) for r in roots]
    return [item for item in items if _matches(item, query)]


async def ensure_item(store: KeyedStore, item_id: str, metadata: Dict[str, Any]) -> Record:
    """
    Creates the item root with quantity 0, or merges new metadata into an
    existing root without touching its quantity. Repeating the call with the
    same metadata is a no-op.
    """
    key = InventoryKeys.root(item_id)
    metadata = {k: v for k, v in metadata.items() if k in METADATA_FIELDS and v is not None}

    for attempt in range(STOCK_CAS_MAX_ATTEMPTS):
        root = await store.get(key)
        if root is None:
            now = utc_now_iso()
            try:
                return await store.put(
                    key,
                    {**metadata, "item_id": item_id, "quantity": 0, "created_at": now, "updated_at": now},
                    if_absent=True,
                )
            except ConditionFailed:
                continue  # Created concurrently; merge into it

        if all(root.attributes.get(k) == v for k, v in metadata.items()):
            return root
        merged = {**root.attributes, **metadata, "updated_at": utc_now_iso()}
        try:
            return await store.put(key, merged, expected_version=root.version)
        except ConditionFailed:
            await contention_pause(attempt)

    raise ConditionFailed(key, f"Too much contention updating item '{item_id}'")
