"""
Stock movements: stock received, stock consumed, and opening stock imported
from uploaded files.

Each movement is appended as an immutable event in the item's partition and
the item's running quantity is updated in the same single-partition
transaction with a version-conditional write. A lost race re-reads the item
and tries again, so concurrent movements never overwrite each other. The
quantity therefore always equals the sum of stock/import events minus the
sum of consume events.

Movements are idempotent per event id: a REQUEST#<event_id> marker is created
in the same transaction, so replaying a request (client retry, redelivered
file) returns the original movement instead of applying it twice.
"""
import logging
import uuid
from typing import Optional

from inventory_app.core.clock import utc_now_iso
from inventory_app.core.config import STOCK_CAS_MAX_ATTEMPTS
from inventory_app.core.errors import ConditionFailed, NotFound, ValidationError
from inventory_app.core.retry import contention_pause, retry_async
from inventory_app.schemas.stock import ConsumeRequest, MovementKind, MovementResponse, StockRequest
from inventory_app.services.job_history_service import append_history
from inventory_app.store import InventoryKeys, JobKeys, KeyedStore, Write

log = logging.getLogger(__name__)


def _movement_from_marker(attrs: dict) -> MovementResponse:
    return MovementResponse(
        event_id=attrs["event_id"],
        item_id=attrs["item_id"],
        kind=MovementKind(attrs["kind"]),
        quantity=int(attrs["quantity"]),
        quantity_after=int(attrs["quantity_after"]),
        job_id=attrs.get("job_id"),
        created_at=attrs["created_at"],
        duplicate=True,
    )


async def apply_movement(
    store: KeyedStore,
    item_id: str,
    kind: MovementKind,
    quantity: int,
    *,
    event_id: Optional[str] = None,
    job_id: Optional[str] = None,
    note: Optional[str] = None,
    reference: Optional[str] = None,
    source_file: Optional[str] = None,
    max_attempts: int = STOCK_CAS_MAX_ATTEMPTS,
) -> MovementResponse:
    if quantity <= 0:
        raise ValidationError("Quantity must be greater than zero.")
    delta = -quantity if kind == MovementKind.CONSUME else quantity
    event_id = event_id or uuid.uuid4().hex
    root_key = InventoryKeys.root(item_id)
    marker_key = InventoryKeys.request(item_id, event_id)

    for attempt in range(max_attempts):
        marker = await store.get(marker_key)
        if marker is not None:
            log.info(f"Movement {event_id} for item {item_id} already applied, returning original")
            return _movement_from_marker(marker.attributes)

        root = await store.get(root_key)
        if root is None:
            raise NotFound(f"Inventory item '{item_id}' not found")

        current = int(root.attributes.get("quantity", 0))
        new_quantity = current + delta
        if new_quantity < 0:
            raise ValidationError(
                f"Insufficient inventory for '{item_id}'. Requested: {quantity}, Available: {current}"
            )

        created_at = utc_now_iso()
        event_key = InventoryKeys.event(item_id, created_at, event_id)
        movement = {
            "event_id": event_id,
            "item_id": item_id,
            "kind": kind.value,
            "quantity": quantity,
            "quantity_after": new_quantity,
            "job_id": job_id,
            "created_at": created_at,
        }
        event = {**movement, "note": note, "reference": reference, "source_file": source_file}

        try:
            await store.transact_write([
                Write(marker_key, {**movement, "event_sort_key": event_key.sort}, if_absent=True),
                Write(event_key, event, if_absent=True),
                Write(root_key, {**root.attributes, "quantity": new_quantity, "updated_at": created_at},
                      expected_version=root.version),
            ])
        except ConditionFailed as exc:
            if exc.key == marker_key:
                continue  # A concurrent replay won; the next pass returns its result
            log.debug(f"Quantity update for {item_id} lost a race (attempt {attempt + 1}), re-reading")
            await contention_pause(attempt)
            continue

        log.info(f"{kind.value} {quantity} x {item_id}: {current} -> {new_quantity}")
        return MovementResponse(**movement)

    raise ConditionFailed(root_key, f"Too much contention updating quantity of '{item_id}'")


async def record_stock(store: KeyedStore, request: StockRequest) -> MovementResponse:
    """Appends a stock event and increments the item's quantity."""
    # Fix the event id up front so transient retries replay the same movement
    event_id = request.request_id or uuid.uuid4().hex
    return await retry_async(
        lambda: apply_movement(
            store, request.item_id, MovementKind.STOCK, request.quantity,
            event_id=event_id, note=request.note, reference=request.reference,
        ),
        label=f"stock {request.item_id}",
    )


async def record_consumption(store: KeyedStore, request: ConsumeRequest) -> MovementResponse:
    """
    Appends a consume event and decrements the item's quantity. When the
    consumption is against a job, the job must exist and gets a history entry.
    """
    if request.job_id and await store.get(JobKeys.root(request.job_id)) is None:
        raise NotFound(f"Job '{request.job_id}' not found")

    event_id = request.request_id or uuid.uuid4().hex
    movement = await retry_async(
        lambda: apply_movement(
            store, request.item_id, MovementKind.CONSUME, request.quantity,
            event_id=event_id, job_id=request.job_id, note=request.note,
        ),
        label=f"consume {request.item_id}",
    )

    if request.job_id:
        # Different partition: eventually consistent with the movement, idempotent by event id
        await append_history(
            store,
            request.job_id,
            "consumed",
            {"item_id": movement.item_id, "quantity": movement.quantity, "event_id": movement.event_id},
            entry_id=movement.event_id,
            timestamp=movement.created_at,
        )
    return movement
