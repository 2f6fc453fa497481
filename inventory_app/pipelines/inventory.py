import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from inventory_app.core.errors import ConditionFailed, InvalidKey, NotFound, ParseError, ValidationError
from inventory_app.pipelines.base import IngestionPipeline, ProcessingResult
from inventory_app.pipelines.parsers import EXTRA_COLUMNS, Row, optional_text, parse_int, require
from inventory_app.schemas.stock import MovementKind
from inventory_app.services.inventory_service import ensure_item
from inventory_app.services.stock_service import apply_movement
from inventory_app.storage.base import ObjectCreatedEvent
from inventory_app.store.keys import slugify

log = logging.getLogger(__name__)


class InventoryRow(BaseModel):
    sku: str
    name: str
    quantity: int
    unit: str = "each"
    category: Optional[str] = None
    location: Optional[str] = None
    reorder_level: int = 0


def parse_inventory_row(raw: Dict[str, Any]) -> InventoryRow:
    if EXTRA_COLUMNS in raw:
        raise ParseError("Row has more values than the header has columns")
    return InventoryRow(
        sku=require(raw, "sku"),
        name=require(raw, "name"),
        quantity=parse_int(raw, "quantity", minimum=0),
        unit=optional_text(raw, "unit") or "each",
        category=optional_text(raw, "category"),
        location=optional_text(raw, "location"),
        reorder_level=parse_int(raw, "reorder_level", default=0, minimum=0),
    )


class InventoryFilePipeline(IngestionPipeline):
    """
    Imports an inventory file. Each row upserts the item's metadata and, when
    the quantity is non-zero, appends an ``import`` stock event with id
    ``<file_id>-<row_number>``. Re-processing the same file finds the events
    already applied and leaves the quantities unchanged.
    """
    name = "inventory"

    async def _import_row(self, result: ProcessingResult, event: ObjectCreatedEvent, row_number: int,
                          item_id: str, row: InventoryRow) -> None:
        await ensure_item(self.store, item_id, row.model_dump(exclude={"quantity"}))
        if row.quantity > 0:
            await apply_movement(
                self.store,
                item_id,
                MovementKind.IMPORT,
                row.quantity,
                event_id=f"{result.file_id}-{row_number}",
                source_file=event.key,
            )

    async def process_rows(self, result: ProcessingResult, event: ObjectCreatedEvent, rows: List[Row]) -> None:
        for row_number, raw in rows:
            try:
                row = parse_inventory_row(raw)
                item_id = slugify(row.sku)
            except (ParseError, InvalidKey) as exc:
                result.add_error(row_number, exc.message)
                continue

            try:
                await self._retrying(
                    lambda: self._import_row(result, event, row_number, item_id, row),
                    label=f"{event.key} row {row_number}",
                )
            except (ValidationError, NotFound, InvalidKey, ConditionFailed) as exc:
                result.add_error(row_number, exc.message)
                continue
            result.success_count += 1
