# scripts/seed_data.py
"""
Seeds a few inventory items with opening stock and one job template.

Safe to run repeatedly: items are upserted and the opening stock events use
fixed ids, so a second run changes nothing.
"""
import asyncio
import logging

from inventory_app.core.db import close_db, init_db
from inventory_app.core.errors import AlreadyExists
from inventory_app.core.log import configure_logging
from inventory_app.schemas.job_template import JobTemplateRequest, TemplateLine
from inventory_app.schemas.stock import MovementKind
from inventory_app.services.inventory_service import ensure_item
from inventory_app.services.job_template_service import create_template
from inventory_app.services.stock_service import apply_movement
from inventory_app.store import KeyedStore
from inventory_app.store.keys import slugify

log = logging.getLogger(__name__)

ITEMS = [
    # metadata, opening quantity
    ({"sku": "CABLE-2.5MM", "name": "2.5mm Twin & Earth Cable (m)", "unit": "m",
      "category": "electrical", "location": "Van 1", "reorder_level": 50}, 200),
    ({"sku": "SOCKET-DOUBLE", "name": "Double Power Socket", "unit": "each",
      "category": "electrical", "location": "Warehouse", "reorder_level": 10}, 40),
    ({"sku": "PIPE-15MM", "name": "15mm Copper Pipe (3m)", "unit": "each",
      "category": "plumbing", "location": "Warehouse", "reorder_level": 5}, 12),
]


async def seed(store: KeyedStore):
    for metadata, quantity in ITEMS:
        item_id = slugify(metadata["sku"])
        await ensure_item(store, item_id, metadata)
        movement = await apply_movement(store, item_id, MovementKind.IMPORT, quantity, event_id=f"seed-{item_id}",
                                        note="Opening stock")
        log.info(f"Item {item_id}: quantity {movement.quantity_after}")

    try:
        template = await create_template(store, JobTemplateRequest(
            name="Kitchen rewire",
            description="Standard kitchen circuit rewire",
            lines=[TemplateLine(sku="CABLE-2.5MM", quantity=30), TemplateLine(sku="SOCKET-DOUBLE", quantity=4)],
        ))
        log.info(f"Template {template.template_id} created")
    except AlreadyExists:
        log.info("Template 'Kitchen rewire' already seeded")

    log.info("Inventory seeded.")


async def main():
    configure_logging()
    await init_db()
    try:
        await seed(KeyedStore())
    finally:
        await close_db()

if __name__ == "__main__":
    asyncio.run(main())
