import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from inventory_app.core.errors import ConditionFailed, NotFound, ValidationError
from inventory_app.schemas.inventory import InventoryQuery
from inventory_app.schemas.job import JobHistoryQuery
from inventory_app.schemas.stock import ConsumeRequest, MovementKind, StockRequest
from inventory_app.services.inventory_service import ensure_item, get_item, list_inventory
from inventory_app.services.job_history_service import query_history
from inventory_app.services.stock_service import apply_movement, record_consumption, record_stock
from inventory_app.store import InventoryKeys, JobKeys


async def _item(store, item_id="bolt", quantity=0, **metadata):
    await ensure_item(store, item_id, {"sku": item_id.upper(), "name": item_id.title(), **metadata})
    if quantity:
        await apply_movement(store, item_id, MovementKind.IMPORT, quantity, event_id=f"opening-{item_id}")


class TestStockMovements:
    async def test_stock_then_consume_updates_running_quantity(self, store):
        await _item(store, quantity=10)

        added = await record_stock(store, StockRequest(item_id="bolt", quantity=5))
        assert added.quantity_after == 15

        used = await record_consumption(store, ConsumeRequest(item_id="bolt", quantity=4))
        assert used.quantity_after == 11

        item = await get_item(store, "bolt", include_events=True)
        assert item.quantity == 11
        assert [e.kind for e in item.events] == ["consume", "stock", "import"]

    async def test_concurrent_stock_movements_are_both_counted(self, store):
        await _item(store, quantity=10)

        await asyncio.gather(
            record_stock(store, StockRequest(item_id="bolt", quantity=5)),
            record_stock(store, StockRequest(item_id="bolt", quantity=3)),
        )

        item = await get_item(store, "bolt", include_events=True)
        assert item.quantity == 18
        events = item.events
        stocked = sum(e.quantity for e in events if e.kind in ("stock", "import"))
        consumed = sum(e.quantity for e in events if e.kind == "consume")
        assert item.quantity == stocked - consumed

    async def test_many_concurrent_movements_all_land(self, store):
        await _item(store, quantity=10)

        await asyncio.gather(*(
            record_stock(store, StockRequest(item_id="bolt", quantity=1)) for _ in range(20)
        ))

        assert (await get_item(store, "bolt")).quantity == 30
        assert len(await store.query(InventoryKeys.partition("bolt"), InventoryKeys.EVENT)) == 21

    async def test_lost_race_backs_off_before_rereading(self, store):
        await _item(store, quantity=10)
        real_transact = store.transact_write
        calls = []

        async def contended(writes):
            calls.append(1)
            if len(calls) <= 2:
                raise ConditionFailed(InventoryKeys.root("bolt"), "version moved")
            return await real_transact(writes)

        store.transact_write = contended
        with patch("inventory_app.services.stock_service.contention_pause", new=AsyncMock()) as pause:
            movement = await apply_movement(store, "bolt", MovementKind.STOCK, 2, event_id="e-1")

        assert movement.quantity_after == 12
        assert [c.args for c in pause.await_args_list] == [(0,), (1,)]

    async def test_contention_gives_up_after_max_attempts(self, store):
        await _item(store, quantity=10)

        async def always_contended(writes):
            raise ConditionFailed(InventoryKeys.root("bolt"), "version moved")

        store.transact_write = always_contended
        with patch("inventory_app.services.stock_service.contention_pause", new=AsyncMock()) as pause:
            with pytest.raises(ConditionFailed):
                await apply_movement(store, "bolt", MovementKind.STOCK, 2, max_attempts=3)
        assert pause.await_count == 3
        assert (await get_item(store, "bolt")).quantity == 10

    async def test_replayed_request_id_applies_once(self, store):
        await _item(store, quantity=10)
        request = StockRequest(item_id="bolt", quantity=5, request_id="delivery-77")

        first = await record_stock(store, request)
        second = await record_stock(store, request)

        assert first.duplicate is False
        assert second.duplicate is True
        assert second.event_id == first.event_id == "delivery-77"
        assert (await get_item(store, "bolt")).quantity == 15
        assert len(await store.query(InventoryKeys.partition("bolt"), InventoryKeys.EVENT)) == 2

    async def test_consume_below_zero_is_rejected_without_writes(self, store):
        await _item(store, quantity=2)

        with pytest.raises(ValidationError):
            await record_consumption(store, ConsumeRequest(item_id="bolt", quantity=3))

        assert (await get_item(store, "bolt")).quantity == 2
        assert len(await store.query(InventoryKeys.partition("bolt"), InventoryKeys.EVENT)) == 1

    async def test_unknown_item_is_not_found(self, store):
        with pytest.raises(NotFound):
            await record_stock(store, StockRequest(item_id="ghost", quantity=1))

    async def test_consume_against_job_appends_history(self, store):
        await _item(store, quantity=10)
        await store.put(JobKeys.root("job-1"), {"job_id": "job-1", "name": "Rewire"})

        movement = await record_consumption(store, ConsumeRequest(item_id="bolt", quantity=2, job_id="job-1"))

        history = await query_history(store, JobHistoryQuery(job_id="job-1"))
        assert len(history) == 1
        assert history[0].action == "consumed"
        assert history[0].details["event_id"] == movement.event_id

    async def test_consume_against_unknown_job_writes_nothing(self, store):
        await _item(store, quantity=10)

        with pytest.raises(NotFound):
            await record_consumption(store, ConsumeRequest(item_id="bolt", quantity=2, job_id="nope"))
        assert (await get_item(store, "bolt")).quantity == 10


class TestInventoryListing:
    async def test_filters(self, store):
        await _item(store, "bolt", quantity=100, category="fixings", reorder_level=10)
        await _item(store, "cable", quantity=3, category="electrical", reorder_level=5)

        assert [i.item_id for i in await list_inventory(store, InventoryQuery(category="Electrical"))] == ["cable"]
        assert [i.item_id for i in await list_inventory(store, InventoryQuery(low_stock=True))] == ["cable"]
        assert [i.item_id for i in await list_inventory(store, InventoryQuery(search="BOL"))] == ["bolt"]

    async def test_single_item_lookup_of_unknown_item(self, store):
        with pytest.raises(NotFound):
            await list_inventory(store, InventoryQuery(item_id="ghost"))

    async def test_ensure_item_keeps_quantity_when_metadata_changes(self, store):
        await _item(store, quantity=7, location="Van 1")
        await ensure_item(store, "bolt", {"location": "Warehouse", "quantity": 999})

        item = await get_item(store, "bolt")
        assert item.quantity == 7
        assert item.location == "Warehouse"
