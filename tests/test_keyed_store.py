import pytest

from inventory_app.core.errors import ConditionFailed, InvalidKey, StoreUnavailable
from inventory_app.core.retry import retry_async
from inventory_app.models.item import Item
from inventory_app.store import Key, Write


class TestPutAndGet:
    async def test_put_then_get(self, store):
        key = Key("INVENTORY#bolt", "#META")
        record = await store.put(key, {"name": "Bolt", "quantity": 3})
        assert record.version == 1

        fetched = await store.get(key)
        assert fetched.attributes == {"name": "Bolt", "quantity": 3}
        assert fetched.partition == "INVENTORY#bolt"

    async def test_get_missing_returns_none(self, store):
        assert await store.get(Key("INVENTORY#none", "#META")) is None

    async def test_unconditional_put_bumps_version(self, store):
        key = Key("INVENTORY#bolt", "#META")
        await store.put(key, {"quantity": 1})
        record = await store.put(key, {"quantity": 2})
        assert record.version == 2
        assert record.attributes["quantity"] == 2

    async def test_if_absent_fails_when_record_exists(self, store):
        key = Key("JOB#1", "#META")
        await store.put(key, {"name": "first"}, if_absent=True)
        with pytest.raises(ConditionFailed) as exc_info:
            await store.put(key, {"name": "second"}, if_absent=True)
        assert exc_info.value.key == key
        assert (await store.get(key)).attributes["name"] == "first"

    async def test_expected_version_compare_and_swap(self, store):
        key = Key("INVENTORY#bolt", "#META")
        original = await store.put(key, {"quantity": 10})
        await store.put(key, {"quantity": 15}, expected_version=original.version)

        with pytest.raises(ConditionFailed):
            await store.put(key, {"quantity": 13}, expected_version=original.version)
        assert (await store.get(key)).attributes["quantity"] == 15

    async def test_empty_key_is_invalid(self, store):
        with pytest.raises(InvalidKey):
            await store.put(Key("", "#META"), {})


class TestQueryAndScan:
    async def test_query_orders_by_sort_key_and_filters_prefix(self, store):
        for sort in ("EVENT#2", "EVENT#1", "#META", "REQUEST#a"):
            await store.put(Key("INVENTORY#bolt", sort), {"sort": sort})

        events = await store.query("INVENTORY#bolt", "EVENT#")
        assert [r.sort for r in events] == ["EVENT#1", "EVENT#2"]

        newest = await store.query("INVENTORY#bolt", "EVENT#", descending=True, limit=1)
        assert [r.sort for r in newest] == ["EVENT#2"]

    async def test_scan_across_partitions_on_fixed_sort_key(self, store):
        await store.put(Key("INVENTORY#a", "#META"), {})
        await store.put(Key("INVENTORY#b", "#META"), {})
        await store.put(Key("INVENTORY#b", "EVENT#1"), {})
        await store.put(Key("JOB#a", "#META"), {})

        roots = await store.scan("INVENTORY#", sort_key="#META")
        assert [r.partition for r in roots] == ["INVENTORY#a", "INVENTORY#b"]

    async def test_query_requires_partition(self, store):
        with pytest.raises(InvalidKey):
            await store.query("")


class TestTransactWrite:
    async def test_all_writes_applied_together(self, store):
        root = await store.put(Key("INVENTORY#bolt", "#META"), {"quantity": 0})
        await store.transact_write([
            Write(Key("INVENTORY#bolt", "EVENT#1"), {"quantity": 5}, if_absent=True),
            Write(Key("INVENTORY#bolt", "#META"), {"quantity": 5}, expected_version=root.version),
        ])
        assert (await store.get(Key("INVENTORY#bolt", "#META"))).attributes["quantity"] == 5
        assert await store.get(Key("INVENTORY#bolt", "EVENT#1")) is not None

    async def test_failed_condition_writes_nothing(self, store):
        await store.put(Key("INVENTORY#bolt", "#META"), {"quantity": 0})
        with pytest.raises(ConditionFailed) as exc_info:
            await store.transact_write([
                Write(Key("INVENTORY#bolt", "EVENT#1"), {"quantity": 5}, if_absent=True),
                Write(Key("INVENTORY#bolt", "#META"), {"quantity": 5}, expected_version=99),
            ])
        assert exc_info.value.key == Key("INVENTORY#bolt", "#META")
        assert await store.get(Key("INVENTORY#bolt", "EVENT#1")) is None
        assert (await store.get(Key("INVENTORY#bolt", "#META"))).attributes["quantity"] == 0

    async def test_multiple_partitions_are_rejected(self, store):
        with pytest.raises(InvalidKey):
            await store.transact_write([
                Write(Key("INVENTORY#a", "#META"), {}),
                Write(Key("INVENTORY#b", "#META"), {}),
            ])
        assert await store.get(Key("INVENTORY#a", "#META")) is None


class TestItemModel:
    async def test_key_pair_is_stored_in_pk_and_sk_columns(self, store):
        assert Item._meta.fields_map["partition"].source_field == "pk"
        assert Item._meta.fields_map["sort"].source_field == "sk"

        await store.put(Key("INVENTORY#bolt", "#META"), {"quantity": 1})
        row = await Item.get(partition="INVENTORY#bolt", sort="#META")
        # Model.pk still resolves to the surrogate primary key
        assert row.pk == row.id
        assert (row.partition, row.sort) == ("INVENTORY#bolt", "#META")


class TestRetries:
    async def test_invalid_key_is_never_retried(self, store):
        calls = []

        async def put_empty_partition():
            calls.append(1)
            return await store.put(Key("", "#META"), {})

        with pytest.raises(InvalidKey):
            await retry_async(put_empty_partition, attempts=3, base_delay=0)
        assert len(calls) == 1

    async def test_transient_outage_recovers_on_retry(self, store):
        calls = []
        key = Key("INVENTORY#bolt", "#META")

        async def flaky_put():
            calls.append(1)
            if len(calls) == 1:
                raise StoreUnavailable("connection reset")
            return await store.put(key, {"quantity": 4})

        record = await retry_async(flaky_put, attempts=3, base_delay=0)

        assert len(calls) == 2
        assert record.version == 1
        assert (await store.get(key)).attributes["quantity"] == 4
