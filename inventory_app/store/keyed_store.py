"""
Access layer over the single keyed table.

put / get / query / scan operate on one record at a time; transact_write
applies several writes atomically but only inside one partition, which is how
an event record and the aggregate it changes are kept consistent.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from tortoise.exceptions import (
    ConfigurationError as TortoiseConfigurationError,
    DBConnectionError,
    IntegrityError,
    OperationalError,
    TransactionManagementError,
)
from tortoise.expressions import F
from tortoise.transactions import in_transaction

from inventory_app.core.errors import ConditionFailed, InvalidKey, StoreError, StoreUnavailable
from inventory_app.models.item import Item
from inventory_app.store.keys import Key, validate_key

log = logging.getLogger(__name__)


@dataclass
class Record:
    key: Key
    attributes: Dict[str, Any]
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def partition(self) -> str:
        return self.key.partition

    @property
    def sort(self) -> str:
        return self.key.sort


@dataclass
class Write:
    """
    One write inside put/transact_write.

    if_absent: only create, fail if the key already exists.
    expected_version: only replace the record currently at this version.
    Neither set: last-write-wins upsert.
    """
    key: Key
    attributes: Dict[str, Any] = field(default_factory=dict)
    if_absent: bool = False
    expected_version: Optional[int] = None


def _to_record(row: Item) -> Record:
    return Record(
        key=Key(row.partition, row.sort),
        attributes=dict(row.attributes or {}),
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


@contextmanager
def _store_errors(action: str):
    """Translates ORM failures into the store's error taxonomy."""
    try:
        yield
    except IntegrityError as exc:
        raise StoreError(f"Store rejected {action}: {exc}") from exc
    except (DBConnectionError, OperationalError, TransactionManagementError, TortoiseConfigurationError) as exc:
        log.warning(f"Store unavailable during {action}: {exc}")
        raise StoreUnavailable(f"Store unavailable during {action}") from exc


class KeyedStore:
    """Stateless facade; all state lives in the ``items`` table."""

    async def get(self, key: Key) -> Optional[Record]:
        key = validate_key(*key)
        with _store_errors("get"):
            row = await Item.get_or_none(partition=key.partition, sort=key.sort)
        return _to_record(row) if row else None

    async def put(
        self,
        key: Key,
        attributes: Dict[str, Any],
        *,
        if_absent: bool = False,
        expected_version: Optional[int] = None,
    ) -> Record:
        write = Write(key=validate_key(*key), attributes=attributes, if_absent=if_absent,
                      expected_version=expected_version)
        with _store_errors("put"):
            return await self._apply(write, conn=None)

    async def query(
        self,
        partition: str,
        sort_prefix: Optional[str] = None,
        *,
        limit: Optional[int] = None,
        descending: bool = False,
    ) -> List[Record]:
        """Records of one partition ordered by sort key (ascending by default)."""
        if not isinstance(partition, str) or not partition:
            raise InvalidKey("query requires a partition key")
        qs = Item.filter(partition=partition)
        if sort_prefix:
            qs = qs.filter(sort__startswith=sort_prefix)
        qs = qs.order_by("-sort" if descending else "sort")
        if limit:
            qs = qs.limit(limit)
        with _store_errors("query"):
            rows = await qs
        return [_to_record(row) for row in rows]

    async def scan(
        self,
        partition_prefix: str,
        *,
        sort_key: Optional[str] = None,
        sort_prefix: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Record]:
        """Cross-partition listing, ordered by (partition, sort)."""
        if not partition_prefix:
            raise InvalidKey("scan requires a partition prefix")
        qs = Item.filter(partition__startswith=partition_prefix)
        if sort_key is not None:
            qs = qs.filter(sort=sort_key)
        elif sort_prefix:
            qs = qs.filter(sort__startswith=sort_prefix)
        qs = qs.order_by("partition", "sort")
        if limit:
            qs = qs.limit(limit)
        with _store_errors("scan"):
            rows = await qs
        return [_to_record(row) for row in rows]

    async def transact_write(self, writes: Iterable[Write]) -> List[Record]:
        """
        Applies all writes or none of them. All keys must share one partition;
        a failed condition raises ConditionFailed carrying the offending key.
        """
        writes = [Write(validate_key(*w.key), w.attributes, w.if_absent, w.expected_version) for w in writes]
        if not writes:
            return []
        partitions = {w.key.partition for w in writes}
        if len(partitions) > 1:
            raise InvalidKey(f"transact_write spans several partitions: {sorted(partitions)}")
        if len({w.key for w in writes}) != len(writes):
            raise InvalidKey("transact_write contains the same key twice")

        with _store_errors("transact_write"):
            async with in_transaction() as conn:
                return [await self._apply(w, conn=conn) for w in writes]

    # ----------- internals -----------

    @staticmethod
    def _rows(key: Key, conn):
        qs = Item.filter(partition=key.partition, sort=key.sort)
        return qs.using_db(conn) if conn is not None else qs

    async def _create(self, write: Write, conn) -> Record:
        try:
            row = await Item.create(
                partition=write.key.partition,
                sort=write.key.sort,
                attributes=write.attributes,
                version=1,
                using_db=conn,
            )
        except IntegrityError as exc:
            raise ConditionFailed(write.key, f"Record already exists at {write.key}") from exc
        return _to_record(row)

    async def _apply(self, write: Write, conn) -> Record:
        now = datetime.now(timezone.utc)

        if write.if_absent:
            return await self._create(write, conn)

        if write.expected_version is not None:
            updated = await self._rows(write.key, conn).filter(version=write.expected_version).update(
                attributes=write.attributes,
                version=write.expected_version + 1,
                updated_at=now,
            )
            if not updated:
                raise ConditionFailed(
                    write.key, f"Record at {write.key} is not at version {write.expected_version}"
                )
        else:
            updated = await self._rows(write.key, conn).update(
                attributes=write.attributes,
                version=F("version") + 1,
                updated_at=now,
            )
            if not updated:
                try:
                    return await self._create(write, conn)
                except ConditionFailed:
                    if conn is not None:
                        raise
                    # Lost a creation race outside a transaction: last write wins
                    await self._rows(write.key, conn).update(
                        attributes=write.attributes, version=F("version") + 1, updated_at=now,
                    )

        row = await self._rows(write.key, conn).first()
        return _to_record(row)
