"""
In-Memory Collection Store

A complete CollectionStore kept in process memory. Used by the test
suite and for running the app without any hosted backend.

Behaves like the hosted store where it matters to the sync engines:
- the store assigns ids and timestamps
- update/delete on a missing id raise NotFoundError
- every write publishes a change event, delivered asynchronously
- increment is evaluated inside the store, never from a caller's cache
"""

import copy
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Optional
from uuid import uuid4

from subly.models.events import DeleteEvent, InsertEvent, UpdateEvent
from subly.services.storage.interface import (
    SERVER_TIMESTAMP_FIELDS,
    ChangeListener,
    ChangeSubscription,
    CollectionStore,
    DuplicateError,
    NotFoundError,
    StorageError,
)
from subly.services.storage.local_feed import LocalChangeFeed


class InMemoryCollectionStore(CollectionStore):
    """
    Dict-of-tables store with an in-process change feed.

    Rows keep insertion order, so unordered selects are stable.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._tables: dict[str, dict[str, dict]] = defaultdict(dict)
        self._feed = LocalChangeFeed()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._last_timestamp: Optional[datetime] = None
        self._failures: dict[tuple[str, Optional[str]], str] = {}
        self.operations: list[tuple[str, str]] = []

    # -------------------------------------------------------------------------
    # Test helpers
    # -------------------------------------------------------------------------

    def fail_next(
        self,
        operation: str,
        table: Optional[str] = None,
        message: str = "Simulated storage failure",
    ) -> None:
        """Make the next matching operation raise StorageError."""
        self._failures[(operation, table)] = message

    def rows(self, table: str) -> list[dict]:
        """Snapshot of a table, bypassing the query path."""
        return [copy.deepcopy(row) for row in self._tables[table].values()]

    def listener_count(self, table: str) -> int:
        return self._feed.listener_count(table)

    async def flush(self) -> None:
        """Let every pending change event reach its listeners."""
        await self._feed.flush()

    # -------------------------------------------------------------------------
    # CollectionStore
    # -------------------------------------------------------------------------

    async def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        ascending: bool = True,
    ) -> list[dict]:
        self._begin("select", table)
        filters = filters or {}

        rows = [
            copy.deepcopy(row)
            for row in self._tables[table].values()
            if all(row.get(column) == value for column, value in filters.items())
        ]
        if order_by:
            rows.sort(
                key=lambda row: (row.get(order_by) is None, row.get(order_by)),
                reverse=not ascending,
            )
        return rows

    async def insert(self, table: str, row: dict) -> dict:
        self._begin("insert", table)

        stored = copy.deepcopy(row)
        if stored.get("id") is None:
            stored["id"] = str(uuid4())
        elif stored["id"] in self._tables[table]:
            raise DuplicateError(f"{table} row already exists: {stored['id']}")
        timestamp = self._timestamp()
        for field in SERVER_TIMESTAMP_FIELDS.get(table, ()):
            stored[field] = timestamp

        self._tables[table][stored["id"]] = stored
        self._feed.publish(InsertEvent(table=table, new=copy.deepcopy(stored)))
        return copy.deepcopy(stored)

    async def update(self, table: str, row_id: str, fields: dict) -> dict:
        self._begin("update", table)
        current = self._require(table, row_id)

        old = copy.deepcopy(current)
        current.update(copy.deepcopy(fields))
        current["id"] = row_id
        self._touch(table, current)

        self._feed.publish(
            UpdateEvent(table=table, new=copy.deepcopy(current), old=old)
        )
        return copy.deepcopy(current)

    async def delete(self, table: str, row_id: str) -> None:
        self._begin("delete", table)
        self._require(table, row_id)

        old = self._tables[table].pop(row_id)
        self._feed.publish(DeleteEvent(table=table, old=old))

    async def increment(
        self,
        table: str,
        row_id: str,
        field: str,
        delta: Any,
    ) -> dict:
        self._begin("increment", table)
        current = self._require(table, row_id)

        old = copy.deepcopy(current)
        base = Decimal(str(current.get(field) or 0))
        current[field] = str(base + Decimal(str(delta)))
        self._touch(table, current)

        self._feed.publish(
            UpdateEvent(table=table, new=copy.deepcopy(current), old=old)
        )
        return copy.deepcopy(current)

    def subscribe(self, table: str, listener: ChangeListener) -> ChangeSubscription:
        return self._feed.subscribe(table, listener)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _begin(self, operation: str, table: str) -> None:
        self.operations.append((operation, table))
        for key in ((operation, table), (operation, None)):
            if key in self._failures:
                raise StorageError(self._failures.pop(key))

    def _require(self, table: str, row_id: str) -> dict:
        row = self._tables[table].get(row_id)
        if row is None:
            raise NotFoundError(f"{table} row not found: {row_id}")
        return row

    def _touch(self, table: str, row: dict) -> None:
        if "updated_at" in SERVER_TIMESTAMP_FIELDS.get(table, ()):
            row["updated_at"] = self._timestamp()

    def _timestamp(self) -> str:
        # Strictly increasing, so ordering by a timestamp is deterministic
        now = self._clock()
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now.isoformat()
