"""
In-process change feed.

Backends without a push channel of their own publish the writes made
through this process here. Delivery is scheduled on the running event
loop, so a listener never runs inside the write call that produced the
event and may run before or after the writer sees its response.
"""

import asyncio
from collections import defaultdict

import structlog

from subly.models.events import ChangeEvent
from subly.services.storage.interface import ChangeListener, ChangeSubscription


logger = structlog.get_logger(__name__)


class _ListenerSubscription(ChangeSubscription):

    def __init__(self, feed: "LocalChangeFeed", table: str, listener: ChangeListener):
        self._feed = feed
        self._table = table
        self._listener = listener
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._feed._remove(self._table, self)

    def dispatch(self, event: ChangeEvent) -> None:
        if self._closed:
            return
        try:
            self._listener(event)
        except Exception:
            # One faulty listener must not stop delivery to the others
            logger.exception(
                "change_listener_failed",
                table=self._table,
                event_type=event.event_type,
            )


class LocalChangeFeed:
    """Fan-out of change events to listeners, per table."""

    def __init__(self):
        self._listeners: dict[str, list[_ListenerSubscription]] = defaultdict(list)
        self._pending = 0

    def subscribe(self, table: str, listener: ChangeListener) -> ChangeSubscription:
        subscription = _ListenerSubscription(self, table, listener)
        self._listeners[table].append(subscription)
        return subscription

    def listener_count(self, table: str) -> int:
        return len(self._listeners.get(table, ()))

    def publish(self, event: ChangeEvent) -> None:
        for subscription in list(self._listeners.get(event.table, ())):
            self._schedule(subscription, event)

    async def flush(self) -> None:
        """Wait until every scheduled delivery has run."""
        while self._pending:
            await asyncio.sleep(0)

    def _schedule(self, subscription: _ListenerSubscription, event: ChangeEvent) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            subscription.dispatch(event)
            return

        self._pending += 1

        def deliver() -> None:
            self._pending -= 1
            subscription.dispatch(event)

        loop.call_soon(deliver)

    def _remove(self, table: str, subscription: _ListenerSubscription) -> None:
        listeners = self._listeners.get(table)
        if listeners and subscription in listeners:
            listeners.remove(subscription)
