"""
Shared change-feed subscriptions.

Several engines (or several views of the same engine type) may want the
feed of one table. Opening one store subscription each would deliver
every event once per subscriber, so the hub keeps a single store
subscription per table and fans events out to its own listeners.

The store subscription is opened by the first listener and closed when
the last listener goes away.
"""

from typing import Optional

import structlog

from subly.models.events import ChangeEvent
from subly.services.storage import ChangeListener, ChangeSubscription, CollectionStore


logger = structlog.get_logger(__name__)


class _HubSubscription(ChangeSubscription):

    def __init__(self, hub: "ChangeFeedHub", table: str, listener: ChangeListener):
        self._hub = hub
        self._table = table
        self.listener = listener
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._hub._release(self._table, self)


class _TableChannel:
    """One store subscription and the hub listeners sharing it."""

    def __init__(self):
        self.upstream: Optional[ChangeSubscription] = None
        self.listeners: list[_HubSubscription] = []


class ChangeFeedHub:
    """Reference-counted fan-out over a store's change feeds."""

    def __init__(self, store: CollectionStore):
        self._store = store
        self._channels: dict[str, _TableChannel] = {}

    def subscribe(self, table: str, listener: ChangeListener) -> ChangeSubscription:
        channel = self._channels.get(table)
        if channel is None:
            channel = _TableChannel()
            self._channels[table] = channel
            channel.upstream = self._store.subscribe(
                table, lambda event: self._dispatch(table, event)
            )
            logger.debug("feed_channel_opened", table=table)

        subscription = _HubSubscription(self, table, listener)
        channel.listeners.append(subscription)
        return subscription

    def listener_count(self, table: str) -> int:
        channel = self._channels.get(table)
        return len(channel.listeners) if channel else 0

    def is_open(self, table: str) -> bool:
        return table in self._channels

    def close(self) -> None:
        """Close every upstream subscription at once."""
        for table in list(self._channels):
            for subscription in list(self._channels[table].listeners):
                subscription.close()

    def _dispatch(self, table: str, event: ChangeEvent) -> None:
        channel = self._channels.get(table)
        if channel is None:
            return
        for subscription in list(channel.listeners):
            if subscription.closed:
                continue
            try:
                subscription.listener(event)
            except Exception:
                logger.exception(
                    "change_listener_failed",
                    table=table,
                    event_type=event.event_type,
                )

    def _release(self, table: str, subscription: _HubSubscription) -> None:
        channel = self._channels.get(table)
        if channel is None or subscription not in channel.listeners:
            return
        channel.listeners.remove(subscription)
        if not channel.listeners:
            if channel.upstream is not None:
                channel.upstream.close()
            del self._channels[table]
            logger.debug("feed_channel_closed", table=table)
