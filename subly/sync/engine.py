"""
Generic Entity Sync Engine

Keeps an ordered, per-user collection of one entity type in step with
the remote collection store.

DESIGN DECISION: One engine, configured per entity type, instead of
five hand-written copies. The configuration carries everything that
differs between entity types:
- the table and its row models
- the canonical ordering and extra query filters
- whether a successful create appends locally

State changes come from exactly two places:
1. Responses to this engine's own requests (load, create)
2. Change-feed events delivered through reconcile()

Both run to completion on the event loop, so a single reconciliation
step is never observed half-applied.

CONTRACT for update/delete: a successful update or delete does NOT
touch the local collection. The change shows up through the change
feed, or through the refresh the caller performs afterwards. Until
one of those arrives the collection is stale.

Sessions: every identity change or teardown starts a new session.
Responses that arrive for an older session are dropped.
"""

from typing import Any, Callable, Generic, Optional, Protocol, TypeVar, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from subly.audit import AuditLogger
from subly.models.audit import AuditEvent, AuditEventBuilder
from subly.models.events import ChangeEvent, DeleteEvent, InsertEvent, parse_change_event
from subly.models.results import SyncResult
from subly.services.storage import ChangeListener, ChangeSubscription, CollectionStore


EntityT = TypeVar("EntityT", bound=BaseModel)

CollectionWatcher = Callable[[tuple], None]


class ChangeFeed(Protocol):
    """Where an engine opens its change-feed subscription (a store or a ChangeFeedHub)."""

    def subscribe(self, table: str, listener: ChangeListener) -> ChangeSubscription:
        ...


class EntitySyncConfig(BaseModel):
    """Everything that differs between two entity sync engines."""

    model_config = ConfigDict(frozen=True)

    table: str = Field(..., min_length=1)
    entity: type[BaseModel] = Field(..., description="Canonical row model")
    create_model: type[BaseModel] = Field(..., description="Insert payload model")
    update_model: type[BaseModel] = Field(..., description="Partial update model")
    order_by: str = Field(..., description="Canonical ordering column")
    ascending: bool = True
    filters: dict[str, Any] = Field(
        default_factory=dict,
        description="Exact-match filters applied on top of the user key"
    )
    optimistic_append: bool = Field(
        default=False,
        description="Append the created row locally without waiting for the feed"
    )
    user_key: str = "user_id"
    id_key: str = "id"


class EntitySync(Generic[EntityT]):
    """
    Sync engine for one entity type and one signed-in user.

    Usage:
        engine = EntitySync(store, config)
        await engine.set_user("user-1")
        result = await engine.create({"service_name": "Netflix", ...})
        engine.items  # current collection
        await engine.close()

    Public mutation and load methods never raise. Mutations return a
    SyncResult, load failures land in the error slot.
    """

    def __init__(
        self,
        store: CollectionStore,
        config: EntitySyncConfig,
        feed: Optional[ChangeFeed] = None,
        audit_logger: Optional[AuditLogger] = None,
        dedupe_inserts: bool = True,
    ):
        """
        Args:
            store: Remote collection store for queries and writes
            config: Entity configuration
            feed: Where to open the change-feed subscription.
                  Usually a ChangeFeedHub. Defaults to the store itself.
            audit_logger: Optional audit logger
            dedupe_inserts: Upsert by identity on every insert path.
                  When False, INSERT events and optimistic appends are
                  plain appends and can produce duplicate entries.
        """
        self._store = store
        self.config = config
        self._feed = feed or store
        self._audit_logger = audit_logger
        self._dedupe_inserts = dedupe_inserts
        self._logger = structlog.get_logger(__name__).bind(table=config.table)

        self._items: list[EntityT] = []
        self._loading = False
        self._error: Optional[str] = None
        self._user_id: Optional[str] = None
        self._subscription: Optional[ChangeSubscription] = None
        self._session = 0
        self._load_seq = 0
        self._watchers: list[CollectionWatcher] = []

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    @property
    def items(self) -> tuple[EntityT, ...]:
        """Snapshot of the collection in its current order."""
        return tuple(self._items)

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def subscribed(self) -> bool:
        return self._subscription is not None and not self._subscription.closed

    def get(self, entity_id: str) -> Optional[EntityT]:
        """First entry with the given identity, or None."""
        for item in self._items:
            if self._identity(item) == entity_id:
                return item
        return None

    def __len__(self) -> int:
        return len(self._items)

    def watch(self, watcher: CollectionWatcher) -> Callable[[], None]:
        """
        Call watcher with the new snapshot whenever the collection changes.

        Returns a function that removes the watcher.
        """
        self._watchers.append(watcher)

        def unwatch() -> None:
            if watcher in self._watchers:
                self._watchers.remove(watcher)

        return unwatch

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def set_user(self, user_id: Optional[str]) -> None:
        """
        React to the signed-in identity becoming available, changing,
        or going away.

        Same user as before: nothing happens. Otherwise the current
        session is torn down, and for a new user exactly one feed
        subscription is opened before the initial load.
        """
        if user_id == self._user_id and (user_id is None or self.subscribed):
            return

        self._teardown()
        if user_id is None:
            return

        self._user_id = user_id
        self._subscription = self._feed.subscribe(self.config.table, self.reconcile)
        self._logger.debug("sync_session_started", user_id=user_id, session=self._session)
        await self.refresh()

    async def close(self) -> None:
        """Tear down: close the feed subscription and drop late results."""
        self._teardown()

    def _teardown(self) -> None:
        self._session += 1
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
        had_items = bool(self._items)
        self._user_id = None
        self._items = []
        self._loading = False
        self._error = None
        if had_items:
            self._notify()

    # -------------------------------------------------------------------------
    # Load
    # -------------------------------------------------------------------------

    async def refresh(self) -> None:
        """
        Replace the whole collection with the store's current rows.

        No-op while no user is set. On failure the error slot is set
        and the previous collection stays as it was. When loads
        overlap, only the most recently started one is applied.
        """
        if self._user_id is None:
            return

        session = self._session
        user_id = self._user_id
        self._load_seq += 1
        load_seq = self._load_seq
        self._loading = True

        filters = {self.config.user_key: user_id, **self.config.filters}
        try:
            rows = await self._store.select(
                self.config.table,
                filters=filters,
                order_by=self.config.order_by,
                ascending=self.config.ascending,
            )
        except Exception as e:
            if self._is_current(session, load_seq):
                self._loading = False
                self._error = str(e)
                self._logger.warning("collection_load_failed", user_id=user_id, error=str(e))
                await self._audit(
                    AuditEventBuilder.collection_load_failed(self.config.table, user_id, str(e))
                )
            return

        if not self._is_current(session, load_seq):
            self._logger.debug("stale_load_dropped", user_id=user_id)
            return

        self._items = [entity for entity in map(self._to_entity, rows) if entity is not None]
        self._loading = False
        self._error = None
        self._notify()
        await self._audit(
            AuditEventBuilder.collection_loaded(self.config.table, user_id, len(self._items))
        )

    def _is_current(self, session: int, load_seq: int) -> bool:
        return session == self._session and load_seq == self._load_seq

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def create(self, payload: Union[BaseModel, dict]) -> SyncResult:
        """
        Insert one entity.

        A dict payload without a user key is assigned to the current user.
        On success the canonical row is returned, and appended locally when
        the entity is configured for optimistic append.
        """
        session = self._session
        try:
            model = self._create_payload(payload)
            row = await self._store.insert(self.config.table, model.model_dump(mode="json"))
            entity = self.config.entity.model_validate(row)
        except Exception as e:
            return await self._failed("create", e)

        if self.config.optimistic_append and session == self._session and self._owns(row):
            self._add(entity)
            self._notify()

        self._error = None
        entity_id = self._identity(entity)
        self._logger.info("entity_created", entity_id=entity_id)
        await self._audit(
            AuditEventBuilder.entity_created(self.config.table, entity_id, row.get(self.config.user_key))
        )
        return SyncResult.success(entity)

    async def update(self, entity_id: str, fields: Union[BaseModel, dict]) -> SyncResult:
        """
        Apply a partial update. The local collection is left as it is.
        """
        try:
            patch = (
                fields if isinstance(fields, self.config.update_model)
                else self.config.update_model.model_validate(fields)
            )
            changes = patch.model_dump(mode="json", exclude_unset=True)
            if not changes:
                raise ValueError("No fields to update")
            row = await self._store.update(self.config.table, entity_id, changes)
            entity = self.config.entity.model_validate(row)
        except Exception as e:
            return await self._failed("update", e, entity_id)

        self._error = None
        self._logger.info("entity_updated", entity_id=entity_id, fields=sorted(changes))
        await self._audit(
            AuditEventBuilder.entity_updated(
                self.config.table, entity_id, self._user_id, sorted(changes)
            )
        )
        return SyncResult.success(entity)

    async def delete(self, entity_id: str) -> SyncResult:
        """
        Delete one entity. The local collection is left as it is.

        Deleting an id that is already gone fails with the store's
        not-found error.
        """
        try:
            await self._store.delete(self.config.table, entity_id)
        except Exception as e:
            return await self._failed("delete", e, entity_id)

        self._error = None
        self._logger.info("entity_deleted", entity_id=entity_id)
        await self._audit(
            AuditEventBuilder.entity_deleted(self.config.table, entity_id, self._user_id)
        )
        return SyncResult.success()

    def _create_payload(self, payload: Union[BaseModel, dict]) -> BaseModel:
        if isinstance(payload, self.config.create_model):
            return payload
        if isinstance(payload, BaseModel):
            payload = payload.model_dump()
        data = dict(payload)
        if self._user_id is not None:
            data.setdefault(self.config.user_key, self._user_id)
        return self.config.create_model.model_validate(data)

    async def _failed(
        self,
        operation: str,
        error: Exception,
        entity_id: Optional[str] = None,
    ) -> SyncResult:
        message = str(error)
        self._logger.warning(
            "mutation_failed",
            operation=operation,
            entity_id=entity_id,
            error_type=type(error).__name__,
            error=message,
        )
        await self._audit(
            AuditEventBuilder.mutation_failed(
                self.config.table, operation, message, self._user_id, entity_id
            )
        )
        return SyncResult.failure(message)

    # -------------------------------------------------------------------------
    # Change feed
    # -------------------------------------------------------------------------

    def reconcile(self, event: Union[ChangeEvent, dict]) -> None:
        """
        Apply one change-feed event to the collection.

        - Events for other tables, or that carry no row of the current
          user, are ignored
        - INSERT: upsert by identity (or plain append without dedupe)
        - UPDATE: replace the matching entry, ignore if absent
        - DELETE: remove the matching entry, no-op if absent

        The collection is not re-sorted; events apply in arrival order.
        """
        if self._user_id is None:
            return

        if isinstance(event, dict):
            try:
                event = parse_change_event(event)
            except ValidationError as e:
                self._logger.warning("malformed_change_event", error=str(e))
                return

        if event.table != self.config.table or not self._concerns_us(event):
            return

        if isinstance(event, InsertEvent):
            entity = self._to_entity(event.new)
            if entity is None:
                return
            self._add(entity)
        elif isinstance(event, DeleteEvent):
            if not self._remove(event.old.get(self.config.id_key)):
                return
        else:
            entity = self._to_entity(event.new)
            if entity is None or not self._replace(entity):
                return

        self._logger.debug(
            "change_event_applied",
            event_type=event.event_type,
            size=len(self._items),
        )
        self._notify()

    def _concerns_us(self, event: ChangeEvent) -> bool:
        if event.concerns_user(self._user_id):
            return True
        # Some feeds only send the primary key in a DELETE's old row
        if isinstance(event, DeleteEvent) and self.config.user_key not in event.old:
            return self.get(event.old.get(self.config.id_key)) is not None
        return False

    def _owns(self, row: dict) -> bool:
        return row.get(self.config.user_key) == self._user_id

    # -------------------------------------------------------------------------
    # Collection primitives
    # -------------------------------------------------------------------------

    def _add(self, entity: EntityT) -> None:
        if self._dedupe_inserts:
            self._upsert(entity)
        else:
            self._items.append(entity)

    def _upsert(self, entity: EntityT) -> None:
        """Replace the entry with the same identity, else append."""
        if not self._replace(entity):
            self._items.append(entity)

    def _replace(self, entity: EntityT) -> bool:
        entity_id = self._identity(entity)
        replaced = False
        for index, item in enumerate(self._items):
            if self._identity(item) == entity_id:
                self._items[index] = entity
                replaced = True
        return replaced

    def _remove(self, entity_id: Optional[str]) -> bool:
        for index, item in enumerate(self._items):
            if self._identity(item) == entity_id:
                del self._items[index]
                return True
        return False

    def _identity(self, entity: BaseModel) -> Optional[str]:
        return getattr(entity, self.config.id_key, None)

    def _to_entity(self, row: dict) -> Optional[EntityT]:
        try:
            return self.config.entity.model_validate(row)
        except ValidationError as e:
            self._logger.warning(
                "malformed_row_skipped",
                entity_id=row.get(self.config.id_key),
                error=str(e),
            )
            return None

    def _notify(self) -> None:
        snapshot = self.items
        for watcher in list(self._watchers):
            watcher(snapshot)

    async def _audit(self, event: AuditEvent) -> None:
        if self._audit_logger:
            await self._audit_logger.log(event)
