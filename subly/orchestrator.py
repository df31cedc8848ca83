"""
Main Orchestrator for Subly

This module ties together all the components for one signed-in user:
1. The five sync engines, sharing one change-feed hub
2. File storage for uploaded documents
3. The audit logger
4. The dashboard view model

DESIGN DECISION: The orchestrator owns the cross-cutting flows:
- Signing in and out drives every engine's session at once
- Document upload writes the file first and the row second, and
  removes the file again if the row cannot be written
- After each create/update/delete the affected collection is refetched
  (when enabled), because update and delete never touch the local
  collection by themselves

Everything is injectable so tests can run against in-memory backends.
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Optional, Union

import structlog
from pydantic import BaseModel

from subly.audit import AUDIT_TABLE, AuditLogger
from subly.config import AppSettings, SyncSettings, get_settings
from subly.models.audit import AuditEventBuilder
from subly.models.entities import Document, Profile, parse_tags
from subly.models.results import ContributionResult, ContributionStatus, SyncResult
from subly.services.files import (
    CloudinaryFileStorage,
    FileStorageError,
    FileStorageInterface,
    InMemoryFileStorage,
)
from subly.services.storage import (
    CollectionStore,
    GoogleSheetsClient,
    GoogleSheetsCollectionStore,
    InMemoryCollectionStore,
)
from subly.sync import (
    BudgetSync,
    ChangeFeedHub,
    DocumentSync,
    EntitySync,
    GoalSync,
    SubscriptionSync,
    TransactionSync,
)
from subly.views import DashboardStats, compute_dashboard_stats


logger = structlog.get_logger(__name__)

Payload = Union[BaseModel, dict]


class FinanceTracker:
    """
    Everything one signed-in user sees, kept in sync with the store.

    Flow:
    1. sign_in(user_id) → every engine subscribes and loads
    2. add_* / update_* / delete_* → store write, then refetch
    3. dashboard() → derived statistics over the current collections
    4. sign_out() → every subscription closed, collections cleared
    """

    def __init__(
        self,
        store: CollectionStore,
        file_storage: Optional[FileStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        sync_settings: Optional[SyncSettings] = None,
        app_settings: Optional[AppSettings] = None,
    ):
        settings = get_settings() if sync_settings is None or app_settings is None else None
        self._sync_settings = sync_settings or settings.sync
        self._app_settings = app_settings or settings.app

        self._store = store
        self._files = file_storage or InMemoryFileStorage(
            max_size_bytes=self._app_settings.max_upload_size_bytes
        )
        self._audit_logger = audit_logger
        self.feed = ChangeFeedHub(store)

        engine_options = dict(
            feed=self.feed,
            audit_logger=audit_logger,
            dedupe_inserts=self._sync_settings.dedupe_inserts,
        )
        self.subscriptions = SubscriptionSync(store, **engine_options)
        self.documents = DocumentSync(store, **engine_options)
        self.budgets = BudgetSync(store, **engine_options)
        self.goals = GoalSync(store, **engine_options)
        self.transactions = TransactionSync(store, **engine_options)

        self.user_id: Optional[str] = None
        self.profile: Optional[Profile] = None

    @property
    def engines(self) -> tuple[EntitySync, ...]:
        return (
            self.subscriptions,
            self.documents,
            self.budgets,
            self.goals,
            self.transactions,
        )

    @property
    def loading(self) -> bool:
        return any(engine.loading for engine in self.engines)

    @property
    def errors(self) -> dict[str, str]:
        """Outstanding load errors, keyed by table."""
        return {
            engine.config.table: engine.error
            for engine in self.engines
            if engine.error is not None
        }

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    async def sign_in(self, user_id: str) -> None:
        """Start syncing every collection for a user."""
        if user_id != self.user_id:
            self.profile = None
        self.user_id = user_id
        logger.info("user_signed_in", user_id=user_id)
        await asyncio.gather(*(engine.set_user(user_id) for engine in self.engines))
        await self.load_profile()

    async def sign_out(self) -> None:
        """Stop syncing. Late responses for the old session are dropped."""
        for engine in self.engines:
            await engine.close()
        logger.info("user_signed_out", user_id=self.user_id)
        self.user_id = None
        self.profile = None

    async def refresh(self) -> None:
        """Refetch every collection."""
        await asyncio.gather(*(engine.refresh() for engine in self.engines))

    async def load_profile(self) -> Optional[Profile]:
        """
        Load the signed-in user's profile row.

        A missing or unreadable profile is not an error for the rest
        of the app, so failures are logged and None is returned.
        """
        if self.user_id is None:
            return None

        user_id = self.user_id
        try:
            rows = await self._store.select("profiles", filters={"id": user_id})
            profile = Profile.model_validate(rows[0]) if rows else None
        except Exception as e:
            logger.warning("profile_load_failed", user_id=user_id, error=str(e))
            return None

        if user_id != self.user_id:
            return None
        self.profile = profile
        return profile

    # -------------------------------------------------------------------------
    # Dashboard
    # -------------------------------------------------------------------------

    def dashboard(self, now: Optional[datetime] = None) -> DashboardStats:
        return compute_dashboard_stats(
            subscriptions=self.subscriptions.items,
            documents=self.documents.items,
            budgets=self.budgets.items,
            goals=self.goals.items,
            now=now,
            window_days=self._app_settings.renewal_window_days,
        )

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def _after_mutation(self, engine: EntitySync, result: SyncResult) -> SyncResult:
        if result.ok and self._sync_settings.refresh_after_mutation:
            await engine.refresh()
        return result

    async def _create(self, engine: EntitySync, payload: Payload) -> SyncResult:
        return await self._after_mutation(engine, await engine.create(payload))

    async def _update(self, engine: EntitySync, entity_id: str, fields: Payload) -> SyncResult:
        return await self._after_mutation(engine, await engine.update(entity_id, fields))

    async def _delete(self, engine: EntitySync, entity_id: str) -> SyncResult:
        return await self._after_mutation(engine, await engine.delete(entity_id))

    async def add_subscription(self, payload: Payload) -> SyncResult:
        return await self._create(self.subscriptions, payload)

    async def update_subscription(self, subscription_id: str, fields: Payload) -> SyncResult:
        return await self._update(self.subscriptions, subscription_id, fields)

    async def delete_subscription(self, subscription_id: str) -> SyncResult:
        return await self._delete(self.subscriptions, subscription_id)

    async def add_budget(self, payload: Payload) -> SyncResult:
        return await self._create(self.budgets, payload)

    async def update_budget(self, budget_id: str, fields: Payload) -> SyncResult:
        return await self._update(self.budgets, budget_id, fields)

    async def delete_budget(self, budget_id: str) -> SyncResult:
        return await self._delete(self.budgets, budget_id)

    async def add_goal(self, payload: Payload) -> SyncResult:
        return await self._create(self.goals, payload)

    async def update_goal(self, goal_id: str, fields: Payload) -> SyncResult:
        return await self._update(self.goals, goal_id, fields)

    async def delete_goal(self, goal_id: str) -> SyncResult:
        return await self._delete(self.goals, goal_id)

    async def add_contribution(
        self,
        goal_id: str,
        amount: Union[Decimal, int, float, str],
        description: str = "",
    ) -> ContributionResult:
        """
        Contribute to a goal.

        Whenever something was written (APPLIED or PARTIAL) the goals and
        transactions are refetched, like after any other mutation.
        """
        result = await self.goals.add_contribution(goal_id, amount, description)
        if result.status != ContributionStatus.REJECTED and self._sync_settings.refresh_after_mutation:
            await asyncio.gather(self.goals.refresh(), self.transactions.refresh())
        return result

    async def update_document(self, document_id: str, fields: Payload) -> SyncResult:
        return await self._update(self.documents, document_id, fields)

    # -------------------------------------------------------------------------
    # Documents (file + row)
    # -------------------------------------------------------------------------

    async def add_document(
        self,
        title: str,
        file_name: str,
        data: bytes,
        category: str = "general",
        tags: Union[str, list[str], None] = None,
    ) -> SyncResult:
        """
        Upload a file and record it as a document.

        Steps:
        1. Upload the bytes to file storage
        2. Insert the document row referencing the stored file
        3. If the insert fails, delete the uploaded file again
        """
        if self.user_id is None:
            return SyncResult.failure("No signed-in user")
        user_id = self.user_id

        try:
            stored = await self._files.upload(user_id, file_name, data)
        except FileStorageError as e:
            logger.warning("document_upload_failed", file_name=file_name, error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="file_storage",
                    error_message=str(e),
                )
            return SyncResult.failure(str(e))

        if self._audit_logger:
            await self._audit_logger.log(
                AuditEventBuilder.file_uploaded(
                    stored.path, stored.file_name, stored.file_size, user_id
                )
            )

        if isinstance(tags, str):
            tags = parse_tags(tags)

        result = await self.documents.create({
            "user_id": user_id,
            "title": title,
            "category": category,
            "file_url": stored.url,
            "file_name": stored.file_name,
            "file_size": stored.file_size,
            "tags": tags or [],
            "storage_path": stored.path,
        })
        if not result.ok:
            await self._discard_file(stored.path, user_id)
            return result

        return await self._after_mutation(self.documents, result)

    async def remove_document(self, document_id: str) -> SyncResult:
        """
        Delete a document row, then its stored file.

        The row is the source of truth: if the file cannot be removed
        afterwards the delete still counts as successful.
        """
        document = self.documents.get(document_id) or await self._lookup_document(document_id)
        result = await self.documents.delete(document_id)
        if not result.ok:
            return result

        if document is not None and document.storage_path:
            await self._discard_file(document.storage_path, document.user_id)

        return await self._after_mutation(self.documents, result)

    async def _lookup_document(self, document_id: str) -> Optional[Document]:
        """Fetch a document row that is not in the local collection yet."""
        try:
            rows = await self._store.select(
                self.documents.config.table,
                filters={"id": document_id, "user_id": self.user_id},
            )
            return Document.model_validate(rows[0]) if rows else None
        except Exception as e:
            logger.warning("document_lookup_failed", document_id=document_id, error=str(e))
            return None

    async def _discard_file(self, path: str, user_id: Optional[str]) -> None:
        try:
            await self._files.delete(path)
        except FileStorageError as e:
            logger.warning("stored_file_not_removed", path=path, error=str(e))
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="file_storage",
                    error_message=f"Could not delete {path}: {e}",
                )
            return

        if self._audit_logger:
            await self._audit_logger.log(AuditEventBuilder.file_deleted(path, user_id))


def create_tracker(
    backend: Optional[str] = None,
    use_cloudinary: bool = False,
) -> FinanceTracker:
    """
    Factory function to create a fully wired tracker.

    Args:
        backend: "memory" or "google_sheets". Defaults to
                 AppSettings.storage_backend.
        use_cloudinary: Store uploaded files in Cloudinary instead of
                        process memory.

    Falls back to the in-memory store (with a warning) when Google
    Sheets is requested but not configured.
    """
    settings = get_settings()
    backend = backend or settings.app.storage_backend

    store: CollectionStore
    if backend == "google_sheets":
        try:
            store = GoogleSheetsCollectionStore(GoogleSheetsClient())
            audit_logger = AuditLogger(store)
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", backend=backend, error=str(e))
            store = InMemoryCollectionStore()
            audit_logger = AuditLogger()  # Local-only logging
    elif backend == "memory":
        store = InMemoryCollectionStore()
        audit_logger = AuditLogger()  # Local-only logging
    else:
        raise ValueError(f"Unknown storage backend: {backend}")

    if use_cloudinary:
        file_storage: FileStorageInterface = CloudinaryFileStorage(
            max_size_bytes=settings.app.max_upload_size_bytes
        )
    else:
        file_storage = InMemoryFileStorage(max_size_bytes=settings.app.max_upload_size_bytes)

    logger.info(
        "tracker_created",
        backend=backend,
        audit_table=AUDIT_TABLE if audit_logger.persists else None,
        use_cloudinary=use_cloudinary,
    )
    return FinanceTracker(
        store=store,
        file_storage=file_storage,
        audit_logger=audit_logger,
        sync_settings=settings.sync,
        app_settings=settings.app,
    )
