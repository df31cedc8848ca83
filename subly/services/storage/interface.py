"""
Abstract Collection Store Interface

DESIGN DECISION: We define an abstract interface for the remote store.
This allows us to:
1. Swap the hosted backend without touching the sync engines
2. Use in-memory storage for testing
3. Inject the store into every engine instead of importing a singleton

The interface is intentionally small: table-per-entity rows, exact-match
filters, one ordering field, and a change feed per table.
Rows cross this boundary as JSON-safe dicts.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from subly.models.events import ChangeEvent


ChangeListener = Callable[[ChangeEvent], None]


# Server-assigned timestamp columns per table. "id" is always assigned.
SERVER_TIMESTAMP_FIELDS: dict[str, tuple[str, ...]] = {
    "subscriptions": ("created_at", "updated_at"),
    "documents": ("upload_date",),
    "budgets": ("created_at", "updated_at"),
    "goals": ("created_at", "updated_at"),
    "transactions": ("transaction_date", "created_at"),
    "profiles": ("created_at", "updated_at"),
    "audit_log": (),
}


class ChangeSubscription(ABC):
    """Handle for one open change-feed subscription."""

    @abstractmethod
    def close(self) -> None:
        """Stop delivering events. Safe to call more than once."""
        pass

    @property
    @abstractmethod
    def closed(self) -> bool:
        pass


class CollectionStore(ABC):
    """
    Abstract interface for a hosted table-per-entity store.

    Any backend (Google Sheets, a hosted Postgres, in-memory, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def select(
        self,
        table: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        ascending: bool = True,
    ) -> list[dict]:
        """
        Query rows of a table.

        Args:
            table: Table name
            filters: Exact-match column filters, all must hold
            order_by: Column to order by
            ascending: Sort direction

        Returns:
            Matching rows in order (empty list when none match)

        Raises:
            StorageError: If the query fails
        """
        pass

    @abstractmethod
    async def insert(self, table: str, row: dict) -> dict:
        """
        Insert one row. Server-assigned fields are filled in by the store.

        A row may bring its own id (profiles are keyed by the user id);
        otherwise the store assigns one.

        Returns:
            The fully populated row

        Raises:
            DuplicateError: If a row with the given id already exists
            StorageError: If the insert fails
        """
        pass

    @abstractmethod
    async def update(self, table: str, row_id: str, fields: dict) -> dict:
        """
        Apply a partial update.

        Returns:
            The fully updated row

        Raises:
            NotFoundError: If the row doesn't exist
            StorageError: If the update fails
        """
        pass

    @abstractmethod
    async def delete(self, table: str, row_id: str) -> None:
        """
        Delete a row.

        Raises:
            NotFoundError: If the row doesn't exist (including double delete)
            StorageError: If the delete fails
        """
        pass

    @abstractmethod
    async def increment(
        self,
        table: str,
        row_id: str,
        field: str,
        delta: Any,
    ) -> dict:
        """
        Add delta to a numeric column, evaluated by the store.

        Callers pass the change, never a precomputed total, so two
        concurrent increments cannot overwrite each other.

        Returns:
            The fully updated row

        Raises:
            NotFoundError: If the row doesn't exist
            StorageError: If the update fails
        """
        pass

    @abstractmethod
    def subscribe(self, table: str, listener: ChangeListener) -> ChangeSubscription:
        """
        Open a change feed on a table.

        Events are not pre-filtered per user, and their arrival is not
        ordered relative to the responses of this client's own writes.
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
