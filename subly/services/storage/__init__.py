"""
Storage Services Package

Provides the abstract collection store interface and its implementations:
in-memory (tests, local use) and Google Sheets.
"""

from subly.services.storage.interface import (
    SERVER_TIMESTAMP_FIELDS,
    ChangeListener,
    ChangeSubscription,
    CollectionStore,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    StorageError,
)
from subly.services.storage.local_feed import LocalChangeFeed
from subly.services.storage.memory import InMemoryCollectionStore
from subly.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsCollectionStore,
)

__all__ = [
    # Interfaces
    "ChangeListener",
    "ChangeSubscription",
    "CollectionStore",
    "SERVER_TIMESTAMP_FIELDS",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "InMemoryCollectionStore",
    "LocalChangeFeed",
    "GoogleSheetsClient",
    "GoogleSheetsCollectionStore",
]
