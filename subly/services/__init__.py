"""Services package."""

from subly.services.files import (
    CloudinaryFileStorage,
    FileStorageError,
    FileStorageInterface,
    FileUploadError,
    InMemoryFileStorage,
    StoredFile,
    StoredFileNotFoundError,
)
from subly.services.storage import (
    ChangeSubscription,
    CollectionStore,
    ConnectionError,
    DuplicateError,
    GoogleSheetsClient,
    GoogleSheetsCollectionStore,
    InMemoryCollectionStore,
    NotFoundError,
    StorageError,
)

__all__ = [
    # File storage
    "CloudinaryFileStorage",
    "FileStorageError",
    "FileStorageInterface",
    "FileUploadError",
    "InMemoryFileStorage",
    "StoredFile",
    "StoredFileNotFoundError",
    # Collection storage
    "ChangeSubscription",
    "CollectionStore",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsClient",
    "GoogleSheetsCollectionStore",
    "InMemoryCollectionStore",
    "NotFoundError",
    "StorageError",
]
