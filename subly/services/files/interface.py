"""
Abstract File Storage Interface

Uploaded documents are stored as binary blobs outside the collection
store. The documents table only keeps a reference to them.

Paths are derived from the owner and the upload time, so two uploads of
the same filename never collide.
"""

import time
from abc import ABC, abstractmethod
from typing import Optional

from pydantic import BaseModel, Field


class StoredFile(BaseModel):
    """Reference to an uploaded blob."""

    path: str = Field(..., description="Storage key, used for deletion")
    url: str = Field(..., description="Publicly resolvable URL")
    file_name: str = Field(..., description="Original filename")
    file_size: int = Field(..., ge=0)


def build_storage_path(user_id: str, file_name: str, now_ms: Optional[int] = None) -> str:
    """
    Storage key for a new upload: {user_id}/{epoch_millis}.{ext}

    Files without an extension keep no suffix.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    _, dot, ext = file_name.rpartition(".")
    if not dot or not ext:
        return f"{user_id}/{now_ms}"
    return f"{user_id}/{now_ms}.{ext.lower()}"


class FileStorageInterface(ABC):
    """Any blob store (Cloudinary, in-memory, ...) must implement these methods."""

    @abstractmethod
    async def upload(self, user_id: str, file_name: str, data: bytes) -> StoredFile:
        """
        Store a blob for a user.

        Raises:
            FileUploadError: If the upload fails or the file is too large
        """
        pass

    @abstractmethod
    async def delete(self, path: str) -> None:
        """
        Remove a stored blob.

        Raises:
            StoredFileNotFoundError: If nothing is stored at path
            FileStorageError: If the delete fails
        """
        pass


class FileStorageError(Exception):
    """Base exception for file storage operations."""
    pass


class FileUploadError(FileStorageError):
    """Failed to upload a file."""
    pass


class StoredFileNotFoundError(FileStorageError):
    """No file stored at the given path."""
    pass
