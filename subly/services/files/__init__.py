"""File storage for uploaded documents."""

from subly.services.files.interface import (
    FileStorageError,
    FileStorageInterface,
    FileUploadError,
    StoredFile,
    StoredFileNotFoundError,
    build_storage_path,
)
from subly.services.files.memory import InMemoryFileStorage
from subly.services.files.cloudinary_service import CloudinaryFileStorage

__all__ = [
    "CloudinaryFileStorage",
    "FileStorageError",
    "FileStorageInterface",
    "FileUploadError",
    "InMemoryFileStorage",
    "StoredFile",
    "StoredFileNotFoundError",
    "build_storage_path",
]
