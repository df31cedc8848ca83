"""
Document File Storage using Cloudinary

DESIGN DECISION: We use Cloudinary because:
1. Stores arbitrary files (PDF receipts, scans, contracts) as raw assets
2. Every asset gets a stable public URL
3. Simple API
4. Free tier sufficient for personal use

This service handles:
1. Uploading document bytes under a user-scoped path
2. Returning the public URL recorded on the document row
3. Deleting the stored file when its document is removed
"""

from io import BytesIO
from typing import Optional

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from subly.config import get_settings
from subly.services.files.interface import (
    FileStorageError,
    FileStorageInterface,
    FileUploadError,
    StoredFile,
    StoredFileNotFoundError,
    build_storage_path,
)


class CloudinaryFileStorage(FileStorageInterface):
    """
    Blob storage for uploaded documents, backed by Cloudinary.

    Files are stored as "raw" resources so that non-image documents
    are kept byte-for-byte.
    """

    def __init__(self, max_size_bytes: Optional[int] = None):
        self._settings = get_settings().cloudinary
        self._max_size_bytes = (
            max_size_bytes
            if max_size_bytes is not None
            else get_settings().app.max_upload_size_bytes
        )
        self._configured = False

    def _configure(self):
        """Configure Cloudinary SDK."""
        if not self._configured:
            cloudinary.config(
                cloud_name=self._settings.cloud_name,
                api_key=self._settings.api_key,
                api_secret=self._settings.api_secret,
                secure=True,
            )
            self._configured = True

    def _public_id(self, path: str) -> str:
        return f"{self._settings.documents_folder}/{path}"

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(cloudinary.exceptions.Error),
        reraise=True,
    )
    def _upload_raw(self, data: bytes, public_id: str) -> dict:
        return cloudinary.uploader.upload(
            BytesIO(data),
            public_id=public_id,
            resource_type="raw",
            overwrite=False,
        )

    async def upload(self, user_id: str, file_name: str, data: bytes) -> StoredFile:
        """
        Upload document bytes.

        Raises:
            FileUploadError: If the file is too large or Cloudinary fails
        """
        if len(data) > self._max_size_bytes:
            raise FileUploadError(
                f"File too large: {len(data)} bytes (limit {self._max_size_bytes})"
            )

        self._configure()
        path = build_storage_path(user_id, file_name)

        try:
            result = self._upload_raw(data, self._public_id(path))
        except cloudinary.exceptions.Error as e:
            raise FileUploadError(f"Cloudinary error: {e}")
        except Exception as e:
            raise FileUploadError(f"Failed to upload document: {e}")

        url = result.get("secure_url", result.get("url", ""))
        if not url:
            raise FileUploadError("No URL returned from Cloudinary")

        return StoredFile(
            path=path,
            url=url,
            file_name=file_name,
            file_size=len(data),
        )

    async def delete(self, path: str) -> None:
        """Delete a stored document file."""
        self._configure()
        try:
            result = cloudinary.uploader.destroy(
                self._public_id(path),
                resource_type="raw",
                invalidate=True,
            )
        except cloudinary.exceptions.Error as e:
            raise FileStorageError(f"Cloudinary error: {e}")

        outcome = result.get("result")
        if outcome == "not found":
            raise StoredFileNotFoundError(f"No file stored at {path}")
        if outcome != "ok":
            raise FileStorageError(f"Unexpected Cloudinary response: {outcome}")
