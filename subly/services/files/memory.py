"""In-memory file storage, for tests and local use."""

from typing import Optional

from subly.services.files.interface import (
    FileStorageInterface,
    FileUploadError,
    StoredFile,
    StoredFileNotFoundError,
    build_storage_path,
)


class InMemoryFileStorage(FileStorageInterface):

    def __init__(
        self,
        base_url: str = "memory://documents",
        max_size_bytes: Optional[int] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._max_size_bytes = max_size_bytes
        self._blobs: dict[str, bytes] = {}
        self._counter = 0

    def get(self, path: str) -> Optional[bytes]:
        return self._blobs.get(path)

    def __len__(self) -> int:
        return len(self._blobs)

    async def upload(self, user_id: str, file_name: str, data: bytes) -> StoredFile:
        if self._max_size_bytes is not None and len(data) > self._max_size_bytes:
            raise FileUploadError(
                f"File too large: {len(data)} bytes (limit {self._max_size_bytes})"
            )

        # Millisecond paths collide within one test, so count instead
        self._counter += 1
        path = build_storage_path(user_id, file_name, now_ms=self._counter)
        self._blobs[path] = bytes(data)
        return StoredFile(
            path=path,
            url=f"{self._base_url}/{path}",
            file_name=file_name,
            file_size=len(data),
        )

    async def delete(self, path: str) -> None:
        if path not in self._blobs:
            raise StoredFileNotFoundError(f"No file stored at {path}")
        del self._blobs[path]
