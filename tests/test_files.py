"""Tests for document file storage."""

import asyncio

import pytest

from subly.services.files import (
    FileUploadError,
    StoredFileNotFoundError,
    build_storage_path,
)


class TestStoragePath:

    def test_user_and_timestamp(self):
        assert build_storage_path("user-1", "Receipt.PDF", now_ms=1700000000000) == "user-1/1700000000000.pdf"

    def test_last_extension_wins(self):
        assert build_storage_path("u", "archive.tar.gz", now_ms=5) == "u/5.gz"

    def test_no_extension(self):
        assert build_storage_path("u", "README", now_ms=5) == "u/5"
        assert build_storage_path("u", "trailing.", now_ms=5) == "u/5"

    def test_uses_current_time_by_default(self):
        user, _, name = build_storage_path("u", "a.png").partition("/")
        assert user == "u"
        assert name.split(".")[0].isdigit()


class TestInMemoryFileStorage:

    def test_upload_and_delete(self, files):
        async def scenario():
            stored = await files.upload("user-1", "scan.pdf", b"%PDF-1.4")
            present = files.get(stored.path)
            await files.delete(stored.path)
            return stored, present

        stored, present = asyncio.run(scenario())
        assert stored.path.startswith("user-1/")
        assert stored.path.endswith(".pdf")
        assert stored.url.endswith(stored.path)
        assert stored.file_size == 8
        assert present == b"%PDF-1.4"
        assert len(files) == 0

    def test_same_filename_twice_does_not_collide(self, files):
        async def scenario():
            first = await files.upload("user-1", "scan.pdf", b"a")
            second = await files.upload("user-1", "scan.pdf", b"b")
            return first, second

        first, second = asyncio.run(scenario())
        assert first.path != second.path
        assert len(files) == 2

    def test_too_large(self, files):
        with pytest.raises(FileUploadError):
            asyncio.run(files.upload("user-1", "big.bin", b"x" * 2048))

    def test_delete_missing(self, files):
        with pytest.raises(StoredFileNotFoundError):
            asyncio.run(files.delete("user-1/404.pdf"))


@pytest.fixture
def cloudinary_storage(monkeypatch):
    """Cloudinary backend with the SDK calls replaced by recorders."""
    import cloudinary
    import cloudinary.uploader

    from subly.config import get_settings
    from subly.services.files import CloudinaryFileStorage

    monkeypatch.setenv("CLOUDINARY_CLOUD_NAME", "demo")
    monkeypatch.setenv("CLOUDINARY_API_KEY", "key")
    monkeypatch.setenv("CLOUDINARY_API_SECRET", "secret")
    get_settings.cache_clear()

    calls = {"upload": [], "destroy": []}
    destroy_results = []

    def fake_upload(file, **options):
        calls["upload"].append((file.read(), options))
        return {"secure_url": f"https://res.cloudinary.com/demo/raw/upload/{options['public_id']}"}

    def fake_destroy(public_id, **options):
        calls["destroy"].append(public_id)
        return {"result": destroy_results.pop(0) if destroy_results else "ok"}

    monkeypatch.setattr(cloudinary, "config", lambda **kwargs: None)
    monkeypatch.setattr(cloudinary.uploader, "upload", fake_upload)
    monkeypatch.setattr(cloudinary.uploader, "destroy", fake_destroy)

    storage = CloudinaryFileStorage(max_size_bytes=1024)
    yield storage, calls, destroy_results
    get_settings.cache_clear()


class TestCloudinaryFileStorage:

    def test_upload_as_raw_asset(self, cloudinary_storage):
        storage, calls, _ = cloudinary_storage

        stored = asyncio.run(storage.upload("user-1", "lease.pdf", b"%PDF"))

        data, options = calls["upload"][0]
        assert data == b"%PDF"
        assert options["resource_type"] == "raw"
        assert options["public_id"] == f"documents/{stored.path}"
        assert stored.url.endswith(options["public_id"])
        assert stored.file_size == 4

    def test_too_large_is_not_sent(self, cloudinary_storage):
        storage, calls, _ = cloudinary_storage
        with pytest.raises(FileUploadError):
            asyncio.run(storage.upload("user-1", "big.bin", b"x" * 2048))
        assert calls["upload"] == []

    def test_delete(self, cloudinary_storage):
        storage, calls, destroy_results = cloudinary_storage

        asyncio.run(storage.delete("user-1/5.pdf"))
        destroy_results.append("not found")
        with pytest.raises(StoredFileNotFoundError):
            asyncio.run(storage.delete("user-1/6.pdf"))

        assert calls["destroy"] == ["documents/user-1/5.pdf", "documents/user-1/6.pdf"]
