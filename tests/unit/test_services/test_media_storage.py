"""Tests for local disk media storage."""

import pytest

from estate.services.media_storage import LocalMediaStorage
from estate.utils.errors import BadRequestError


@pytest.mark.unit
@pytest.mark.asyncio
async def test_store_writes_file_and_returns_uri(tmp_path):
    storage = LocalMediaStorage(root=str(tmp_path), base_url="")

    uri = await storage.store(b"\x89PNG data", "property", "Front.PNG")

    assert uri.startswith("/property/")
    assert uri.endswith(".png")
    stored = tmp_path / uri.lstrip("/")
    assert stored.read_bytes() == b"\x89PNG data"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_store_uses_base_url(tmp_path):
    storage = LocalMediaStorage(root=str(tmp_path), base_url="https://cdn.example.com/")

    uri = await storage.store(b"data", "property", "a.jpg")

    assert uri.startswith("https://cdn.example.com/property/")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_store_names_are_unique(tmp_path):
    storage = LocalMediaStorage(root=str(tmp_path), base_url="")

    first = await storage.store(b"one", "property", "same.jpg")
    second = await storage.store(b"two", "property", "same.jpg")

    assert first != second


@pytest.mark.unit
@pytest.mark.asyncio
async def test_store_rejects_empty_content(tmp_path):
    storage = LocalMediaStorage(root=str(tmp_path), base_url="")

    with pytest.raises(BadRequestError):
        await storage.store(b"", "property", "a.jpg")


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize("category", ["", "../etc", ".hidden"])
async def test_store_rejects_bad_category(tmp_path, category):
    storage = LocalMediaStorage(root=str(tmp_path), base_url="")

    with pytest.raises(BadRequestError):
        await storage.store(b"data", category, "a.jpg")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_delete_removes_file(tmp_path):
    storage = LocalMediaStorage(root=str(tmp_path), base_url="https://cdn.example.com")
    uri = await storage.store(b"data", "property", "a.jpg")

    await storage.delete(uri)

    assert list((tmp_path / "property").iterdir()) == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_delete_missing_file_is_ignored(tmp_path):
    storage = LocalMediaStorage(root=str(tmp_path), base_url="")

    await storage.delete("/property/does-not-exist.jpg")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_delete_refuses_paths_outside_root(tmp_path):
    root = tmp_path / "media"
    root.mkdir()
    outside = tmp_path / "keep.txt"
    outside.write_text("important")
    storage = LocalMediaStorage(root=str(root), base_url="")

    await storage.delete("/../keep.txt")

    assert outside.exists()
