"""
Tests for the storage migration resolver.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import CURRENT_BUCKET, LEGACY_BUCKETS, FakeObjectStore
from imagerelay.client.resolver import ResolutionSource, StorageMigrationResolver
from imagerelay.storage.object_store import ObjectStoreClient
from imagerelay.utils.avatars import placeholder_avatar_url


@pytest.fixture
def resolver(object_store: ObjectStoreClient) -> StorageMigrationResolver:
    return StorageMigrationResolver(object_store, CURRENT_BUCKET, LEGACY_BUCKETS)


class TestResolve:
    """Tests for the resolution order."""

    @pytest.mark.asyncio
    async def test_url_reference_returned_unchanged(self, resolver, fake_store: FakeObjectStore):
        reference = "https://cdn.example.com/avatars/p1.png"

        resolved = await resolver.resolve(reference, "Player")

        assert resolved.url == reference
        assert resolved.source == ResolutionSource.DIRECT
        assert fake_store.requests == []

    @pytest.mark.asyncio
    async def test_current_bucket_hit(self, resolver, object_store, fake_store: FakeObjectStore):
        fake_store.put(CURRENT_BUCKET, "abc", b"img")
        callback = MagicMock()

        resolved = await resolver.resolve("abc", "Player", on_migrated=callback)

        assert resolved.source == ResolutionSource.CURRENT
        assert resolved.url == object_store.file_url(CURRENT_BUCKET, "abc")
        assert fake_store.count() == 1
        callback.assert_not_called()

    @pytest.mark.asyncio
    async def test_legacy_object_is_migrated(self, resolver, object_store, fake_store: FakeObjectStore, png_bytes: bytes):
        """Test bytes move to the current bucket under a new id, legacy copy kept."""
        fake_store.put(LEGACY_BUCKETS[1], "old-id", png_bytes)
        callback = MagicMock()

        resolved = await resolver.resolve("old-id", "Player", on_migrated=callback)

        assert resolved.source == ResolutionSource.MIGRATED
        assert resolved.object_id is not None
        assert resolved.object_id != "old-id"
        assert resolved.url == object_store.file_url(CURRENT_BUCKET, resolved.object_id)
        callback.assert_called_once_with(resolved.object_id)

        assert fake_store.buckets[CURRENT_BUCKET][resolved.object_id][0] == png_bytes
        assert "old-id" in fake_store.buckets[LEGACY_BUCKETS[1]]

    @pytest.mark.asyncio
    async def test_migration_keeps_served_type(self, resolver, fake_store: FakeObjectStore, png_bytes: bytes):
        """Test a migrated PNG is stored as a PNG, named after its type."""
        fake_store.put(LEGACY_BUCKETS[0], "old-png", png_bytes, "image/png")

        resolved = await resolver.resolve("old-png", "Player")

        content, mime = fake_store.buckets[CURRENT_BUCKET][resolved.object_id]
        assert content == png_bytes
        assert mime == "image/png"
        creates = [r for r in fake_store.requests if r.method == "POST"]
        assert b'filename="migrated_file_old-png.png"' in creates[0].content

    @pytest.mark.asyncio
    async def test_migration_non_image_type_defaults_to_jpeg(self, resolver, fake_store: FakeObjectStore):
        fake_store.put(LEGACY_BUCKETS[0], "old-bin", b"\xff\xd8\xff", "application/octet-stream")

        resolved = await resolver.resolve("old-bin", "Player")

        assert fake_store.buckets[CURRENT_BUCKET][resolved.object_id][1] == "image/jpeg"

    @pytest.mark.asyncio
    async def test_async_callback_awaited(self, resolver, fake_store: FakeObjectStore, png_bytes: bytes):
        fake_store.put(LEGACY_BUCKETS[0], "old-id", png_bytes)
        callback = AsyncMock()

        resolved = await resolver.resolve("old-id", "Player", on_migrated=callback)

        callback.assert_awaited_once_with(resolved.object_id)

    @pytest.mark.asyncio
    async def test_failing_callback_keeps_migrated_url(self, resolver, fake_store: FakeObjectStore, png_bytes: bytes):
        fake_store.put(LEGACY_BUCKETS[0], "old-id", png_bytes)
        callback = MagicMock(side_effect=RuntimeError("database down"))

        resolved = await resolver.resolve("old-id", "Player", on_migrated=callback)

        assert resolved.source == ResolutionSource.MIGRATED
        callback.assert_called_once()

    @pytest.mark.asyncio
    async def test_legacy_url_when_migration_fails(self, resolver, object_store, fake_store: FakeObjectStore, png_bytes: bytes):
        """Test a readable legacy object is served in place if re-upload fails."""
        fake_store.put(LEGACY_BUCKETS[0], "old-id", png_bytes)
        fake_store.reject_uploads = True
        callback = MagicMock()

        resolved = await resolver.resolve("old-id", "Player", on_migrated=callback)

        assert resolved.source == ResolutionSource.LEGACY
        assert resolved.url == object_store.file_url(LEGACY_BUCKETS[0], "old-id")
        callback.assert_not_called()
        assert fake_store.count() == 1

    @pytest.mark.asyncio
    async def test_placeholder_when_absent_everywhere(self, resolver, fake_store: FakeObjectStore):
        callback = MagicMock()

        first = await resolver.resolve("ghost", "Judit Polgar", on_migrated=callback)
        second = await resolver.resolve("ghost", "Judit Polgar", on_migrated=callback)

        assert first.source == ResolutionSource.PLACEHOLDER
        assert first.url == placeholder_avatar_url("Judit Polgar")
        assert second.url == first.url
        callback.assert_not_called()
        assert fake_store.count() == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reference", [None, ""])
    async def test_empty_reference_placeholder(self, resolver, fake_store: FakeObjectStore, reference):
        resolved = await resolver.resolve(reference, "Player")

        assert resolved.source == ResolutionSource.PLACEHOLDER
        assert fake_store.requests == []

    @pytest.mark.asyncio
    async def test_default_display_name(self, resolver):
        resolved = await resolver.resolve("")

        assert resolved.url == placeholder_avatar_url("User")

    @pytest.mark.asyncio
    async def test_never_raises(self):
        """Test an unexpected client error degrades to the placeholder."""
        broken_store = MagicMock(spec=ObjectStoreClient)
        broken_store.file_url.side_effect = RuntimeError("boom")
        resolver = StorageMigrationResolver(broken_store, CURRENT_BUCKET, LEGACY_BUCKETS)

        resolved = await resolver.resolve("abc", "Player")

        assert resolved.source == ResolutionSource.PLACEHOLDER


class TestDownloadFromAnyBucket:

    @pytest.mark.asyncio
    async def test_current_bucket_checked_first(self, resolver, fake_store: FakeObjectStore):
        fake_store.put(CURRENT_BUCKET, "dup", b"current")
        fake_store.put(LEGACY_BUCKETS[0], "dup", b"legacy")

        assert await resolver.download_from_any_bucket("dup") == (CURRENT_BUCKET, b"current", "image/png")

    @pytest.mark.asyncio
    async def test_legacy_order(self, resolver, fake_store: FakeObjectStore):
        fake_store.put(LEGACY_BUCKETS[1], "x", b"second")
        fake_store.put(LEGACY_BUCKETS[0], "x", b"first")

        assert await resolver.download_from_any_bucket("x") == (LEGACY_BUCKETS[0], b"first", "image/png")

    @pytest.mark.asyncio
    async def test_download_error_returns_none(self, resolver, fake_store: FakeObjectStore):
        fake_store.put(LEGACY_BUCKETS[0], "x", b"bytes")
        fake_store.fail_downloads = True

        assert await resolver.download_from_any_bucket("x") is None
