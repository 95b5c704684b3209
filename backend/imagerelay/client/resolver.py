"""
Storage migration resolver.

Turns a stored image reference (bare object id from older app versions, or a
full URL) into a URL that can be displayed right now, moving objects out of
legacy buckets as a side effect.

Resolution order, first hit wins:
1. DIRECT      - reference is already a URL
2. CURRENT     - HEAD on the current bucket URL succeeds
3. MIGRATED    - bytes found in the current or a legacy bucket are copied
                 into the current bucket under a new id; the caller's
                 on_migrated callback receives that id
4. LEGACY      - a legacy bucket URL answers HEAD, served without migrating
5. PLACEHOLDER - generated avatar for the display name

resolve() never raises. Legacy objects are never deleted.
"""
import enum
import inspect
import logging
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Optional, Sequence, Tuple, Union

from imagerelay.client.source import LocalImage
from imagerelay.client.strategies import Base64Strategy, UploadStrategy
from imagerelay.config import Settings
from imagerelay.storage.object_store import ObjectStoreClient, ObjectStoreError, generate_object_id
from imagerelay.utils.avatars import placeholder_avatar_url
from imagerelay.utils.media import DEFAULT_MIME_TYPE, extension_for_mime
from imagerelay.utils.logging import log_image_resolved, log_object_migrated
from imagerelay.utils.metrics import image_resolutions_total

logger = logging.getLogger(__name__)

MigrationCallback = Callable[[str], Union[None, Awaitable[None]]]


class ResolutionSource(str, enum.Enum):
    DIRECT = "direct"
    CURRENT = "current"
    MIGRATED = "migrated"
    LEGACY = "legacy"
    PLACEHOLDER = "placeholder"


@dataclass
class ResolvedImage:
    """A displayable URL and how it was obtained."""
    url: str
    source: ResolutionSource
    object_id: Optional[str] = None  # New id when the object was migrated


class StorageMigrationResolver:
    """
    Resolves stored image references against current and legacy buckets.

    Args:
        object_store: Object store client
        current_bucket_id: Bucket new objects live in
        legacy_bucket_ids: Older buckets, probed in this order
        migrator: Strategy that copies bytes into the current bucket
            (Base64Strategy on the current bucket if omitted)
        placeholder_base: Base URL of the generated avatar service
    """

    def __init__(
        self,
        object_store: ObjectStoreClient,
        current_bucket_id: str,
        legacy_bucket_ids: Sequence[str] = (),
        migrator: Optional[UploadStrategy] = None,
        placeholder_base: str = "https://ui-avatars.com/api/",
    ):
        self.object_store = object_store
        self.current_bucket_id = current_bucket_id
        self.legacy_bucket_ids = list(legacy_bucket_ids)
        self.migrator = migrator or Base64Strategy(object_store, current_bucket_id)
        self.placeholder_base = placeholder_base

    @classmethod
    def from_settings(cls, settings: Settings, object_store: ObjectStoreClient) -> "StorageMigrationResolver":
        return cls(
            object_store=object_store,
            current_bucket_id=settings.object_store_bucket_id,
            legacy_bucket_ids=settings.object_store_legacy_bucket_ids,
            placeholder_base=settings.placeholder_avatar_base,
        )

    def placeholder(self, display_name: str) -> ResolvedImage:
        return ResolvedImage(
            url=placeholder_avatar_url(display_name or "User", self.placeholder_base),
            source=ResolutionSource.PLACEHOLDER,
        )

    async def resolve(
        self,
        reference: Optional[str],
        display_name: str = "User",
        on_migrated: Optional[MigrationCallback] = None,
    ) -> ResolvedImage:
        """
        Resolve a reference to a displayable URL. Never raises.

        Args:
            reference: Bare object id or full URL (may be empty)
            display_name: Name used for the placeholder avatar
            on_migrated: Called once with the new object id after a migration,
                so the caller can overwrite its stored reference
        """
        start_time = time.time()
        try:
            resolved = await self._resolve(reference, display_name, on_migrated)
        except Exception as e:
            logger.error(f"Error resolving image reference {reference}: {e}", exc_info=True)
            resolved = self.placeholder(display_name)

        image_resolutions_total.labels(source=resolved.source.value).inc()
        log_image_resolved(
            logger,
            reference=reference or "",
            source=resolved.source.value,
            url=resolved.url,
            duration_ms=(time.time() - start_time) * 1000,
        )
        return resolved

    async def _resolve(
        self,
        reference: Optional[str],
        display_name: str,
        on_migrated: Optional[MigrationCallback],
    ) -> ResolvedImage:
        if not reference:
            return self.placeholder(display_name)

        if reference.startswith(("http://", "https://")):
            return ResolvedImage(url=reference, source=ResolutionSource.DIRECT)

        current_url = self.object_store.file_url(self.current_bucket_id, reference)
        if await self.object_store.exists(current_url):
            return ResolvedImage(url=current_url, source=ResolutionSource.CURRENT)

        logger.info(f"Object {reference} not in current bucket, attempting migration")
        new_object_id = await self.migrate(reference, on_migrated)
        if new_object_id:
            return ResolvedImage(
                url=self.object_store.file_url(self.current_bucket_id, new_object_id),
                source=ResolutionSource.MIGRATED,
                object_id=new_object_id,
            )

        for bucket_id in self.legacy_bucket_ids:
            legacy_url = self.object_store.file_url(bucket_id, reference)
            if await self.object_store.exists(legacy_url):
                logger.info(f"Serving {reference} from legacy bucket {bucket_id}")
                return ResolvedImage(url=legacy_url, source=ResolutionSource.LEGACY)

        logger.info(f"Object {reference} not found anywhere, using placeholder")
        return self.placeholder(display_name)

    async def download_from_any_bucket(self, object_id: str) -> Optional[Tuple[str, bytes, str]]:
        """
        Download an object from the first bucket that has it.

        Tries the current bucket, then legacy buckets in order; each bucket
        gets a HEAD before the download.

        Returns:
            (bucket_id, content, mime_type) or None if no bucket yields the
            bytes. mime_type is the served image type, image/jpeg when the
            store sent none or a non-image one.
        """
        for bucket_id in [self.current_bucket_id, *self.legacy_bucket_ids]:
            url = self.object_store.file_url(bucket_id, object_id)
            if not await self.object_store.exists(url):
                logger.debug(f"Object {object_id} not accessible in bucket {bucket_id}")
                continue

            try:
                content, served_type = await self.object_store.download_with_type(url)
            except ObjectStoreError as e:
                logger.warning(f"Download of {object_id} from bucket {bucket_id} failed: {e}")
                continue

            logger.info(f"Downloaded {object_id} ({len(content)} bytes) from bucket {bucket_id}")
            mime_type = served_type if served_type and served_type.startswith("image/") else DEFAULT_MIME_TYPE
            return bucket_id, content, mime_type

        logger.warning(f"Object {object_id} not found in any bucket")
        return None

    async def migrate(
        self,
        object_id: str,
        on_migrated: Optional[MigrationCallback] = None,
    ) -> Optional[str]:
        """
        Copy an object into the current bucket under a new id.

        The source object is left in place.

        Returns:
            New object id, or None if the bytes could not be found or uploaded
        """
        found = await self.download_from_any_bucket(object_id)
        if found is None:
            return None
        source_bucket_id, content, mime_type = found

        with tempfile.TemporaryDirectory() as temp_dir:
            temp_path = Path(temp_dir) / f"migrated_file_{object_id}.{extension_for_mime(mime_type)}"
            temp_path.write_bytes(content)
            source = LocalImage(path=temp_path, filename=temp_path.name, mime_type=mime_type)
            try:
                new_object_id = await self.migrator.attempt(source, generate_object_id())
            except Exception as e:
                logger.warning(f"Re-upload of {object_id} into {self.current_bucket_id} failed: {e}")
                return None

        log_object_migrated(
            logger,
            object_id=object_id,
            new_object_id=new_object_id,
            bucket_id=self.current_bucket_id,
            source_bucket_id=source_bucket_id,
        )
        await self._notify(on_migrated, object_id, new_object_id)
        return new_object_id

    @staticmethod
    async def _notify(
        on_migrated: Optional[MigrationCallback],
        object_id: str,
        new_object_id: str,
    ) -> None:
        """Hand the new id to the caller; callback failures do not undo the migration."""
        if on_migrated is None:
            return
        try:
            result = on_migrated(new_object_id)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"Failed to update stored reference {object_id} -> {new_object_id}: {e}")
