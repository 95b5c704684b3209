"""
Local-disk storage for uploaded images.

The upload directory is the server's only state: every upload creates exactly
one new file, existing files are never modified, and there is no in-memory
index. Filenames embed a millisecond timestamp plus a random integer and are
created with exclusive-create, so concurrent writers never overwrite each
other.
"""
import logging
import os
import re
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os

from imagerelay.config import settings

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
# Attempts at finding a free name before giving up (collisions need the same ms and random int)
MAX_NAME_ATTEMPTS = 5

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class FileTooLarge(Exception):
    """Raised when a streamed upload crosses the size ceiling."""

    def __init__(self, limit: int):
        super().__init__(f"File exceeds the {limit} byte limit")
        self.limit = limit


@dataclass
class StoredFile:
    """A file written to the upload directory."""
    filename: str
    size: int
    url: str


def unique_suffix() -> str:
    """{unixMillis}-{randomInt} part shared by all generated filenames."""
    return f"{time.time_ns() // 1_000_000}-{secrets.randbelow(10**9)}"


def sanitize_basename(name: str) -> str:
    """
    Reduce a caller-supplied filename to a safe base name.

    Drops directories and the extension, replaces anything outside
    [A-Za-z0-9._-] and never returns an empty or dot-only name.
    """
    base = name.replace("\\", "/").rsplit("/", 1)[-1]
    base = re.sub(r"\.[^/.]+$", "", base)
    base = _UNSAFE_NAME_CHARS.sub("_", base).strip("._")
    return base or "image"


class LocalUploadStore:
    """
    Writes uploads into a directory and builds their public URLs.

    Constructed explicitly with the directory and advertised host so tests
    can point it at a temporary directory.
    """

    def __init__(self, upload_dir: str, public_host: str, max_bytes: int):
        self.upload_dir = Path(upload_dir)
        self.public_host = public_host.rstrip("/")
        self.max_bytes = max_bytes

    def ensure_directory(self) -> None:
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def url_for(self, filename: str) -> str:
        return f"{self.public_host}/uploads/{filename}"

    def path_for(self, filename: str) -> Optional[Path]:
        """
        Path of a stored file, or None if the name is not a plain file name.

        Rejects separators, parent references and hidden files so lookups
        cannot leave the upload directory.
        """
        if not filename or "/" in filename or "\\" in filename or filename.startswith("."):
            return None
        return self.upload_dir / filename

    def count_files(self) -> int:
        if not self.upload_dir.is_dir():
            return 0
        return sum(
            1 for entry in self.upload_dir.iterdir()
            if entry.is_file() and not entry.name.startswith(".")
        )

    def multipart_filename(self, original_name: Optional[str]) -> str:
        """{unixMillis}-{randomInt}{ext}, keeping the original extension."""
        ext = os.path.splitext(original_name or "")[1]
        ext = _UNSAFE_NAME_CHARS.sub("", ext)
        return f"{unique_suffix()}{ext}"

    def base64_filename(self, original_name: Optional[str], extension: str) -> str:
        """{base}-{unixMillis}-{randomInt}.{ext}, base defaults to "image"."""
        base = sanitize_basename(original_name) if original_name else "image"
        extension = _UNSAFE_NAME_CHARS.sub("_", extension)
        return f"{base}-{unique_suffix()}.{extension}"

    async def _open_new(self, make_name):
        """
        Exclusively create a new file, regenerating the name on collision.

        Args:
            make_name: Zero-argument callable producing a candidate filename

        Returns:
            (filename, open aiofiles handle)
        """
        await aiofiles.os.makedirs(self.upload_dir, exist_ok=True)
        for _ in range(MAX_NAME_ATTEMPTS):
            filename = make_name()
            try:
                handle = await aiofiles.open(self.upload_dir / filename, "xb")
            except FileExistsError:
                logger.debug(f"Filename collision on {filename}, regenerating")
                continue
            return filename, handle
        raise FileExistsError("Could not allocate a unique filename")

    async def _discard(self, filename: str) -> None:
        """Remove a partially written file."""
        try:
            await aiofiles.os.remove(self.upload_dir / filename)
        except FileNotFoundError:
            logger.debug(f"Partial file {filename} already gone")

    async def save_stream(self, source, original_name: Optional[str]) -> StoredFile:
        """
        Stream an uploaded file to disk in chunks.

        Args:
            source: Object with an async read(size) method (Starlette UploadFile)
            original_name: Client-side filename, used for the extension

        Raises:
            FileTooLarge: If the ceiling is crossed (partial file is removed)
            OSError: On filesystem errors
        """
        filename, out = await self._open_new(lambda: self.multipart_filename(original_name))
        size = 0
        try:
            try:
                while True:
                    chunk = await source.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > self.max_bytes:
                        raise FileTooLarge(self.max_bytes)
                    await out.write(chunk)
            finally:
                await out.close()
        except BaseException:
            await self._discard(filename)
            raise

        return StoredFile(filename=filename, size=size, url=self.url_for(filename))

    async def save_bytes(self, content: bytes, original_name: Optional[str], extension: str) -> StoredFile:
        """
        Write decoded bytes under a base64-style filename.

        Raises:
            FileTooLarge: If content is over the ceiling (nothing is written)
            OSError: On filesystem errors
        """
        if len(content) > self.max_bytes:
            raise FileTooLarge(self.max_bytes)

        filename, out = await self._open_new(lambda: self.base64_filename(original_name, extension))
        try:
            try:
                await out.write(content)
            finally:
                await out.close()
        except BaseException:
            await self._discard(filename)
            raise

        return StoredFile(filename=filename, size=len(content), url=self.url_for(filename))


# Singleton instance
_upload_store: Optional[LocalUploadStore] = None


def get_upload_store() -> LocalUploadStore:
    """
    Get the singleton upload store built from settings.

    Used as a FastAPI dependency; tests override it.
    """
    global _upload_store
    if _upload_store is None:
        _upload_store = LocalUploadStore(
            upload_dir=settings.upload_dir,
            public_host=settings.public_host,
            max_bytes=settings.max_upload_bytes,
        )
    return _upload_store
