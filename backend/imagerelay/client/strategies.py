"""
Upload strategies for the third-party object store.

Each strategy is one self-contained way of moving a local file into a bucket.
They exist because different device runtimes break different transports:
some cannot stream a file handle through the SDK, some mangle hand-built
multipart bodies, some only manage a base64 read. The orchestrator tries them
in DEFAULT_ORDER and stops at the first success.

All strategies share one contract:
    attempt(source, object_id) -> id of the created object
and raise on any failure.
"""
import io
import logging
import secrets
from abc import ABC, abstractmethod
from typing import Dict, List

import httpx

from imagerelay.client.source import LocalImage
from imagerelay.storage.object_store import ObjectStoreClient, ObjectStoreError
from imagerelay.utils.media import build_data_url, parse_data_url

logger = logging.getLogger(__name__)


class UploadStrategy(ABC):
    """
    Abstract base class for object store upload strategies.

    Args:
        store: Object store client (endpoint, project, shared HTTP client)
        bucket_id: Bucket receiving the uploads
    """

    name: str = ""

    def __init__(self, store: ObjectStoreClient, bucket_id: str):
        self.store = store
        self.bucket_id = bucket_id

    @abstractmethod
    async def attempt(self, source: LocalImage, object_id: str) -> str:
        """
        Upload the source file under the given object id.

        Args:
            source: Local file to upload
            object_id: Id requested for the new object (the same id is reused
                across strategies of one upload, so a late duplicate is
                rejected by the store instead of creating a second object)

        Returns:
            Id assigned by the store

        Raises:
            Exception: Any failure; the orchestrator moves to the next strategy
        """
        pass

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} bucket={self.bucket_id}>"

    async def _post_direct(self, files: Dict, object_id: str) -> str:
        """POST straight to the REST endpoint, bypassing ObjectStoreClient.create_file."""
        response = await self.store.http.post(
            self.store.upload_url(self.bucket_id),
            headers=self.store.headers(),
            data={"fileId": object_id},
            files=files,
        )
        return _created_object_id(response, self.name)


def _created_object_id(response: httpx.Response, strategy: str) -> str:
    if not response.is_success:
        raise ObjectStoreError(
            f"{strategy} upload failed with status {response.status_code}: {response.text[:200]}",
            status_code=response.status_code,
        )
    object_id = response.json().get("$id")
    if not object_id:
        raise ObjectStoreError(f"{strategy} upload response has no $id")
    return object_id


def _named_file_object(source: LocalImage) -> io.BytesIO:
    """In-memory copy of the file that carries its name, like a browser File."""
    file_object = io.BytesIO(source.read_bytes())
    file_object.name = source.filename
    return file_object


def encode_multipart(
    boundary: str,
    fields: Dict[str, str],
    file_field: str,
    filename: str,
    mime_type: str,
    content: bytes,
) -> bytes:
    """Assemble a multipart/form-data body by hand (text fields first, then the file)."""
    lines = []
    for key, value in fields.items():
        lines.append(f"--{boundary}\r\n".encode())
        lines.append(f'Content-Disposition: form-data; name="{key}"\r\n\r\n'.encode())
        lines.append(f"{value}\r\n".encode())

    lines.append(f"--{boundary}\r\n".encode())
    lines.append(
        f'Content-Disposition: form-data; name="{file_field}"; filename="{filename}"\r\n'.encode()
    )
    lines.append(f"Content-Type: {mime_type}\r\n\r\n".encode())
    lines.append(content)
    lines.append(f"\r\n--{boundary}--\r\n".encode())
    return b"".join(lines)


class SdkMultipartStrategy(UploadStrategy):
    """Stream the open file handle through the store client."""

    name = "multipart-sdk"

    async def attempt(self, source: LocalImage, object_id: str) -> str:
        with source.open() as handle:
            stored = await self.store.create_file(
                self.bucket_id, object_id, source.filename, handle, source.mime_type
            )
        return stored.id


class RawMultipartStrategy(UploadStrategy):
    """
    Read the whole file as a blob and send a hand-assembled multipart request.

    No client-side multipart encoder is involved, only raw bytes and headers.
    """

    name = "raw-xhr"

    async def attempt(self, source: LocalImage, object_id: str) -> str:
        blob = source.read_bytes()
        boundary = f"----imagerelay{secrets.token_hex(12)}"
        body = encode_multipart(
            boundary,
            fields={"fileId": object_id},
            file_field="file",
            filename=source.filename,
            mime_type=source.mime_type,
            content=blob,
        )

        headers = {
            **self.store.headers(),
            "Content-Type": f"multipart/form-data; boundary={boundary}",
        }
        response = await self.store.http.post(
            self.store.upload_url(self.bucket_id),
            headers=headers,
            content=body,
        )
        return _created_object_id(response, self.name)


class FetchBlobStrategy(UploadStrategy):
    """Wrap the fetched blob in a named file object and POST it directly."""

    name = "fetch-blob"

    async def attempt(self, source: LocalImage, object_id: str) -> str:
        file_object = _named_file_object(source)
        return await self._post_direct(
            {"file": (source.filename, file_object, source.mime_type)}, object_id
        )


class SdkFileObjectStrategy(UploadStrategy):
    """Retry the same kind of named file object through the store client."""

    name = "sdk-file-object"

    async def attempt(self, source: LocalImage, object_id: str) -> str:
        file_object = _named_file_object(source)
        stored = await self.store.create_file(
            self.bucket_id, object_id, source.filename, file_object, source.mime_type
        )
        return stored.id


class Base64Strategy(UploadStrategy):
    """
    Read the file as base64 text, rebuild the bytes through a data URL and
    POST them directly.

    Works on runtimes where only text reads of local files succeed. Also used
    by the migration resolver to copy objects into the current bucket.
    """

    name = "base64"

    async def attempt(self, source: LocalImage, object_id: str) -> str:
        encoded = source.read_base64()
        logger.debug(f"Read {source.filename} as base64 (length: {len(encoded)})")

        mime_type, blob = parse_data_url(build_data_url(source.mime_type, encoded))
        return await self._post_direct({"file": (source.filename, blob, mime_type)}, object_id)


DEFAULT_ORDER = (
    SdkMultipartStrategy,
    RawMultipartStrategy,
    FetchBlobStrategy,
    SdkFileObjectStrategy,
    Base64Strategy,
)


def default_strategies(store: ObjectStoreClient, bucket_id: str) -> List[UploadStrategy]:
    """Strategies in their fixed priority order, bound to one bucket."""
    return [strategy_cls(store, bucket_id) for strategy_cls in DEFAULT_ORDER]
