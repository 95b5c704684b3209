"""
Client for the third-party object store (Appwrite-compatible REST API).

The store is reached over HTTP only. Buckets hold objects addressed by an
opaque id; the viewable URL of an object is derived from endpoint, bucket,
id and project, never stored.

Only the operations the upload/migration flow needs are implemented:
create, list and delete files, existence checks (HEAD) and downloads.
"""
import logging
import secrets
import time
from dataclasses import dataclass
from typing import Any, BinaryIO, Dict, List, Optional, Tuple, Union

import httpx

from imagerelay.config import Settings

logger = logging.getLogger(__name__)

PROJECT_HEADER = "x-appwrite-project"
API_KEY_HEADER = "x-appwrite-key"


class ObjectStoreError(Exception):
    """Raised when the object store answers with an error or is unreachable."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def generate_object_id() -> str:
    """
    New object id: hex microsecond timestamp plus a random hex suffix.

    Ids from concurrent writers differ in the random part even within the
    same microsecond.
    """
    return f"{time.time_ns() // 1000:x}{secrets.token_hex(3)}"


@dataclass
class StoredObject:
    """One persisted image in the object store."""
    id: str
    location_id: str
    mime_type: Optional[str] = None
    byte_size: Optional[int] = None
    url: Optional[str] = None


class ObjectStoreClient:
    """
    REST client for the object store.

    The httpx.AsyncClient is injected so the transport can be replaced in tests
    and shared with other clients.
    """

    def __init__(
        self,
        endpoint: str,
        project_id: str,
        http: httpx.AsyncClient,
        api_key: Optional[str] = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.project_id = project_id
        self.http = http
        self.api_key = api_key

    @classmethod
    def from_settings(cls, settings: Settings, http: httpx.AsyncClient) -> "ObjectStoreClient":
        return cls(
            endpoint=settings.object_store_endpoint,
            project_id=settings.object_store_project_id or "",
            http=http,
            api_key=settings.object_store_api_key,
        )

    def headers(self) -> Dict[str, str]:
        """Headers every request to the store must carry."""
        headers = {PROJECT_HEADER: self.project_id}
        if self.api_key:
            headers[API_KEY_HEADER] = self.api_key
        return headers

    def upload_url(self, bucket_id: str) -> str:
        """REST endpoint accepting multipart file creation for a bucket."""
        return f"{self.endpoint}/storage/buckets/{bucket_id}/files?project={self.project_id}"

    def file_url(self, bucket_id: str, object_id: str) -> str:
        """Direct view URL of an object (no transformations)."""
        return (
            f"{self.endpoint}/storage/buckets/{bucket_id}/files/{object_id}"
            f"/view?project={self.project_id}"
        )

    def to_stored_object(self, bucket_id: str, payload: Dict[str, Any]) -> StoredObject:
        object_id = payload.get("$id")
        if not object_id:
            raise ObjectStoreError("Object store response has no $id")
        return StoredObject(
            id=object_id,
            location_id=payload.get("bucketId", bucket_id),
            mime_type=payload.get("mimeType"),
            byte_size=payload.get("sizeOriginal"),
            url=self.file_url(bucket_id, object_id),
        )

    @staticmethod
    def _raise_for_status(response: httpx.Response, operation: str) -> None:
        if response.is_success:
            return
        raise ObjectStoreError(
            f"{operation} failed with status {response.status_code}: {response.text[:200]}",
            status_code=response.status_code,
        )

    async def create_file(
        self,
        bucket_id: str,
        object_id: str,
        filename: str,
        content: Union[bytes, BinaryIO],
        mime_type: str,
    ) -> StoredObject:
        """
        Create a file in a bucket.

        Args:
            bucket_id: Target bucket
            object_id: Id to assign (see generate_object_id)
            filename: Name stored with the object
            content: Bytes or an open binary file (streamed)
            mime_type: Content type of the file part

        Raises:
            ObjectStoreError: On a non-2xx answer or transport failure
        """
        try:
            response = await self.http.post(
                self.upload_url(bucket_id),
                headers=self.headers(),
                data={"fileId": object_id},
                files={"file": (filename, content, mime_type)},
            )
        except httpx.HTTPError as e:
            raise ObjectStoreError(f"create_file transport error: {e}") from e

        self._raise_for_status(response, "create_file")
        return self.to_stored_object(bucket_id, response.json())

    async def list_files(self, bucket_id: str) -> List[StoredObject]:
        """List objects in a bucket (first page as returned by the store)."""
        try:
            response = await self.http.get(
                f"{self.endpoint}/storage/buckets/{bucket_id}/files",
                headers=self.headers(),
            )
        except httpx.HTTPError as e:
            raise ObjectStoreError(f"list_files transport error: {e}") from e

        self._raise_for_status(response, "list_files")
        return [self.to_stored_object(bucket_id, item) for item in response.json().get("files", [])]

    async def delete_file(self, bucket_id: str, object_id: str) -> bool:
        """
        Delete an object. Missing objects count as deleted (idempotent).

        Never called by migration: legacy objects are kept.
        """
        try:
            response = await self.http.delete(
                f"{self.endpoint}/storage/buckets/{bucket_id}/files/{object_id}",
                headers=self.headers(),
            )
        except httpx.HTTPError as e:
            raise ObjectStoreError(f"delete_file transport error: {e}") from e

        if response.status_code == 404:
            logger.debug(f"Object {object_id} not found in bucket {bucket_id} (already deleted)")
            return True
        self._raise_for_status(response, "delete_file")
        return True

    async def exists(self, url: str) -> bool:
        """HEAD probe of a URL; any error counts as absent."""
        try:
            response = await self.http.head(url)
        except httpx.HTTPError as e:
            logger.debug(f"HEAD {url} failed: {e}")
            return False
        if not response.is_success:
            logger.debug(f"HEAD {url} returned {response.status_code}")
        return response.is_success

    async def download(self, url: str) -> bytes:
        """
        Download the bytes behind a URL.

        Raises:
            ObjectStoreError: On a non-2xx answer or transport failure
        """
        content, _ = await self.download_with_type(url)
        return content

    async def download_with_type(self, url: str) -> Tuple[bytes, Optional[str]]:
        """
        Download the bytes behind a URL along with their media type.

        Returns:
            (content, mime type without parameters, or None if not sent)
        """
        try:
            response = await self.http.get(url)
        except httpx.HTTPError as e:
            raise ObjectStoreError(f"download transport error: {e}") from e

        self._raise_for_status(response, "download")
        content_type = response.headers.get("content-type", "")
        mime_type = content_type.split(";", 1)[0].strip().lower() or None
        return response.content, mime_type
