"""
Client for the self-hosted upload server.

Used by the mobile upload flow: a timed health probe decides whether the
server is reachable, then files go up as multipart (or base64 JSON).
"""
import asyncio
import logging
from typing import Optional

import httpx

from imagerelay.client.errors import ServerUploadError
from imagerelay.client.source import LocalImage
from imagerelay.config import Settings
from imagerelay.utils.media import build_data_url

logger = logging.getLogger(__name__)

JSON_ACCEPT = {"Accept": "application/json"}


class ImageServerClient:
    """
    HTTP client of the upload server.

    Args:
        base_url: Server URL without trailing slash, e.g. http://192.168.1.5:3000
        http: Shared httpx.AsyncClient
        health_timeout: Hard limit for the availability probe, in seconds
    """

    def __init__(self, base_url: str, http: httpx.AsyncClient, health_timeout: float = 5.0):
        self.base_url = base_url.rstrip("/")
        self.http = http
        self.health_timeout = health_timeout

    @classmethod
    def from_settings(cls, settings: Settings, http: httpx.AsyncClient) -> "ImageServerClient":
        return cls(settings.image_server_url, http, health_timeout=settings.health_timeout)

    async def is_available(self, timeout: Optional[float] = None) -> bool:
        """
        Check if the server is running and reachable.

        The request is cancelled once the timeout elapses, so a server that
        accepts the connection but never answers still yields False.
        """
        timeout = self.health_timeout if timeout is None else timeout
        url = f"{self.base_url}/health"

        try:
            response = await asyncio.wait_for(
                self.http.get(url, headers=JSON_ACCEPT, timeout=timeout),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Server health check timed out after {timeout}s: {url}")
            return False
        except httpx.HTTPError as e:
            logger.warning(f"Server health check failed: {e}")
            return False

        if not response.is_success:
            logger.warning(f"Server health check returned {response.status_code}")
            return False

        logger.debug(f"Server health check: {response.text[:200]}")
        return True

    @staticmethod
    def _file_url(response: httpx.Response, operation: str) -> str:
        """Extract file.url from an upload response or raise ServerUploadError."""
        if not response.is_success:
            raise ServerUploadError(
                f"Server error: {response.status_code} {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            result = response.json()
        except ValueError as e:
            raise ServerUploadError(f"{operation} response is not JSON") from e

        if not result.get("success"):
            raise ServerUploadError(f"{operation} failed: {result.get('message')}")

        url = (result.get("file") or {}).get("url")
        if not url:
            raise ServerUploadError(f"{operation} response has no file url")
        return url

    async def upload_multipart(self, source: LocalImage) -> str:
        """
        Upload a local file as multipart form data (field "image").

        Returns:
            Absolute URL of the stored file

        Raises:
            ServerUploadError: On transport failure or rejection
        """
        logger.info(f"Uploading {source.filename} to {self.base_url}/upload")
        try:
            with source.open() as handle:
                response = await self.http.post(
                    f"{self.base_url}/upload",
                    files={"image": (source.filename, handle, source.mime_type)},
                    headers=JSON_ACCEPT,
                )
        except httpx.HTTPError as e:
            raise ServerUploadError(f"Upload transport error: {e}") from e

        return self._file_url(response, "Upload")

    async def upload_base64(self, source: LocalImage, filename: Optional[str] = None) -> str:
        """
        Upload a local file as a base64 data URL.

        Args:
            source: File to upload
            filename: Base name for the stored file (defaults to the source name)

        Raises:
            ServerUploadError: On transport failure or rejection
        """
        data_url = build_data_url(source.mime_type, source.read_base64())
        logger.info(f"Uploading base64 image to {self.base_url}/upload/base64")
        try:
            response = await self.http.post(
                f"{self.base_url}/upload/base64",
                json={"image": data_url, "filename": filename or source.filename},
                headers=JSON_ACCEPT,
            )
        except httpx.HTTPError as e:
            raise ServerUploadError(f"Base64 upload transport error: {e}") from e

        return self._file_url(response, "Base64 upload")
