"""
Test configuration and fixtures.
The upload server runs in-process (ASGITransport) against a temporary upload
directory; the object store and document database are faked with
httpx.MockTransport.
"""
import os

# Set test environment before any imports
os.environ["ENVIRONMENT"] = "test"
os.environ["HOST"] = "http://test"

import base64
import re
from collections import defaultdict
from typing import AsyncGenerator, Dict, Tuple

import httpx
import pytest
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport

from imagerelay.storage.local_store import LocalUploadStore, get_upload_store
from imagerelay.storage.object_store import ObjectStoreClient

# 1x1 transparent PNG
PNG_BYTES = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)

TEST_MAX_BYTES = 64 * 1024

STORE_ENDPOINT = "https://store.test/v1"
STORE_PROJECT = "test-project"
CURRENT_BUCKET = "current-bucket"
LEGACY_BUCKETS = ["legacy-old", "legacy-previous"]


def parse_multipart(body: bytes, content_type: str) -> Dict[str, Tuple[bytes, Dict[str, str]]]:
    """Split a multipart/form-data body into {name: (value, part headers)}."""
    boundary = content_type.split("boundary=", 1)[1].strip('"').encode()
    parts = {}
    for chunk in body.split(b"--" + boundary)[1:-1]:
        chunk = chunk[2:-2]  # leading and trailing CRLF around each part
        head, value = chunk.split(b"\r\n\r\n", 1)
        headers = {}
        for line in head.decode().split("\r\n"):
            key, _, header_value = line.partition(":")
            headers[key.strip().lower()] = header_value.strip()
        name = re.search(r'name="([^"]+)"', headers["content-disposition"]).group(1)
        parts[name] = (value, headers)
    return parts


class FakeObjectStore:
    """
    In-memory object store speaking the REST API the client uses.

    buckets[bucket_id][object_id] = (content, mime_type)
    """

    def __init__(self):
        self.buckets: Dict[str, Dict[str, Tuple[bytes, str]]] = defaultdict(dict)
        self.requests = []
        self.reject_uploads = False
        self.fail_downloads = False

    def put(self, bucket_id: str, object_id: str, content: bytes, mime_type: str = "image/png"):
        self.buckets[bucket_id][object_id] = (content, mime_type)

    def count(self) -> int:
        return sum(len(objects) for objects in self.buckets.values())

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        segments = request.url.path.strip("/").split("/")
        # v1 / storage / buckets / {bucket} / files [/ {id} [/ view]]
        if segments[:3] != ["v1", "storage", "buckets"] or len(segments) < 5:
            return httpx.Response(404, json={"message": "Route not found"})

        bucket_id = segments[3]
        objects = self.buckets[bucket_id]

        if len(segments) == 5:
            if request.method == "POST":
                return await self._create(request, bucket_id)
            if request.method == "GET":
                files = [
                    {"$id": object_id, "bucketId": bucket_id, "mimeType": mime, "sizeOriginal": len(content)}
                    for object_id, (content, mime) in objects.items()
                ]
                return httpx.Response(200, json={"total": len(files), "files": files})

        object_id = segments[5]
        if len(segments) == 6 and request.method == "DELETE":
            if objects.pop(object_id, None) is None:
                return httpx.Response(404, json={"message": "File not found"})
            return httpx.Response(204)

        if len(segments) == 7 and segments[6] == "view":
            if object_id not in objects:
                return httpx.Response(404, json={"message": "File not found"})
            content, mime = objects[object_id]
            if request.method == "GET" and self.fail_downloads:
                return httpx.Response(500, json={"message": "Download failed"})
            body = b"" if request.method == "HEAD" else content
            return httpx.Response(200, content=body, headers={"Content-Type": mime})

        return httpx.Response(405)

    async def _create(self, request: httpx.Request, bucket_id: str) -> httpx.Response:
        if self.reject_uploads:
            return httpx.Response(503, json={"message": "Storage unavailable"})

        body = await request.aread()
        parts = parse_multipart(body, request.headers["content-type"])
        object_id = parts["fileId"][0].decode()
        content, file_headers = parts["file"]

        if object_id in self.buckets[bucket_id]:
            return httpx.Response(409, json={"message": "File already exists"})

        mime = file_headers.get("content-type", "application/octet-stream")
        self.put(bucket_id, object_id, content, mime)
        return httpx.Response(
            201,
            json={"$id": object_id, "bucketId": bucket_id, "mimeType": mime, "sizeOriginal": len(content)},
        )


@pytest.fixture
def png_bytes() -> bytes:
    return PNG_BYTES


@pytest.fixture
def png_file(tmp_path) -> str:
    """A PNG on 'the device'."""
    path = tmp_path / "avatar.png"
    path.write_bytes(PNG_BYTES)
    return str(path)


@pytest.fixture
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def upload_store(upload_dir) -> LocalUploadStore:
    return LocalUploadStore(str(upload_dir), "http://test", max_bytes=TEST_MAX_BYTES)


def get_test_app(store: LocalUploadStore) -> FastAPI:
    """Create a test FastAPI app with the upload store pointed at a temp dir."""
    from imagerelay.main import app

    app.dependency_overrides[get_upload_store] = lambda: store
    return app


@pytest.fixture
async def client(upload_store: LocalUploadStore) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API testing."""
    app = get_test_app(upload_store)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    # Clean up overrides
    app.dependency_overrides.clear()


@pytest.fixture
def fake_store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
async def store_http(fake_store: FakeObjectStore) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(fake_store.handler)) as http:
        yield http


@pytest.fixture
def object_store(store_http: httpx.AsyncClient) -> ObjectStoreClient:
    return ObjectStoreClient(STORE_ENDPOINT, STORE_PROJECT, store_http)
