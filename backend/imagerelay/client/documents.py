"""
Client for the remote document database.

Only what the image flow needs: reading and writing documents by id, so a
player profile's stored image reference can be rewritten after a migration.
"""
import logging
from typing import Any, Dict, List, Optional, Union

import httpx
from pydantic import BaseModel

from imagerelay.config import Settings
from imagerelay.storage.object_store import API_KEY_HEADER, PROJECT_HEADER, generate_object_id

logger = logging.getLogger(__name__)


class DocumentStoreError(Exception):
    """Raised when the document database answers with an error or is unreachable."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DocumentStoreClient:
    """REST client of the document database (Appwrite-compatible)."""

    def __init__(
        self,
        endpoint: str,
        project_id: str,
        database_id: str,
        http: httpx.AsyncClient,
        api_key: Optional[str] = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.project_id = project_id
        self.database_id = database_id
        self.http = http
        self.api_key = api_key

    @classmethod
    def from_settings(cls, settings: Settings, http: httpx.AsyncClient) -> "DocumentStoreClient":
        return cls(
            endpoint=settings.object_store_endpoint,
            project_id=settings.object_store_project_id or "",
            database_id=settings.document_store_database_id or "",
            http=http,
            api_key=settings.object_store_api_key,
        )

    def headers(self) -> Dict[str, str]:
        headers = {PROJECT_HEADER: self.project_id}
        if self.api_key:
            headers[API_KEY_HEADER] = self.api_key
        return headers

    def documents_url(self, collection_id: str) -> str:
        return f"{self.endpoint}/databases/{self.database_id}/collections/{collection_id}/documents"

    async def _request(self, method: str, url: str, operation: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await self.http.request(method, url, headers=self.headers(), **kwargs)
        except httpx.HTTPError as e:
            raise DocumentStoreError(f"{operation} transport error: {e}") from e

        if not response.is_success:
            raise DocumentStoreError(
                f"{operation} failed with status {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        return response.json()

    async def get_document(self, collection_id: str, document_id: str) -> Dict[str, Any]:
        return await self._request(
            "GET", f"{self.documents_url(collection_id)}/{document_id}", "get_document"
        )

    async def list_documents(
        self,
        collection_id: str,
        queries: Optional[List[str]] = None,
    ) -> List[Dict[str, Any]]:
        params = [("queries[]", query) for query in (queries or [])]
        result = await self._request(
            "GET", self.documents_url(collection_id), "list_documents", params=params
        )
        return result.get("documents", [])

    async def create_document(
        self,
        collection_id: str,
        data: Union[Dict[str, Any], BaseModel],
        document_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self._request(
            "POST",
            self.documents_url(collection_id),
            "create_document",
            json={"documentId": document_id or generate_object_id(), "data": _as_data(data)},
        )

    async def update_document(
        self,
        collection_id: str,
        document_id: str,
        data: Union[Dict[str, Any], BaseModel],
    ) -> Dict[str, Any]:
        """Partial update: only the given fields change."""
        return await self._request(
            "PATCH",
            f"{self.documents_url(collection_id)}/{document_id}",
            "update_document",
            json={"data": _as_data(data)},
        )


def _as_data(data: Union[Dict[str, Any], BaseModel]) -> Dict[str, Any]:
    """Schemas are dumped with their stored field names."""
    if isinstance(data, BaseModel):
        return data.model_dump(by_alias=True, exclude_none=True)
    return data


class ProfileReferenceUpdater:
    """
    Migration callback that rewrites one document field with the new object id.

    Usage:
        updater = ProfileReferenceUpdater(documents, "players", player_id)
        await resolver.resolve(player["avatar"], player["name"], on_migrated=updater)
    """

    def __init__(
        self,
        documents: DocumentStoreClient,
        collection_id: str,
        document_id: str,
        field: str = "avatar",
    ):
        self.documents = documents
        self.collection_id = collection_id
        self.document_id = document_id
        self.field = field

    async def __call__(self, new_reference: str) -> None:
        await self.documents.update_document(
            self.collection_id, self.document_id, {self.field: new_reference}
        )
        logger.info(f"Document {self.document_id} {self.field} updated to {new_reference}")
