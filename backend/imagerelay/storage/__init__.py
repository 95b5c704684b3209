"""
Storage module.

- local_store: the upload server's on-disk file tree
- object_store: HTTP client of the third-party object store used by the mobile client
"""
from imagerelay.storage.local_store import get_upload_store, LocalUploadStore
from imagerelay.storage.object_store import ObjectStoreClient, StoredObject

__all__ = ["get_upload_store", "LocalUploadStore", "ObjectStoreClient", "StoredObject"]
