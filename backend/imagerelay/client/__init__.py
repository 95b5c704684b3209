"""
Mobile-side upload client.

Uploads local images to the self-hosted server or, when it is unreachable,
to the third-party object store through a chain of transport strategies;
resolves stored references, migrating objects out of legacy buckets.
"""
from imagerelay.client.errors import UploadError, InvalidSourceError, UploadExhaustedError
from imagerelay.client.orchestrator import UploadOrchestrator, UploadTarget, UploadResult
from imagerelay.client.resolver import StorageMigrationResolver, ResolvedImage, ResolutionSource

__all__ = [
    "UploadError",
    "InvalidSourceError",
    "UploadExhaustedError",
    "UploadOrchestrator",
    "UploadTarget",
    "UploadResult",
    "StorageMigrationResolver",
    "ResolvedImage",
    "ResolutionSource",
]
