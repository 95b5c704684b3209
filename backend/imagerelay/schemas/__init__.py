"""
Pydantic schemas for API request/response validation.
"""
from imagerelay.schemas.upload import (
    Base64UploadRequest,
    UploadedFile,
    UploadResponse,
    ErrorResponse,
    HealthResponse,
)
from imagerelay.schemas.documents import MatchMovesUpdate

__all__ = [
    "Base64UploadRequest",
    "UploadedFile",
    "UploadResponse",
    "ErrorResponse",
    "HealthResponse",
    "MatchMovesUpdate",
]
