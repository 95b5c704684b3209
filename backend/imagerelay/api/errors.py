"""
Upload rejection error and its JSON rendering.
"""
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from imagerelay.schemas.upload import ErrorResponse


class UploadRejected(Exception):
    """
    Raised by endpoints to reject an upload.

    Rendered as {success: false, message, error?} with the given status code.
    """

    def __init__(self, status_code: int, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.error = error


async def upload_rejected_handler(request: Request, exc: UploadRejected) -> JSONResponse:
    body = ErrorResponse(message=exc.message, error=exc.error)
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(exclude_none=True),
    )
