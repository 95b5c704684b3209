"""
Image ingestion endpoints.

Two ways in, same result: one new file in the upload directory and its
absolute URL.
1. POST /upload        - multipart form, single "image" file field
2. POST /upload/base64 - JSON body with a data URL

Validation:
- Content type (multipart part header or data URL mime) must be image/*
- Size ceiling (settings.max_upload_bytes), 413 when crossed
- Nothing is written before the content type check passes

The server never retries: the mobile client owns retry and fallback.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException

from imagerelay.api.errors import UploadRejected
from imagerelay.schemas.upload import Base64UploadRequest, UploadResponse, UploadedFile
from imagerelay.storage.local_store import FileTooLarge, LocalUploadStore, get_upload_store
from imagerelay.utils.logging import log_file_stored, log_upload_rejected
from imagerelay.utils.media import InvalidDataURL, extension_for_mime, parse_data_url
from imagerelay.utils.metrics import files_stored_total, stored_bytes_total, upload_rejections_total

logger = logging.getLogger(__name__)

router = APIRouter()

# Allowance for boundaries and part headers on top of the file itself
MULTIPART_OVERHEAD = 16 * 1024


def _reject(
    endpoint: str,
    status_code: int,
    reason: str,
    message: str,
    error: Optional[str] = None,
) -> UploadRejected:
    """Count and log a rejection, return the exception to raise."""
    upload_rejections_total.labels(endpoint=endpoint, reason=reason).inc()
    log_upload_rejected(logger, endpoint=endpoint, status_code=status_code, reason=reason, error=error)
    return UploadRejected(status_code, message, error)


def _is_image(mime_type: Optional[str]) -> bool:
    return bool(mime_type) and mime_type.startswith("image/")


@router.post("", response_model=UploadResponse)
async def upload_image(
    request: Request,
    store: LocalUploadStore = Depends(get_upload_store)
):
    """
    Upload an image as multipart/form-data (field "image").

    Flow:
    1. Reject on declared Content-Length before reading the body
    2. Parse the form, require a file part named "image"
    3. Require an image/* part content type
    4. Stream the part to {unixMillis}-{randomInt}{ext}, enforcing the ceiling
    """
    endpoint = "multipart"

    content_length = request.headers.get("content-length", "")
    if content_length.isdigit() and int(content_length) > store.max_bytes + MULTIPART_OVERHEAD:
        raise _reject(endpoint, 413, "too_large", f"File too large (max {store.max_bytes} bytes)")

    try:
        form = await request.form()
    except StarletteHTTPException as e:
        raise _reject(endpoint, 400, "malformed", "Malformed multipart body", str(e.detail))

    try:
        image = form.get("image")
        if not isinstance(image, UploadFile):
            raise _reject(endpoint, 400, "no_file", "No file uploaded")

        if not _is_image(image.content_type):
            raise _reject(
                endpoint, 400, "not_image", "Only image files are allowed",
                f"Unsupported content type: {image.content_type}"
            )

        try:
            stored = await store.save_stream(image, image.filename)
        except FileTooLarge as e:
            raise _reject(endpoint, 413, "too_large", f"File too large (max {e.limit} bytes)")
        except OSError as e:
            raise _reject(endpoint, 500, "write_error", "Error uploading file", str(e))
    finally:
        await form.close()

    files_stored_total.labels(endpoint=endpoint).inc()
    stored_bytes_total.labels(endpoint=endpoint).inc(stored.size)
    log_file_stored(logger, filename=stored.filename, endpoint=endpoint, size=stored.size, url=stored.url)

    return UploadResponse(
        message="File uploaded successfully",
        file=UploadedFile(
            filename=stored.filename,
            originalname=image.filename,
            mimetype=image.content_type,
            size=stored.size,
            url=stored.url,
        )
    )


@router.post(
    "/base64",
    response_model=UploadResponse,
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": Base64UploadRequest.model_json_schema()}},
        }
    },
)
async def upload_base64(
    request: Request,
    store: LocalUploadStore = Depends(get_upload_store)
):
    """
    Upload an image as a base64 data URL.

    Stored as {base}-{unixMillis}-{randomInt}.{subtype}, where base is the
    optional caller filename without its extension (default "image").

    The body is parsed by hand: malformed JSON, a non-object body or a
    non-string image are answered with 400 and the error body, like any
    other rejection.
    """
    endpoint = "base64"

    body = await request.body()
    if not body.strip():
        raise _reject(endpoint, 400, "no_file", "No image data provided")

    try:
        payload = Base64UploadRequest.model_validate_json(body)
    except ValidationError as e:
        if any(error["type"] == "json_invalid" for error in e.errors()):
            raise _reject(endpoint, 400, "malformed", "Invalid base64 image format", "Request body is not valid JSON")
        raise _reject(endpoint, 400, "malformed", "Invalid base64 image format", str(e.errors()[0]["msg"]))

    if not payload.image:
        raise _reject(endpoint, 400, "no_file", "No image data provided")

    try:
        mime_type, content = parse_data_url(payload.image)
    except InvalidDataURL as e:
        raise _reject(endpoint, 400, "malformed", "Invalid base64 image format", str(e))

    if not _is_image(mime_type):
        raise _reject(
            endpoint, 400, "not_image", "Only image files are allowed",
            f"Unsupported content type: {mime_type}"
        )

    try:
        stored = await store.save_bytes(content, payload.filename, extension_for_mime(mime_type))
    except FileTooLarge as e:
        raise _reject(endpoint, 413, "too_large", f"File too large (max {e.limit} bytes)")
    except OSError as e:
        raise _reject(endpoint, 500, "write_error", "Error uploading base64 image", str(e))

    files_stored_total.labels(endpoint=endpoint).inc()
    stored_bytes_total.labels(endpoint=endpoint).inc(stored.size)
    log_file_stored(logger, filename=stored.filename, endpoint=endpoint, size=stored.size, url=stored.url)

    return UploadResponse(
        message="Base64 image uploaded successfully",
        file=UploadedFile(
            filename=stored.filename,
            originalname=payload.filename,
            mimetype=mime_type,
            size=stored.size,
            url=stored.url,
        )
    )
