"""
Static serving of stored uploads.

No access control: any client that knows a filename can read the file.
Only plain file names inside the upload directory are served.
"""
import mimetypes

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import FileResponse

from imagerelay.storage.local_store import LocalUploadStore, get_upload_store

router = APIRouter()


@router.api_route("/{filename}", methods=["GET", "HEAD"])
async def serve_upload(
    filename: str,
    store: LocalUploadStore = Depends(get_upload_store)
):
    """Return the raw bytes of a stored file, content type from its extension."""
    path = store.path_for(filename)
    if path is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid filename"
        )

    if not path.is_file():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="File not found"
        )

    media_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
    return FileResponse(path, media_type=media_type)
