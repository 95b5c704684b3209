"""
Health check endpoint.
Liveness only: answers whenever the process is serving requests.
"""
from datetime import datetime, timezone

from fastapi import APIRouter

from imagerelay.schemas.upload import HealthResponse

router = APIRouter()


@router.get("", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint.
    No dependency checks, the upload directory is verified at startup.
    """
    timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return HealthResponse(timestamp=timestamp.replace("+00:00", "Z"))
