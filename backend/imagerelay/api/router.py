"""
API router aggregator.
Includes all route modules.
"""
from fastapi import APIRouter
from imagerelay.api import health, uploads, files

api_router = APIRouter()

# Include route modules
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(uploads.router, prefix="/upload", tags=["uploads"])
api_router.include_router(files.router, prefix="/uploads", tags=["files"])
