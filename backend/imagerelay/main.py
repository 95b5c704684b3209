"""
FastAPI application entry point.
Sets up the upload server with lifespan events for upload directory initialization.
"""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from imagerelay import __version__
from imagerelay.config import settings
from imagerelay.api.errors import UploadRejected, upload_rejected_handler
from imagerelay.api.router import api_router
from imagerelay.middleware.metrics_middleware import MetricsMiddleware
from imagerelay.storage.local_store import LocalUploadStore, get_upload_store
from imagerelay.utils.logging import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup/shutdown events.
    - Startup: configure logging, create the upload directory
    - Shutdown: nothing to release, the file tree is the only state
    """
    configure_logging('imagerelay-server', settings.log_level)

    store = get_upload_store()
    store.ensure_directory()

    logger.info(
        "Upload server configured",
        extra={
            "event": "server_configured",
            "host": store.public_host,
            "port": settings.port,
            "upload_dir": str(store.upload_dir.resolve()),
            "max_upload_bytes": store.max_bytes,
        }
    )

    yield


# Create FastAPI app
app = FastAPI(
    title="Image Upload Server",
    description="Self-hosted image upload and relay service for the tournament app",
    version=__version__,
    lifespan=lifespan
)

# CORS middleware (for mobile app)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Metrics middleware (must be after CORS to track all requests)
app.add_middleware(MetricsMiddleware)

app.add_exception_handler(UploadRejected, upload_rejected_handler)

app.include_router(api_router)


@app.get("/")
def root(store: LocalUploadStore = Depends(get_upload_store)):
    """
    Service info: where the server is reachable and how to use it.
    Sync so the directory scan behind files_stored runs in the threadpool.
    """
    host = store.public_host
    return {
        "message": "Image Upload Server",
        "version": __version__,
        "environment": settings.environment,
        "host": host,
        "upload_dir": str(store.upload_dir.resolve()),
        "files_stored": store.count_files(),
        "endpoints": {
            "upload": f"POST {host}/upload",
            "upload_base64": f"POST {host}/upload/base64",
            "health": f"GET {host}/health",
            "files": f"GET {host}/uploads/{{filename}}",
        }
    }


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def run():
    """Serve on all interfaces so devices on the local network can reach it."""
    uvicorn.run("imagerelay.main:app", host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
