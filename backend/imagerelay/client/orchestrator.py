"""
Client upload orchestrator.

Turns a local image into a durable, fetchable reference:

1. AUTO target: probe the self-hosted server (timed health check)
2. Server reachable -> one multipart upload to it, failure is final
3. Otherwise -> object store strategies in fixed order, first success wins

Strategies run sequentially, each exactly once, never in parallel: at most
one object is created per call. There is no retry or backoff.
After a failed strategy the shared object id is checked with a HEAD: if the
create landed and only its response was lost, that object is the result.
"""
import enum
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Union

import httpx

from imagerelay.client.errors import InvalidSourceError, UploadError, UploadExhaustedError
from imagerelay.client.image_server import ImageServerClient
from imagerelay.client.source import LocalImage
from imagerelay.client.strategies import UploadStrategy, default_strategies
from imagerelay.config import Settings
from imagerelay.storage.object_store import ObjectStoreClient, generate_object_id
from imagerelay.utils.logging import log_strategy_failed, log_strategy_succeeded, log_upload_exhausted
from imagerelay.utils.metrics import upload_attempts_total

logger = logging.getLogger(__name__)

SERVER_STRATEGY = "server-multipart"
SERVER_LOCATION = "server"


class UploadTarget(str, enum.Enum):
    """Where an upload should go."""
    AUTO = "auto"
    SERVER = "server"
    OBJECT_STORE = "object_store"


class AttemptOutcome(str, enum.Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class UploadAttempt:
    """One strategy tried during an upload call."""
    strategy: str
    outcome: AttemptOutcome
    reference: Optional[str] = None
    error: Optional[str] = None
    duration_ms: Optional[float] = None


@dataclass
class UploadResult:
    """
    Outcome of a successful upload.

    reference is what callers persist: the file URL for the server path,
    the object id for the object store path. url is always fetchable.
    """
    reference: str
    location: str
    url: str
    strategy: str
    attempts: List[UploadAttempt] = field(default_factory=list)


class UploadOrchestrator:
    """
    Runs the upload decision and fallback chain.

    Args:
        object_store: Object store client
        bucket_id: Current bucket for object store uploads
        server: Self-hosted server client, None to always use the object store
        strategies: Ordered object store strategies (default_strategies if omitted)
    """

    def __init__(
        self,
        object_store: ObjectStoreClient,
        bucket_id: str,
        server: Optional[ImageServerClient] = None,
        strategies: Optional[Sequence[UploadStrategy]] = None,
    ):
        self.object_store = object_store
        self.bucket_id = bucket_id
        self.server = server
        self.strategies = list(strategies) if strategies is not None else default_strategies(object_store, bucket_id)

    @classmethod
    def from_settings(cls, settings: Settings, http: httpx.AsyncClient) -> "UploadOrchestrator":
        return cls(
            object_store=ObjectStoreClient.from_settings(settings, http),
            bucket_id=settings.object_store_bucket_id,
            server=ImageServerClient.from_settings(settings, http),
        )

    async def upload(
        self,
        path: Union[str, Path],
        target: UploadTarget = UploadTarget.AUTO,
    ) -> UploadResult:
        """
        Upload a local image.

        Raises:
            InvalidSourceError: The path is not an existing file (nothing attempted)
            UploadExhaustedError: Every strategy of the chosen path failed
            UploadError: SERVER target requested without a server client
        """
        source = LocalImage.from_path(path)
        if not source.exists():
            raise InvalidSourceError(f"File does not exist at path: {path}")

        logger.info(f"Processing file: {source.filename}, type: {source.mime_type}, size: {source.size} bytes")

        if target == UploadTarget.SERVER:
            if self.server is None:
                raise UploadError("No upload server configured")
            return await self.upload_to_server(source)

        if target == UploadTarget.AUTO and self.server is not None:
            if await self.server.is_available():
                return await self.upload_to_server(source)
            logger.info("Upload server not available, using object store")

        return await self.upload_to_object_store(source)

    async def upload_to_server(self, source: LocalImage) -> UploadResult:
        """Single multipart attempt against the self-hosted server, no fallback."""
        start_time = time.time()
        try:
            url = await self.server.upload_multipart(source)
        except Exception as e:
            attempt = self._record_failure(SERVER_STRATEGY, e, start_time)
            log_upload_exhausted(logger, source=str(source.path), strategies=[SERVER_STRATEGY])
            raise UploadExhaustedError(
                f"Upload to server failed: {e}", attempts=[attempt]
            ) from e

        attempt = self._record_success(SERVER_STRATEGY, url, start_time)
        return UploadResult(
            reference=url,
            location=SERVER_LOCATION,
            url=url,
            strategy=SERVER_STRATEGY,
            attempts=[attempt],
        )

    async def upload_to_object_store(self, source: LocalImage) -> UploadResult:
        """
        Try each strategy in order until one creates the object.

        One object id is generated per call and offered to every strategy.
        A failed strategy whose object exists anyway counts as the success.
        """
        object_id = generate_object_id()
        attempts: List[UploadAttempt] = []

        for strategy in self.strategies:
            start_time = time.time()
            logger.info(f"Attempting {strategy.name} upload of {source.filename}")
            try:
                reference = await strategy.attempt(source, object_id)
            except Exception as e:
                if not await self._landed(object_id):
                    attempts.append(self._record_failure(strategy.name, e, start_time))
                    continue
                # The create reached the store but its response was lost
                logger.warning(f"{strategy.name} failed ({e}) but object {object_id} exists, keeping it")
                reference = object_id

            attempts.append(self._record_success(strategy.name, reference, start_time))
            return UploadResult(
                reference=reference,
                location=self.bucket_id,
                url=self.object_store.file_url(self.bucket_id, reference),
                strategy=strategy.name,
                attempts=attempts,
            )

        log_upload_exhausted(
            logger,
            source=str(source.path),
            strategies=[attempt.strategy for attempt in attempts],
        )
        raise UploadExhaustedError(
            "All upload approaches failed. Cannot upload image.", attempts=attempts
        )

    async def _landed(self, object_id: str) -> bool:
        """Whether an object already exists under this call's id."""
        return await self.object_store.exists(self.object_store.file_url(self.bucket_id, object_id))

    @staticmethod
    def _record_success(strategy: str, reference: str, start_time: float) -> UploadAttempt:
        duration_ms = (time.time() - start_time) * 1000
        upload_attempts_total.labels(strategy=strategy, outcome=AttemptOutcome.SUCCESS.value).inc()
        log_strategy_succeeded(logger, strategy=strategy, object_id=reference, duration_ms=duration_ms)
        return UploadAttempt(
            strategy=strategy,
            outcome=AttemptOutcome.SUCCESS,
            reference=reference,
            duration_ms=duration_ms,
        )

    @staticmethod
    def _record_failure(strategy: str, error: Exception, start_time: float) -> UploadAttempt:
        duration_ms = (time.time() - start_time) * 1000
        upload_attempts_total.labels(strategy=strategy, outcome=AttemptOutcome.FAILURE.value).inc()
        log_strategy_failed(logger, strategy=strategy, error=str(error), duration_ms=duration_ms)
        return UploadAttempt(
            strategy=strategy,
            outcome=AttemptOutcome.FAILURE,
            error=str(error),
            duration_ms=duration_ms,
        )
