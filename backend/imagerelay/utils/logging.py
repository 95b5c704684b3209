"""
Production logging utility for structured JSON logging.

Provides event-specific logging functions with mandatory fields:
- timestamp (ISO8601)
- level
- service
- event

Optional fields (included when applicable):
- file_name
- strategy
- object_id
- bucket_id
- duration_ms

Usage:
    from imagerelay.utils.logging import configure_logging, log_file_stored

    configure_logging('imagerelay-server', 'INFO')
    log_file_stored(logger, filename='1700000000000-42.png', endpoint='multipart', size=2048)
"""
import logging
import sys
from typing import Optional, Dict, Any
from pythonjsonlogger import jsonlogger


class StructuredLogger:
    """Structured JSON logger with mandatory fields."""

    _service_name = None
    _configured = False

    @classmethod
    def configure(cls, service_name: str, log_level: str = "INFO"):
        """
        Configure structured JSON logging for the application.

        Args:
            service_name: Service identifier (imagerelay-server or imagerelay-client)
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        """
        if cls._configured:
            return  # Already configured

        cls._service_name = service_name

        # Remove default handlers
        root_logger = logging.getLogger()
        root_logger.handlers = []

        formatter = jsonlogger.JsonFormatter(
            '%(timestamp)s %(level)s %(name)s %(message)s',
            timestamp=True,
            json_ensure_ascii=False
        )

        # Console handler (container logs)
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)

        root_logger.addHandler(handler)
        root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

        # Add service name to all log records via filter
        class ServiceFilter(logging.Filter):
            def filter(self, record):
                record.service = cls._service_name
                return True

        handler.addFilter(ServiceFilter())
        cls._configured = True


def _build_log_extra(
    event: str,
    filename: Optional[str] = None,
    strategy: Optional[str] = None,
    object_id: Optional[str] = None,
    bucket_id: Optional[str] = None,
    duration_ms: Optional[float] = None,
    **kwargs
) -> Dict[str, Any]:
    """
    Build extra fields for structured logging.

    Args:
        event: Event name (mandatory)
        filename: Optional stored filename
        strategy: Optional upload strategy name
        object_id: Optional object store id
        bucket_id: Optional object store bucket
        duration_ms: Optional duration in milliseconds
        **kwargs: Additional fields

    Returns:
        Dictionary of extra fields
    """
    extra = {
        "event": event,
        **kwargs
    }

    if filename:
        extra["file_name"] = filename
    if strategy:
        extra["strategy"] = strategy
    if object_id:
        extra["object_id"] = object_id
    if bucket_id:
        extra["bucket_id"] = bucket_id
    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 2)

    return extra


# Upload server events

def log_file_stored(
    logger: logging.Logger,
    filename: str,
    endpoint: str,
    size: int,
    url: Optional[str] = None,
    **kwargs
):
    """
    Log a file written to the upload directory.

    Args:
        logger: Logger instance
        filename: Generated filename (required)
        endpoint: Ingestion endpoint, "multipart" or "base64" (required)
        size: Bytes written (required)
        url: Public URL returned to the client
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="file_stored",
        filename=filename,
        endpoint=endpoint,
        size=size,
        **kwargs
    )
    if url:
        extra["url"] = url

    logger.info(f"File stored: {filename}", extra=extra)


def log_upload_rejected(
    logger: logging.Logger,
    endpoint: str,
    status_code: int,
    reason: str,
    error: Optional[str] = None,
    **kwargs
):
    """
    Log an upload rejected at the server boundary.

    Server-side errors (5xx) are logged at ERROR with the active traceback,
    validation errors at WARNING.
    """
    extra = _build_log_extra(
        event="upload_rejected",
        endpoint=endpoint,
        status_code=status_code,
        reason=reason,
        **kwargs
    )
    if error:
        extra["error"] = str(error)

    message = f"Upload rejected ({status_code}): {reason}"
    if status_code >= 500:
        exc_info = sys.exc_info()
        if exc_info[0] is not None:
            logger.error(message, extra=extra, exc_info=exc_info)
        else:
            logger.error(message, extra=extra)
    else:
        logger.warning(message, extra=extra)


# Client upload events

def log_strategy_succeeded(
    logger: logging.Logger,
    strategy: str,
    object_id: str,
    duration_ms: Optional[float] = None,
    **kwargs
):
    """Log the upload strategy that produced a stored object."""
    extra = _build_log_extra(
        event="upload_strategy_succeeded",
        strategy=strategy,
        object_id=object_id,
        duration_ms=duration_ms,
        **kwargs
    )

    logger.info(f"Upload succeeded with {strategy}: {object_id}", extra=extra)


def log_strategy_failed(
    logger: logging.Logger,
    strategy: str,
    error: str,
    duration_ms: Optional[float] = None,
    include_traceback: bool = False,
    **kwargs
):
    """
    Log a failed upload strategy.

    Args:
        logger: Logger instance
        strategy: Strategy name (required)
        error: Error message (required)
        duration_ms: Optional duration in milliseconds
        include_traceback: Whether to include stack trace (default: False, the
            next strategy is tried anyway)
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="upload_strategy_failed",
        strategy=strategy,
        duration_ms=duration_ms,
        error=str(error),
        **kwargs
    )

    message = f"Upload strategy {strategy} failed - {error}"

    if include_traceback:
        exc_info = sys.exc_info()
        if exc_info[0] is not None:
            logger.warning(message, extra=extra, exc_info=exc_info)
            return
    logger.warning(message, extra=extra)


def log_upload_exhausted(
    logger: logging.Logger,
    source: str,
    strategies: list,
    **kwargs
):
    """Log that every available strategy failed for a source file."""
    extra = _build_log_extra(
        event="upload_exhausted",
        source=source,
        strategies=strategies,
        **kwargs
    )

    logger.error(f"All upload strategies failed for {source}", extra=extra)


# Resolver events

def log_object_migrated(
    logger: logging.Logger,
    object_id: str,
    new_object_id: str,
    bucket_id: str,
    source_bucket_id: Optional[str] = None,
    **kwargs
):
    """
    Log an object copied forward into the current bucket.

    Args:
        logger: Logger instance
        object_id: Original (legacy) object id (required)
        new_object_id: Id of the copy in the current bucket (required)
        bucket_id: Destination bucket (required)
        source_bucket_id: Bucket the bytes were downloaded from
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="object_migrated",
        object_id=object_id,
        bucket_id=bucket_id,
        new_object_id=new_object_id,
        **kwargs
    )
    if source_bucket_id:
        extra["source_bucket_id"] = source_bucket_id

    logger.info(f"Object migrated: {object_id} -> {new_object_id}", extra=extra)


def log_image_resolved(
    logger: logging.Logger,
    reference: str,
    source: str,
    url: str,
    duration_ms: Optional[float] = None,
    **kwargs
):
    """Log the outcome of resolving a stored image reference."""
    extra = _build_log_extra(
        event="image_resolved",
        duration_ms=duration_ms,
        reference=reference,
        source=source,
        url=url,
        **kwargs
    )

    logger.info(f"Image reference resolved via {source}", extra=extra)


# Convenience alias
def configure_logging(service_name: str, log_level: str = "INFO"):
    """Configure logging (alias for StructuredLogger.configure)."""
    StructuredLogger.configure(service_name, log_level)
