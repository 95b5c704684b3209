"""
Client-side upload errors.

Transport failures inside a single strategy are caught by the orchestrator
and only move it on to the next strategy; callers see UploadExhaustedError
once nothing is left to try.
"""
from typing import List, Optional


class UploadError(Exception):
    """Base class for upload failures surfaced to callers."""


class InvalidSourceError(UploadError):
    """The local file reference does not point at a readable file."""


class ServerUploadError(UploadError):
    """The self-hosted upload server rejected an upload or was unreachable."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UploadExhaustedError(UploadError):
    """
    Every available strategy failed.

    Attributes:
        attempts: UploadAttempt records, in the order they were tried
    """

    def __init__(self, message: str, attempts: Optional[List] = None):
        super().__init__(message)
        self.attempts = attempts or []
