"""
Error taxonomy for the video job pipeline.

Every error carries a stable ``kind`` and the HTTP status the route layer
answers with. Only the status poller retries; everything else propagates on
first occurrence.
"""

from typing import Optional


class VideoServiceError(Exception):
    kind = "internal_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_detail(self) -> dict:
        return {"error": self.kind, "message": self.message}


class ConfigurationError(VideoServiceError):
    kind = "not_configured"
    status_code = 503


class ValidationError(VideoServiceError):
    kind = "validation_error"
    status_code = 400


class InvalidImageError(VideoServiceError):
    kind = "invalid_image"
    status_code = 400


class StorageError(VideoServiceError):
    kind = "storage_error"
    status_code = 500


class ArtifactNotReadyError(VideoServiceError):
    kind = "artifact_not_ready"
    status_code = 409


class RemoteCallError(VideoServiceError):
    """Non-success answer from the remote service on a single-attempt call."""

    status_code = 502

    def __init__(self, message: str, upstream_status: Optional[int], upstream_body: str = ""):
        super().__init__(message)
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["upstream_status"] = self.upstream_status
        detail["upstream_body"] = self.upstream_body[:2000]
        return detail


class SubmissionError(RemoteCallError):
    kind = "submission_failed"


class RetrievalError(RemoteCallError):
    kind = "retrieval_failed"


class TransientRemoteError(VideoServiceError):
    """5xx or network reset/timeout seen while polling. Never leaves the poller."""

    kind = "transient_remote_error"
    status_code = 503

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        super().__init__(message)
        self.upstream_status = upstream_status


class StatusPollError(VideoServiceError):
    """Terminal failure of one poll call, with a hint for the external caller."""

    kind = "status_unavailable"

    def __init__(
        self,
        message: str,
        retryable: bool,
        attempts: int = 1,
        upstream_status: Optional[int] = None,
    ):
        super().__init__(message)
        self.retryable = retryable
        self.attempts = attempts
        self.upstream_status = upstream_status

    @property
    def status_code(self) -> int:
        return 503 if self.retryable else 502

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail["retryable"] = self.retryable
        detail["attempts"] = self.attempts
        detail["upstream_status"] = self.upstream_status
        if self.retryable:
            detail["suggestion"] = (
                "The video service may be experiencing issues. "
                "Please try again in a few moments."
            )
        return detail
