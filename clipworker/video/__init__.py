"""
Image-to-video job pipeline

  Size negotiation → image normalization → job submission
  Status polling with bounded retry → artifact streaming
  Remix of prior jobs, optional permanent storage of artifacts
"""

from .errors import (
    ConfigurationError,
    InvalidImageError,
    RetrievalError,
    StatusPollError,
    StorageError,
    SubmissionError,
    ValidationError,
    VideoServiceError,
)
from .models import JobState, JobStatusResult, VideoSize
from .routes import video_router
from .service import VideoService
from .sizes import VALID_SIZES, negotiate_size

__all__ = [
    "VideoService",
    "video_router",
    "VideoSize",
    "JobState",
    "JobStatusResult",
    "VALID_SIZES",
    "negotiate_size",
    "VideoServiceError",
    "ConfigurationError",
    "ValidationError",
    "InvalidImageError",
    "StorageError",
    "SubmissionError",
    "RetrievalError",
    "StatusPollError",
]
