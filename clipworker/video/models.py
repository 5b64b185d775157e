"""
Pydantic models and enums for the video job pipeline.
"""

from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# ── Size Descriptor ──────────────────────────────────────────────────────────

class Orientation(str, Enum):
    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"


class VideoSize(BaseModel):
    """Immutable width x height pair."""

    model_config = ConfigDict(frozen=True)

    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)

    @property
    def ratio(self) -> float:
        return self.width / self.height

    @property
    def orientation(self) -> Orientation:
        return Orientation.PORTRAIT if self.height > self.width else Orientation.LANDSCAPE

    @property
    def is_portrait(self) -> bool:
        return self.orientation is Orientation.PORTRAIT

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


# ── Generation Request ───────────────────────────────────────────────────────

class ReferenceImage(BaseModel):
    """Read handle on a reference image owned by the request's temp scope."""

    path: Path
    mime_type: str = "image/jpeg"
    filename: str

    def with_path(self, path: Path) -> "ReferenceImage":
        return self.model_copy(update={"path": Path(path)})


class GenerationRequest(BaseModel):
    prompt: Optional[str] = None
    model: str
    seconds: int = Field(..., gt=0)
    size: VideoSize
    reference: Optional[ReferenceImage] = None

    def form_fields(self) -> dict[str, str]:
        """Multipart text fields for the creation endpoint."""
        fields = {
            "model": self.model,
            "seconds": str(self.seconds),
            "size": str(self.size),
        }
        if self.prompt:
            fields["prompt"] = self.prompt
        return fields


# ── Job Status ───────────────────────────────────────────────────────────────

class JobState(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class JobStatusResult(BaseModel):
    """One fresh read of a remote job. The remote service owns the real state."""

    job_id: str
    state: JobState
    progress: int = Field(0, ge=0, le=100)
    reason: Optional[str] = None
    job: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.state in (JobState.COMPLETED, JobState.FAILED)

    @classmethod
    def from_job(cls, job: dict[str, Any]) -> "JobStatusResult":
        raw_status = str(job.get("status") or "").lower()
        try:
            state = JobState(raw_status)
        except ValueError:
            state = JobState.IN_PROGRESS if raw_status else JobState.QUEUED

        try:
            progress = int(job.get("progress") or 0)
        except (TypeError, ValueError):
            progress = 0
        progress = max(0, min(progress, 100))
        if state is JobState.COMPLETED:
            progress = 100

        reason = None
        if state is JobState.FAILED:
            error = job.get("error")
            if isinstance(error, dict):
                reason = error.get("message") or error.get("code")
            elif error:
                reason = str(error)
            reason = reason or "Unknown error"

        return cls(
            job_id=str(job.get("id", "")),
            state=state,
            progress=progress,
            reason=reason,
            job=job,
        )


# ── API Request Models ───────────────────────────────────────────────────────

class RemixRequest(BaseModel):
    """Follow-up job on a prior one. Fields are optional so missing values get a 400."""

    video_id: Optional[str] = None
    prompt: Optional[str] = None


class SavePermanentRequest(BaseModel):
    video_id: Optional[str] = None
