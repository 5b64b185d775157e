"""
VideoService — orchestrates one request at a time against the video service.

  generate:        intake image → read size → negotiate → resize → submit
  status:          bounded-retry poll
  open_download:   streamed artifact
  remix:           single-attempt follow-up job
  save_permanent:  artifact → object storage

The process keeps no job registry: job state lives in the remote service and
every call here is an independent, stateless read or write. Temp files are
owned by a TempFileScope per call.
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import aiofiles
import httpx
from starlette.concurrency import run_in_threadpool

from .client import DEFAULT_API_BASE, VideoAPIClient
from .errors import (
    ArtifactNotReadyError,
    ConfigurationError,
    StorageError,
    ValidationError,
)
from .images import fetch_image, prepare_reference_image, read_image_size, save_upload
from .models import GenerationRequest, JobState, JobStatusResult
from .poller import StatusPoller
from .sizes import negotiate_size
from .storage import ArtifactStorage, artifact_key
from .tempfiles import TempFileScope

logger = logging.getLogger(__name__)

# ── Config ───────────────────────────────────────────────────────────────────

DEFAULT_MODEL = os.getenv("VIDEO_DEFAULT_MODEL", "sora-2")
DEFAULT_SECONDS = int(os.getenv("VIDEO_DEFAULT_SECONDS", "8"))
REQUEST_TIMEOUT = float(os.getenv("VIDEO_REQUEST_TIMEOUT", "60"))
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")

VARIANT_EXTENSIONS = {
    "video": "mp4",
    "thumbnail": "webp",
    "spritesheet": "jpg",
}


def download_filename(video_id: str, variant: str) -> str:
    return f"{video_id}.{VARIANT_EXTENSIONS.get(variant, 'mp4')}"


class VideoService:
    """
    Usage:
        service = VideoService()
        job = await service.generate(prompt="...", upload=upload_file)
        status = await service.status(job["id"])
        response = await service.open_download(job["id"])
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        upload_dir=None,
        default_model: str = DEFAULT_MODEL,
        default_seconds: int = DEFAULT_SECONDS,
        timeout: float = REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep=None,
        storage: Optional[ArtifactStorage] = None,
    ):
        self.api_key = api_key if api_key is not None else os.getenv("OPENAI_API_KEY", "")
        self.base_url = base_url or os.getenv("OPENAI_API_BASE", DEFAULT_API_BASE)
        self.upload_dir = Path(upload_dir or UPLOAD_DIR)
        self.default_model = default_model
        self.default_seconds = default_seconds
        self.timeout = timeout

        self.client = VideoAPIClient(
            api_key=self.api_key,
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )
        self.poller = StatusPoller(self.client, sleep=sleep)
        # Third-party image URLs; never carries the API key
        self._fetch_http = httpx.AsyncClient(timeout=timeout, transport=transport, follow_redirects=True)
        self.storage = storage or ArtifactStorage()

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def require_configured(self):
        if not self.configured:
            raise ConfigurationError(
                "OpenAI API key not configured. Please set OPENAI_API_KEY environment variable."
            )

    async def aclose(self):
        await self.client.aclose()
        await self._fetch_http.aclose()

    # ── Generate ─────────────────────────────────────────────────────────

    async def generate(
        self,
        prompt: Optional[str] = None,
        model: Optional[str] = None,
        seconds: Optional[int] = None,
        size: Optional[str] = None,
        upload=None,
        image_url: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Submit a new job from an uploaded image or an image URL.

        Args:
            prompt:    Opaque description passed through to the service.
            model:     Model id; defaults to ``default_model``.
            seconds:   Duration; defaults to ``default_seconds``.
            size:      Requested ``"WxH"``; the image's own size when absent.
            upload:    Multipart file (``filename``, ``content_type``, async ``read``).
            image_url: Public URL, used when no file was uploaded.

        Returns:
            The remote job object, verbatim.
        """
        self.require_configured()
        if upload is None and not image_url:
            raise ValidationError("Image file or image URL is required.")
        if seconds is not None and seconds <= 0:
            raise ValidationError("seconds must be a positive integer.")

        with TempFileScope(self.upload_dir) as temp_files:
            if upload is not None:
                reference = await save_upload(upload, temp_files)
            else:
                reference = await fetch_image(self._fetch_http, image_url, temp_files, timeout=self.timeout)

            source_size = await run_in_threadpool(read_image_size, reference.path)
            target = negotiate_size(size, source_size)
            effective_path = await run_in_threadpool(
                prepare_reference_image, reference.path, target, temp_files
            )

            request = GenerationRequest(
                prompt=prompt or None,
                model=model or self.default_model,
                seconds=seconds or self.default_seconds,
                size=target,
                reference=reference.with_path(effective_path),
            )
            logger.info(
                f"Generate: source={source_size} requested={size or '-'} → {target} "
                f"(resized={'yes' if effective_path != reference.path else 'no'})"
            )
            return await self.client.create_video(request)

    # ── Status ───────────────────────────────────────────────────────────

    async def status(self, video_id: str) -> JobStatusResult:
        self.require_configured()
        return await self.poller.poll(video_id)

    # ── Download ─────────────────────────────────────────────────────────

    async def open_download(self, video_id: str, variant: str = "video") -> httpx.Response:
        """Open the artifact stream; the caller must ``aclose()`` the response."""
        self.require_configured()
        return await self.client.open_content(video_id, variant or "video")

    # ── Remix ────────────────────────────────────────────────────────────

    async def remix(self, video_id: Optional[str], prompt: Optional[str]) -> dict[str, Any]:
        self.require_configured()
        return await self.client.remix_video(video_id, prompt)

    # ── Permanent storage ────────────────────────────────────────────────

    async def save_permanent(self, video_id: Optional[str]) -> dict[str, Any]:
        """
        Copy a completed artifact to object storage.

        Raises:
            ValidationError:       No video id.
            ConfigurationError:    Object storage or API key not configured.
            ArtifactNotReadyError: The job has not completed.
            StorageError:          Local write or bucket upload failed.
        """
        if not video_id or not video_id.strip():
            raise ValidationError("video_id is required")
        if not self.storage.configured:
            raise ConfigurationError(
                "Object storage not configured. Set R2_ACCOUNT_ID, R2_ACCESS_KEY_ID "
                "and R2_SECRET_ACCESS_KEY to enable permanent storage."
            )
        self.require_configured()

        result = await self.poller.poll(video_id)
        if result.state is not JobState.COMPLETED:
            raise ArtifactNotReadyError(f"Video {video_id} is {result.state.value}, not completed")

        with TempFileScope(self.upload_dir) as temp_files:
            local_path = temp_files.new_path("artifact", suffix=".mp4")
            response = await self.client.open_content(video_id, "video")
            content_type = self.client.content_type_of(response)
            try:
                async with aiofiles.open(local_path, "wb") as out:
                    async for chunk in response.aiter_bytes():
                        await out.write(chunk)
            except OSError as e:
                raise StorageError(f"Failed to buffer artifact: {e}") from e
            finally:
                await response.aclose()

            key = artifact_key(video_id)
            try:
                url = await run_in_threadpool(self.storage.upload_file, local_path, key, content_type)
            except Exception as e:
                raise StorageError(f"Failed to upload artifact: {e}") from e

        return {"success": True, "permanent_url": url, "key": key, "video_id": video_id}
