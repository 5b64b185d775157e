"""
Async client for the remote video generation service.

One shared httpx.AsyncClient carries every call: job creation (multipart with
an optional reference image), single status reads, remix requests
and streamed artifact downloads. Nothing here retries; the status poller
wraps `get_video` with its own retry policy.
"""

import logging
from typing import Any, Optional

import aiofiles
import httpx

from .errors import RetrievalError, StorageError, SubmissionError, ValidationError
from .models import GenerationRequest

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.openai.com/v1"
DEFAULT_CONTENT_TYPE = "video/mp4"


class VideoAPIClient:
    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_API_BASE,
        timeout: float = 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self):
        await self._http.aclose()

    # ── Creation ─────────────────────────────────────────────────────────

    async def create_video(self, request: GenerationRequest) -> dict[str, Any]:
        """
        Start a generation job. Single attempt: a retry could create a duplicate job.

        The reference image is read from disk without blocking the event loop
        and sent as the ``input_reference`` part.

        Returns:
            The remote job object (contains at least ``id`` and ``status``).

        Raises:
            SubmissionError: Any non-success HTTP response.
            StorageError:    The reference image cannot be read back.
        """
        data = request.form_fields()
        logger.info(
            f"Video create: model={request.model}, size={request.size}, "
            f"seconds={request.seconds}, reference={'yes' if request.reference else 'no'}"
        )

        try:
            if request.reference is not None:
                ref = request.reference
                files = {"input_reference": (ref.filename, await _read_file(ref.path), ref.mime_type)}
                response = await self._http.post("/videos", data=data, files=files)
            else:
                # Force multipart even without a file part
                files = {key: (None, value) for key, value in data.items()}
                response = await self._http.post("/videos", files=files)
        except httpx.TransportError as e:
            logger.error(f"Video create transport error: {e}")
            raise SubmissionError(f"Video create failed: {e}", None) from e

        if response.is_error:
            logger.error(f"Video create failed ({response.status_code}): {response.text[:300]}")
            raise SubmissionError(
                f"Video create failed ({response.status_code})",
                response.status_code,
                response.text,
            )

        job = _parse_job(response, "Video create")
        logger.info(f"Video job created: id={job.get('id')} status={job.get('status')}")
        return job

    # ── Status ───────────────────────────────────────────────────────────

    async def get_video(self, video_id: str) -> httpx.Response:
        """One raw status read. Classification is left to the poller."""
        return await self._http.get(f"/videos/{video_id}")

    # ── Remix ────────────────────────────────────────────────────────────

    async def remix_video(self, video_id: Optional[str], prompt: Optional[str]) -> dict[str, Any]:
        """
        Start a follow-up job on ``video_id`` with a new prompt.

        Raises:
            ValidationError: Either argument missing; raised before any network call.
            SubmissionError: Any non-success HTTP response.
        """
        if not video_id or not video_id.strip() or not prompt or not prompt.strip():
            raise ValidationError("video_id and prompt are required for remix.")

        try:
            response = await self._http.post(f"/videos/{video_id}/remix", json={"prompt": prompt})
        except httpx.TransportError as e:
            logger.error(f"Video remix transport error: {e}")
            raise SubmissionError(f"Video remix failed: {e}", None) from e
        if response.is_error:
            logger.error(f"Video remix failed ({response.status_code}): {response.text[:300]}")
            raise SubmissionError(
                f"Video remix failed ({response.status_code})",
                response.status_code,
                response.text,
            )

        job = _parse_job(response, "Video remix")
        logger.info(f"Remix of {video_id} created: id={job.get('id')}")
        return job

    # ── Content ──────────────────────────────────────────────────────────

    async def open_content(self, video_id: str, variant: str = "video") -> httpx.Response:
        """
        Open a streamed download of a finished artifact.

        The caller owns the returned response and must ``aclose()`` it once
        the body has been consumed.

        Raises:
            RetrievalError: Any non-success HTTP response (body read, stream closed).
        """
        request = self._http.build_request(
            "GET", f"/videos/{video_id}/content", params={"variant": variant}
        )
        try:
            response = await self._http.send(request, stream=True)
        except httpx.TransportError as e:
            logger.error(f"Video download transport error: {e}")
            raise RetrievalError(f"Video download failed: {e}", None) from e
        if response.is_error:
            try:
                await response.aread()
                body = response.text
            finally:
                await response.aclose()
            logger.error(f"Video download failed ({response.status_code}): {body[:300]}")
            raise RetrievalError(
                f"Video download failed ({response.status_code})",
                response.status_code,
                body,
            )
        return response

    @staticmethod
    def content_type_of(response: httpx.Response) -> str:
        return response.headers.get("content-type") or DEFAULT_CONTENT_TYPE


def _parse_job(response: httpx.Response, action: str) -> dict[str, Any]:
    """Decode a job object from a success response; anything else is a submission failure."""
    try:
        job = response.json()
    except ValueError as e:
        logger.error(f"{action} returned a non-JSON body ({response.status_code}): {response.text[:300]}")
        raise SubmissionError(
            f"{action} returned an unreadable response", response.status_code, response.text
        ) from e
    if not isinstance(job, dict):
        raise SubmissionError(
            f"{action} returned something other than a job object", response.status_code, response.text
        )
    return job


async def _read_file(path) -> bytes:
    try:
        async with aiofiles.open(path, "rb") as fh:
            return await fh.read()
    except OSError as e:
        raise StorageError(f"Failed to read reference image: {e}") from e
