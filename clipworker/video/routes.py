"""
FastAPI routes for image-to-video jobs.

  POST /generate             — submit a job from an image file or image URL
  GET  /status/{id}          — poll a job (internal retry, `retryable` on failure)
  GET  /download/{id}        — stream the finished artifact
  POST /remix                — follow-up job on a prior one
  POST /save-permanent       — copy a finished artifact to object storage
  GET  /storage/status       — object storage availability
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from .. import metrics
from .errors import VideoServiceError
from .models import RemixRequest, SavePermanentRequest
from .service import VideoService, download_filename

logger = logging.getLogger(__name__)

video_router = APIRouter(tags=["video"])

_service: Optional[VideoService] = None


def get_video_service() -> VideoService:
    """Process-wide service; tests override this dependency."""
    global _service
    if _service is None:
        _service = VideoService()
    return _service


async def close_video_service():
    global _service
    if _service is not None:
        await _service.aclose()
        _service = None


def _http_error(endpoint: str, exc: Exception) -> HTTPException:
    metrics.inc_counter(f"errors.{endpoint}")
    if isinstance(exc, VideoServiceError):
        metrics.record_error(endpoint, exc.kind, exc.message)
        return HTTPException(status_code=exc.status_code, detail=exc.to_detail())

    logger.error(f"{endpoint} failed: {exc}", exc_info=True)
    metrics.record_error(endpoint, type(exc).__name__, str(exc))
    return HTTPException(
        status_code=500,
        detail={"error": "internal_error", "message": str(exc)},
    )


# ── Generate ─────────────────────────────────────────────────────────────────

@video_router.post("/generate")
async def generate_video(
    image: Optional[UploadFile] = File(None),
    image_url: Optional[str] = Form(None),
    prompt: Optional[str] = Form(None),
    model: Optional[str] = Form(None),
    seconds: Optional[int] = Form(None),
    size: Optional[str] = Form(None),
    service: VideoService = Depends(get_video_service),
):
    """Resize the image to a supported size and start a job. Returns the remote job verbatim."""
    with metrics.observe_request("generate"):
        try:
            return await service.generate(
                prompt=prompt,
                model=model,
                seconds=seconds,
                size=size,
                upload=image,
                image_url=image_url,
            )
        except Exception as e:
            raise _http_error("generate", e)


# ── Status ───────────────────────────────────────────────────────────────────

@video_router.get("/status/{video_id}")
async def get_video_status(video_id: str, service: VideoService = Depends(get_video_service)):
    with metrics.observe_request("status"):
        try:
            result = await service.status(video_id)
        except Exception as e:
            raise _http_error("status", e)
    return result.job


# ── Download ─────────────────────────────────────────────────────────────────

@video_router.get("/download/{video_id}")
async def download_video(
    video_id: str,
    variant: str = Query("video"),
    service: VideoService = Depends(get_video_service),
):
    """Proxy the artifact body and content type without buffering it."""
    # Times the upstream handshake only; the body streams after the handler returns
    with metrics.observe_request("download"):
        try:
            upstream = await service.open_download(video_id, variant)
        except Exception as e:
            raise _http_error("download", e)

    return StreamingResponse(
        upstream.aiter_bytes(),
        media_type=service.client.content_type_of(upstream),
        headers={"Content-Disposition": f'inline; filename="{download_filename(video_id, variant)}"'},
        background=BackgroundTask(upstream.aclose),
    )


# ── Remix ────────────────────────────────────────────────────────────────────

@video_router.post("/remix")
async def remix_video(request: RemixRequest, service: VideoService = Depends(get_video_service)):
    with metrics.observe_request("remix"):
        try:
            return await service.remix(request.video_id, request.prompt)
        except Exception as e:
            raise _http_error("remix", e)


# ── Permanent storage ────────────────────────────────────────────────────────

@video_router.post("/save-permanent")
async def save_permanent(request: SavePermanentRequest, service: VideoService = Depends(get_video_service)):
    with metrics.observe_request("save_permanent"):
        try:
            return await service.save_permanent(request.video_id)
        except Exception as e:
            raise _http_error("save_permanent", e)


@video_router.get("/storage/status")
async def storage_status(service: VideoService = Depends(get_video_service)):
    configured = service.storage.configured
    return {
        "object_storage": {
            "configured": configured,
            "features": ["videos"] if configured else [],
        },
        "recommendations": [] if configured else [
            "Set up object storage for permanent video storage",
            "Generated videos expire on the video service after a limited time",
        ],
    }
