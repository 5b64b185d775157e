import logging
import os
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from dotenv import load_dotenv
from fastapi import Depends, FastAPI

from . import metrics
from .auth_middleware import WorkerAuthMiddleware
from .video.routes import close_video_service, get_video_service, video_router
from .video.service import VideoService

load_dotenv()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Worker starting up...")
    metrics.set_gauge("start_time", time.time())
    if not os.environ.get("OPENAI_API_KEY"):
        logger.warning("OPENAI_API_KEY is not set. Video endpoints will answer 503 until it is configured.")
    yield
    logger.info("Worker shutting down...")
    await close_video_service()


app = FastAPI(title="clipworker", lifespan=lifespan)
app.add_middleware(WorkerAuthMiddleware)
app.include_router(video_router)


@app.get("/health")
def health_check(service: VideoService = Depends(get_video_service)):
    """Verify the worker is running and report which integrations are configured."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "openai": "configured" if service.configured else "missing",
        "storage": service.storage.configured,
    }


@app.get("/metrics")
def metrics_endpoint():
    """Return a snapshot of all worker metrics."""
    return metrics.get_snapshot()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "8000")))
