"""
Shared-secret authentication middleware.

Every non-public endpoint requires an X-Worker-Secret header matching the
WORKER_SHARED_SECRET environment variable. The front end attaches this header
when forwarding requests; the video pipeline itself never looks at identity.
"""

import os
import secrets

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware


class WorkerAuthMiddleware(BaseHTTPMiddleware):
    """Reject unauthenticated requests to everything but the public paths."""

    PUBLIC_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.PUBLIC_PATHS:
            return await call_next(request)

        worker_secret = os.environ.get("WORKER_SHARED_SECRET", "")
        if not worker_secret:
            # Development without the secret set: allow all traffic
            if os.environ.get("ENVIRONMENT", "development") == "development":
                return await call_next(request)
            return JSONResponse(
                status_code=500,
                content={"detail": {"error": "not_configured", "message": "WORKER_SHARED_SECRET not configured"}},
            )

        # Constant-time compare
        provided = request.headers.get("X-Worker-Secret", "")
        if not secrets.compare_digest(provided, worker_secret):
            return JSONResponse(
                status_code=401,
                content={"detail": {"error": "unauthorized", "message": "Invalid or missing worker secret"}},
            )

        return await call_next(request)
