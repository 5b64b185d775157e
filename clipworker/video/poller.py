"""
Status polling with bounded retry.

Each `poll` call is an explicit loop over at most MAX_RETRIES sequential
attempts. Every attempt is classified before the loop decides anything:

    success           → parse job → return JobStatusResult
    500 / 502 / 503   → transient: sleep attempt × BASE_DELAY, try again
    reset / timeout   → transient: same policy
    anything else     → fatal now, StatusPollError(retryable=False)

Running out of attempts on a transient failure raises
StatusPollError(retryable=True) so the external caller knows it may poll
again later. No state survives between calls.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

import httpx

from .client import VideoAPIClient
from .errors import StatusPollError, TransientRemoteError
from .models import JobStatusResult

logger = logging.getLogger(__name__)

# ── Retry configuration ──────────────────────────────────────────────────────
MAX_RETRIES = 3
BASE_DELAY = 1.0       # seconds, linear: 1, 2
RETRYABLE_STATUS_CODES = {500, 502, 503}
# Dropped connections surface as RemoteProtocolError, not NetworkError
TRANSIENT_TRANSPORT_ERRORS = (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)


class StatusPoller:
    def __init__(
        self,
        client: VideoAPIClient,
        max_retries: int = MAX_RETRIES,
        base_delay: float = BASE_DELAY,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.client = client
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep or asyncio.sleep

    async def poll(self, video_id: str) -> JobStatusResult:
        """
        Read the remote job, retrying transient failures.

        Raises:
            StatusPollError: Fatal failure; ``retryable`` says whether the
                             caller should try again later.
        """
        last_error: Optional[TransientRemoteError] = None

        for attempt in range(1, self.max_retries + 1):
            try:
                return await self._attempt(video_id)
            except TransientRemoteError as e:
                last_error = e
            except StatusPollError as e:
                e.attempts = attempt
                raise

            if attempt < self.max_retries:
                delay = attempt * self.base_delay
                logger.warning(
                    f"Status poll for {video_id} failed on attempt {attempt}/{self.max_retries}: "
                    f"{last_error.message} — retrying in {delay:.1f}s"
                )
                await self._sleep(delay)

        logger.error(
            f"Status poll for {video_id} failed after {self.max_retries} attempts: {last_error.message}"
        )
        raise StatusPollError(
            f"Failed to retrieve video status after {self.max_retries} attempts: {last_error.message}",
            retryable=True,
            attempts=self.max_retries,
            upstream_status=last_error.upstream_status,
        )

    async def _attempt(self, video_id: str) -> JobStatusResult:
        """
        One classified attempt.

        Raises:
            TransientRemoteError: Worth retrying within this call.
            StatusPollError:      Fatal on first occurrence.
        """
        try:
            response = await self.client.get_video(video_id)
        except TRANSIENT_TRANSPORT_ERRORS as e:
            raise TransientRemoteError(f"Network error: {e!r}") from e
        except httpx.TransportError as e:
            raise StatusPollError(
                f"Video status request failed: {e!r}", retryable=False
            ) from e

        if response.status_code in RETRYABLE_STATUS_CODES:
            raise TransientRemoteError(
                f"Video service error ({response.status_code}): {response.text[:200]}",
                upstream_status=response.status_code,
            )

        if response.is_error:
            logger.error(f"Video status for {video_id} failed ({response.status_code}): {response.text[:300]}")
            raise StatusPollError(
                f"Video status retrieve failed ({response.status_code}): {response.text[:500]}",
                retryable=False,
                upstream_status=response.status_code,
            )

        try:
            job = response.json()
        except ValueError as e:
            raise StatusPollError(
                "Video status response was not valid JSON",
                retryable=False,
                upstream_status=response.status_code,
            ) from e
        if not isinstance(job, dict):
            raise StatusPollError(
                "Video status response was not a job object",
                retryable=False,
                upstream_status=response.status_code,
            )

        return JobStatusResult.from_job(job)
