import httpx
import pytest

from clipworker.video.errors import StatusPollError
from clipworker.video.models import JobState

from .fakes import completed_job


def busy(status: int = 503) -> httpx.Response:
    return httpx.Response(status, json={"error": {"message": "server overloaded"}})


@pytest.mark.asyncio
async def test_success_on_first_attempt(service, fake_api, sleeps):
    fake_api.status_responses = [
        httpx.Response(200, json={"id": "video_123", "status": "in_progress", "progress": 42}),
    ]
    result = await service.poller.poll("video_123")

    assert result.state is JobState.IN_PROGRESS
    assert result.progress == 42
    assert not result.is_terminal
    assert len(fake_api.status_calls) == 1
    assert fake_api.status_calls[0].url.path == "/v1/videos/video_123"
    assert fake_api.status_calls[0].headers["Authorization"] == "Bearer test-key"
    assert sleeps == []


@pytest.mark.asyncio
async def test_two_transient_failures_then_success(service, fake_api, sleeps):
    fake_api.status_responses = [busy(503), busy(503), completed_job()]
    result = await service.poller.poll("video_123")

    assert result.state is JobState.COMPLETED
    assert len(fake_api.status_calls) == 3
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_transient_failures_exhaust_budget(service, fake_api, sleeps):
    fake_api.status_responses = [busy(503), busy(500), busy(502), completed_job()]

    with pytest.raises(StatusPollError) as exc_info:
        await service.poller.poll("video_123")

    err = exc_info.value
    assert err.retryable is True
    assert err.attempts == 3
    assert err.upstream_status == 502
    assert err.status_code == 503
    assert len(fake_api.status_calls) == 3
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_not_found_is_fatal_immediately(service, fake_api, sleeps):
    fake_api.status_responses = [httpx.Response(404, json={"error": {"message": "no such video"}})]

    with pytest.raises(StatusPollError) as exc_info:
        await service.poller.poll("video_missing")

    err = exc_info.value
    assert err.retryable is False
    assert err.attempts == 1
    assert err.upstream_status == 404
    assert len(fake_api.status_calls) == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_fatal_after_transient_reports_attempt_number(service, fake_api, sleeps):
    fake_api.status_responses = [busy(502), httpx.Response(401, text="bad key")]

    with pytest.raises(StatusPollError) as exc_info:
        await service.poller.poll("video_123")

    assert exc_info.value.retryable is False
    assert exc_info.value.attempts == 2
    assert len(fake_api.status_calls) == 2
    assert sleeps == [1.0]


@pytest.mark.asyncio
async def test_rate_limit_is_not_retried(service, fake_api, sleeps):
    fake_api.status_responses = [httpx.Response(429, text="slow down")]

    with pytest.raises(StatusPollError) as exc_info:
        await service.poller.poll("video_123")

    assert exc_info.value.retryable is False
    assert len(fake_api.status_calls) == 1


@pytest.mark.asyncio
async def test_network_errors_are_transient(service, fake_api, sleeps):
    fake_api.status_responses = [
        httpx.ConnectError("connection reset"),
        httpx.ReadTimeout("timed out"),
        completed_job(),
    ]
    result = await service.poller.poll("video_123")

    assert result.state is JobState.COMPLETED
    assert len(fake_api.status_calls) == 3
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_server_disconnect_is_transient(service, fake_api, sleeps):
    fake_api.status_responses = [
        httpx.RemoteProtocolError("Server disconnected without sending a response."),
        completed_job(),
    ]
    result = await service.poller.poll("video_123")

    assert result.state is JobState.COMPLETED
    assert len(fake_api.status_calls) == 2
    assert sleeps == [1.0]


@pytest.mark.asyncio
async def test_network_errors_exhaust_budget_as_retryable(service, fake_api, sleeps):
    fake_api.status_responses = [httpx.ReadTimeout("timed out")] * 4

    with pytest.raises(StatusPollError) as exc_info:
        await service.poller.poll("video_123")

    assert exc_info.value.retryable is True
    assert exc_info.value.upstream_status is None
    assert len(fake_api.status_calls) == 3


@pytest.mark.asyncio
async def test_malformed_body_is_fatal(service, fake_api, sleeps):
    fake_api.status_responses = [httpx.Response(200, text="<html>oops</html>")]

    with pytest.raises(StatusPollError) as exc_info:
        await service.poller.poll("video_123")

    assert exc_info.value.retryable is False
    assert len(fake_api.status_calls) == 1


@pytest.mark.asyncio
async def test_each_call_gets_a_fresh_budget(service, fake_api, sleeps):
    fake_api.status_responses = [busy(), busy(), busy(), busy(), busy(), completed_job()]

    with pytest.raises(StatusPollError):
        await service.poller.poll("video_123")
    result = await service.poller.poll("video_123")

    assert result.state is JobState.COMPLETED
    assert len(fake_api.status_calls) == 6
    assert sleeps == [1.0, 2.0, 1.0, 2.0]


@pytest.mark.asyncio
async def test_failed_job_carries_reason(service, fake_api):
    fake_api.status_responses = [httpx.Response(200, json={
        "id": "video_123",
        "status": "failed",
        "error": {"code": "moderation_blocked", "message": "Prompt rejected"},
    })]
    result = await service.poller.poll("video_123")

    assert result.state is JobState.FAILED
    assert result.reason == "Prompt rejected"
    assert result.is_terminal
