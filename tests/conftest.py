from pathlib import Path
from typing import Optional

import aiofiles
import httpx
import pytest
from fastapi.testclient import TestClient

from clipworker import metrics
from clipworker.main import app
from clipworker.video.routes import get_video_service
from clipworker.video.service import VideoService
from clipworker.video.storage import ArtifactStorage

from .fakes import API_BASE, FakeVideoAPI


@pytest.fixture
def fake_api():
    return FakeVideoAPI()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def make_service(fake_api, sleeps, upload_dir):
    def _make(api_key: Optional[str] = "test-key", storage: Optional[ArtifactStorage] = None) -> VideoService:
        async def fake_sleep(delay: float):
            sleeps.append(delay)

        return VideoService(
            api_key=api_key,
            base_url=API_BASE,
            upload_dir=upload_dir,
            transport=httpx.MockTransport(fake_api),
            sleep=fake_sleep,
            storage=storage or ArtifactStorage(account_id="", access_key_id="", secret_access_key=""),
        )

    return _make


@pytest.fixture
def service(make_service):
    return make_service()


@pytest.fixture
def client_for(monkeypatch):
    monkeypatch.delenv("WORKER_SHARED_SECRET", raising=False)
    monkeypatch.setenv("ENVIRONMENT", "development")
    metrics.reset()

    def _client(svc: VideoService) -> TestClient:
        app.dependency_overrides[get_video_service] = lambda: svc
        return TestClient(app)

    yield _client
    app.dependency_overrides.clear()


@pytest.fixture
def client(client_for, service):
    return client_for(service)


@pytest.fixture
def aiofiles_opened(monkeypatch) -> list[Path]:
    """Paths opened through aiofiles, i.e. file I/O kept off the event loop."""
    opened: list[Path] = []
    real_open = aiofiles.open

    def recording_open(file, *args, **kwargs):
        opened.append(Path(file))
        return real_open(file, *args, **kwargs)

    monkeypatch.setattr(aiofiles, "open", recording_open)
    return opened
