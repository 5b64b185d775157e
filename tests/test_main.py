"""App-level endpoints and the shared-secret middleware."""

from clipworker import metrics

from .fakes import RecordingStorage


def test_health_reports_configuration(client_for, make_service):
    body = client_for(make_service()).get("/health").json()
    assert body["status"] == "ok"
    assert body["openai"] == "configured"
    assert body["storage"] is False
    assert "timestamp" in body

    body = client_for(make_service(api_key="", storage=RecordingStorage())).get("/health").json()
    assert body["openai"] == "missing"
    assert body["storage"] is True


def test_metrics_snapshot(client):
    metrics.inc_counter("requests.status", 3)
    metrics.record_latency("status", 12.5)

    body = client.get("/metrics").json()
    assert body["counters"]["requests.status"] == 3
    assert body["latency"]["status"]["count"] == 1
    assert body["latency"]["status"]["p50"] == 12.5


def test_development_without_secret_allows_traffic(client):
    assert client.post("/remix", json={}).status_code == 400


def test_secret_required_when_configured(client, monkeypatch, fake_api):
    monkeypatch.setenv("WORKER_SHARED_SECRET", "s3cret")

    denied = client.post("/remix", json={"video_id": "video_123", "prompt": "again"})
    assert denied.status_code == 401
    assert denied.json()["detail"]["error"] == "unauthorized"
    assert fake_api.requests == []

    wrong = client.post(
        "/remix", json={"video_id": "video_123", "prompt": "again"}, headers={"X-Worker-Secret": "nope"}
    )
    assert wrong.status_code == 401

    allowed = client.post(
        "/remix", json={"video_id": "video_123", "prompt": "again"}, headers={"X-Worker-Secret": "s3cret"}
    )
    assert allowed.status_code == 200


def test_public_paths_skip_auth(client, monkeypatch):
    monkeypatch.setenv("WORKER_SHARED_SECRET", "s3cret")
    assert client.get("/health").status_code == 200


def test_missing_secret_outside_development(client, monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "production")
    resp = client.get("/status/video_123")
    assert resp.status_code == 500
    assert resp.json()["detail"]["error"] == "not_configured"
