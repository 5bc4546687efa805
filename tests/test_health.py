import pytest
from fastapi.testclient import TestClient

from app.core import health as health_module
from app.main import app

client = TestClient(app)


async def _ok():
    return {"status": "ok"}


async def _error():
    return {"status": "error", "error": "ConnectionError"}


@pytest.fixture(autouse=True)
def _mock_env(monkeypatch):
    monkeypatch.setattr(health_module.settings, "environment", "test")
    monkeypatch.setattr(health_module, "_check_storage", lambda: {"status": "ok"})
    yield


def test_health_live_returns_ok() -> None:
    response = client.get("/api/v1/health/live")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload.get("status") == "ok"
    assert "timestamp" in payload


def test_health_ready_ok(monkeypatch) -> None:
    monkeypatch.setattr(health_module, "_check_db", _ok)
    monkeypatch.setattr(health_module, "_check_redis", _ok)

    response = client.get("/api/v1/health/ready")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload["status"] == "ok"
    assert payload["ready"] is True
    assert payload["environment"] == "test"
    assert payload["checks"]["database"]["status"] == "ok"


def test_health_ready_not_ready_without_database(monkeypatch) -> None:
    monkeypatch.setattr(health_module, "_check_db", _error)
    monkeypatch.setattr(health_module, "_check_redis", _ok)

    response = client.get("/api/v1/health/ready")
    assert response.status_code == 503
    payload = response.json()
    assert payload["status"] == "degraded"
    assert payload["ready"] is False
    assert payload["checks"]["database"]["error"] == "ConnectionError"


def test_redis_outage_degrades_but_stays_ready(monkeypatch) -> None:
    monkeypatch.setattr(health_module, "_check_db", _ok)
    monkeypatch.setattr(health_module, "_check_redis", _error)

    payload = client.get("/api/v1/health/ready").json()["data"]
    assert payload["status"] == "degraded"
    assert payload["ready"] is True
    assert payload["checks"]["redis"]["status"] == "error"


def test_status_summary_includes_version(monkeypatch) -> None:
    monkeypatch.setattr(health_module, "_check_db", _ok)
    monkeypatch.setattr(health_module, "_check_redis", _ok)

    response = client.get("/api/v1/status/summary")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload["version"] == health_module.APP_VERSION
    assert payload["checks"]["api"]["status"] == "ok"


def test_responses_carry_request_id_and_security_headers() -> None:
    response = client.get("/api/v1/health/live", headers={"x-request-id": "abc-123"})
    assert response.headers["x-request-id"] == "abc-123"
    assert response.headers["x-content-type-options"] == "nosniff"
    assert response.headers["cross-origin-resource-policy"] == "same-origin"
