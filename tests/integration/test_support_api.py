from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from collector import __version__
from collector.api.main import app
from collector.db.database import get_db


def test_health_reports_healthy(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "healthy"
    assert "timestamp" in body


def test_health_reports_unreachable_database(client, monkeypatch):
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    broken = MagicMock()
    broken.execute.side_effect = OperationalError("SELECT 1", {}, Exception("connection refused"))
    app.dependency_overrides[get_db] = lambda: broken

    r = client.get("/api/health")
    assert r.status_code == 503
    assert r.json() == {"status": "unhealthy", "error": "database_unreachable"}


def test_health_exposes_detail_in_local_development(client, monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("APP_BASE_URL", "http://localhost:3000")
    broken = MagicMock()
    broken.execute.side_effect = OperationalError("SELECT 1", {}, Exception("connection refused"))
    app.dependency_overrides[get_db] = lambda: broken

    r = client.get("/api/health")
    assert r.status_code == 503
    assert "connection refused" in r.json()["error"]


def test_build_info_defaults(client, monkeypatch):
    for name in ("BUILD_SHA", "BUILD_TIMESTAMP", "IMAGE_TAG", "VERSION"):
        monkeypatch.delenv(name, raising=False)

    r = client.get("/build-info")
    assert r.status_code == 200
    assert r.json() == {
        "build_sha": None,
        "build_timestamp": None,
        "image_tag": None,
        "service_name": "form-collector",
        "version": __version__,
    }


def test_build_info_from_environment(client, monkeypatch):
    monkeypatch.setenv("BUILD_SHA", "abc123")
    monkeypatch.setenv("IMAGE_TAG", "forms:1.2.3")
    monkeypatch.setenv("VERSION", "1.2.3")

    data = client.get("/build-info").json()
    assert data["build_sha"] == "abc123"
    assert data["image_tag"] == "forms:1.2.3"
    assert data["version"] == "1.2.3"
