from __future__ import annotations

from fastapi.testclient import TestClient
from conftest import API

from spentiva import main
from spentiva.core.config import settings


def test_health_reports_database(client):
    resp = client.get(f"{API}/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Service is healthy"
    assert body["status"] == "success"
    assert body["statusCode"] == 200
    assert body["data"]["status"] == "healthy"
    assert body["data"]["checks"] == {"database": "connected"}
    assert body["data"]["version"] == "1.0.0"


def test_ping(client):
    body = client.get(f"{API}/ping").json()
    assert body["data"] == {"message": "pong"}


def test_root(client):
    body = client.get("/").json()
    assert body["data"]["health"] == f"{API}/health"


def test_unknown_route_uses_envelope(client):
    resp = client.get(f"{API}/nope")
    assert resp.status_code == 404
    assert resp.json()["status"] == "not-found"


def test_lifespan_starts_and_stops_report_scheduler(monkeypatch):
    calls = []
    monkeypatch.setattr(settings, "REPORT_SCHEDULER_ENABLED", True)
    monkeypatch.setattr(main.report_scheduler, "start", lambda: calls.append("start"))
    monkeypatch.setattr(main.report_scheduler, "stop", lambda: calls.append("stop"))

    with TestClient(main.app):
        assert calls == ["start"]
    assert calls == ["start", "stop"]
