from __future__ import annotations

from conftest import API

from spentiva.core import rate_limit
from spentiva.core.config import settings


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_sliding_window():
    clock = FakeClock()
    limiter = rate_limit.RateLimiter("test", 2, 60, clock=clock)

    assert limiter.hit("k") is None
    assert limiter.hit("k") is None
    assert limiter.hit("k") == 60
    # other keys are independent
    assert limiter.hit("other") is None

    clock.now += 30
    assert limiter.hit("k") == 30

    clock.now += 31
    assert limiter.hit("k") is None


def test_idle_clients_are_forgotten():
    clock = FakeClock()
    limiter = rate_limit.RateLimiter("test", 5, 60, clock=clock)
    limiter.hit("old")

    clock.now += 61
    limiter.hit("new")

    assert set(limiter._hits) == {"new"}


def test_reset_clears_history():
    limiter = rate_limit.RateLimiter("test", 1, 60, clock=FakeClock())
    limiter.hit("k")
    assert limiter.hit("k") is not None
    limiter.reset()
    assert limiter.hit("k") is None


def test_auth_routes_are_limited(client, monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", True)
    rate_limit.auth_limiter.reset()
    rate_limit.api_limiter.reset()
    try:
        codes = [
            client.post(f"{API}/auth/login", json={"email": "x@example.com", "password": "nope"}).status_code
            for _ in range(6)
        ]
    finally:
        rate_limit.auth_limiter.reset()
        rate_limit.api_limiter.reset()

    assert codes[:5] == [400] * 5
    assert codes[5] == 429


def test_limit_response_uses_envelope(client, monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", True)
    rate_limit.auth_limiter.reset()
    try:
        for _ in range(5):
            client.post(f"{API}/auth/forgot-password", json={"email": "x@example.com"})
        resp = client.post(f"{API}/auth/forgot-password", json={"email": "x@example.com"})
    finally:
        rate_limit.auth_limiter.reset()
        rate_limit.api_limiter.reset()

    assert resp.status_code == 429
    assert resp.json()["message"] == "Too many requests, please try again later."
    assert resp.json()["status"] == "too-many-requests"
    assert "retry-after" in resp.headers
