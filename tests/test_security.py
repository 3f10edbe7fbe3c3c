"""Tests for per-client rate limiting."""
import pytest
from fastapi.testclient import TestClient

import infrasizing.security as security
from infrasizing.api import app


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def small_limit(monkeypatch):
    monkeypatch.setattr(security, "_RATE_LIMIT_REQUESTS", 2)
    monkeypatch.setattr(security, "_RATE_LIMIT_WINDOW_SEC", 60)


def test_limit_returns_429_with_retry_after(client, small_limit):
    codes = [client.get("/v1/catalog/technologies").status_code for _ in range(3)]
    assert codes == [200, 200, 429]
    r = client.get("/v1/catalog/technologies")
    assert r.headers["Retry-After"] == "60"


def test_rotating_forwarded_for_is_still_limited(client, small_limit):
    codes = [
        client.get("/v1/catalog/technologies", headers={"X-Forwarded-For": f"10.0.0.{i}"}).status_code
        for i in range(10)
    ]
    assert codes[:2] == [200, 200]
    assert set(codes[2:]) == {429}
    assert security.tracked_clients() == 1


def test_forwarded_for_honoured_when_trusted(client, small_limit, monkeypatch):
    monkeypatch.setattr(security, "_TRUST_FORWARDED_FOR", True)
    codes = [
        client.get("/v1/catalog/technologies", headers={"X-Forwarded-For": f"10.0.0.{i}, 172.16.0.1"}).status_code
        for i in range(5)
    ]
    assert codes == [200] * 5


def test_health_is_exempt(client, small_limit):
    assert all(client.get("/v1/health").status_code == 200 for _ in range(5))


def test_expired_windows_are_dropped(small_limit):
    assert security._allow("a", 1000.0)
    assert security._allow("b", 1000.0)
    assert security.tracked_clients() == 2
    # a full window later only the new client is tracked
    assert security._allow("c", 1061.0)
    assert security.tracked_clients() == 1
