import time

from fastapi import Depends, FastAPI, Request
from fastapi.testclient import TestClient

from boutique.utils.rate_limit import client_key, optional_rate_limit, rate_limit_health_info


def _make_app(times=2, seconds=60):
    app = FastAPI()

    @app.post("/limitedA", dependencies=[Depends(optional_rate_limit(times, seconds))])
    def limited_a():
        return {"ok": True}

    @app.post("/limitedB", dependencies=[Depends(optional_rate_limit(times, seconds))])
    def limited_b():
        return {"ok": True}

    @app.get("/rl_info")
    def rl_info(request: Request):
        return rate_limit_health_info(request)

    @app.get("/key")
    def key(request: Request):
        return {"key": client_key(request)}

    return app


def test_rate_limit_fallback_blocks_after_limit(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    client = TestClient(_make_app(times=2, seconds=60))
    assert client.post("/limitedA").status_code == 200
    assert client.post("/limitedA").status_code == 200
    res = client.post("/limitedA")
    assert res.status_code == 429
    assert res.json()["detail"] == "Trop de requêtes, réessayez dans un instant"


def test_rate_limit_is_per_path(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    client = TestClient(_make_app(times=1, seconds=60))
    assert client.post("/limitedA").status_code == 200
    assert client.post("/limitedA").status_code == 429
    assert client.post("/limitedB").status_code == 200


def test_rate_limit_resets_after_window(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    client = TestClient(_make_app(times=1, seconds=1))
    assert client.post("/limitedA").status_code == 200
    assert client.post("/limitedA").status_code == 429
    time.sleep(1.1)
    assert client.post("/limitedA").status_code == 200


def test_rate_limit_disabled_flag_bypasses_limit(monkeypatch):
    monkeypatch.delenv("LOCAL_RATE_LIMIT_FALLBACK", raising=False)
    app = _make_app(times=1, seconds=60)
    app.state.rate_limit_enabled = False
    client = TestClient(app)
    for _ in range(3):
        assert client.post("/limitedA").status_code == 200


def test_client_key_ignores_raw_forwarded_header():
    client = TestClient(_make_app())
    assert client.get("/key", headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"}).json()["key"] == "ip:testclient:/key"


def test_rotating_forwarded_header_does_not_bypass_limit(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    client = TestClient(_make_app(times=1, seconds=60))
    assert client.post("/limitedA", headers={"X-Forwarded-For": "198.51.100.1"}).status_code == 200
    assert client.post("/limitedA", headers={"X-Forwarded-For": "198.51.100.2"}).status_code == 429


def test_rate_limit_health_info(monkeypatch):
    monkeypatch.delenv("LOCAL_RATE_LIMIT_FALLBACK", raising=False)
    monkeypatch.setenv("RATE_LIMIT_REDIS_URL", "redis://localhost:6379/0")
    app = _make_app()
    client = TestClient(app)
    app.state.rate_limit_enabled = True
    info = client.get("/rl_info").json()
    assert info["enabled"] is True
    assert info["local_fallback"] is False
    assert info["redis"] == {"scheme": "redis", "host": "localhost", "port": 6379}
