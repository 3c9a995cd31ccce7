from fastapi.testclient import TestClient

from tradelog import api
from tradelog.core.exceptions import ConfigurationError
from tradelog.core.models import SyncSummary


class StubService:
    def __init__(self, summary):
        self.summary = summary
        self.tokens = []

    def run(self, token):
        self.tokens.append(token)
        return self.summary


def client_with(monkeypatch, service):
    monkeypatch.setattr(api, "service_factory", lambda: service)
    return TestClient(api.app)


def test_sync_success_returns_200(monkeypatch):
    monkeypatch.setattr(api, "allowed_origins", ["*"])
    service = StubService(SyncSummary(success=True, trades_found=3, message="Successfully processed 3 trades"))
    client = client_with(monkeypatch, service)

    resp = client.post("/sync", headers={"Authorization": "Bearer jwt-123"})

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "tradesFound": 3, "message": "Successfully processed 3 trades"}
    assert service.tokens == ["jwt-123"]
    assert resp.headers["access-control-allow-origin"] == "*"


def test_sync_failure_returns_500(monkeypatch):
    service = StubService(SyncSummary.failure("Invalid authentication token"))
    client = client_with(monkeypatch, service)

    resp = client.post("/sync")

    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "Invalid authentication token"}
    assert service.tokens == [None]


def test_configuration_error_uses_failure_contract(monkeypatch):
    def broken():
        raise ConfigurationError("TELEGRAM_BOT_TOKEN is not set")

    monkeypatch.setattr(api, "service_factory", broken)
    resp = TestClient(api.app).post("/sync", headers={"Authorization": "Bearer x"})

    assert resp.status_code == 500
    assert resp.json()["error"] == "TELEGRAM_BOT_TOKEN is not set"


def test_preflight_returns_empty_200():
    resp = TestClient(api.app).options("/sync")

    assert resp.status_code == 200
    assert resp.content == b""


def test_browser_preflight_reaches_route_with_empty_body(monkeypatch):
    monkeypatch.setattr(api, "allowed_origins", ["*"])
    resp = TestClient(api.app).options(
        "/sync",
        headers={
            "Origin": "https://dashboard.example.com",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "authorization, content-type",
        },
    )

    assert resp.status_code == 200
    assert resp.content == b""
    assert resp.headers["access-control-allow-origin"] == "*"
    assert "authorization" in resp.headers["access-control-allow-headers"]


def test_restricted_origins_echo_only_listed_origin(monkeypatch):
    monkeypatch.setattr(api, "allowed_origins", ["https://dashboard.example.com"])
    client = TestClient(api.app)
    preflight = {"Access-Control-Request-Method": "POST"}

    allowed = client.options("/sync", headers={"Origin": "https://dashboard.example.com", **preflight})
    other = client.options("/sync", headers={"Origin": "https://evil.example.com", **preflight})

    assert allowed.headers["access-control-allow-origin"] == "https://dashboard.example.com"
    assert allowed.content == b""
    assert other.status_code == 200
    assert "access-control-allow-origin" not in other.headers


def test_bearer_token_parsing():
    assert api.bearer_token("Bearer abc") == "abc"
    assert api.bearer_token("bearer  abc ") == "abc"
    assert api.bearer_token("Basic abc") is None
    assert api.bearer_token(None) is None


def test_health():
    resp = TestClient(api.app).get("/health")
    assert resp.json()["status"] == "ok"
