from __future__ import annotations

import asyncio
import time

import httpx
import pytest
from fastapi.testclient import TestClient

import disputeshield.main as main_module
from disputeshield.config import settings
from disputeshield.main import create_app
from disputeshield.turnstile import TurnstileClient

PRODUCTION_ORIGIN = "https://disputeshield.app"


@pytest.fixture()
def restore_relay_settings() -> None:
    original = {
        "allowed_origin": settings.allowed_origin,
        "preview_origin_suffix": settings.preview_origin_suffix,
    }
    yield
    settings.allowed_origin = original["allowed_origin"]
    settings.preview_origin_suffix = original["preview_origin_suffix"]


def _install_client(monkeypatch: pytest.MonkeyPatch, handler, *, secret: str = "shh") -> list[httpx.Request]:
    calls: list[httpx.Request] = []

    def recording(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return handler(request)

    def fake_client() -> TurnstileClient:
        return TurnstileClient(
            secret=secret,
            verify_url="https://siteverify.test",
            client=httpx.Client(transport=httpx.MockTransport(recording)),
        )

    monkeypatch.setattr(main_module, "get_turnstile_client", fake_client)
    return calls


def _success(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"success": True})


@pytest.mark.parametrize(
    "body",
    [b'{"token": ""}', b'{"token": "   "}', b"{}", b'{"token": 42}', b"[]", b"not json at all"],
)
def test_missing_token_is_rejected_without_upstream_call(monkeypatch: pytest.MonkeyPatch, body: bytes) -> None:
    calls = _install_client(monkeypatch, _success)
    with TestClient(create_app()) as client:
        response = client.post(
            "/turnstile/verify", content=body, headers={"Content-Type": "application/json"}
        )

    assert response.status_code == 400
    assert response.json() == {"ok": False, "error": "missing_token"}
    assert calls == []


def test_missing_secret_is_a_server_error(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _install_client(monkeypatch, _success, secret="  ")
    with TestClient(create_app()) as client:
        response = client.post("/turnstile/verify", json={"token": "tok"})

    assert response.status_code == 500
    assert response.json() == {"ok": False, "error": "missing_secret"}
    assert calls == []


@pytest.mark.parametrize("success", [True, False])
def test_verification_result_is_relayed(monkeypatch: pytest.MonkeyPatch, success: bool) -> None:
    calls = _install_client(monkeypatch, lambda request: httpx.Response(200, json={"success": success}))
    with TestClient(create_app()) as client:
        response = client.post("/turnstile/verify", json={"token": " tok-1 "})

    assert response.status_code == 200
    assert response.json() == {"ok": success}
    assert len(calls) == 1
    assert "response=tok-1" in calls[0].content.decode()


def test_upstream_outage_reports_unavailable(monkeypatch: pytest.MonkeyPatch) -> None:
    def down(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    _install_client(monkeypatch, down)
    with TestClient(create_app()) as client:
        response = client.post("/turnstile/verify", json={"token": "tok"})

    assert response.status_code == 200
    assert response.json() == {"ok": False, "error": "verification_unavailable"}


def test_cors_echoes_production_and_preview_origins(
    monkeypatch: pytest.MonkeyPatch, restore_relay_settings: None
) -> None:
    settings.allowed_origin = PRODUCTION_ORIGIN
    settings.preview_origin_suffix = ".pages.dev"
    _install_client(monkeypatch, _success)

    with TestClient(create_app()) as client:
        production = client.post("/turnstile/verify", json={"token": "tok"}, headers={"Origin": PRODUCTION_ORIGIN})
        preview = client.post(
            "/turnstile/verify", json={"token": "tok"}, headers={"Origin": "https://feature-x.disputeshield.pages.dev"}
        )
        foreign = client.post("/turnstile/verify", json={"token": "tok"}, headers={"Origin": "https://evil.example"})
        missing = client.post("/turnstile/verify", json={})

    assert production.headers["Access-Control-Allow-Origin"] == PRODUCTION_ORIGIN
    assert preview.headers["Access-Control-Allow-Origin"] == "https://feature-x.disputeshield.pages.dev"
    assert foreign.headers["Access-Control-Allow-Origin"] == PRODUCTION_ORIGIN
    assert missing.status_code == 400
    assert missing.headers["Access-Control-Allow-Origin"] == PRODUCTION_ORIGIN
    for response in (production, preview, foreign, missing):
        assert response.headers["Vary"] == "Origin"
        assert response.headers["Access-Control-Allow-Credentials"] == "false"
        assert response.headers["Access-Control-Allow-Methods"] == "POST, OPTIONS"
        assert response.headers["Access-Control-Allow-Headers"] == "Content-Type"


def test_preflight_returns_empty_204_with_requested_headers(
    monkeypatch: pytest.MonkeyPatch, restore_relay_settings: None
) -> None:
    settings.allowed_origin = PRODUCTION_ORIGIN
    calls = _install_client(monkeypatch, _success)

    with TestClient(create_app()) as client:
        response = client.options(
            "/turnstile/verify",
            headers={
                "Origin": PRODUCTION_ORIGIN,
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "content-type, x-request-id",
            },
        )

    assert response.status_code == 204
    assert response.content == b""
    assert response.headers["Access-Control-Allow-Origin"] == PRODUCTION_ORIGIN
    assert response.headers["Access-Control-Allow-Headers"] == "content-type, x-request-id"
    assert calls == []


def test_slow_upstream_does_not_stall_other_requests(monkeypatch: pytest.MonkeyPatch) -> None:
    def slow(request: httpx.Request) -> httpx.Response:
        time.sleep(1.0)
        return httpx.Response(200, json={"success": True})

    _install_client(monkeypatch, slow)
    app = create_app()

    async def verify_while_checking_health() -> tuple[httpx.Response, httpx.Response, float]:
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://relay.test") as client:
            started = time.perf_counter()
            verify = asyncio.create_task(client.post("/turnstile/verify", json={"token": "tok"}))
            await asyncio.sleep(0.1)
            health = await client.get("/health")
            health_elapsed = time.perf_counter() - started
            return await verify, health, health_elapsed

    verify, health, health_elapsed = asyncio.run(verify_while_checking_health())

    assert health.status_code == 200
    assert health_elapsed < 0.6
    assert verify.json() == {"ok": True}
