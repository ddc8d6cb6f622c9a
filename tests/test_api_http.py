"""HTTP API integration tests with a fixed clock."""

from __future__ import annotations

import json
from urllib.parse import urlencode

import pytest
from fastapi.testclient import TestClient

from miniapp_auth.api.app import create_api
from miniapp_auth.api.dependencies import APIContainer
from miniapp_auth.config import AppConfig
from miniapp_auth.services.init_data import InitDataVerifier, sign_init_data
from miniapp_auth.services.sessions import SessionIssuer

BOT_TOKEN = "123456:ABC-DEF1234ghIkl-zyx57W2v1u123ew11"
AUTH_DATE = 1_700_000_000
NOW = AUTH_DATE + 100
VERIFY_URL = "/api/auth/verify-telegram-init-data"


def signed_init_data(user: dict | str | None = None, auth_date: int = AUTH_DATE, token: str = BOT_TOKEN) -> str:
    fields = {"auth_date": str(auth_date), "query_id": "AAHdF6IQAAAAAN0XohDhrOrc"}
    if user is not None:
        fields["user"] = user if isinstance(user, str) else json.dumps(user, separators=(",", ":"))
    return sign_init_data(fields, token)


def build_client(monkeypatch, *, bot_token: str | None = BOT_TOKEN, session_secret: str | None = None) -> TestClient:
    config = AppConfig(
        environment="test",
        log_level="INFO",
        telegram_bot_token=bot_token,
        session_secret=session_secret,
    )
    verifier = InitDataVerifier(bot_token, clock=lambda: NOW) if bot_token else None
    sessions = SessionIssuer(session_secret, clock=lambda: NOW) if session_secret else None
    container = APIContainer(config=config, verifier=verifier, sessions=sessions)

    monkeypatch.setattr("miniapp_auth.api.app.build_container", lambda: container)
    return TestClient(create_api())


@pytest.fixture()
def client(monkeypatch) -> TestClient:
    return build_client(monkeypatch)


def test_verify_success(client) -> None:
    response = client.post(VERIFY_URL, json={"init_data": signed_init_data({"id": 123, "first_name": "Dana"})})

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["verified"] is True
    assert payload["user_id"] == 123
    assert payload["user_data"] == {"id": 123, "first_name": "Dana"}
    assert payload["security_info"] == {"signature_valid": True, "timestamp_valid": True, "age_seconds": 100}
    assert "jwt_token" not in payload


def test_verify_without_auth_date_reports_null_age(client) -> None:
    init_data = sign_init_data({"user": '{"id":5}'}, BOT_TOKEN)

    response = client.post(VERIFY_URL, json={"init_data": init_data})

    assert response.status_code == 200
    assert response.json()["security_info"]["age_seconds"] is None


def test_verify_missing_init_data(client) -> None:
    for body in ({}, {"init_data": ""}, {"init_data": None}, ["init_data"]):
        response = client.post(VERIFY_URL, json=body)
        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Missing init_data"}


def test_verify_invalid_signature(client) -> None:
    init_data = signed_init_data({"id": 123}, token="654321:other-token")

    response = client.post(VERIFY_URL, json={"init_data": init_data})

    assert response.status_code == 401
    assert response.json() == {
        "success": False,
        "error": "Invalid Telegram authentication signature",
        "security_alert": True,
    }


def test_verify_expired(client) -> None:
    init_data = signed_init_data({"id": 123}, auth_date=NOW - 500)

    response = client.post(VERIFY_URL, json={"init_data": init_data})

    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Authentication data expired", "age_seconds": 500}


@pytest.mark.parametrize(
    ("init_data", "reason"),
    [
        (urlencode({"user": '{"id":1}', "auth_date": str(AUTH_DATE)}), "missing_hash"),
        (signed_init_data(None), "missing_user"),
        (signed_init_data("{broken"), "malformed_json"),
    ],
)
def test_verify_client_input_errors(client, init_data, reason) -> None:
    response = client.post(VERIFY_URL, json={"init_data": init_data})

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid initData format", "reason": reason}


def test_verify_without_bot_token(monkeypatch) -> None:
    client = build_client(monkeypatch, bot_token=None)

    response = client.post(VERIFY_URL, json={"init_data": signed_init_data({"id": 1})})

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Server configuration error"}


def test_verify_unparseable_body(client) -> None:
    response = client.post(VERIFY_URL, content=b"{not json", headers={"Content-Type": "application/json"})

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Internal server error"}


def test_verify_only_accepts_post(client) -> None:
    assert client.get(VERIFY_URL).status_code == 405


def test_cors_preflight(client) -> None:
    response = client.options(
        VERIFY_URL,
        headers={
            "Origin": "https://web.telegram.org",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "content-type, apikey",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
    assert "POST" in response.headers["access-control-allow-methods"]


def test_session_token_issued_and_accepted(monkeypatch) -> None:
    client = build_client(monkeypatch, session_secret="session-secret")

    response = client.post(VERIFY_URL, json={"init_data": signed_init_data({"id": 321, "first_name": "Noa"})})
    payload = response.json()

    assert response.status_code == 200
    assert payload["expires_at"] == NOW + 24 * 60 * 60

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {payload['jwt_token']}"})
    assert me.status_code == 200
    assert me.json() == {"user_id": 321, "first_name": "Noa", "username": None, "auth_method": "session"}


def test_session_token_rejected_when_invalid(monkeypatch) -> None:
    client = build_client(monkeypatch, session_secret="session-secret")

    response = client.get("/api/auth/me", headers={"Authorization": "Bearer forged"})

    assert response.status_code == 401


def test_me_with_init_data_header(client) -> None:
    init_data = signed_init_data({"id": 9, "first_name": "Ira", "username": "ira"})

    response = client.get("/api/auth/me", headers={"Telegram-Init-Data": init_data})

    assert response.status_code == 200
    assert response.json() == {"user_id": 9, "first_name": "Ira", "username": "ira", "auth_method": "init_data"}


def test_me_rejects_missing_or_invalid_credentials(client) -> None:
    assert client.get("/api/auth/me").status_code == 401

    tampered = signed_init_data({"id": 9}).replace("query_id=", "query_id=x")
    response = client.get("/api/auth/me", headers={"Telegram-Init-Data": tampered})
    assert response.status_code == 401
    assert "invalid_signature" in response.json()["detail"]


def test_healthcheck(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.parametrize(
    ("fields", "reason"),
    [
        ({"user": '{"id":1}', "auth_date": "yesterday"}, "malformed_auth_date"),
        ({"user": '{"id":1}'}, "missing_auth_date"),
    ],
)
def test_verify_auth_date_errors(monkeypatch, fields, reason) -> None:
    config = AppConfig(environment="test", log_level="INFO", telegram_bot_token=BOT_TOKEN)
    verifier = InitDataVerifier(BOT_TOKEN, require_auth_date=True, clock=lambda: NOW)
    container = APIContainer(config=config, verifier=verifier)
    monkeypatch.setattr("miniapp_auth.api.app.build_container", lambda: container)
    client = TestClient(create_api())

    response = client.post(VERIFY_URL, json={"init_data": sign_init_data(fields, BOT_TOKEN)})

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid initData format", "reason": reason}


def test_plain_options_request(client) -> None:
    response = client.options(VERIFY_URL)

    assert response.status_code == 204
    assert response.content == b""
