"""Tests for the command line utilities."""

from __future__ import annotations

import json

import pytest

from miniapp_auth.cli.main import main

BOT_TOKEN = "123456:ABC-DEF1234ghIkl-zyx57W2v1u123ew11"


@pytest.fixture(autouse=True)
def bot_env(monkeypatch) -> None:
    monkeypatch.setattr("miniapp_auth.config._ENV_LOADED", True)
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", BOT_TOKEN)
    for key in ("INIT_DATA_MAX_AGE", "INIT_DATA_CLOCK_SKEW", "INIT_DATA_KEY_SCHEME", "INIT_DATA_REQUIRE_AUTH_DATE"):
        monkeypatch.delenv(key, raising=False)


def test_sign_then_verify(capsys) -> None:
    assert main(["sign", "--user-id", "7", "--first-name", "Dana", "--username", "dana"]) == 0
    init_data = capsys.readouterr().out.strip().splitlines()[-1]

    assert main(["verify", init_data]) == 0
    payload = json.loads(capsys.readouterr().out.strip().splitlines()[-1])

    assert payload["verified"] is True
    assert payload["user_id"] == 7
    assert payload["user_data"] == {"id": 7, "first_name": "Dana", "username": "dana"}


def test_verify_reports_failure_reason(capsys) -> None:
    main(["sign", "--user-id", "7"])
    init_data = capsys.readouterr().out.strip().splitlines()[-1]

    assert main(["verify", init_data.replace("auth_date=", "auth_date=1")]) == 1
    payload = json.loads(capsys.readouterr().out.strip().splitlines()[-1])

    assert payload == {
        "verified": False,
        "reason": "invalid_signature",
        "detail": "Invalid hash: initData may have been tampered with",
    }


def test_verify_reports_expired_age(capsys) -> None:
    main(["sign", "--user-id", "7", "--auth-date", "1000"])
    init_data = capsys.readouterr().out.strip().splitlines()[-1]

    assert main(["verify", init_data]) == 1
    payload = json.loads(capsys.readouterr().out.strip().splitlines()[-1])

    assert payload["reason"] == "expired"
    assert payload["age_seconds"] > 300


def test_commands_require_bot_token(monkeypatch) -> None:
    monkeypatch.delenv("TELEGRAM_BOT_TOKEN")

    with pytest.raises(SystemExit):
        main(["sign", "--user-id", "1"])
