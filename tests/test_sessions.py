"""Tests for session token issuance."""

from __future__ import annotations

import pytest

from miniapp_auth.services.init_data import TelegramUser
from miniapp_auth.services.sessions import AuthSession, SessionError, SessionIssuer


class FakeClock:
    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_issue_and_decode_round_trip() -> None:
    clock = FakeClock(1_700_000_000)
    issuer = SessionIssuer("session-secret", ttl_seconds=3600, clock=clock)

    session = issuer.issue(TelegramUser(id=42, first_name="Dana"))
    claims = issuer.decode(session.token)

    assert session.user_id == 42
    assert session.issued_at == 1_700_000_000
    assert session.expires_at == 1_700_003_600
    assert claims.user_id == 42
    assert claims.telegram_id == 42
    assert claims.first_name == "Dana"
    assert claims.expires_at == session.expires_at


def test_decode_rejects_expired_token() -> None:
    clock = FakeClock(1_700_000_000)
    issuer = SessionIssuer("session-secret", ttl_seconds=60, clock=clock)
    session = issuer.issue(TelegramUser(id=1))

    clock.now += 60

    with pytest.raises(SessionError, match="expired"):
        issuer.decode(session.token)


def test_decode_rejects_token_signed_with_other_secret() -> None:
    clock = FakeClock(1_700_000_000)
    token = SessionIssuer("other-secret", clock=clock).issue(TelegramUser(id=1)).token

    with pytest.raises(SessionError, match="Invalid session token"):
        SessionIssuer("session-secret", clock=clock).decode(token)


def test_decode_rejects_garbage() -> None:
    with pytest.raises(SessionError):
        SessionIssuer("session-secret").decode("not-a-token")


def test_issuer_requires_secret() -> None:
    with pytest.raises(ValueError):
        SessionIssuer("")

    assert "session-secret" not in repr(SessionIssuer("session-secret"))


def test_auth_session_refresh_window() -> None:
    session = AuthSession(token="t", user_id=1, issued_at=1000, expires_at=4600, refresh_margin_seconds=300)

    assert session.refresh_at == 4300
    assert session.refresh_due(4299) is False
    assert session.refresh_due(4300) is True
    assert session.is_expired(4599) is False
    assert session.is_expired(4600) is True


def test_refresh_never_precedes_issue_time() -> None:
    session = AuthSession(token="t", user_id=1, issued_at=1000, expires_at=1100, refresh_margin_seconds=300)

    assert session.refresh_at == 1000
