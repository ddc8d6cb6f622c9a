"""Session tokens issued after a successful initData verification."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from jose import JWTError, jwt

from ..logger_factory import get_logger
from .init_data import TelegramUser

logger = get_logger(__name__)

DEFAULT_SESSION_TTL_SECONDS = 24 * 60 * 60
DEFAULT_REFRESH_MARGIN_SECONDS = 5 * 60


class SessionError(Exception):
    """Raised when a session token cannot be trusted."""


@dataclass(frozen=True)
class SessionClaims:
    """Claims carried by a session token."""

    user_id: int
    telegram_id: int
    first_name: Optional[str]
    issued_at: int
    expires_at: int


@dataclass(frozen=True)
class AuthSession:
    """
    A session token together with its lifetime.

    Callers own this value (per request or per client) and decide when to
    refresh it; nothing here is shared between users.
    """

    token: str
    user_id: int
    issued_at: int
    expires_at: int
    refresh_margin_seconds: int = DEFAULT_REFRESH_MARGIN_SECONDS

    @property
    def refresh_at(self) -> int:
        """Unix time after which the token should be replaced."""
        return max(self.issued_at, self.expires_at - self.refresh_margin_seconds)

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def refresh_due(self, now: float) -> bool:
        return now >= self.refresh_at


class SessionIssuer:
    """Sign and decode HS256 session tokens."""

    def __init__(
        self,
        secret: str,
        *,
        ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS,
        algorithm: str = "HS256",
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret:
            raise ValueError("Session secret must not be empty")
        self._secret = secret
        self.ttl_seconds = ttl_seconds
        self.algorithm = algorithm
        self._clock = clock

    def __repr__(self) -> str:
        return f"SessionIssuer(ttl_seconds={self.ttl_seconds}, algorithm={self.algorithm})"

    def issue(self, user: TelegramUser) -> AuthSession:
        """Create a session token for a verified Telegram user."""
        issued_at = int(self._clock())
        expires_at = issued_at + self.ttl_seconds
        payload: dict[str, Any] = {
            "sub": str(user.id),
            "user_id": user.id,
            "telegram_id": user.id,
            "first_name": user.first_name,
            "iat": issued_at,
            "exp": expires_at,
        }
        token = jwt.encode(payload, self._secret, algorithm=self.algorithm)
        logger.debug("Issued session token for user %s (expires_at=%s)", user.id, expires_at)
        return AuthSession(token=token, user_id=user.id, issued_at=issued_at, expires_at=expires_at)

    def decode(self, token: str) -> SessionClaims:
        """
        Validate a session token and return its claims.

        Raises:
            SessionError: If the token is malformed, forged or expired
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise SessionError("Invalid session token") from exc

        try:
            claims = SessionClaims(
                user_id=int(payload["user_id"]),
                telegram_id=int(payload["telegram_id"]),
                first_name=payload.get("first_name"),
                issued_at=int(payload["iat"]),
                expires_at=int(payload["exp"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise SessionError("Session token is missing required claims") from exc

        # Expiry is checked against the injected clock rather than jose's wall clock
        if self._clock() >= claims.expires_at:
            raise SessionError("Session token expired")
        return claims
