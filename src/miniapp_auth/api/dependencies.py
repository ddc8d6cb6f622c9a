"""Dependency providers for the FastAPI application."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Header, HTTPException, status

from ..config import AppConfig
from ..logger_factory import get_logger
from ..services.init_data import InitDataError, InitDataVerifier
from ..services.sessions import SessionError, SessionIssuer

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuthenticatedUser:
    """Identity of a caller resolved by one of the supported auth methods."""

    user_id: int
    first_name: str | None
    username: str | None
    auth_method: str


@dataclass
class APIContainer:
    """Aggregate application services shared by the HTTP API."""

    config: AppConfig
    verifier: InitDataVerifier | None
    sessions: SessionIssuer | None = None


_CONTAINER: APIContainer | None = None


def build_verifier(config: AppConfig) -> InitDataVerifier | None:
    """Create the initData verifier, or None when no bot token is configured."""
    if not config.telegram_bot_token:
        logger.warning("TELEGRAM_BOT_TOKEN is not set; initData verification will fail with 500")
        return None
    return InitDataVerifier(
        config.telegram_bot_token,
        max_age_seconds=config.init_data_max_age,
        clock_skew_seconds=config.init_data_clock_skew,
        require_auth_date=config.init_data_require_auth_date,
        scheme=config.init_data_key_scheme,
    )


def build_container(config: AppConfig | None = None) -> APIContainer:
    """Compose the service container for the API runtime."""
    config = config or AppConfig.load()
    sessions = None
    if config.session_secret:
        sessions = SessionIssuer(config.session_secret, ttl_seconds=config.session_ttl)
    return APIContainer(config=config, verifier=build_verifier(config), sessions=sessions)


def set_container(container: APIContainer) -> None:
    """Set the global container reference for dependency lookup."""
    global _CONTAINER
    _CONTAINER = container


def get_container() -> APIContainer:
    """Return the configured container instance."""
    if _CONTAINER is None:  # pragma: no cover - set by create_api()
        raise RuntimeError("API container has not been initialised.")
    return _CONTAINER


def get_authenticated_user(
    authorization: str | None = Header(default=None),
    telegram_init_data: str | None = Header(default=None, alias="Telegram-Init-Data"),
) -> AuthenticatedUser:
    """
    Authenticate the caller via a session token or Telegram WebApp initData.

    A ``Bearer`` session token is preferred when sessions are enabled;
    otherwise the signed ``Telegram-Init-Data`` header is verified directly.

    Raises:
        HTTPException: 401 if no credential is present or it fails verification
    """
    container = get_container()

    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() == "bearer" and token.strip() and container.sessions is not None:
        try:
            claims = container.sessions.decode(token.strip())
        except SessionError as exc:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"Invalid session token: {exc}",
            ) from exc
        return AuthenticatedUser(
            user_id=claims.user_id,
            first_name=claims.first_name,
            username=None,
            auth_method="session",
        )

    if not telegram_init_data:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Telegram-Init-Data header or bearer session token is required",
        )

    if container.verifier is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server configuration error",
        )

    try:
        user = container.verifier.authenticate(telegram_init_data)
    except InitDataError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid Telegram authentication: {exc.reason.value}",
        ) from exc

    return AuthenticatedUser(
        user_id=user.id,
        first_name=user.first_name,
        username=user.username,
        auth_method="init_data",
    )
