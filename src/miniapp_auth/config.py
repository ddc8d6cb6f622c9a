"""Application configuration helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from .services.init_data import DEFAULT_CLOCK_SKEW_SECONDS, DEFAULT_MAX_AGE_SECONDS, KeyScheme
from .services.sessions import DEFAULT_SESSION_TTL_SECONDS

_ENV_LOADED = False
_TRUE_VALUES = {"1", "true", "yes", "on"}


def _ensure_env_loaded() -> None:
    """Load environment variables from a .env file once per process."""
    global _ENV_LOADED
    if _ENV_LOADED:
        return
    load_dotenv(interpolate=False)
    _ENV_LOADED = True


@dataclass(frozen=True)
class AppConfig:
    """Configuration values loaded from environment variables."""

    environment: str
    log_level: str
    telegram_bot_token: str | None = field(default=None, repr=False)
    init_data_max_age: int = DEFAULT_MAX_AGE_SECONDS
    init_data_clock_skew: int = DEFAULT_CLOCK_SKEW_SECONDS
    init_data_require_auth_date: bool = False
    init_data_key_scheme: KeyScheme = KeyScheme.SHA256_TOKEN
    session_secret: str | None = field(default=None, repr=False)
    session_ttl: int = DEFAULT_SESSION_TTL_SECONDS
    cors_allow_origins: tuple[str, ...] = ("*",)
    loki_url: str | None = None
    loki_labels: dict[str, str] = field(default_factory=dict)

    @classmethod
    def load(cls) -> "AppConfig":
        """Load configuration values from the environment.

        A missing TELEGRAM_BOT_TOKEN is allowed here; the verification endpoint
        reports it per request as a server configuration error.
        """
        _ensure_env_loaded()

        scheme_name = os.getenv("INIT_DATA_KEY_SCHEME", KeyScheme.SHA256_TOKEN.value).strip().lower()
        try:
            key_scheme = KeyScheme(scheme_name)
        except ValueError as exc:
            choices = ", ".join(scheme.value for scheme in KeyScheme)
            raise RuntimeError(f"INIT_DATA_KEY_SCHEME must be one of: {choices}") from exc

        return cls(
            environment=os.getenv("APP_ENV", "development"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN") or None,
            init_data_max_age=_int_env("INIT_DATA_MAX_AGE", DEFAULT_MAX_AGE_SECONDS),
            init_data_clock_skew=_int_env("INIT_DATA_CLOCK_SKEW", DEFAULT_CLOCK_SKEW_SECONDS),
            init_data_require_auth_date=_bool_env("INIT_DATA_REQUIRE_AUTH_DATE", False),
            init_data_key_scheme=key_scheme,
            session_secret=os.getenv("SESSION_SECRET") or None,
            session_ttl=_int_env("SESSION_TTL", DEFAULT_SESSION_TTL_SECONDS),
            cors_allow_origins=_csv_env("CORS_ALLOW_ORIGINS", ("*",)),
            loki_url=os.getenv("LOKI_URL") or None,
            loki_labels=_parse_labels(os.getenv("LOKI_LABELS", "")),
        )


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc
    if value < 0:
        raise RuntimeError(f"{name} must not be negative")
    return value


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _csv_env(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if not raw:
        return default
    values = tuple(item.strip() for item in raw.split(",") if item.strip())
    return values or default


def _parse_labels(raw: str) -> dict[str, str]:
    """Parse ``key=value,key=value`` into a label dictionary."""
    labels: dict[str, str] = {}
    for chunk in raw.split(","):
        key, sep, value = chunk.partition("=")
        if sep and key.strip():
            labels[key.strip()] = value.strip()
    return labels
