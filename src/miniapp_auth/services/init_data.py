"""
Telegram Mini App initData verification.

Checks that an initData string was signed for the configured bot and that
its ``auth_date`` is still inside the freshness window, then extracts the
embedded Telegram user.

Reference: https://core.telegram.org/bots/webapps#validating-data-received-via-the-mini-app
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Mapping, Optional, Union
from urllib.parse import parse_qsl, urlencode

from pydantic import BaseModel, ConfigDict, StrictInt, ValidationError

from ..logger_factory import get_logger

logger = get_logger(__name__)
security_logger = get_logger("miniapp_auth.security")

DEFAULT_MAX_AGE_SECONDS = 300
DEFAULT_CLOCK_SKEW_SECONDS = 5
WEB_APP_DATA = b"WebAppData"


class KeyScheme(str, Enum):
    """How the signing key is derived from the bot secret."""

    SHA256_TOKEN = "sha256"  # HMAC(key=SHA256(secret), msg="WebAppData")
    WEB_APP_DATA = "webappdata"  # HMAC(key="WebAppData", msg=secret)


class FailureReason(str, Enum):
    """Why an initData string was rejected."""

    MISSING_HASH = "missing_hash"
    MISSING_USER = "missing_user"
    INVALID_SIGNATURE = "invalid_signature"
    EXPIRED = "expired"
    MALFORMED_JSON = "malformed_json"
    MISSING_AUTH_DATE = "missing_auth_date"
    MALFORMED_AUTH_DATE = "malformed_auth_date"


class TelegramUser(BaseModel):
    """Validated Telegram user data from initData."""

    model_config = ConfigDict(extra="allow", frozen=True)

    id: StrictInt
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None
    language_code: Optional[str] = None
    is_premium: Optional[bool] = None
    photo_url: Optional[str] = None


@dataclass(frozen=True)
class VerificationSuccess:
    """initData passed the signature and freshness checks."""

    user_id: int
    user: TelegramUser
    age_seconds: Optional[float]
    fields: Mapping[str, str] = field(default_factory=dict)

    @property
    def verified(self) -> bool:
        return True


@dataclass(frozen=True)
class VerificationFailure:
    """initData was rejected; ``age_seconds`` is set for freshness failures."""

    reason: FailureReason
    age_seconds: Optional[float] = None
    detail: str = ""

    @property
    def verified(self) -> bool:
        return False


VerificationResult = Union[VerificationSuccess, VerificationFailure]


class InitDataError(Exception):
    """Raised by :meth:`InitDataVerifier.authenticate` when verification fails."""

    def __init__(self, reason: FailureReason, detail: str = "", age_seconds: Optional[float] = None) -> None:
        super().__init__(detail or reason.value)
        self.reason = reason
        self.detail = detail
        self.age_seconds = age_seconds


def build_data_check_string(pairs: Iterable[tuple[str, str]]) -> str:
    """Sort ``key=value`` pairs by key and join them with newlines.

    ``hash`` entries are excluded. The sort is stable so repeated keys keep
    their original relative order.
    """
    items = sorted((item for item in pairs if item[0] != "hash"), key=lambda item: item[0])
    return "\n".join(f"{key}={value}" for key, value in items)


def derive_secret_key(bot_secret: str, scheme: KeyScheme = KeyScheme.SHA256_TOKEN) -> bytes:
    """Derive the 32-byte key used to sign the data-check string."""
    if scheme is KeyScheme.WEB_APP_DATA:
        return hmac.new(key=WEB_APP_DATA, msg=bot_secret.encode(), digestmod=hashlib.sha256).digest()

    token_digest = hashlib.sha256(bot_secret.encode()).digest()
    return hmac.new(key=token_digest, msg=WEB_APP_DATA, digestmod=hashlib.sha256).digest()


def compute_signature(
    data_check_string: str,
    bot_secret: str,
    scheme: KeyScheme = KeyScheme.SHA256_TOKEN,
) -> str:
    """Return the lowercase hex HMAC-SHA256 of ``data_check_string``."""
    return hmac.new(
        key=derive_secret_key(bot_secret, scheme),
        msg=data_check_string.encode(),
        digestmod=hashlib.sha256,
    ).hexdigest()


def sign_init_data(
    fields: Mapping[str, str],
    bot_secret: str,
    scheme: KeyScheme = KeyScheme.SHA256_TOKEN,
) -> str:
    """
    Produce a signed initData string from plain field values.

    Useful for local development and tests; a real Telegram client signs
    initData on Telegram's side.

    Example:
        >>> sign_init_data({"auth_date": "1700000000", "user": '{"id":1}'}, "123:ABC")
        'auth_date=1700000000&user=%7B%22id%22%3A1%7D&hash=...'
    """
    pairs = [(key, value) for key, value in fields.items() if key != "hash"]
    signature = compute_signature(build_data_check_string(pairs), bot_secret, scheme)
    return urlencode([*pairs, ("hash", signature)])


def _signatures_match(expected: str, received: str) -> bool:
    # compare_digest on str rejects non-ASCII input, so compare bytes instead
    return hmac.compare_digest(expected.encode(), received.lower().encode("utf-8"))


def verify_init_data(
    init_data: str,
    bot_secret: str,
    max_age_seconds: float = DEFAULT_MAX_AGE_SECONDS,
    *,
    clock_skew_seconds: float = DEFAULT_CLOCK_SKEW_SECONDS,
    require_auth_date: bool = False,
    scheme: KeyScheme = KeyScheme.SHA256_TOKEN,
    clock: Callable[[], float] = time.time,
) -> VerificationResult:
    """
    Verify a Telegram WebApp initData string.

    Args:
        init_data: The raw initData string from window.Telegram.WebApp.initData
        bot_secret: The bot token the Mini App belongs to
        max_age_seconds: Maximum accepted age of ``auth_date``
        clock_skew_seconds: How far in the future ``auth_date`` may be
        require_auth_date: Reject initData without ``auth_date`` instead of
            skipping the freshness check
        scheme: Signing key derivation
        clock: Source of the current Unix time

    Returns:
        VerificationSuccess or VerificationFailure. Never raises for bad input.
    """
    pairs = parse_qsl(init_data or "", keep_blank_values=True)

    hashes = [value for key, value in pairs if key == "hash"]
    if not hashes or not hashes[0]:
        logger.warning("Rejected initData without hash (potential non-Telegram caller)")
        return VerificationFailure(FailureReason.MISSING_HASH, detail="Missing hash in initData")

    data_check_string = build_data_check_string(pairs)
    expected_hash = compute_signature(data_check_string, bot_secret, scheme)
    if not _signatures_match(expected_hash, hashes[0]):
        security_logger.warning(
            "SECURITY: initData signature mismatch (fields=%s)",
            sorted({key for key, _ in pairs}),
        )
        return VerificationFailure(
            FailureReason.INVALID_SIGNATURE,
            detail="Invalid hash: initData may have been tampered with",
        )

    # Nothing below runs on unsigned data
    fields: dict[str, str] = {}
    for key, value in pairs:
        if key != "hash":
            fields.setdefault(key, value)

    age_seconds: Optional[float] = None
    raw_auth_date = fields.get("auth_date")
    if raw_auth_date is None:
        if require_auth_date:
            logger.warning("Rejected signed initData without auth_date")
            return VerificationFailure(FailureReason.MISSING_AUTH_DATE, detail="Missing auth_date in initData")
    else:
        try:
            auth_date = int(raw_auth_date)
        except ValueError:
            logger.warning("Rejected initData with non-integer auth_date")
            return VerificationFailure(FailureReason.MALFORMED_AUTH_DATE, detail="auth_date is not an integer")

        try:
            age_seconds = clock() - auth_date
        except OverflowError:
            logger.warning("Rejected initData with out-of-range auth_date")
            return VerificationFailure(FailureReason.MALFORMED_AUTH_DATE, detail="auth_date is out of range")
        if age_seconds > max_age_seconds or age_seconds < -clock_skew_seconds:
            logger.info("Rejected stale initData (age=%.1fs, max=%ss)", age_seconds, max_age_seconds)
            return VerificationFailure(
                FailureReason.EXPIRED,
                age_seconds=age_seconds,
                detail="auth_date is outside the freshness window",
            )

    user_json = fields.get("user")
    if not user_json:
        logger.warning("Rejected initData without user (potential non-Telegram caller)")
        return VerificationFailure(FailureReason.MISSING_USER, detail="Missing user data in initData")

    try:
        user = TelegramUser.model_validate(json.loads(user_json))
    except (json.JSONDecodeError, RecursionError):
        logger.warning("Rejected initData with undecodable user JSON")
        return VerificationFailure(FailureReason.MALFORMED_JSON, detail="Invalid user JSON in initData")
    except ValidationError:
        logger.warning("Rejected initData with invalid user object")
        return VerificationFailure(FailureReason.MALFORMED_JSON, detail="User data must be an object with an integer id")

    logger.debug("Verified initData for user %s (age=%s)", user.id, age_seconds)
    return VerificationSuccess(user_id=user.id, user=user, age_seconds=age_seconds, fields=fields)


class InitDataVerifier:
    """Verify initData against a bot secret fixed at construction time."""

    def __init__(
        self,
        bot_secret: str,
        *,
        max_age_seconds: float = DEFAULT_MAX_AGE_SECONDS,
        clock_skew_seconds: float = DEFAULT_CLOCK_SKEW_SECONDS,
        require_auth_date: bool = False,
        scheme: KeyScheme = KeyScheme.SHA256_TOKEN,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not bot_secret:
            raise ValueError("bot_secret must not be empty")
        self._bot_secret = bot_secret
        self.max_age_seconds = max_age_seconds
        self.clock_skew_seconds = clock_skew_seconds
        self.require_auth_date = require_auth_date
        self.scheme = scheme
        self._clock = clock

    def __repr__(self) -> str:
        return f"InitDataVerifier(max_age_seconds={self.max_age_seconds}, scheme={self.scheme.value})"

    def verify(self, init_data: str) -> VerificationResult:
        """Verify ``init_data`` and return a typed result."""
        return verify_init_data(
            init_data,
            self._bot_secret,
            self.max_age_seconds,
            clock_skew_seconds=self.clock_skew_seconds,
            require_auth_date=self.require_auth_date,
            scheme=self.scheme,
            clock=self._clock,
        )

    def authenticate(self, init_data: str) -> TelegramUser:
        """
        Verify ``init_data`` and return the embedded user.

        Raises:
            InitDataError: If verification fails for any reason
        """
        result = self.verify(init_data)
        if isinstance(result, VerificationFailure):
            raise InitDataError(result.reason, result.detail, result.age_seconds)
        return result.user

    def sign(self, fields: Mapping[str, str]) -> str:
        """Sign ``fields`` with this verifier's secret and key scheme."""
        return sign_init_data(fields, self._bot_secret, self.scheme)
