"""Domain services: initData verification and session tokens."""

from .init_data import (
    FailureReason,
    InitDataError,
    InitDataVerifier,
    KeyScheme,
    TelegramUser,
    VerificationFailure,
    VerificationResult,
    VerificationSuccess,
    sign_init_data,
    verify_init_data,
)
from .sessions import AuthSession, SessionClaims, SessionError, SessionIssuer

__all__ = [
    "AuthSession",
    "FailureReason",
    "InitDataError",
    "InitDataVerifier",
    "KeyScheme",
    "SessionClaims",
    "SessionError",
    "SessionIssuer",
    "TelegramUser",
    "VerificationFailure",
    "VerificationResult",
    "VerificationSuccess",
    "sign_init_data",
    "verify_init_data",
]
