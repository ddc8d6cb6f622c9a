"""Pydantic models for API request and response payloads."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class VerifyInitDataRequest(BaseModel):
    """Body of the initData verification request."""

    init_data: str | None = None


class SecurityInfoModel(BaseModel):
    """Which checks passed for a verified initData."""

    signature_valid: bool
    timestamp_valid: bool
    age_seconds: float | None = None


class VerifyInitDataResponse(BaseModel):
    """Successful verification payload."""

    success: bool = True
    verified: bool = True
    user_id: int
    user_data: dict[str, Any]
    security_info: SecurityInfoModel
    jwt_token: str | None = Field(default=None, description="Session token, when sessions are enabled")
    expires_at: int | None = None


class ErrorResponse(BaseModel):
    """Failure payload shared by every error status."""

    success: bool = False
    error: str
    reason: str | None = None
    security_alert: bool | None = None
    age_seconds: float | None = None


class CurrentUserModel(BaseModel):
    """The authenticated caller."""

    user_id: int
    first_name: str | None = None
    username: str | None = None
    auth_method: str
