"""Telegram initData verification and session endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from ...logger_factory import get_logger
from ...services.init_data import FailureReason, VerificationFailure
from ..dependencies import AuthenticatedUser, get_authenticated_user, get_container
from ..schemas import (
    CurrentUserModel,
    ErrorResponse,
    SecurityInfoModel,
    VerifyInitDataRequest,
    VerifyInitDataResponse,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _error(status_code: int, error: str, **extra: Any) -> JSONResponse:
    payload = ErrorResponse(error=error, **extra).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=payload)


def _failure_response(failure: VerificationFailure) -> JSONResponse:
    if failure.reason is FailureReason.INVALID_SIGNATURE:
        return _error(
            status.HTTP_401_UNAUTHORIZED,
            "Invalid Telegram authentication signature",
            security_alert=True,
        )
    if failure.reason is FailureReason.EXPIRED:
        return _error(
            status.HTTP_401_UNAUTHORIZED,
            "Authentication data expired",
            age_seconds=failure.age_seconds,
        )
    # Remaining reasons mean the client sent an incomplete or undecodable payload
    return _error(status.HTTP_400_BAD_REQUEST, "Invalid initData format", reason=failure.reason.value)


@router.post(
    "/verify-telegram-init-data",
    response_model=VerifyInitDataResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def verify_telegram_init_data(request: Request) -> Any:
    """Verify Telegram WebApp initData and optionally issue a session token."""
    try:
        try:
            body = VerifyInitDataRequest.model_validate(await request.json())
        except ValidationError:
            body = VerifyInitDataRequest()
        if not body.init_data:
            return _error(status.HTTP_400_BAD_REQUEST, "Missing init_data")

        container = get_container()
        if container.verifier is None:
            logger.error("Telegram bot token is not configured")
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server configuration error")

        result = container.verifier.verify(body.init_data)
        if isinstance(result, VerificationFailure):
            return _failure_response(result)

        response = VerifyInitDataResponse(
            user_id=result.user_id,
            user_data=result.user.model_dump(exclude_none=True),
            security_info=SecurityInfoModel(
                signature_valid=True,
                timestamp_valid=True,
                age_seconds=result.age_seconds,
            ),
        )
        if container.sessions is not None:
            session = container.sessions.issue(result.user)
            response.jwt_token = session.token
            response.expires_at = session.expires_at

        logger.info("Telegram initData verified for user %s", result.user_id)
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content=response.model_dump(exclude_none=True, exclude={"security_info"})
            | {"security_info": response.security_info.model_dump()},
        )
    except Exception:
        logger.exception("Unhandled error while verifying Telegram initData")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


@router.options("/verify-telegram-init-data", include_in_schema=False)
async def verify_telegram_init_data_options() -> Response:
    """Answer plain OPTIONS requests; CORS preflights are handled by the middleware."""
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/me", response_model=CurrentUserModel)
async def current_user(user: AuthenticatedUser = Depends(get_authenticated_user)) -> CurrentUserModel:
    """Return the identity of the authenticated caller."""
    return CurrentUserModel(
        user_id=user.user_id,
        first_name=user.first_name,
        username=user.username,
        auth_method=user.auth_method,
    )
