"""
FastAPI routes for the star gate.
"""

from __future__ import annotations

import hmac
import logging
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Header, HTTPException

from stargate.dependencies import (
    get_app_settings,
    get_session_service,
    get_star_gate_service,
)
from stargate.models.verification import SessionRecord
from stargate.schemas import (
    ErrorDetail,
    RefreshResponse,
    SignInRequest,
    SignInResponse,
    StarStatusResponse,
)
from stargate.services import ErrorCode, StarGateError
from stargate.services.star_gate import DEFAULT_MESSAGES

router = APIRouter()
logger = logging.getLogger(__name__)


def _http_error(exc: StarGateError) -> HTTPException:
    return HTTPException(
        status_code=exc.status_code,
        detail=ErrorDetail(code=exc.code.value, message=exc.message).model_dump(),
    )


def _not_authenticated() -> HTTPException:
    return HTTPException(
        status_code=HTTPStatus.UNAUTHORIZED,
        detail=ErrorDetail(
            code=ErrorCode.NOT_AUTHENTICATED.value,
            message=DEFAULT_MESSAGES[ErrorCode.NOT_AUTHENTICATED],
        ).model_dump(),
    )


async def get_current_session(
    sessions: Annotated[Any, Depends(get_session_service)],
    authorization: Annotated[str | None, Header()] = None,
) -> SessionRecord:
    """Resolve the caller's session from an ``Authorization: Bearer`` header."""
    scheme, _, token = (authorization or "").partition(" ")
    session = None
    if scheme.lower() == "bearer" and token.strip():
        session = await sessions.get_by_token(token.strip())
    if session is None:
        raise _not_authenticated()
    return session


def require_host_key(
    settings: Annotated[Any, Depends(get_app_settings)],
    x_star_gate_key: Annotated[str | None, Header()] = None,
) -> None:
    """Only the host backend, holding the shared key, may report sign-ins."""
    if not x_star_gate_key or not hmac.compare_digest(
        x_star_gate_key.encode("utf-8"), settings.host_api_key.encode("utf-8")
    ):
        raise _not_authenticated()


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.post(
    "/star-gate/sign-in",
    response_model=SignInResponse,
    status_code=HTTPStatus.CREATED,
    dependencies=[Depends(require_host_key)],
)
async def star_gate_sign_in(
    payload: SignInRequest,
    star_gate: Annotated[Any, Depends(get_star_gate_service)],
) -> SignInResponse:
    """Issue a session for a completed GitHub sign-in if the star gate allows it."""
    try:
        return await star_gate.sign_in(
            user_id=payload.user_id,
            account_id=payload.account_id,
            access_token=payload.access_token,
        )
    except StarGateError as exc:
        logger.info("Sign-in rejected for user %s: %s", payload.user_id, exc)
        raise _http_error(exc) from exc


@router.get(
    "/star-gate/status",
    response_model=StarStatusResponse,
    status_code=HTTPStatus.OK,
)
async def star_gate_status(
    session: Annotated[SessionRecord, Depends(get_current_session)],
    star_gate: Annotated[Any, Depends(get_star_gate_service)],
) -> StarStatusResponse:
    """Return the cached star status, checking GitHub only if the cache lapsed."""
    try:
        return await star_gate.get_status(session.user_id)
    except StarGateError as exc:
        raise _http_error(exc) from exc


@router.post(
    "/star-gate/refresh",
    response_model=RefreshResponse,
    status_code=HTTPStatus.OK,
)
async def refresh_star_gate_status(
    session: Annotated[SessionRecord, Depends(get_current_session)],
    star_gate: Annotated[Any, Depends(get_star_gate_service)],
) -> RefreshResponse:
    """Drop the cached status and ask GitHub again."""
    try:
        result = await star_gate.refresh_status(session.user_id)
    except StarGateError as exc:
        logger.info("Star refresh rejected for user %s: %s", session.user_id, exc)
        raise _http_error(exc) from exc
    if result.error:
        logger.warning(
            "Star refresh for user %s fell back: %s", session.user_id, result.error
        )
    return result


__all__ = ["get_current_session", "require_host_key", "router"]
