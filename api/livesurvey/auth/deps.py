"""
Authentication dependencies for presenter routes.

The access token is read from the httpOnly session cookie first and from an
``Authorization: Bearer`` header second. Participant routes take no auth.
"""

import logging
import uuid
from typing import Any

from fastapi import Cookie, Header, HTTPException
from pydantic import BaseModel

from .. import repo
from ..config import DEV_MODE
from ..database import call_with_retry
from .security import decode_access_token

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "livesurvey_session"


class AuthErrorDetail(BaseModel):
    message: str = "unauthorized"
    reason: str
    trace_id: str


class AuthError(Exception):
    """Raised when a credential is present but unusable."""

    def __init__(self, reason: str, detail: str = "unauthorized"):
        self.reason = reason
        self.detail = detail
        self.trace_id = str(uuid.uuid4())
        super().__init__(detail)


def _unauthorized(message: str, reason: str, trace_id: str, status_code: int = 401) -> HTTPException:
    if DEV_MODE:
        detail: dict[str, Any] = AuthErrorDetail(message=message, reason=reason, trace_id=trace_id).model_dump()
    else:
        detail = {"message": message, "trace_id": trace_id}
    return HTTPException(status_code=status_code, detail=detail)


def _log_auth_failure(
    reason: str,
    trace_id: str,
    token_prefix: str | None = None,
    auth_source: str | None = None,
    payload: dict[str, Any] | None = None,
) -> None:
    logger.warning(
        "[AUTH_FAILURE] trace_id=%s reason=%s source=%s token_prefix=%s token_user_id=%s",
        trace_id,
        reason,
        auth_source,
        token_prefix,
        payload.get("sub") if payload else None,
    )


def _extract_bearer(authorization: str | None) -> str:
    if not authorization:
        raise AuthError(reason="missing_token", detail="Missing Authorization header")
    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise AuthError(reason="malformed_token", detail="Invalid Authorization header")
    return parts[1].strip()


def _validate_token_and_get_user(token: str, trace_id: str, auth_source: str) -> dict[str, Any]:
    token_prefix = token[:8] + "..." if len(token) > 8 else token

    try:
        payload = decode_access_token(token)
    except HTTPException as e:
        reason = "token_expired" if "expired" in str(e.detail).lower() else "signature_invalid"
        _log_auth_failure(reason, trace_id, token_prefix, auth_source)
        raise _unauthorized("unauthorized", reason, trace_id)

    user_id = str(payload.get("sub", ""))
    if not user_id:
        _log_auth_failure("token_missing_subject", trace_id, token_prefix, auth_source, payload)
        raise _unauthorized("unauthorized", "token_missing_subject", trace_id)

    user = call_with_retry(repo.get_user_by_id, user_id)
    if not user:
        _log_auth_failure("token_user_not_found", trace_id, token_prefix, auth_source, payload)
        raise _unauthorized("unauthorized", "token_user_not_found", trace_id)

    logger.debug("[auth] user_id=%s authenticated via %s", user_id, auth_source)
    return {
        "id": str(user["id"]),
        "email": user["email"],
        "display_name": user.get("display_name"),
    }


def get_current_user(
    session_token: str | None = Cookie(default=None, alias=SESSION_COOKIE_NAME),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, Any]:
    trace_id = str(uuid.uuid4())

    if session_token:
        return _validate_token_and_get_user(session_token, trace_id, "cookie")

    if authorization:
        try:
            token = _extract_bearer(authorization)
        except AuthError as e:
            _log_auth_failure(e.reason, e.trace_id, auth_source="bearer")
            raise _unauthorized(e.detail, e.reason, e.trace_id)
        return _validate_token_and_get_user(token, trace_id, "bearer")

    _log_auth_failure("missing_token", trace_id, auth_source="none")
    raise _unauthorized("Authentication required", "missing_token", trace_id)
