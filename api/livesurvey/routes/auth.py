import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from .. import repo as auth_repo
from ..auth.deps import SESSION_COOKIE_NAME, get_current_user
from ..auth.security import create_access_token, hash_password, verify_password
from ..config import (
    ACCESS_TOKEN_TTL_MINUTES,
    DEV_MODE,
    RL_AUTH_LOGIN_LIMIT,
    RL_AUTH_REGISTER_LIMIT,
    RL_WINDOW_SECONDS,
)
from ..database import call_with_retry
from ..http_helpers import normalize_email, sanitize_display_name, validate_registration_input
from ..services.rate_limit import rate_limit_dependency

logger = logging.getLogger(__name__)

router = APIRouter()

RL_AUTH_REGISTER = rate_limit_dependency("auth_register", RL_AUTH_REGISTER_LIMIT, RL_WINDOW_SECONDS)
RL_AUTH_LOGIN = rate_limit_dependency("auth_login", RL_AUTH_LOGIN_LIMIT, RL_WINDOW_SECONDS)


def _issue_token(user: dict[str, Any]) -> dict[str, Any]:
    access_token = create_access_token(user_id=str(user["id"]), email=str(user["email"]), ttl_minutes=ACCESS_TOKEN_TTL_MINUTES)
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "expires_in": ACCESS_TOKEN_TTL_MINUTES * 60,
    }


def _is_bearer_mode(request: Request) -> bool:
    """API clients without a cookie jar ask for the token in the body."""
    return str(request.headers.get("X-Auth-Mode") or "").strip().lower() == "bearer"


def _set_session_cookie(response: Response, access_token: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=access_token,
        httponly=True,
        secure=not DEV_MODE,
        samesite="lax",
        path="/",
        max_age=ACCESS_TOKEN_TTL_MINUTES * 60,
    )


def _clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=SESSION_COOKIE_NAME, path="/")


def _user_body(user: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": str(user["id"]),
        "email": str(user["email"]),
        "display_name": user.get("display_name"),
    }


@router.post("/register", status_code=201)
def auth_register(payload: dict[str, Any], request: Request, response: Response, _: None = RL_AUTH_REGISTER) -> dict[str, Any]:
    email, password = validate_registration_input(str(payload.get("email", "")), str(payload.get("password", "")))
    display_name = sanitize_display_name(payload.get("display_name"))

    if call_with_retry(auth_repo.get_user_by_email, email):
        raise HTTPException(status_code=409, detail="Email already registered")
    # a retried insert that had committed would read back as a duplicate
    created = call_with_retry(
        auth_repo.create_user,
        email=email,
        password_hash=hash_password(password),
        display_name=display_name,
        attempts=1,
    )
    if not created:
        raise HTTPException(status_code=409, detail="Email already registered")

    logger.info("registered presenter user_id=%s", created["id"])
    tokens = _issue_token(created)
    _set_session_cookie(response, tokens["access_token"])
    if _is_bearer_mode(request):
        return tokens
    return _user_body(created)


@router.post("/login")
def auth_login(payload: dict[str, Any], request: Request, response: Response, _: None = RL_AUTH_LOGIN) -> dict[str, Any]:
    email = normalize_email(str(payload.get("email", "")))
    password = str(payload.get("password", ""))
    if not email:
        raise HTTPException(status_code=400, detail="email required")
    if "\x00" in email:
        raise HTTPException(status_code=401, detail="Invalid credentials")

    user = call_with_retry(auth_repo.get_user_by_email, email)
    if not user or not verify_password(password, str(user["password_hash"])):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    call_with_retry(auth_repo.update_last_login, str(user["id"]))
    tokens = _issue_token(user)
    _set_session_cookie(response, tokens["access_token"])
    if _is_bearer_mode(request):
        return tokens
    return _user_body(user)


@router.post("/logout")
def auth_logout(response: Response, current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    _clear_session_cookie(response)
    return {"message": "Logged out"}


@router.get("/me")
def auth_me(current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    return _user_body(current_user)
