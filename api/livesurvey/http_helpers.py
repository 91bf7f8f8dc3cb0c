import re

from fastapi import HTTPException

from .config import PUBLIC_BASE_URL

EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
MIN_PASSWORD_LENGTH = 8


def normalize_email(email: str) -> str:
    return email.strip().lower()


def validate_registration_input(email: str, password: str) -> tuple[str, str]:
    e = normalize_email(email)
    if not EMAIL_RE.match(e) or "\x00" in e:
        raise HTTPException(status_code=400, detail="Invalid email format")
    if len(e) > 254:
        raise HTTPException(status_code=400, detail="Email too long")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return e, password


def sanitize_display_name(raw: object) -> str | None:
    if raw is None:
        return None
    name = str(raw).strip() or None
    if name and "\x00" in name:
        raise HTTPException(status_code=400, detail="display_name cannot contain NUL characters")
    if name and len(name) > 80:
        raise HTTPException(status_code=400, detail="display_name must be 80 characters or fewer")
    return name


def join_url(session_id: str) -> str:
    """Link participants open (or scan as a QR code) to join a session."""
    return f"{PUBLIC_BASE_URL}/join/{session_id}"
