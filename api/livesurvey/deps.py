import uuid
from typing import Any

from fastapi import HTTPException

from .errors import NotFound


def parse_resource_id(raw_id: str, kind: str) -> str:
    """Canonicalize a path UUID; anything unparseable cannot exist."""
    try:
        return str(uuid.UUID(str(raw_id).strip()))
    except ValueError:
        raise NotFound(f"{kind.capitalize()} not found")


def require_owner(survey: dict[str, Any] | None, user: dict[str, Any]) -> dict[str, Any]:
    if not survey:
        raise NotFound("Survey not found")
    if str(survey.get("owner_user_id")) != str(user["id"]):
        raise HTTPException(status_code=403, detail="Only the survey owner can do that")
    return survey
