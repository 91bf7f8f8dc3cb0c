import json
import uuid
from typing import Any

from sqlalchemy import text

SESSION_EVENT_TYPES = {
    "survey_created",
    "survey_updated",
    "session_started",
    "question_advanced",
    "session_completed",
}


def log_session_event(
    db,
    *,
    session_id: str,
    event_type: str,
    payload: dict[str, Any] | None = None,
    actor_user_id: str | None = None,
) -> None:
    if event_type not in SESSION_EVENT_TYPES:
        raise ValueError(f"Unknown session event type '{event_type}'")
    payload = payload or {}
    db.execute(
        text(
            """
            INSERT INTO session_event (id, session_id, actor_user_id, event_type, payload)
            VALUES (:id, CAST(:session_id AS uuid), CAST(NULLIF(:actor_user_id, '') AS uuid), :event_type, CAST(:payload AS jsonb))
            """
        ),
        {
            "id": str(uuid.uuid4()),
            "session_id": session_id,
            "actor_user_id": actor_user_id or "",
            "event_type": event_type,
            "payload": json.dumps(payload),
        },
    )


def transition_event_type(before: dict[str, Any], after: dict[str, Any]) -> str:
    if before.get("status") == "waiting":
        return "session_started"
    if after.get("status") == "completed":
        return "session_completed"
    return "question_advanced"
