from __future__ import annotations

import json
import logging
import uuid
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from .database import SessionLocal
from .schemas import Question, dump_questions, parse_questions
from .services.events import log_session_event

logger = logging.getLogger(__name__)

SURVEY_COLUMNS = "id, owner_user_id, title, questions, session_id, creation_key, created_at, updated_at"


def normalize_survey(row: Any) -> dict[str, Any]:
    out = dict(row)
    for key in ("id", "owner_user_id", "session_id"):
        if out.get(key) is not None:
            out[key] = str(out[key])
    out["questions"] = parse_questions(out.get("questions"))
    return out


def normalize_session(row: Any) -> dict[str, Any]:
    out = dict(row)
    for key in ("id", "survey_id"):
        if out.get(key) is not None:
            out[key] = str(out[key])
    out["current_question_index"] = int(out["current_question_index"])
    return out


def get_survey(survey_id: str) -> dict[str, Any] | None:
    with SessionLocal() as db:
        row = db.execute(
            text(f"SELECT {SURVEY_COLUMNS} FROM survey WHERE id=CAST(:id AS uuid)"),
            {"id": survey_id},
        ).mappings().first()
    return normalize_survey(row) if row else None


def _get_created_pair(db, owner_user_id: str, creation_key: str) -> dict[str, Any] | None:
    survey_row = db.execute(
        text(
            f"""
            SELECT {SURVEY_COLUMNS}
            FROM survey
            WHERE owner_user_id=CAST(:owner_user_id AS uuid) AND creation_key=:creation_key
            """
        ),
        {"owner_user_id": owner_user_id, "creation_key": creation_key},
    ).mappings().first()
    if not survey_row:
        return None
    session_row = db.execute(
        text("SELECT * FROM live_session WHERE survey_id=CAST(:survey_id AS uuid) ORDER BY created_at LIMIT 1"),
        {"survey_id": str(survey_row["id"])},
    ).mappings().first()
    return {
        "survey": normalize_survey(survey_row),
        "session": normalize_session(session_row) if session_row else None,
        "created": False,
    }


def create_survey_with_session(
    owner_user_id: str,
    title: str,
    questions: list[Question],
    creation_key: str | None = None,
) -> dict[str, Any]:
    """Create a survey and its waiting session in one transaction.

    A repeated call with the same ``creation_key`` for the same owner returns
    the pair created the first time.
    """
    if creation_key:
        with SessionLocal() as db:
            existing = _get_created_pair(db, owner_user_id, creation_key)
        if existing:
            return existing

    survey_id = str(uuid.uuid4())
    session_id = str(uuid.uuid4())
    try:
        with SessionLocal() as db:
            db.execute(
                text(
                    """
                    INSERT INTO survey (id, owner_user_id, title, questions, session_id, creation_key)
                    VALUES (
                      :id,
                      CAST(:owner_user_id AS uuid),
                      :title,
                      CAST(:questions AS jsonb),
                      CAST(:session_id AS uuid),
                      :creation_key
                    )
                    """
                ),
                {
                    "id": survey_id,
                    "owner_user_id": owner_user_id,
                    "title": title,
                    "questions": json.dumps(dump_questions(questions)),
                    "session_id": session_id,
                    "creation_key": creation_key,
                },
            )
            db.execute(
                text(
                    """
                    INSERT INTO live_session (id, survey_id, status, current_question_index)
                    VALUES (:id, CAST(:survey_id AS uuid), 'waiting', -1)
                    """
                ),
                {"id": session_id, "survey_id": survey_id},
            )
            log_session_event(
                db,
                session_id=session_id,
                event_type="survey_created",
                actor_user_id=owner_user_id,
                payload={"survey_id": survey_id, "question_count": len(questions)},
            )
            db.commit()
    except IntegrityError:
        if not creation_key:
            raise
        # a concurrent retry with the same key committed first
        with SessionLocal() as db:
            existing = _get_created_pair(db, owner_user_id, creation_key)
        if existing:
            return existing
        raise

    logger.info("created survey %s with session %s for owner %s", survey_id, session_id, owner_user_id)
    survey = get_survey(survey_id)
    with SessionLocal() as db:
        session_row = db.execute(text("SELECT * FROM live_session WHERE id=CAST(:id AS uuid)"), {"id": session_id}).mappings().first()
    return {"survey": survey, "session": normalize_session(session_row), "created": True}


def update_survey(survey_id: str, title: str, questions: list[Question], actor_user_id: str | None = None) -> dict[str, Any] | None:
    """Overwrite title and the whole question list."""
    with SessionLocal() as db:
        row = db.execute(
            text(
                f"""
                UPDATE survey
                SET title=:title, questions=CAST(:questions AS jsonb), updated_at=NOW()
                WHERE id=CAST(:id AS uuid)
                RETURNING {SURVEY_COLUMNS}
                """
            ),
            {"id": survey_id, "title": title, "questions": json.dumps(dump_questions(questions))},
        ).mappings().first()
        if not row:
            return None
        if row.get("session_id"):
            log_session_event(
                db,
                session_id=str(row["session_id"]),
                event_type="survey_updated",
                actor_user_id=actor_user_id,
                payload={"survey_id": survey_id, "question_count": len(questions)},
            )
        db.commit()
    return normalize_survey(row)


def list_surveys(owner_user_id: str, *, limit: int, offset: int) -> list[dict[str, Any]]:
    with SessionLocal() as db:
        rows = db.execute(
            text(
                """
                SELECT id, title, session_id, created_at, jsonb_array_length(questions) AS question_count
                FROM survey
                WHERE owner_user_id=CAST(:owner_user_id AS uuid)
                ORDER BY created_at DESC, id DESC
                LIMIT :limit OFFSET :offset
                """
            ),
            {"owner_user_id": owner_user_id, "limit": limit, "offset": offset},
        ).mappings().all()
    out = []
    for row in rows:
        item = dict(row)
        item["id"] = str(item["id"])
        item["session_id"] = str(item["session_id"]) if item.get("session_id") else None
        item["question_count"] = int(item.get("question_count") or 0)
        out.append(item)
    return out


def count_surveys(owner_user_id: str) -> int:
    with SessionLocal() as db:
        value = db.execute(
            text("SELECT COUNT(1) FROM survey WHERE owner_user_id=CAST(:owner_user_id AS uuid)"),
            {"owner_user_id": owner_user_id},
        ).scalar() or 0
    return int(value)
