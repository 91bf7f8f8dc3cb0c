from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import text

from .database import SessionLocal
from .errors import InvalidAnswer, NotFound
from .services.events import log_session_event, transition_event_type
from .services.state_machine import ACTIVE, COMPLETED
from .survey_repo import SURVEY_COLUMNS, normalize_session, normalize_survey

logger = logging.getLogger(__name__)


def get_session(session_id: str) -> dict[str, Any] | None:
    with SessionLocal() as db:
        row = db.execute(text("SELECT * FROM live_session WHERE id=CAST(:id AS uuid)"), {"id": session_id}).mappings().first()
    return normalize_session(row) if row else None


def get_session_with_survey(session_id: str) -> dict[str, Any] | None:
    """Return ``{"session": ..., "survey": ...}``; ``survey`` is None if it was deleted."""
    with SessionLocal() as db:
        session_row = db.execute(text("SELECT * FROM live_session WHERE id=CAST(:id AS uuid)"), {"id": session_id}).mappings().first()
        if not session_row:
            return None
        survey_row = db.execute(
            text(f"SELECT {SURVEY_COLUMNS} FROM survey WHERE id=:survey_id"),
            {"survey_id": session_row["survey_id"]},
        ).mappings().first()
    return {
        "session": normalize_session(session_row),
        "survey": normalize_survey(survey_row) if survey_row else None,
    }


def apply_transition(before: dict[str, Any], after: dict[str, Any], actor_user_id: str | None = None) -> dict[str, Any] | None:
    """Persist ``after`` only if the stored state still equals ``before``.

    Returns the updated session, or None when another writer moved the session first.
    """
    with SessionLocal() as db:
        row = db.execute(
            text(
                """
                UPDATE live_session
                SET status=:status,
                    current_question_index=:current_question_index,
                    started_at=CASE WHEN :status = 'active' AND started_at IS NULL THEN NOW() ELSE started_at END,
                    completed_at=CASE WHEN :status = 'completed' THEN NOW() ELSE completed_at END,
                    updated_at=NOW()
                WHERE id=CAST(:id AS uuid)
                  AND status=:expected_status
                  AND current_question_index=:expected_index
                  AND :current_question_index >= current_question_index
                RETURNING *
                """
            ),
            {
                "id": before["id"],
                "status": after["status"],
                "current_question_index": int(after["current_question_index"]),
                "expected_status": before["status"],
                "expected_index": int(before["current_question_index"]),
            },
        ).mappings().first()
        if not row:
            return None
        log_session_event(
            db,
            session_id=str(before["id"]),
            event_type=transition_event_type(before, after),
            actor_user_id=actor_user_id,
            payload={
                "from_status": before["status"],
                "to_status": after["status"],
                "question_index": int(after["current_question_index"]),
            },
        )
        db.commit()
    logger.info(
        "session %s: %s/%s -> %s/%s",
        before["id"],
        before["status"],
        before["current_question_index"],
        after["status"],
        after["current_question_index"],
    )
    return normalize_session(row)


def record_answer(session_id: str, question_index: int, increments: dict[str, int]) -> None:
    """Atomically add ``increments`` to the tally of ``question_index``.

    The session row is share-locked for the duration so a concurrent advance
    cannot slip between the currency check and the increments.
    """
    with SessionLocal() as db:
        row = db.execute(
            text("SELECT status, current_question_index FROM live_session WHERE id=CAST(:id AS uuid) FOR SHARE"),
            {"id": session_id},
        ).mappings().first()
        if not row:
            raise NotFound("Session not found")
        if row["status"] != ACTIVE:
            if row["status"] == COMPLETED:
                raise InvalidAnswer("This session has ended; answers are no longer accepted")
            raise InvalidAnswer("This session has not started yet")
        if int(row["current_question_index"]) != int(question_index):
            raise InvalidAnswer("The presenter has moved on to another question")
        # fixed key order keeps concurrent multi-key upserts from deadlocking
        params = [
            {"session_id": session_id, "question_index": int(question_index), "option_key": key, "amount": int(amount)}
            for key, amount in sorted(increments.items())
        ]
        db.execute(
            text(
                """
                INSERT INTO answer_tally (session_id, question_index, option_key, count)
                VALUES (CAST(:session_id AS uuid), :question_index, :option_key, :amount)
                ON CONFLICT (session_id, question_index, option_key)
                DO UPDATE SET count = answer_tally.count + EXCLUDED.count, updated_at = NOW()
                """
            ),
            params,
        )
        db.commit()


def get_tally(session_id: str, question_index: int) -> dict[str, int]:
    with SessionLocal() as db:
        rows = db.execute(
            text(
                """
                SELECT option_key, count
                FROM answer_tally
                WHERE session_id=CAST(:session_id AS uuid) AND question_index=:question_index
                ORDER BY id
                """
            ),
            {"session_id": session_id, "question_index": int(question_index)},
        ).mappings().all()
    return {str(r["option_key"]): int(r["count"]) for r in rows}


def list_tallies(session_id: str) -> dict[int, dict[str, int]]:
    with SessionLocal() as db:
        rows = db.execute(
            text(
                """
                SELECT question_index, option_key, count
                FROM answer_tally
                WHERE session_id=CAST(:session_id AS uuid)
                ORDER BY question_index, id
                """
            ),
            {"session_id": session_id},
        ).mappings().all()
    out: dict[int, dict[str, int]] = {}
    for r in rows:
        out.setdefault(int(r["question_index"]), {})[str(r["option_key"])] = int(r["count"])
    return out
