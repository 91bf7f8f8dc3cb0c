from __future__ import annotations

from typing import Any

from ..errors import InvalidTransition

WAITING = "waiting"
ACTIVE = "active"
COMPLETED = "completed"
SESSION_STATUSES = (WAITING, ACTIVE, COMPLETED)

NOT_STARTED_INDEX = -1


def start_session(session: dict[str, Any], question_count: int) -> dict[str, Any]:
    status = session.get("status")
    if status != WAITING:
        raise InvalidTransition(f"Cannot start a session that is {status}")
    if question_count < 1:
        raise InvalidTransition("Cannot start a session for a survey without questions")
    return {**session, "status": ACTIVE, "current_question_index": 0}


def advance_session(session: dict[str, Any], question_count: int) -> dict[str, Any]:
    """Move to the next question, or complete the session after the last one.

    On completion the index stays on the last question shown; it is never
    pushed past the end.
    """
    status = session.get("status")
    if status != ACTIVE:
        raise InvalidTransition(f"Cannot advance a session that is {status}")
    current = int(session.get("current_question_index", NOT_STARTED_INDEX))
    next_index = current + 1
    if next_index < question_count:
        return {**session, "current_question_index": next_index}
    return {**session, "status": COMPLETED}


def previous_results_index(session: dict[str, Any]) -> int:
    status = session.get("status")
    if status not in {ACTIVE, COMPLETED}:
        raise InvalidTransition(f"No previous question results while the session is {status}")
    current = int(session.get("current_question_index", NOT_STARTED_INDEX))
    if current <= 0:
        raise InvalidTransition("There is no previous question yet")
    return current - 1


def participant_view(session: dict[str, Any], questions: list[Any]) -> dict[str, Any]:
    """What a participant device renders for the given authoritative session record."""
    status = session.get("status")
    index = int(session.get("current_question_index", NOT_STARTED_INDEX))
    view: dict[str, Any] = {
        "session_id": str(session.get("id")),
        "status": status,
        "current_question_index": index,
        "question_count": len(questions),
        "question": None,
        "notice": None,
    }
    if status == WAITING:
        view["notice"] = "waiting"
    elif status == COMPLETED:
        view["notice"] = "thank_you"
    elif 0 <= index < len(questions):
        view["question"] = questions[index]
    else:
        # survey was edited under a live session and the current index vanished
        view["notice"] = "waiting"
    return view
