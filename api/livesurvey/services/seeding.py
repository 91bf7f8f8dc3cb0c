"""Demo data for local development: a presenter, the Lunch Poll, and optionally a played-out session."""

import logging
import random
from typing import Any

from .. import repo, session_repo, survey_repo
from ..auth.security import hash_password
from ..schemas import Question
from .aggregation import tally_increments
from .questions import create_question
from .state_machine import advance_session, start_session
from .survey_validation import validate_survey

logger = logging.getLogger(__name__)

LUNCH_POLL_TITLE = "Lunch Poll"
LUNCH_POLL_CREATION_KEY = "seed-lunch-poll"


def lunch_poll_questions() -> list[Question]:
    return [
        create_question("singleChoice", id="lunch-pick", text="What should we order for lunch?", options=["Pizza", "Sushi", "Salad"]),
        create_question("multipleChoice", id="lunch-diet", text="Any dietary needs?", options=["Vegetarian", "Vegan", "Gluten-free", "None"]),
        create_question("rating", id="lunch-hunger", text="How hungry are you?", min=1, max=5),
        create_question("slider", id="lunch-budget", text="Budget per person", min=5, max=30, step=5),
        create_question("ranking", id="lunch-time", text="Rank the time slots", options=["12:00", "12:30", "13:00"]),
        create_question("freeText", id="lunch-notes", text="Anything else?"),
    ]


def _random_answer(rng: random.Random, question: Question) -> Any:
    qtype = question.type
    if qtype == "singleChoice":
        return rng.choice(question.options)
    if qtype == "multipleChoice":
        return rng.sample(question.options, k=rng.randint(1, len(question.options)))
    if qtype == "ranking":
        return rng.sample(question.options, k=len(question.options))
    if qtype == "rating":
        return rng.randint(question.min, question.max)
    if qtype == "slider":
        return question.min + question.step * rng.randint(0, (question.max - question.min) // question.step)
    return rng.choice(["Extra napkins", "No onions please", "Anything works"])


def _ensure_presenter(email: str, password: str, display_name: str) -> dict[str, Any]:
    user = repo.get_user_by_email(email)
    if user:
        return user
    created = repo.create_user(email=email, password_hash=hash_password(password), display_name=display_name)
    if not created:
        # lost a race with another seeder
        created = repo.get_user_by_email(email)
    return created


def play_session(session: dict[str, Any], questions: list[Question], n_participants: int, rng: random.Random) -> dict[str, Any]:
    """Start the session, answer every question ``n_participants`` times, and finish it."""
    after = start_session(session, len(questions))
    current = session_repo.apply_transition(session, after)
    answers = 0
    while current and current["status"] == "active":
        index = current["current_question_index"]
        for _ in range(n_participants):
            session_repo.record_answer(current["id"], index, tally_increments(questions[index], _random_answer(rng, questions[index])))
            answers += 1
        current = session_repo.apply_transition(current, advance_session(current, len(questions)))
    return {"status": current["status"] if current else None, "answers": answers}


def seed_demo_data(
    *,
    email: str,
    password: str,
    display_name: str = "Demo Presenter",
    n_participants: int = 0,
    seed: int = 42,
) -> dict[str, Any]:
    questions = lunch_poll_questions()
    validate_survey(LUNCH_POLL_TITLE, questions)
    user = _ensure_presenter(email, password, display_name)
    created = survey_repo.create_survey_with_session(
        owner_user_id=str(user["id"]),
        title=LUNCH_POLL_TITLE,
        questions=questions,
        creation_key=LUNCH_POLL_CREATION_KEY,
    )
    summary: dict[str, Any] = {
        "presenter_email": user["email"],
        "survey_id": created["survey"]["id"],
        "session_id": created["session"]["id"],
        "created": created["created"],
    }
    session = created["session"]
    if n_participants > 0 and session["status"] == "waiting":
        played = play_session(session, questions, n_participants, random.Random(seed))
        summary["session_status"] = played["status"]
        summary["answers_recorded"] = played["answers"]
    logger.info("seeded demo survey %s", summary["survey_id"])
    return summary
