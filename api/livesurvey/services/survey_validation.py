from __future__ import annotations

from typing import Any

from ..errors import InvalidSurvey
from ..schemas import Question
from .questions import question_errors

MAX_TITLE_LENGTH = 200
MAX_QUESTIONS = 200


def survey_errors(title: str, questions: list[Question]) -> list[dict[str, Any]]:
    errors: list[dict[str, Any]] = []

    if not isinstance(title, str) or not title.strip():
        errors.append({"code": "missing_title", "path": "title", "message": "survey title is required"})
    elif "\x00" in title:
        errors.append({"code": "nul_character", "path": "title", "message": "title cannot contain NUL characters"})
    elif len(title) > MAX_TITLE_LENGTH:
        errors.append({"code": "title_too_long", "path": "title", "message": f"title must be {MAX_TITLE_LENGTH} characters or fewer"})

    if len(questions) > MAX_QUESTIONS:
        errors.append({"code": "too_many_questions", "path": "questions", "message": f"a survey may hold at most {MAX_QUESTIONS} questions"})

    seen_ids: set[str] = set()
    for q_idx, question in enumerate(questions):
        path = f"questions[{q_idx}]"
        if question.id in seen_ids:
            errors.append({"code": "duplicate_question_id", "path": f"{path}.id", "message": f"duplicate question id '{question.id}'"})
        else:
            seen_ids.add(question.id)
        errors.extend(question_errors(question, path))

    return errors


def validate_survey(title: str, questions: list[Question]) -> None:
    errors = survey_errors(title, questions)
    if errors:
        raise InvalidSurvey(f"Survey is not valid: {errors[0]['message']}", errors=errors)
