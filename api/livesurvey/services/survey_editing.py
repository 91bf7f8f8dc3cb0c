"""In-memory edits applied to a survey draft before a single ``update_survey`` commit.

Every helper returns a new list and leaves its input untouched, so an
editor can discard a draft without side effects. ``apply_edits`` replays a
batch of edits posted to ``POST /surveys/{id}/edits``.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from ..errors import InvalidSurvey
from ..schemas import CHOICE_TYPES, QUESTION_ADAPTER, Question, SurveyEdit
from .questions import create_question
from .survey_validation import MAX_TITLE_LENGTH

IMMUTABLE_FIELDS = {"id", "type"}


def _check_index(questions: list[Question], index: int) -> None:
    if not 0 <= index < len(questions):
        raise InvalidSurvey(f"Question index {index} out of range")


def _check_choice(question: Question, index: int) -> None:
    if question.type not in CHOICE_TYPES:
        raise InvalidSurvey(f"Question {index} ({question.type}) has no options")


def add_question(questions: list[Question], question_type: str, **overrides: Any) -> list[Question]:
    if "type" in overrides:
        raise InvalidSurvey("Pass the question type as question_type, not as an override")
    return [*questions, create_question(question_type, **overrides)]


def edit_question(questions: list[Question], index: int, **changes: Any) -> list[Question]:
    _check_index(questions, index)
    blocked = IMMUTABLE_FIELDS.intersection(changes)
    if blocked:
        raise InvalidSurvey(f"Question fields {sorted(blocked)} cannot be changed")
    current = questions[index]
    try:
        updated = QUESTION_ADAPTER.validate_python({**current.model_dump(), **changes})
    except ValidationError as exc:
        raise InvalidSurvey(f"Invalid change to question {index}: {exc.errors()[0]['msg']}") from exc
    out = list(questions)
    out[index] = updated
    return out


def remove_question(questions: list[Question], index: int) -> list[Question]:
    _check_index(questions, index)
    return [q for i, q in enumerate(questions) if i != index]


def move_question(questions: list[Question], index: int, new_index: int) -> list[Question]:
    _check_index(questions, index)
    _check_index(questions, new_index)
    out = list(questions)
    out.insert(new_index, out.pop(index))
    return out


def add_option(questions: list[Question], index: int, text: str = "") -> list[Question]:
    _check_index(questions, index)
    question = questions[index]
    _check_choice(question, index)
    return edit_question(questions, index, options=[*question.options, text])


def update_option(questions: list[Question], index: int, option_index: int, text: str) -> list[Question]:
    _check_index(questions, index)
    question = questions[index]
    _check_choice(question, index)
    if not 0 <= option_index < len(question.options):
        raise InvalidSurvey(f"Option index {option_index} out of range for question {index}")
    options = list(question.options)
    options[option_index] = text
    return edit_question(questions, index, options=options)


def remove_option(questions: list[Question], index: int, option_index: int) -> list[Question]:
    _check_index(questions, index)
    question = questions[index]
    _check_choice(question, index)
    if not 0 <= option_index < len(question.options):
        raise InvalidSurvey(f"Option index {option_index} out of range for question {index}")
    options = [o for i, o in enumerate(question.options) if i != option_index]
    return edit_question(questions, index, options=options)


def rename_survey(title: str) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise InvalidSurvey("Survey title is required")
    if "\x00" in cleaned:
        raise InvalidSurvey("Survey title cannot contain NUL characters")
    if len(cleaned) > MAX_TITLE_LENGTH:
        raise InvalidSurvey(f"Survey title must be {MAX_TITLE_LENGTH} characters or fewer")
    return cleaned


def apply_edits(title: str, questions: list[Question], edits: list[SurveyEdit]) -> tuple[str, list[Question]]:
    """Replay ``edits`` in order; the first failing edit aborts the whole batch."""
    for position, edit in enumerate(edits):
        try:
            if edit.op == "add_question":
                questions = add_question(questions, edit.question_type, **edit.overrides)
            elif edit.op == "edit_question":
                questions = edit_question(questions, edit.index, **edit.changes)
            elif edit.op == "remove_question":
                questions = remove_question(questions, edit.index)
            elif edit.op == "move_question":
                questions = move_question(questions, edit.index, edit.new_index)
            elif edit.op == "add_option":
                questions = add_option(questions, edit.index, edit.text)
            elif edit.op == "update_option":
                questions = update_option(questions, edit.index, edit.option_index, edit.text)
            elif edit.op == "remove_option":
                questions = remove_option(questions, edit.index, edit.option_index)
            else:
                title = rename_survey(edit.title)
        except InvalidSurvey as exc:
            raise InvalidSurvey(f"Edit {position} ({edit.op}): {exc.message}", errors=exc.errors) from exc
    return title, questions
