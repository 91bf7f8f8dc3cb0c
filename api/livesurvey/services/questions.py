from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from ..errors import InvalidQuestion
from ..schemas import CHOICE_TYPES, NUMERIC_TYPES, QUESTION_ADAPTER, QUESTION_TYPES, Question

# Defaults handed to the authoring UI when a question of a given type is added.
QUESTION_DEFAULTS: dict[str, dict[str, Any]] = {
    "singleChoice": {"options": [""]},
    "multipleChoice": {"options": [""]},
    "ranking": {"options": [""]},
    "rating": {"min": 1, "max": 5},
    "slider": {"min": 1, "max": 100, "step": 1},
    "freeText": {},
}


def create_question(question_type: str, **overrides: Any) -> Question:
    """Return a new question of ``question_type`` with type-appropriate defaults.

    ``overrides`` replace individual defaults (``text``, ``options``, ``min``...).
    A fresh stable id is minted unless one is supplied.
    """
    if question_type not in QUESTION_TYPES:
        raise InvalidQuestion(f"Unknown question type '{question_type}'. Expected one of {list(QUESTION_TYPES)}")
    payload: dict[str, Any] = {"type": question_type, "text": ""}
    payload.update({k: list(v) if isinstance(v, list) else v for k, v in QUESTION_DEFAULTS[question_type].items()})
    payload.update(overrides)
    try:
        return QUESTION_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        raise InvalidQuestion(
            f"Invalid fields for a {question_type} question",
            errors=[{"code": "invalid_field", "path": ".".join(str(p) for p in e["loc"]), "message": e["msg"]} for e in exc.errors()],
        ) from exc


def question_errors(question: Question, path: str = "question") -> list[dict[str, Any]]:
    errors: list[dict[str, Any]] = []

    if not question.text.strip():
        errors.append({"code": "missing_text", "path": f"{path}.text", "message": "question text is required"})
    if "\x00" in question.id:
        errors.append({"code": "nul_character", "path": f"{path}.id", "message": "question id cannot contain NUL characters"})
    if "\x00" in question.text:
        errors.append({"code": "nul_character", "path": f"{path}.text", "message": "question text cannot contain NUL characters"})

    if question.type in CHOICE_TYPES:
        options = question.options
        if not options:
            errors.append({"code": "missing_options", "path": f"{path}.options", "message": "at least one option is required"})
        for o_idx, option in enumerate(options):
            if not option.strip():
                errors.append({"code": "blank_option", "path": f"{path}.options[{o_idx}]", "message": "option text is required"})
            elif "\x00" in option:
                errors.append({"code": "nul_character", "path": f"{path}.options[{o_idx}]", "message": "option text cannot contain NUL characters"})
        seen: set[str] = set()
        for o_idx, option in enumerate(options):
            if option in seen:
                errors.append({"code": "duplicate_option", "path": f"{path}.options[{o_idx}]", "message": f"duplicate option '{option}'"})
            seen.add(option)
        if question.type == "ranking" and len(set(options)) < 2:
            errors.append({"code": "too_few_options", "path": f"{path}.options", "message": "ranking needs at least 2 distinct options"})

    if question.type in NUMERIC_TYPES:
        if question.min >= question.max:
            errors.append({"code": "invalid_bounds", "path": f"{path}.min", "message": "min must be lower than max"})
        if question.type == "slider":
            if question.step <= 0:
                errors.append({"code": "invalid_step", "path": f"{path}.step", "message": "step must be a positive integer"})
            elif question.min < question.max and question.step > question.max - question.min:
                errors.append({"code": "invalid_step", "path": f"{path}.step", "message": "step must not exceed max - min"})

    return errors


def validate_question(question: Question) -> Question:
    errors = question_errors(question)
    if errors:
        raise InvalidQuestion(errors[0]["message"], errors=errors)
    return question
