from __future__ import annotations

from typing import Any

from ..config import FREE_TEXT_MAX_LENGTH
from ..errors import InvalidAnswer
from ..schemas import Question

VALUES_KEY = "values"
SUM_KEY = "sum"
NUMERIC_RESERVED_KEYS = {VALUES_KEY, SUM_KEY}


def _require_option(question: Question, value: Any) -> str:
    if not isinstance(value, str):
        raise InvalidAnswer(f"{question.type} answers must be an option string")
    if value not in question.options:
        raise InvalidAnswer(f"'{value}' is not an option of this question")
    return value


def _selected_options(question: Question, value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        raise InvalidAnswer("multipleChoice answers must be a list of options")
    if not value:
        raise InvalidAnswer("Select at least one option")
    selected = [_require_option(question, v) for v in value]
    if len(set(selected)) != len(selected):
        raise InvalidAnswer("Each option may be selected only once")
    return selected


def _ranked_options(question: Question, value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        raise InvalidAnswer("ranking answers must be the list of options in ranked order")
    ranked = [_require_option(question, v) for v in value]
    if len(ranked) != len(question.options) or set(ranked) != set(question.options):
        raise InvalidAnswer("A ranking must order every option exactly once")
    return ranked


def _numeric_value(question: Question, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidAnswer(f"{question.type} answers must be a number")
    if isinstance(value, float):
        if not value.is_integer():
            raise InvalidAnswer(f"{question.type} answers must be whole numbers")
        value = int(value)
    if not question.min <= value <= question.max:
        raise InvalidAnswer(f"Answer {value} is outside [{question.min}, {question.max}]")
    if question.type == "slider" and (value - question.min) % question.step != 0:
        raise InvalidAnswer(f"Answer {value} is not on the slider step of {question.step}")
    return value


def _free_text(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidAnswer("freeText answers must be non-empty text")
    if "\x00" in value:
        raise InvalidAnswer("freeText answers cannot contain NUL characters")
    if len(value) > FREE_TEXT_MAX_LENGTH:
        raise InvalidAnswer(f"freeText answers must be {FREE_TEXT_MAX_LENGTH} characters or fewer")
    return value


def tally_increments(question: Question, value: Any) -> dict[str, int]:
    """Translate one participant answer into the tally key increments it contributes.

    Raises ``InvalidAnswer`` when the answer does not match the question's shape.
    Ranking answers count each option once; rank position is not weighted.
    """
    qtype = question.type
    if qtype == "singleChoice":
        return {_require_option(question, value): 1}
    if qtype == "multipleChoice":
        return {option: 1 for option in _selected_options(question, value)}
    if qtype == "ranking":
        return {option: 1 for option in _ranked_options(question, value)}
    if qtype in {"rating", "slider"}:
        number = _numeric_value(question, value)
        return {VALUES_KEY: 1, SUM_KEY: number, str(number): 1}
    if qtype == "freeText":
        return {_free_text(value): 1}
    raise InvalidAnswer(f"Unsupported question type '{qtype}'")

