from typing import Any

from fastapi import APIRouter

from ..schemas import QUESTION_ADAPTER, QUESTION_TYPES
from ..services.questions import create_question

router = APIRouter()


@router.get("/questions/types")
def question_types() -> dict[str, Any]:
    return {"types": list(QUESTION_TYPES)}


@router.get("/questions/defaults/{question_type}")
def question_defaults(question_type: str) -> dict[str, Any]:
    """A blank question of ``question_type`` for the authoring form, with a fresh id."""
    return QUESTION_ADAPTER.dump_python(create_question(question_type), mode="json")
