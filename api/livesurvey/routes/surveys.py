import logging
import math
from typing import Any

from fastapi import APIRouter, Depends, Query

from .. import survey_repo
from ..auth.deps import get_current_user
from ..config import BACKEND_RETRY_ATTEMPTS, SURVEYS_PAGE_SIZE
from ..database import call_with_retry
from ..deps import parse_resource_id, require_owner
from ..errors import NotFound
from ..schemas import SurveyCreateRequest, SurveyEditRequest, SurveyWriteRequest, dump_questions
from ..services.survey_editing import apply_edits
from ..services.survey_validation import validate_survey

logger = logging.getLogger(__name__)

router = APIRouter()


def survey_body(survey: dict[str, Any]) -> dict[str, Any]:
    out = dict(survey)
    out["questions"] = dump_questions(survey.get("questions") or [])
    out.pop("creation_key", None)
    return out


@router.post("/surveys", status_code=201)
def create_survey(payload: SurveyCreateRequest, current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    validate_survey(payload.title, payload.questions)
    # without a key a retried insert could leave two surveys behind
    attempts = BACKEND_RETRY_ATTEMPTS if payload.creation_key else 1
    created = call_with_retry(
        survey_repo.create_survey_with_session,
        owner_user_id=str(current_user["id"]),
        title=payload.title,
        questions=payload.questions,
        creation_key=payload.creation_key,
        attempts=attempts,
    )
    return {"survey": survey_body(created["survey"]), "session": created["session"]}


@router.get("/surveys")
def list_my_surveys(
    page: int = Query(default=1, ge=1),
    current_user: dict[str, Any] = Depends(get_current_user),
) -> dict[str, Any]:
    owner_user_id = str(current_user["id"])
    total = call_with_retry(survey_repo.count_surveys, owner_user_id)
    items = call_with_retry(
        survey_repo.list_surveys,
        owner_user_id,
        limit=SURVEYS_PAGE_SIZE,
        offset=(page - 1) * SURVEYS_PAGE_SIZE,
    )
    return {
        "items": items,
        "page": page,
        "page_size": SURVEYS_PAGE_SIZE,
        "total": total,
        "total_pages": math.ceil(total / SURVEYS_PAGE_SIZE) if total else 0,
    }


@router.get("/surveys/{survey_id}")
def get_survey(survey_id: str, current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    survey_id = parse_resource_id(survey_id, "survey")
    survey = require_owner(call_with_retry(survey_repo.get_survey, survey_id), current_user)
    return survey_body(survey)


@router.put("/surveys/{survey_id}")
def update_survey(
    survey_id: str,
    payload: SurveyWriteRequest,
    current_user: dict[str, Any] = Depends(get_current_user),
) -> dict[str, Any]:
    survey_id = parse_resource_id(survey_id, "survey")
    require_owner(call_with_retry(survey_repo.get_survey, survey_id), current_user)
    validate_survey(payload.title, payload.questions)
    updated = call_with_retry(
        survey_repo.update_survey,
        survey_id,
        payload.title,
        payload.questions,
        actor_user_id=str(current_user["id"]),
    )
    if not updated:
        raise NotFound("Survey not found")
    logger.info("survey %s updated by %s (%s questions)", survey_id, current_user["id"], len(payload.questions))
    return survey_body(updated)


@router.post("/surveys/{survey_id}/edits")
def apply_survey_edits(
    survey_id: str,
    payload: SurveyEditRequest,
    current_user: dict[str, Any] = Depends(get_current_user),
) -> dict[str, Any]:
    survey_id = parse_resource_id(survey_id, "survey")
    survey = require_owner(call_with_retry(survey_repo.get_survey, survey_id), current_user)
    title, questions = apply_edits(survey["title"], survey["questions"], payload.edits)
    validate_survey(title, questions)
    updated = call_with_retry(
        survey_repo.update_survey,
        survey_id,
        title,
        questions,
        actor_user_id=str(current_user["id"]),
    )
    if not updated:
        raise NotFound("Survey not found")
    logger.info("survey %s: %s edits applied by %s", survey_id, len(payload.edits), current_user["id"])
    return survey_body(updated)
