import pytest

from livesurvey.errors import InvalidSurvey
from livesurvey.services.questions import create_question
from livesurvey.services.survey_validation import MAX_TITLE_LENGTH, survey_errors, validate_survey


def _q(**kw):
    return create_question("singleChoice", text="Lunch?", options=["Pizza", "Sushi"], **kw)


def test_valid_survey_passes():
    validate_survey("Lunch Poll", [_q()])


def test_empty_survey_is_valid_to_save():
    assert survey_errors("Draft", []) == []


def test_title_required_and_bounded():
    assert [e["code"] for e in survey_errors("   ", [])] == ["missing_title"]
    assert [e["code"] for e in survey_errors("x" * (MAX_TITLE_LENGTH + 1), [])] == ["title_too_long"]


def test_question_errors_are_prefixed_with_their_position():
    bad = create_question("rating", text="Rate", min=3, max=1)
    errors = survey_errors("Poll", [_q(), bad])
    assert errors == [{"code": "invalid_bounds", "path": "questions[1].min", "message": "min must be lower than max"}]


def test_duplicate_question_ids():
    with pytest.raises(InvalidSurvey) as exc:
        validate_survey("Poll", [_q(id="same"), _q(id="same")])
    assert exc.value.errors[0]["code"] == "duplicate_question_id"
    assert exc.value.to_detail()["code"] == "invalid_survey"


def test_title_with_nul_is_rejected():
    with pytest.raises(InvalidSurvey) as exc:
        validate_survey("Lunch\x00Poll", [_q()])
    assert exc.value.errors == [{"code": "nul_character", "path": "title", "message": "title cannot contain NUL characters"}]
