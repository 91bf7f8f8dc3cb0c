from typing import Any


class LiveSurveyError(Exception):
    """Base class for domain failures that surface to the caller with a readable message."""

    code = "error"
    status_code = 400
    retryable = False

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        self.message = message
        self.errors = errors or []
        super().__init__(message)

    def to_detail(self) -> dict[str, Any]:
        detail: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.errors:
            detail["errors"] = self.errors
        return detail


class InvalidQuestion(LiveSurveyError):
    code = "invalid_question"


class InvalidSurvey(LiveSurveyError):
    code = "invalid_survey"


class InvalidAnswer(LiveSurveyError):
    code = "invalid_answer"


class InvalidTransition(LiveSurveyError):
    code = "invalid_transition"
    status_code = 409


class NotFound(LiveSurveyError):
    code = "not_found"
    status_code = 404


class BackendUnavailable(LiveSurveyError):
    code = "backend_unavailable"
    status_code = 503
    retryable = True
