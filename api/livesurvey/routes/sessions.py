import asyncio
import json
import logging
import uuid
from typing import Any, Callable

from fastapi import APIRouter, Depends, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse

from .. import session_repo
from ..auth.deps import get_current_user
from ..config import (
    DEV_MODE,
    LIVE_KEEPALIVE_SECONDS,
    LIVE_POLL_SECONDS,
    RL_PARTICIPANT_ANSWERS_LIMIT,
    RL_SESSION_ANSWERS_LIMIT,
    RL_WINDOW_SECONDS,
)
from ..database import call_with_retry
from ..deps import parse_resource_id, require_owner
from ..errors import BackendUnavailable, InvalidAnswer, InvalidTransition, NotFound
from ..http_helpers import join_url
from ..schemas import QUESTION_ADAPTER, AnswerSubmission
from ..services.aggregation import tally_increments
from ..services.live import hub, session_snapshot
from ..services.rate_limit import enforce_answer_limits
from ..services.results import project_question, project_session
from ..services.state_machine import (
    ACTIVE,
    COMPLETED,
    advance_session,
    participant_view,
    previous_results_index,
    start_session,
)
from ..services.survey_validation import validate_survey
from .surveys import survey_body

logger = logging.getLogger(__name__)

router = APIRouter()

PARTICIPANT_COOKIE_NAME = "livesurvey_participant"
PARTICIPANT_COOKIE_MAX_AGE = 7 * 24 * 60 * 60


def _load_pair(session_id: str) -> dict[str, Any]:
    pair = call_with_retry(session_repo.get_session_with_survey, session_id)
    if not pair or not pair.get("survey"):
        raise NotFound("Session not found")
    return pair


def _load_owned(raw_session_id: str, user: dict[str, Any]) -> dict[str, Any]:
    pair = _load_pair(parse_resource_id(raw_session_id, "session"))
    require_owner(pair["survey"], user)
    return pair


def _same_position(a: dict[str, Any], b: dict[str, Any]) -> bool:
    return (a["status"], int(a["current_question_index"])) == (b["status"], int(b["current_question_index"]))


def _transition(
    pair: dict[str, Any],
    user: dict[str, Any],
    step: Callable[[dict[str, Any], int], dict[str, Any]],
) -> dict[str, Any]:
    session = pair["session"]
    after = step(session, len(pair["survey"]["questions"]))
    updated = call_with_retry(session_repo.apply_transition, session, after, actor_user_id=str(user["id"]))
    if updated is None:
        # a retried commit or a concurrent click may already have landed the same move
        current = call_with_retry(session_repo.get_session, session["id"])
        if not current or not _same_position(current, after):
            raise InvalidTransition("The session changed while this request was in flight. Reload and try again.")
        updated = current
    hub.publish(updated["id"], session_snapshot(updated))
    return updated


def _question_result(pair: dict[str, Any], index: int) -> dict[str, Any]:
    questions = pair["survey"]["questions"]
    if not 0 <= index < len(questions):
        raise NotFound("Question not found")
    tally = call_with_retry(session_repo.get_tally, pair["session"]["id"], index)
    projected = project_question(questions[index], tally)
    projected["question_index"] = index
    return projected


def _view_body(view: dict[str, Any]) -> dict[str, Any]:
    out = dict(view)
    if out.get("question") is not None:
        out["question"] = QUESTION_ADAPTER.dump_python(out["question"], mode="json")
    return out


def _load_view(session_id: str) -> dict[str, Any]:
    pair = _load_pair(session_id)
    return _view_body(participant_view(pair["session"], pair["survey"]["questions"]))


def _sse(event: str, data: dict[str, Any]) -> str:
    return f"event: {event}\ndata: {json.dumps(data, default=str)}\n\n"


def _cookie_participant_id(raw: str | None) -> str | None:
    if not raw:
        return None
    try:
        return str(uuid.UUID(raw))
    except ValueError:
        return None


def _participant_id(request: Request, response: Response) -> str:
    """Anonymous per-browser id used to throttle answers; issued on first contact."""
    participant_id = _cookie_participant_id(request.cookies.get(PARTICIPANT_COOKIE_NAME))
    if participant_id:
        return participant_id
    participant_id = str(uuid.uuid4())
    response.set_cookie(
        key=PARTICIPANT_COOKIE_NAME,
        value=participant_id,
        httponly=True,
        secure=not DEV_MODE,
        samesite="lax",
        path="/",
        max_age=PARTICIPANT_COOKIE_MAX_AGE,
    )
    return participant_id


# presenter


@router.get("/sessions/{session_id}")
def get_session(session_id: str, current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    pair = _load_owned(session_id, current_user)
    return {"session": pair["session"], "survey": survey_body(pair["survey"])}


@router.post("/sessions/{session_id}/start")
def start(session_id: str, current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    pair = _load_owned(session_id, current_user)
    survey = pair["survey"]

    def _step(session: dict[str, Any], question_count: int) -> dict[str, Any]:
        after = start_session(session, question_count)
        validate_survey(survey["title"], survey["questions"])
        return after

    return {"session": _transition(pair, current_user, _step)}


@router.post("/sessions/{session_id}/advance")
def advance(session_id: str, current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    pair = _load_owned(session_id, current_user)
    return {"session": _transition(pair, current_user, advance_session)}


@router.get("/sessions/{session_id}/invite")
def invite(session_id: str, current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, str]:
    pair = _load_owned(session_id, current_user)
    sid = pair["session"]["id"]
    return {"session_id": sid, "join_url": join_url(sid)}


@router.get("/sessions/{session_id}/results")
def session_results(session_id: str, current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    pair = _load_owned(session_id, current_user)
    session = pair["session"]
    tallies = call_with_retry(session_repo.list_tallies, session["id"])
    return {
        "session_id": session["id"],
        "status": session["status"],
        "title": pair["survey"]["title"],
        "results": project_session(pair["survey"]["questions"], tallies),
    }


@router.get("/sessions/{session_id}/questions/{question_index}/results")
def question_results(
    session_id: str,
    question_index: int,
    current_user: dict[str, Any] = Depends(get_current_user),
) -> dict[str, Any]:
    pair = _load_owned(session_id, current_user)
    return _question_result(pair, question_index)


@router.get("/sessions/{session_id}/results/previous")
def previous_results(session_id: str, current_user: dict[str, Any] = Depends(get_current_user)) -> dict[str, Any]:
    pair = _load_owned(session_id, current_user)
    return _question_result(pair, previous_results_index(pair["session"]))


# participant


@router.get("/sessions/{session_id}/live")
def live_view(session_id: str, request: Request, response: Response) -> dict[str, Any]:
    view = _load_view(parse_resource_id(session_id, "session"))
    _participant_id(request, response)
    return view


@router.get("/sessions/{session_id}/live/events")
async def live_events(session_id: str, request: Request) -> StreamingResponse:
    """Server-sent ``session`` events whenever the participant view changes.

    Presenter transitions in this process wake the stream immediately; the
    session row is also re-read every ``LIVE_POLL_SECONDS`` so transitions made
    by other workers arrive too. The stream ends once the session completes.
    """
    sid = parse_resource_id(session_id, "session")
    first_view = await run_in_threadpool(_load_view, sid)
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def _on_change(snapshot: dict[str, Any]) -> None:
        loop.call_soon_threadsafe(queue.put_nowait, snapshot)

    async def _stream():
        subscription = hub.subscribe(sid, _on_change)
        try:
            yield _sse("session", first_view)
            if first_view["status"] == COMPLETED:
                return
            last = json.dumps(first_view, sort_keys=True, default=str)
            idle = 0.0
            while True:
                if await request.is_disconnected():
                    logger.debug("live stream for session %s closed by client", sid)
                    return
                try:
                    await asyncio.wait_for(queue.get(), timeout=LIVE_POLL_SECONDS)
                except asyncio.TimeoutError:
                    idle += LIVE_POLL_SECONDS
                try:
                    view = await run_in_threadpool(_load_view, sid)
                except BackendUnavailable:
                    logger.warning("live stream for session %s could not refresh; retrying next poll", sid)
                    continue
                except NotFound:
                    return
                current = json.dumps(view, sort_keys=True, default=str)
                if current != last:
                    last = current
                    idle = 0.0
                    yield _sse("session", view)
                    if view["status"] == COMPLETED:
                        return
                elif idle >= LIVE_KEEPALIVE_SECONDS:
                    idle = 0.0
                    yield ": keepalive\n\n"
        finally:
            subscription.cancel()

    return StreamingResponse(
        _stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.post("/sessions/{session_id}/answers")
def submit_answer(session_id: str, payload: AnswerSubmission, request: Request, response: Response) -> dict[str, Any]:
    pair = _load_pair(parse_resource_id(session_id, "session"))
    session = pair["session"]
    enforce_answer_limits(
        session["id"],
        _participant_id(request, response),
        participant_limit=RL_PARTICIPANT_ANSWERS_LIMIT,
        session_limit=RL_SESSION_ANSWERS_LIMIT,
        window_seconds=RL_WINDOW_SECONDS,
    )
    questions = pair["survey"]["questions"]
    if session["status"] != ACTIVE:
        raise InvalidAnswer("This session is not accepting answers right now")
    if payload.question_index != session["current_question_index"] or not 0 <= payload.question_index < len(questions):
        raise InvalidAnswer("The presenter has moved on to another question")

    increments = tally_increments(questions[payload.question_index], payload.value)
    # additive write; a blind retry could count the answer twice
    call_with_retry(session_repo.record_answer, session["id"], payload.question_index, increments, attempts=1)
    return {"status": "recorded", "question_index": payload.question_index}
