import uuid
from datetime import datetime, timezone

import pytest

from livesurvey import repo, session_repo, survey_repo
from livesurvey.errors import InvalidAnswer
from livesurvey.services.rate_limit import limiter


class FakeBackend:
    """In-memory stand-in for the PostgreSQL repositories."""

    def __init__(self):
        self.users: dict[str, dict] = {}
        self.surveys: dict[str, dict] = {}
        self.sessions: dict[str, dict] = {}
        self.tallies: dict[tuple[str, int], dict[str, int]] = {}
        self.transitions: list[tuple[str, str, int]] = []

    # users

    def create_user(self, email, password_hash, display_name=None):
        if any(u["email"] == email for u in self.users.values()):
            return None
        user = {"id": str(uuid.uuid4()), "email": email, "password_hash": password_hash, "display_name": display_name}
        self.users[user["id"]] = user
        return dict(user)

    def get_user_by_email(self, email):
        for user in self.users.values():
            if user["email"] == email:
                return dict(user)
        return None

    def get_user_by_id(self, user_id):
        user = self.users.get(user_id)
        return dict(user) if user else None

    def add_user(self, email="presenter@example.com"):
        return self.create_user(email, "not-a-real-hash", "Presenter")

    # surveys

    def create_survey_with_session(self, owner_user_id, title, questions, creation_key=None):
        if creation_key:
            for survey in self.surveys.values():
                if survey["owner_user_id"] == owner_user_id and survey["creation_key"] == creation_key:
                    return {"survey": dict(survey), "session": dict(self.sessions[survey["session_id"]]), "created": False}
        survey_id = str(uuid.uuid4())
        session_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        self.surveys[survey_id] = {
            "id": survey_id,
            "owner_user_id": owner_user_id,
            "title": title,
            "questions": list(questions),
            "session_id": session_id,
            "creation_key": creation_key,
            "created_at": now,
            "updated_at": now,
        }
        self.sessions[session_id] = {
            "id": session_id,
            "survey_id": survey_id,
            "status": "waiting",
            "current_question_index": -1,
        }
        return {"survey": dict(self.surveys[survey_id]), "session": dict(self.sessions[session_id]), "created": True}

    def get_survey(self, survey_id):
        survey = self.surveys.get(survey_id)
        return dict(survey) if survey else None

    def update_survey(self, survey_id, title, questions, actor_user_id=None):
        survey = self.surveys.get(survey_id)
        if not survey:
            return None
        survey.update(title=title, questions=list(questions))
        return dict(survey)

    def list_surveys(self, owner_user_id, *, limit, offset):
        owned = [s for s in self.surveys.values() if s["owner_user_id"] == owner_user_id]
        owned.sort(key=lambda s: s["created_at"], reverse=True)
        return [
            {"id": s["id"], "title": s["title"], "session_id": s["session_id"], "created_at": s["created_at"], "question_count": len(s["questions"])}
            for s in owned[offset:offset + limit]
        ]

    def count_surveys(self, owner_user_id):
        return sum(1 for s in self.surveys.values() if s["owner_user_id"] == owner_user_id)

    # sessions

    def get_session(self, session_id):
        session = self.sessions.get(session_id)
        return dict(session) if session else None

    def get_session_with_survey(self, session_id):
        session = self.sessions.get(session_id)
        if not session:
            return None
        return {"session": dict(session), "survey": self.get_survey(session["survey_id"])}

    def apply_transition(self, before, after, actor_user_id=None):
        stored = self.sessions.get(before["id"])
        if not stored or (stored["status"], stored["current_question_index"]) != (before["status"], before["current_question_index"]):
            return None
        stored.update(status=after["status"], current_question_index=after["current_question_index"])
        self.transitions.append((stored["id"], stored["status"], stored["current_question_index"]))
        return dict(stored)

    def record_answer(self, session_id, question_index, increments):
        session = self.sessions[session_id]
        if session["status"] != "active" or session["current_question_index"] != question_index:
            raise InvalidAnswer("The presenter has moved on to another question")
        tally = self.tallies.setdefault((session_id, question_index), {})
        for key, amount in sorted(increments.items()):
            tally[key] = tally.get(key, 0) + amount

    def get_tally(self, session_id, question_index):
        return dict(self.tallies.get((session_id, question_index), {}))

    def list_tallies(self, session_id):
        return {idx: dict(t) for (sid, idx), t in self.tallies.items() if sid == session_id}


@pytest.fixture
def backend(monkeypatch):
    fake = FakeBackend()
    for name in ("create_user", "get_user_by_email", "get_user_by_id"):
        monkeypatch.setattr(repo, name, getattr(fake, name))
    monkeypatch.setattr(repo, "update_last_login", lambda user_id: None)
    for name in ("create_survey_with_session", "get_survey", "update_survey", "list_surveys", "count_surveys"):
        monkeypatch.setattr(survey_repo, name, getattr(fake, name))
    for name in ("get_session", "get_session_with_survey", "apply_transition", "record_answer", "get_tally", "list_tallies"):
        monkeypatch.setattr(session_repo, name, getattr(fake, name))
    return fake


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    limiter.reset()
    yield
    limiter.reset()
