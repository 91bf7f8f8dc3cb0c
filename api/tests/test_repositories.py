import pytest

from livesurvey import session_repo, survey_repo
from livesurvey.errors import InvalidAnswer, NotFound

SESSION_ID = "00000000-0000-0000-0000-0000000000a1"
SURVEY_ID = "00000000-0000-0000-0000-0000000000b2"
OWNER_ID = "00000000-0000-0000-0000-0000000000c3"


class FakeResult:
    def __init__(self, rows):
        self._rows = rows

    def mappings(self):
        return self

    def first(self):
        return self._rows[0] if self._rows else None

    def all(self):
        return list(self._rows)


class FakeDB:
    """Scripted SQLAlchemy session: each execute returns the next queued row list."""

    def __init__(self, *results):
        self.results = list(results)
        self.log = []

    def __call__(self):
        return self

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, stmt, params=None):
        self.log.append((str(stmt), params))
        return FakeResult(self.results.pop(0) if self.results else [])

    def commit(self):
        self.log.append(("COMMIT", None))

    @property
    def statements(self):
        return [sql for sql, _ in self.log]


def _session_row(status="active", index=0):
    return {"id": SESSION_ID, "survey_id": SURVEY_ID, "status": status, "current_question_index": index}


@pytest.fixture
def fake_db(monkeypatch):
    def install(*results):
        db = FakeDB(*results)
        monkeypatch.setattr(session_repo, "SessionLocal", db)
        monkeypatch.setattr(survey_repo, "SessionLocal", db)
        return db

    return install


def test_record_answer_upserts_sorted_keys_in_one_transaction(fake_db):
    db = fake_db([{"status": "active", "current_question_index": 1}])
    session_repo.record_answer(SESSION_ID, 1, {"sum": 4, "values": 1, "4": 1})

    lock_sql, upsert_sql, commit = db.statements
    assert "FOR SHARE" in lock_sql
    assert "ON CONFLICT (session_id, question_index, option_key)" in upsert_sql
    assert "count = answer_tally.count + EXCLUDED.count" in upsert_sql
    assert commit == "COMMIT"
    params = db.log[1][1]
    assert [p["option_key"] for p in params] == ["4", "sum", "values"]
    assert [p["amount"] for p in params] == [1, 4, 1]
    assert all(p["question_index"] == 1 for p in params)


@pytest.mark.parametrize("row", [
    {"status": "active", "current_question_index": 2},
    {"status": "completed", "current_question_index": 1},
    {"status": "waiting", "current_question_index": -1},
])
def test_record_answer_rejects_a_stale_or_closed_session(fake_db, row):
    db = fake_db([row])
    with pytest.raises(InvalidAnswer):
        session_repo.record_answer(SESSION_ID, 1, {"Pizza": 1})
    assert len(db.statements) == 1
    assert "COMMIT" not in db.statements


def test_record_answer_for_missing_session(fake_db):
    fake_db([])
    with pytest.raises(NotFound):
        session_repo.record_answer(SESSION_ID, 0, {"Pizza": 1})


def test_apply_transition_compares_and_sets(fake_db):
    db = fake_db([_session_row("active", 1)])
    before = _session_row("active", 0)
    updated = session_repo.apply_transition(before, {"status": "active", "current_question_index": 1}, actor_user_id=OWNER_ID)

    assert updated["current_question_index"] == 1
    update_sql, event_sql, commit = db.statements
    assert "AND status=:expected_status" in update_sql
    assert "AND current_question_index=:expected_index" in update_sql
    assert (db.log[0][1]["expected_status"], db.log[0][1]["expected_index"]) == ("active", 0)
    assert "INSERT INTO session_event" in event_sql
    assert db.log[1][1]["event_type"] == "question_advanced"
    assert commit == "COMMIT"


def test_apply_transition_lost_race_writes_nothing(fake_db):
    db = fake_db([])
    before = _session_row("active", 0)
    assert session_repo.apply_transition(before, {"status": "completed", "current_question_index": 0}) is None
    assert len(db.statements) == 1
    assert "COMMIT" not in db.statements


def test_create_survey_with_session_commits_both_rows_together(fake_db):
    survey_row = {
        "id": SURVEY_ID,
        "owner_user_id": OWNER_ID,
        "title": "Lunch Poll",
        "questions": [],
        "session_id": SESSION_ID,
        "creation_key": None,
        "created_at": None,
        "updated_at": None,
    }
    db = fake_db([], [], [], [survey_row], [_session_row("waiting", -1)])
    created = survey_repo.create_survey_with_session(OWNER_ID, "Lunch Poll", [])

    first_commit = db.statements.index("COMMIT")
    before_commit = db.statements[:first_commit]
    assert "INSERT INTO survey" in before_commit[0]
    assert "INSERT INTO live_session" in before_commit[1]
    assert "INSERT INTO session_event" in before_commit[2]
    assert db.statements.count("COMMIT") == 1
    assert db.log[0][1]["session_id"] == db.log[1][1]["id"]
    assert created["created"] is True
    assert (created["session"]["status"], created["session"]["current_question_index"]) == ("waiting", -1)
