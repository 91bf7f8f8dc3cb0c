import pytest

from livesurvey.services.events import log_session_event, transition_event_type


class FakeDB:
    def __init__(self):
        self.calls = []

    def execute(self, stmt, params):
        self.calls.append((str(stmt), params))


def test_log_session_event_inserts_expected_payload_shape():
    db = FakeDB()
    log_session_event(
        db,
        session_id="00000000-0000-0000-0000-000000000123",
        event_type="question_advanced",
        payload={"question_index": 2},
    )
    assert len(db.calls) == 1
    sql, params = db.calls[0]
    assert "INSERT INTO session_event" in sql
    assert params["event_type"] == "question_advanced"
    assert params["session_id"] == "00000000-0000-0000-0000-000000000123"
    assert params["payload"] == '{"question_index": 2}'
    assert params["actor_user_id"] == ""


def test_log_session_event_rejects_unknown_types():
    with pytest.raises(ValueError):
        log_session_event(FakeDB(), session_id="s", event_type="match_viewed")


@pytest.mark.parametrize("before,after,expected", [
    ({"status": "waiting"}, {"status": "active"}, "session_started"),
    ({"status": "active"}, {"status": "active"}, "question_advanced"),
    ({"status": "active"}, {"status": "completed"}, "session_completed"),
])
def test_transition_event_type(before, after, expected):
    assert transition_event_type(before, after) == expected
