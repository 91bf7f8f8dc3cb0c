import pytest

pytest.importorskip("fastapi")
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from livesurvey.services import rate_limit
from livesurvey.services.rate_limit import InMemoryRateLimiter, enforce_answer_limits, rate_limit_dependency


def test_limiter_blocks_after_limit_and_reports_retry_after():
    limiter = InMemoryRateLimiter()
    assert limiter.check("k", limit=2, window_seconds=60).allowed
    assert limiter.check("k", limit=2, window_seconds=60).allowed
    decision = limiter.check("k", limit=2, window_seconds=60)
    assert not decision.allowed
    assert 1 <= decision.retry_after_seconds <= 60
    assert limiter.check("other", limit=2, window_seconds=60).allowed


def test_expired_keys_are_swept(monkeypatch):
    clock = [1000.0]
    monkeypatch.setattr(rate_limit.time, "monotonic", lambda: clock[0])
    limiter = InMemoryRateLimiter()
    for i in range(50):
        limiter.check(f"one-off-{i}", limit=5, window_seconds=60)
    assert limiter.tracked_keys() == 50

    clock[0] += 61
    limiter.check("fresh", limit=5, window_seconds=60)
    assert limiter.tracked_keys() == 1


def test_answer_limits_are_per_participant_within_a_session_ceiling():
    for participant in ("p1", "p2", "p3"):
        enforce_answer_limits("s", participant, participant_limit=1, session_limit=3, window_seconds=60)

    with pytest.raises(HTTPException) as exc:
        enforce_answer_limits("s", "p1", participant_limit=1, session_limit=3, window_seconds=60)
    assert exc.value.status_code == 429
    assert "Retry-After" in exc.value.headers

    with pytest.raises(HTTPException):
        enforce_answer_limits("s", "p4", participant_limit=1, session_limit=3, window_seconds=60)
    enforce_answer_limits("other-session", "p4", participant_limit=1, session_limit=3, window_seconds=60)


def test_dependency_limits_each_client_address():
    app = FastAPI()
    dep = rate_limit_dependency("test_login", 1, 60)

    @app.post("/login")
    def login(_: None = dep) -> dict[str, bool]:
        return {"ok": True}

    client = TestClient(app)
    assert client.post("/login").status_code == 200
    blocked = client.post("/login")
    assert blocked.status_code == 429
    assert "Retry-After" in blocked.headers
    assert client.post("/login", headers={"X-Forwarded-For": "203.0.113.9"}).status_code == 200
