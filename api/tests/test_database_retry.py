import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from livesurvey import database
from livesurvey.errors import BackendUnavailable


def _operational():
    return OperationalError("SELECT 1", {}, Exception("connection refused"))


def test_call_with_retry_recovers_from_transient_errors(monkeypatch):
    monkeypatch.setattr(database.time, "sleep", lambda s: None)
    calls = []

    def flaky(x):
        calls.append(x)
        if len(calls) < 3:
            raise _operational()
        return x * 2

    assert database.call_with_retry(flaky, 21, attempts=3) == 42
    assert len(calls) == 3


def test_call_with_retry_gives_up_with_backend_unavailable(monkeypatch):
    monkeypatch.setattr(database.time, "sleep", lambda s: None)
    calls = []

    def down():
        calls.append(1)
        raise _operational()

    with pytest.raises(BackendUnavailable) as exc:
        database.call_with_retry(down, attempts=2)
    assert len(calls) == 2
    assert exc.value.status_code == 503
    assert exc.value.retryable


def test_single_attempt_is_not_retried(monkeypatch):
    monkeypatch.setattr(database.time, "sleep", lambda s: None)
    calls = []

    def down():
        calls.append(1)
        raise _operational()

    with pytest.raises(BackendUnavailable):
        database.call_with_retry(down, attempts=1)
    assert calls == [1]


def test_non_transient_errors_propagate(monkeypatch):
    def broken():
        raise IntegrityError("INSERT", {}, Exception("duplicate key"))

    with pytest.raises(IntegrityError):
        database.call_with_retry(broken)
