import threading
import time
from collections import deque
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request


@dataclass
class RateDecision:
    allowed: bool
    retry_after_seconds: int


class InMemoryRateLimiter:
    """Sliding-window counters keyed by caller.

    Keys whose window has emptied are dropped on a periodic sweep, so one-off
    callers do not accumulate for the life of the process.
    """

    def __init__(self) -> None:
        self._events: dict[str, deque[float]] = {}
        self._windows: dict[str, int] = {}
        self._lock = threading.Lock()
        self._next_sweep = 0.0

    def check(self, key: str, limit: int, window_seconds: int) -> RateDecision:
        now = time.monotonic()
        with self._lock:
            if now >= self._next_sweep:
                self._sweep(now)
                self._next_sweep = now + window_seconds
            dq = self._events.setdefault(key, deque())
            self._windows[key] = window_seconds
            cutoff = now - window_seconds
            while dq and dq[0] <= cutoff:
                dq.popleft()
            if len(dq) >= limit:
                retry_after = max(1, int(dq[0] + window_seconds - now))
                return RateDecision(allowed=False, retry_after_seconds=retry_after)
            dq.append(now)
            return RateDecision(allowed=True, retry_after_seconds=0)

    def _sweep(self, now: float) -> None:
        for key in list(self._events):
            dq = self._events[key]
            cutoff = now - self._windows.get(key, 0)
            while dq and dq[0] <= cutoff:
                dq.popleft()
            if not dq:
                del self._events[key]
                self._windows.pop(key, None)

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._events)

    def reset(self) -> None:
        with self._lock:
            self._events.clear()
            self._windows.clear()
            self._next_sweep = 0.0


limiter = InMemoryRateLimiter()


def enforce(key: str, limit: int, window_seconds: int) -> None:
    decision = limiter.check(key, limit=limit, window_seconds=window_seconds)
    if not decision.allowed:
        raise HTTPException(
            status_code=429,
            detail=f"Too many requests. Retry in {decision.retry_after_seconds}s",
            headers={"Retry-After": str(decision.retry_after_seconds)},
        )


def enforce_answer_limits(
    session_id: str,
    participant_id: str,
    *,
    participant_limit: int,
    session_limit: int,
    window_seconds: int,
) -> None:
    """Throttle one participant, then the session as a whole.

    ``session_id`` must already be a validated, existing session so unknown
    ids never create counters.
    """
    enforce(f"answers:{session_id}:{participant_id}", participant_limit, window_seconds)
    enforce(f"answers:{session_id}", session_limit, window_seconds)


def _client_identifier(request: Request) -> str:
    xff = request.headers.get("x-forwarded-for", "").strip()
    if xff:
        return xff.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def rate_limit_dependency(route_key: str, limit: int, window_seconds: int):
    """Sliding-window limit per client address, for the presenter auth routes."""

    def _dep(request: Request) -> None:
        enforce(f"{route_key}:{_client_identifier(request)}", limit, window_seconds)

    return Depends(_dep)
