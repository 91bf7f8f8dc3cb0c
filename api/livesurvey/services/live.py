"""In-process publish/subscribe for session state changes.

Presenter transitions publish the new session snapshot; every participant
stream for that session holds a ``Subscription`` and must cancel it when the
client goes away. Writes made by other worker processes are not published
here, so readers also re-poll the session row (see ``routes/sessions.py``).
"""

import logging
import threading
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable

logger = logging.getLogger(__name__)

Callback = Callable[[dict[str, Any]], None]


def session_snapshot(session: dict[str, Any]) -> dict[str, Any]:
    return {
        "session_id": str(session["id"]),
        "status": session["status"],
        "current_question_index": int(session["current_question_index"]),
    }


@dataclass
class Subscription:
    hub: "SessionHub"
    session_id: str
    token: str = field(default_factory=lambda: uuid.uuid4().hex)
    active: bool = True

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self.hub._remove(self.session_id, self.token)


class SessionHub:
    def __init__(self) -> None:
        self._subscribers: dict[str, dict[str, Callback]] = defaultdict(dict)
        self._lock = threading.Lock()

    def subscribe(self, session_id: str, callback: Callback) -> Subscription:
        subscription = Subscription(hub=self, session_id=str(session_id))
        with self._lock:
            self._subscribers[subscription.session_id][subscription.token] = callback
        return subscription

    def _remove(self, session_id: str, token: str) -> None:
        with self._lock:
            callbacks = self._subscribers.get(session_id)
            if callbacks is None:
                return
            callbacks.pop(token, None)
            if not callbacks:
                del self._subscribers[session_id]

    def subscriber_count(self, session_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(str(session_id), {}))

    def publish(self, session_id: str, snapshot: dict[str, Any]) -> int:
        with self._lock:
            callbacks = list(self._subscribers.get(str(session_id), {}).values())
        delivered = 0
        for callback in callbacks:
            try:
                callback(snapshot)
                delivered += 1
            except Exception:
                logger.exception("live subscriber for session %s failed", session_id)
        return delivered


hub = SessionHub()
