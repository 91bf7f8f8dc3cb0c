import logging
import os
import time
from typing import Any, Callable, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import sessionmaker

from .config import (
    BACKEND_RETRY_ATTEMPTS,
    BACKEND_RETRY_DELAY_SECONDS,
    DB_CONNECT_TIMEOUT_SECONDS,
    DB_POOL_TIMEOUT_SECONDS,
    DB_STATEMENT_TIMEOUT_MS,
)
from .errors import BackendUnavailable

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "postgresql+psycopg2://postgres:postgres@db:5432/livesurvey")

engine = create_engine(
    DATABASE_URL,
    future=True,
    pool_pre_ping=True,
    pool_timeout=DB_POOL_TIMEOUT_SECONDS,
    connect_args={
        "connect_timeout": DB_CONNECT_TIMEOUT_SECONDS,
        "options": f"-c statement_timeout={DB_STATEMENT_TIMEOUT_MS}",
    },
)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

T = TypeVar("T")

TRANSIENT_ERRORS = (OperationalError, PoolTimeoutError)


def _is_transient(exc: Exception) -> bool:
    if isinstance(exc, TRANSIENT_ERRORS):
        return True
    return isinstance(exc, DBAPIError) and bool(exc.connection_invalidated)


def call_with_retry(
    fn: Callable[..., T],
    *args: Any,
    attempts: int = BACKEND_RETRY_ATTEMPTS,
    delay_seconds: float = BACKEND_RETRY_DELAY_SECONDS,
    **kwargs: Any,
) -> T:
    """Run a repository call, retrying transient backend failures.

    Only idempotent reads and overwrite-safe writes should pass ``attempts > 1``;
    additive writes call this with ``attempts=1`` so a failure is surfaced instead
    of double counted.
    """
    last_err: Exception | None = None
    name = getattr(fn, "__name__", repr(fn))
    for attempt in range(1, max(1, attempts) + 1):
        try:
            return fn(*args, **kwargs)
        except DBAPIError as exc:
            if not _is_transient(exc):
                raise
            last_err = exc
        except PoolTimeoutError as exc:
            last_err = exc
        logger.warning("backend call %s failed (attempt %s/%s): %s", name, attempt, attempts, last_err)
        if attempt < attempts:
            time.sleep(delay_seconds)
    raise BackendUnavailable("The survey backend is temporarily unavailable. Please try again.") from last_err
