import logging
import time
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from .config import ALLOWED_ORIGINS, BACKEND_RETRY_DELAY_SECONDS, MIGRATIONS_DIR
from .database import SessionLocal
from .errors import LiveSurveyError
from .logging_config import configure_logging
from .routes import include_modular_routers

logger = logging.getLogger(__name__)

app = FastAPI(title="Live Survey API")
include_modular_routers(app)

# explicit origins; credentials mode cannot use "*"
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LiveSurveyError)
async def handle_live_survey_error(request: Request, exc: LiveSurveyError) -> JSONResponse:
    headers = {}
    if exc.retryable:
        headers["Retry-After"] = str(max(1, round(BACKEND_RETRY_DELAY_SECONDS)))
        logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()}, headers=headers)


def run_migrations() -> None:
    docker_dir = Path("/app/migrations")
    local_dir = Path(__file__).resolve().parents[1] / "migrations"

    if MIGRATIONS_DIR:
        migrations_dir = Path(MIGRATIONS_DIR)
    elif docker_dir.exists():
        migrations_dir = docker_dir
    else:
        migrations_dir = local_dir

    if not migrations_dir.exists() or not migrations_dir.is_dir():
        raise FileNotFoundError(
            "Migrations directory not found. Checked: "
            f"MIGRATIONS_DIR={MIGRATIONS_DIR or '<unset>'}, {docker_dir}, {local_dir}"
        )

    files = sorted(f.name for f in migrations_dir.iterdir() if f.is_file() and f.suffix == ".sql")
    with SessionLocal() as db:
        for fname in files:
            db.execute(text((migrations_dir / fname).read_text(encoding="utf-8")))
        db.commit()
    logger.info("applied %s migration file(s) from %s", len(files), migrations_dir)


def wait_for_db(max_attempts: int = 20, delay_seconds: float = 1.5) -> None:
    last_err: Exception | None = None
    for attempt in range(1, max_attempts + 1):
        try:
            with SessionLocal() as db:
                db.execute(text("SELECT 1"))
                db.commit()
            return
        except OperationalError as exc:
            last_err = exc
            logger.info("database not ready (attempt %s/%s)", attempt, max_attempts)
            time.sleep(delay_seconds)
    if last_err:
        raise last_err


@app.on_event("startup")
def on_startup() -> None:
    configure_logging()
    wait_for_db()
    run_migrations()


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
