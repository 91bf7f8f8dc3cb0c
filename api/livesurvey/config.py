import os

JWT_SECRET = os.getenv("JWT_SECRET", "")
ACCESS_TOKEN_TTL_MINUTES = int(os.getenv("ACCESS_TOKEN_TTL_MINUTES", "480"))
DEV_MODE = os.getenv("DEV_MODE", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
MIGRATIONS_DIR = os.getenv("MIGRATIONS_DIR", "").strip()

PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:3000").rstrip("/")
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]

SURVEYS_PAGE_SIZE = int(os.getenv("SURVEYS_PAGE_SIZE", "10"))
FREE_TEXT_MAX_LENGTH = int(os.getenv("FREE_TEXT_MAX_LENGTH", "1000"))

DB_CONNECT_TIMEOUT_SECONDS = int(os.getenv("DB_CONNECT_TIMEOUT_SECONDS", "5"))
DB_STATEMENT_TIMEOUT_MS = int(os.getenv("DB_STATEMENT_TIMEOUT_MS", "5000"))
DB_POOL_TIMEOUT_SECONDS = int(os.getenv("DB_POOL_TIMEOUT_SECONDS", "10"))
BACKEND_RETRY_ATTEMPTS = int(os.getenv("BACKEND_RETRY_ATTEMPTS", "3"))
BACKEND_RETRY_DELAY_SECONDS = float(os.getenv("BACKEND_RETRY_DELAY_SECONDS", "0.5"))

LIVE_POLL_SECONDS = float(os.getenv("LIVE_POLL_SECONDS", "2.0"))
LIVE_KEEPALIVE_SECONDS = float(os.getenv("LIVE_KEEPALIVE_SECONDS", "15.0"))

RL_AUTH_REGISTER_LIMIT = int(os.getenv("RL_AUTH_REGISTER_LIMIT", "20"))
RL_AUTH_LOGIN_LIMIT = int(os.getenv("RL_AUTH_LOGIN_LIMIT", "30"))
# answers per participant cookie, and a ceiling per session well above any room-sized audience
RL_PARTICIPANT_ANSWERS_LIMIT = int(os.getenv("RL_PARTICIPANT_ANSWERS_LIMIT", "30"))
RL_SESSION_ANSWERS_LIMIT = int(os.getenv("RL_SESSION_ANSWERS_LIMIT", "20000"))
RL_WINDOW_SECONDS = int(os.getenv("RL_WINDOW_SECONDS", "60"))
