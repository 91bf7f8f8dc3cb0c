import uuid
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from .database import SessionLocal


def _normalize_user(row: Any) -> dict[str, Any]:
    out = dict(row)
    out["id"] = str(out["id"])
    return out


def create_user(email: str, password_hash: str, display_name: str | None = None) -> dict[str, Any] | None:
    user_id = str(uuid.uuid4())
    try:
        with SessionLocal() as db:
            db.execute(
                text(
                    """
                    INSERT INTO user_account (id, email, password_hash, display_name)
                    VALUES (:id, :email, :password_hash, :display_name)
                    """
                ),
                {"id": user_id, "email": email, "password_hash": password_hash, "display_name": display_name},
            )
            db.commit()
    except IntegrityError:
        return None
    return get_user_by_id(user_id)


def get_user_by_email(email: str) -> dict[str, Any] | None:
    with SessionLocal() as db:
        row = db.execute(text("SELECT * FROM user_account WHERE email=:email"), {"email": email}).mappings().first()
    return _normalize_user(row) if row else None


def get_user_by_id(user_id: str) -> dict[str, Any] | None:
    with SessionLocal() as db:
        row = db.execute(text("SELECT * FROM user_account WHERE id=CAST(:id AS uuid)"), {"id": user_id}).mappings().first()
    return _normalize_user(row) if row else None


def update_last_login(user_id: str) -> None:
    with SessionLocal() as db:
        db.execute(text("UPDATE user_account SET last_login_at=NOW() WHERE id=CAST(:id AS uuid)"), {"id": user_id})
        db.commit()
