from fastapi import FastAPI

from .auth import router as auth_router
from .questions import router as questions_router
from .sessions import router as sessions_router
from .surveys import router as surveys_router


def include_modular_routers(app: FastAPI) -> None:
    app.include_router(auth_router, prefix="/auth", tags=["auth"])
    app.include_router(questions_router, tags=["questions"])
    app.include_router(surveys_router, tags=["surveys"])
    app.include_router(sessions_router, tags=["sessions"])


__all__ = ["include_modular_routers"]
