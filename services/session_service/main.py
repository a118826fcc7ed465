from fastapi import FastAPI

from shared.errors import register_error_handlers
from shared.observability.setup import setup_observability

from .models import Session, SessionItem # noqa: F401 - registers models with Base
from .router import router, public_router

session_app = FastAPI(title="Session Service", version="2.0.0")

# --- OBSERVABILITY BOOTSTRAP ---
setup_observability(session_app, "session_service")
register_error_handlers(session_app)

session_app.include_router(public_router)
session_app.include_router(router)
