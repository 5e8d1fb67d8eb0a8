"""Route registration for the LeadPilot API."""

from fastapi import FastAPI

from .chat import router as chat_router
from .exports import router as exports_router
from .settings import router as settings_router


def register_routes(app: FastAPI):
    app.include_router(chat_router)
    app.include_router(exports_router)
    app.include_router(settings_router)
