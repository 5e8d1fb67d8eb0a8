"""FastAPI app creation, global state, and request helpers."""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional, Tuple

from fastapi import FastAPI, HTTPException, Request

from ..app import LeadPilot

logger = logging.getLogger(__name__)

_config_path = os.getenv("LEADPILOT_CONFIG", "config.yaml")

_app: Optional[LeadPilot] = None

_INTERNAL_SERVICE_KEY = os.getenv("LEADPILOT_SERVICE_KEY")


def require_app() -> LeadPilot:
    """Raise 503 if app is not configured. Lazy-loads on first call."""
    global _app
    if _app is None:
        if not os.path.exists(_config_path):
            logger.warning(f"Config not found: {_config_path}")
            raise HTTPException(503, "Not configured")
        _app = LeadPilot(_config_path)
        logger.info(f"LeadPilot loaded from {_config_path}")
    return _app


def set_app(new_app: Optional[LeadPilot]):
    """Replace the global LeadPilot instance."""
    global _app
    _app = new_app


def verify_service_key(request: Request):
    """Verify X-Service-Key header. Identity headers are trusted only behind it."""
    if _INTERNAL_SERVICE_KEY is None:
        raise HTTPException(
            500,
            "LEADPILOT_SERVICE_KEY is not configured. "
            "Set the LEADPILOT_SERVICE_KEY environment variable to enable the API.",
        )
    key = request.headers.get("x-service-key", "")
    if key != _INTERNAL_SERVICE_KEY:
        raise HTTPException(403, "Invalid service key")


def caller_identity(request: Request) -> Tuple[str, str]:
    """Return (tenant_id, user_id) from the trusted upstream headers."""
    tenant_id = request.headers.get("x-tenant-id", "")
    user_id = request.headers.get("x-user-id", "")
    if not tenant_id or not user_id:
        raise HTTPException(401, "Missing X-Tenant-Id or X-User-Id header")
    return tenant_id, user_id


@asynccontextmanager
async def _lifespan(_api: FastAPI):
    yield
    if _app is not None:
        await _app.shutdown()


def _create_api() -> FastAPI:
    """Create and configure the FastAPI app with routes."""
    _api = FastAPI(title="LeadPilot", version="0.1.0", lifespan=_lifespan)

    from .routes import register_routes
    register_routes(_api)
    return _api


api = _create_api()
