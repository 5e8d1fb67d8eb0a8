"""LeadPilot HTTP server (FastAPI)."""

from .app import api

__all__ = ["api"]
