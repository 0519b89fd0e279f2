"""
Routes package for the Scenario Studio API.

This package contains the FastAPI routers for:
- scenarios: Bundled scenario definitions
- sessions: Session lifecycle and engine entry points
- events: SSE event streaming for sessions
"""

from .events import router as events_router
from .scenarios import router as scenarios_router
from .sessions import router as sessions_router

__all__ = [
    "scenarios_router",
    "sessions_router",
    "events_router",
]
