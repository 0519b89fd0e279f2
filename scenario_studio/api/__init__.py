"""
Scenario Studio API - FastAPI control channel for the scenario engine.

Endpoints:
    Scenarios (from routes/scenarios.py):
        GET    /api/scenarios                               - List bundled scenarios
        GET    /api/scenarios/{key}                         - Get scenario steps and groups

    Session Control (from routes/sessions.py):
        POST   /api/sessions                                - Create session
        GET    /api/sessions                                - List sessions
        GET    /api/sessions/{id}                           - Snapshot plus display views
        DELETE /api/sessions/{id}                           - Close session
        POST   /api/sessions/{id}/start                     - start()
        POST   /api/sessions/{id}/reset                     - reset()
        POST   /api/sessions/{id}/interrupts/{step}/resume  - resume_interrupt()
        POST   /api/sessions/{id}/async/{step}/complete     - complete_async_step()
        POST   /api/sessions/{id}/groups/{group}/toggle     - toggle_segment_expand()
        POST   /api/sessions/{id}/messages/{msg}/toggle     - toggle_message_expand()

    SSE Event Streaming (from routes/events.py):
        GET    /api/sessions/{id}/events                    - Stream engine events

    Health:
        GET    /api/health                                  - Health check
"""

from .routes import events_router, scenarios_router, sessions_router
from .server import app, create_app, get_service

__all__ = [
    "create_app",
    "app",
    "get_service",
    "scenarios_router",
    "sessions_router",
    "events_router",
]
