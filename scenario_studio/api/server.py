"""
FastAPI REST API server for Scenario Studio.

Exposes the scenario engine as a control channel: clients create sessions,
drive them through the engine entry points, read snapshots, and follow
the engine event stream over SSE.

Usage:
    # Run standalone
    python -m scenario_studio.api.server

    # Or via factory
    from scenario_studio.api import create_app
    app = create_app()
    uvicorn.run(app, port=5010)

API Structure:
    /api/scenarios/              - Bundled scenarios (from routes/scenarios.py)
    /api/sessions/               - Session control (from routes/sessions.py)
    /api/sessions/{id}/events    - SSE streaming (from routes/events.py)
    /api/health                  - Health check
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from scenario_studio import __version__
from scenario_studio.config.tool_catalog import ToolCatalog, get_tool_catalog
from scenario_studio.runtime.scheduler import Scheduler
from scenario_studio.runtime.service import ScenarioService

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# =============================================================================
# Pydantic Models for Request/Response
# =============================================================================


class HealthResponse(BaseModel):
    """Response for health check endpoint."""

    status: str
    timestamp: str
    version: str
    scenario_count: int = 0
    session_count: int = 0


# =============================================================================
# Application State
# =============================================================================


_service: Optional[ScenarioService] = None
_scheduler_factory: Optional[Callable[[], Scheduler]] = None


def get_service() -> ScenarioService:
    """Get the ScenarioService the app was created with."""
    global _service
    if _service is None:
        _service = ScenarioService.get_instance()
    return _service


def get_scheduler_factory() -> Optional[Callable[[], Scheduler]]:
    """Get the scheduler factory for new sessions, if one was configured."""
    return _scheduler_factory


def new_scheduler() -> Optional[Scheduler]:
    """Build a scheduler for a new session; None lets the service choose."""
    factory = get_scheduler_factory()
    return factory() if factory is not None else None


def get_catalog() -> ToolCatalog:
    """Tool catalog used to build display descriptors."""
    return get_tool_catalog()


# =============================================================================
# Application Factory
# =============================================================================


def create_app(
    service: Optional[ScenarioService] = None,
    scheduler_factory: Optional[Callable[[], Scheduler]] = None,
    enable_cors: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        service: Session service to serve; the singleton by default.
        scheduler_factory: Builds the timer source for each new session.
            Tests pass a ManualScheduler factory to drive time explicitly.
        enable_cors: Whether to enable CORS middleware.

    Returns:
        Configured FastAPI application.
    """
    global _service, _scheduler_factory
    _service = service
    _scheduler_factory = scheduler_factory

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager.

        On shutdown every open session is closed so no engine timers
        outlive the server.
        """
        logger.info("Scenario API server starting...")
        yield
        logger.info("Scenario API server shutting down...")
        get_service().close_all()

    app = FastAPI(
        title="Scenario Studio API",
        description="Control channel for scripted scenario runs: sessions, engine entry points, snapshots and event streaming.",
        version=__version__,
        lifespan=lifespan,
    )

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
            allow_headers=["*"],
        )

    # -------------------------------------------------------------------------
    # Include Modular Routers
    # -------------------------------------------------------------------------
    from .routes import events_router, scenarios_router, sessions_router

    app.include_router(scenarios_router, prefix="/api")
    app.include_router(sessions_router, prefix="/api")
    app.include_router(events_router, prefix="/api")

    # -------------------------------------------------------------------------
    # Request Logging Middleware
    # -------------------------------------------------------------------------

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        duration = time.time() - start_time
        logger.info(
            "%s %s %s %.3fs",
            request.method,
            request.url.path,
            response.status_code,
            duration,
        )
        return response

    # -------------------------------------------------------------------------
    # Health Check
    # -------------------------------------------------------------------------

    @app.get("/api/health", response_model=HealthResponse)
    async def health_check():
        """Health check endpoint.

        Reports "degraded" when no scenario could be loaded.
        """
        svc = get_service()
        scenario_count = len(svc.registry.scenario_order)
        return HealthResponse(
            status="ok" if scenario_count else "degraded",
            timestamp=datetime.now(timezone.utc).isoformat(),
            version=__version__,
            scenario_count=scenario_count,
            session_count=len(svc.list_sessions()),
        )

    return app


# Default app instance
app = create_app()


def main():
    """Run the API server."""
    import argparse

    import uvicorn

    parser = argparse.ArgumentParser(description="Scenario Studio API Server")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    parser.add_argument("--port", type=int, default=5010, help="Port to bind to")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--no-cors", action="store_true", help="Disable CORS")
    args = parser.parse_args()

    if args.debug:
        logging.getLogger("scenario_studio").setLevel(logging.DEBUG)

    global app
    app = create_app(enable_cors=not args.no_cors)

    print(f"Starting Scenario Studio API server at http://{args.host}:{args.port}")
    print("\nEndpoints:")
    print("    GET    /api/scenarios                              - List scenarios")
    print("    GET    /api/scenarios/{key}                        - Get scenario")
    print("    POST   /api/sessions                               - Create session")
    print("    GET    /api/sessions                               - List sessions")
    print("    GET    /api/sessions/{id}                          - Session snapshot")
    print("    DELETE /api/sessions/{id}                          - Close session")
    print("    POST   /api/sessions/{id}/start                    - Start run")
    print("    POST   /api/sessions/{id}/reset                    - Reset run")
    print("    POST   /api/sessions/{id}/interrupts/{step}/resume - Resolve interrupt")
    print("    POST   /api/sessions/{id}/async/{step}/complete    - Complete async step")
    print("    POST   /api/sessions/{id}/groups/{group}/toggle    - Toggle group")
    print("    POST   /api/sessions/{id}/messages/{msg}/toggle    - Toggle message")
    print("    GET    /api/sessions/{id}/events                   - SSE event stream")
    print("    GET    /api/health                                 - Health check")

    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
