"""
Session control endpoints for the Scenario Studio API.

Provides REST endpoints for:
- Creating, listing, inspecting and closing sessions
- Calling the engine entry points (start, reset, resume interrupt,
  complete async step, toggle group, toggle message)

Every action endpoint answers 200 with "accepted" telling whether the
engine applied the call; an ignored call is not an HTTP error.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from scenario_studio.runtime.message_views import (
    describe_message,
    describe_segment,
    message_view_to_dict,
    segment_view_to_dict,
)
from scenario_studio.runtime.service import (
    ScenarioNotFoundError,
    ScenarioSession,
    session_summary_to_dict,
)
from scenario_studio.runtime.types import scenario_snapshot_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


# =============================================================================
# Pydantic Models
# =============================================================================


class SessionCreateRequest(BaseModel):
    """Request to create a session."""

    scenario_key: str = Field(..., description="Scenario to run")
    autostart: bool = Field(False, description="Start the run immediately")


class SessionSummary(BaseModel):
    """Session summary for list endpoint."""

    session_id: str
    scenario_key: str
    run_state: str
    created_at: str
    last_seq: int = 0


class SessionListResponse(BaseModel):
    """Response for list sessions endpoint."""

    sessions: List[SessionSummary]


class SessionStateResponse(BaseModel):
    """Full session state: snapshot plus display descriptors."""

    session_id: str
    scenario_key: str
    snapshot: Dict[str, Any]
    message_views: List[Dict[str, Any]] = Field(default_factory=list)
    segment_views: List[Dict[str, Any]] = Field(default_factory=list)


class ActionResponse(BaseModel):
    """Response for engine entry point calls."""

    session_id: str
    action: str
    accepted: bool
    snapshot: Dict[str, Any]


class ResumeRequest(BaseModel):
    """Request to resolve an open interrupt."""

    choice_id: str = Field(..., description="Chosen option id")


# =============================================================================
# Helpers
# =============================================================================


def _session_not_found(session_id: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={
            "error": "session_not_found",
            "message": f"Session '{session_id}' not found",
            "details": {"session_id": session_id},
        },
    )


def _require_session(session_id: str) -> ScenarioSession:
    from ..server import get_service

    session = get_service().get_session(session_id)
    if session is None:
        raise _session_not_found(session_id)
    return session


def _state_response(session: ScenarioSession) -> SessionStateResponse:
    from ..server import get_catalog

    catalog = get_catalog()
    snapshot = session.engine.snapshot()
    interrupt_step = snapshot.active_interrupt.step_id if snapshot.active_interrupt else None
    message_views = [
        message_view_to_dict(describe_message(m, catalog, awaiting_input=m.step_id == interrupt_step))
        for m in snapshot.messages
    ]
    segment_views = []
    for segment in snapshot.render_segments:
        view = describe_segment(segment, catalog)
        if view is not None:
            segment_views.append(segment_view_to_dict(view))
    return SessionStateResponse(
        session_id=session.session_id,
        scenario_key=session.scenario_key,
        snapshot=scenario_snapshot_to_dict(snapshot),
        message_views=message_views,
        segment_views=segment_views,
    )


def _action_response(session: ScenarioSession, action: str, accepted: bool) -> ActionResponse:
    return ActionResponse(
        session_id=session.session_id,
        action=action,
        accepted=accepted,
        snapshot=scenario_snapshot_to_dict(session.engine.snapshot()),
    )


# =============================================================================
# Session Lifecycle
# =============================================================================


@router.post("", response_model=SessionStateResponse, status_code=201)
async def create_session(request: SessionCreateRequest):
    """Create a session for a bundled scenario.

    Raises:
        HTTPException: 404 if the scenario is not registered.
    """
    from ..server import get_service, new_scheduler

    try:
        session = get_service().create_session(
            request.scenario_key,
            scheduler=new_scheduler(),
            autostart=request.autostart,
        )
    except ScenarioNotFoundError as e:
        raise HTTPException(
            status_code=404,
            detail={
                "error": "scenario_not_found",
                "message": str(e),
                "details": {"scenario_key": request.scenario_key},
            },
        )
    return _state_response(session)


@router.get("", response_model=SessionListResponse)
async def list_sessions(scenario_key: Optional[str] = None):
    """List open sessions, optionally filtered by scenario."""
    from ..server import get_service

    sessions = get_service().list_sessions()
    if scenario_key:
        sessions = [s for s in sessions if s.scenario_key == scenario_key]
    return SessionListResponse(sessions=[SessionSummary(**session_summary_to_dict(s)) for s in sessions])


@router.get("/{session_id}", response_model=SessionStateResponse)
async def get_session(session_id: str):
    """Get a session's snapshot and display descriptors."""
    return _state_response(_require_session(session_id))


@router.delete("/{session_id}")
async def close_session(session_id: str) -> Dict[str, Any]:
    """Dispose a session's engine and remove the session."""
    from ..server import get_service

    if not get_service().close_session(session_id):
        raise _session_not_found(session_id)
    return {"session_id": session_id, "closed": True}


# =============================================================================
# Engine Entry Points
# =============================================================================


@router.post("/{session_id}/start", response_model=ActionResponse)
async def start_session(session_id: str):
    """Start (or restart after completion) the session's run."""
    session = _require_session(session_id)
    return _action_response(session, "start", session.engine.start())


@router.post("/{session_id}/reset", response_model=ActionResponse)
async def reset_session(session_id: str):
    """Cancel pending work and return the run to idle."""
    session = _require_session(session_id)
    return _action_response(session, "reset", session.engine.reset())


@router.post("/{session_id}/interrupts/{step_id}/resume", response_model=ActionResponse)
async def resume_interrupt(session_id: str, step_id: str, request: ResumeRequest):
    """Resolve the open interrupt with a choice."""
    session = _require_session(session_id)
    accepted = session.engine.resume_interrupt(step_id, request.choice_id)
    return _action_response(session, "resume_interrupt", accepted)


@router.post("/{session_id}/async/{step_id}/complete", response_model=ActionResponse)
async def complete_async_step(session_id: str, step_id: str):
    """Signal that an async step's external work finished."""
    session = _require_session(session_id)
    return _action_response(session, "complete_async_step", session.engine.complete_async_step(step_id))


@router.post("/{session_id}/groups/{group_id}/toggle", response_model=ActionResponse)
async def toggle_group(session_id: str, group_id: str):
    """Flip a render group's expand flag."""
    session = _require_session(session_id)
    return _action_response(session, "toggle_segment_expand", session.engine.toggle_segment_expand(group_id))


@router.post("/{session_id}/messages/{message_id}/toggle", response_model=ActionResponse)
async def toggle_message(session_id: str, message_id: str):
    """Expand a message (accordion style) or collapse it again."""
    session = _require_session(session_id)
    return _action_response(session, "toggle_message_expand", session.engine.toggle_message_expand(message_id))
