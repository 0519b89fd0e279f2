"""
SSE event streaming endpoints for the Scenario Studio API.

Provides Server-Sent Events (SSE) streaming of a session's engine events:
- Backlog replay from a sequence number (?since=N)
- Live follow with periodic heartbeats until the session is closed
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse

from scenario_studio.runtime.types import RunState, engine_event_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["events"])


# =============================================================================
# Event Types
# =============================================================================


class StreamEventType:
    """Stream-level event types; engine events keep their own kind."""

    CONNECTED = "connected"
    HEARTBEAT = "heartbeat"
    CLOSED = "closed"
    ERROR = "error"


# =============================================================================
# Event Formatting
# =============================================================================


def format_sse_event(
    event_type: str,
    data: Dict[str, Any],
    event_id: Optional[str] = None,
    retry: Optional[int] = None,
) -> str:
    """Format an SSE event.

    SSE format:
        id: <event_id>
        event: <event_type>
        retry: <milliseconds>
        data: <json_data>

    Args:
        event_type: Event type name.
        data: Event data (will be JSON serialized).
        event_id: Optional event ID for resumption.
        retry: Optional retry interval in milliseconds.

    Returns:
        Formatted SSE event string.
    """
    lines = []

    if event_id:
        lines.append(f"id: {event_id}")

    if event_type:
        lines.append(f"event: {event_type}")

    if retry:
        lines.append(f"retry: {retry}")

    if "timestamp" not in data:
        data["timestamp"] = datetime.now(timezone.utc).isoformat()

    # Clients dispatch on data.type
    if "type" not in data:
        data["type"] = event_type

    lines.append(f"data: {json.dumps(data, ensure_ascii=False)}")
    lines.append("")

    return "\n".join(lines) + "\n"


# =============================================================================
# Event Generation
# =============================================================================


async def generate_session_events(
    session_id: str,
    since: int = 0,
    follow: bool = True,
    poll_interval: float = 0.25,
    heartbeat_interval: float = 15.0,
) -> AsyncGenerator[str, None]:
    """Generate SSE events for a session.

    Yields:
    1. A connected event
    2. Logged engine events with seq > since, in order; the SSE id is the
       engine sequence number so clients can resume with ?since=<id>
    3. Heartbeats every heartbeat_interval seconds while following
    4. A closed event when the session disappears (or, with follow=False,
       once the backlog is drained)

    Args:
        session_id: Session identifier.
        since: Last sequence number the client already has.
        follow: Keep polling for new events after the backlog.
        poll_interval: Seconds between polls.
        heartbeat_interval: Seconds between heartbeats.
    """
    from ..server import get_service

    service = get_service()
    last_seq = since
    last_heartbeat = datetime.now(timezone.utc)

    yield format_sse_event(
        StreamEventType.CONNECTED,
        {"session_id": session_id, "since": since, "message": "Connected to event stream"},
        retry=int(poll_interval * 1000) or None,
    )

    while True:
        try:
            try:
                events = service.events_since(session_id, last_seq)
            except KeyError:
                yield format_sse_event(
                    StreamEventType.CLOSED,
                    {"session_id": session_id, "last_seq": last_seq},
                )
                break

            for event in events:
                last_seq = event.seq
                yield format_sse_event(
                    event.kind,
                    engine_event_to_dict(event),
                    event_id=str(event.seq),
                )

            if not follow:
                yield format_sse_event(
                    StreamEventType.CLOSED,
                    {"session_id": session_id, "last_seq": last_seq},
                )
                break

            now = datetime.now(timezone.utc)
            if (now - last_heartbeat).total_seconds() >= heartbeat_interval:
                session = service.get_session(session_id)
                run_state = session.engine.run_state if session else RunState.IDLE
                yield format_sse_event(
                    StreamEventType.HEARTBEAT,
                    {
                        "session_id": session_id,
                        "run_state": run_state.value,
                        "last_seq": last_seq,
                    },
                )
                last_heartbeat = now

            await asyncio.sleep(poll_interval)

        except asyncio.CancelledError:
            logger.debug("SSE client disconnected for session %s", session_id)
            break


# =============================================================================
# SSE Endpoint
# =============================================================================


@router.get("/{session_id}/events")
async def stream_session_events(
    session_id: str,
    request: Request,
    since: int = 0,
    follow: bool = True,
):
    """Stream Server-Sent Events for a session.

    Args:
        session_id: Session identifier.
        request: FastAPI request object for disconnect detection.
        since: Replay only events with a larger sequence number.
        follow: Keep the stream open for live events.

    Returns:
        StreamingResponse with SSE content type.

    Example events:
        event: connected
        data: {"session_id": "ppt-...", "since": 0}

        id: 1
        event: run_started
        data: {"seq": 1, "kind": "run_started", ...}

        id: 9
        event: run_interrupted
        data: {"seq": 9, "step_id": "tool_data_source", "payload": {...}}

        event: heartbeat
        data: {"session_id": "ppt-...", "run_state": "interrupted"}
    """
    from ..server import get_service

    if get_service().get_session(session_id) is None:
        raise HTTPException(
            status_code=404,
            detail={
                "error": "session_not_found",
                "message": f"Session '{session_id}' not found",
                "details": {"session_id": session_id},
            },
        )

    async def event_stream():
        async for event in generate_session_events(session_id, since=since, follow=follow):
            if follow and await request.is_disconnected():
                break
            yield event

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
