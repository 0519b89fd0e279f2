"""Run types for the engine lifecycle and event stream.

This module contains the run state enumeration, per-message tool status,
and the engine event record emitted to subscribers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from ._ids import StepId, _generate_event_id
from ._time import _datetime_to_iso, _iso_to_datetime, _utcnow


class RunState(str, Enum):
    """Lifecycle state of a scenario run.

    Exactly one of: not started, advancing, frozen awaiting external
    input (interrupt or async gate), finished.
    """

    IDLE = "idle"
    RUNNING = "running"
    INTERRUPTED = "interrupted"
    COMPLETED = "completed"


class ToolStatus(str, Enum):
    """Status of a tool message."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"


class EventKind:
    """Standard engine event kinds."""

    RUN_STARTED = "run_started"
    RUN_INTERRUPTED = "run_interrupted"
    RUN_COMPLETED = "run_completed"
    RUN_RESET = "run_reset"

    STEP_STARTED = "step_started"
    STEP_COMPLETED = "step_completed"

    ASYNC_WAIT_STARTED = "async_wait_started"
    ASYNC_COMPLETED = "async_completed"
    INTERRUPT_RESOLVED = "interrupt_resolved"

    GROUP_AUTO_COLLAPSED = "group_auto_collapsed"
    GROUP_TOGGLED = "group_toggled"
    MESSAGE_TOGGLED = "message_toggled"

    TRANSITION_IGNORED = "transition_ignored"
    ENGINE_DISPOSED = "engine_disposed"


@dataclass
class EngineEvent:
    """A single event in an engine's timeline.

    Attributes:
        scenario_key: The scenario the engine is running.
        kind: Event type (see EventKind).
        seq: Monotonic sequence number within the engine.
        ts: Timestamp of the event.
        event_id: Globally unique identifier for this event.
        step_id: Optional step the event concerns.
        payload: Event-specific data. For run_interrupted this carries the
            interrupt payload; for transition_ignored it carries
            "operation", "reason" and "run_state".
    """

    scenario_key: str
    kind: str
    seq: int = 0
    ts: datetime = field(default_factory=_utcnow)
    event_id: str = field(default_factory=_generate_event_id)
    step_id: Optional[StepId] = None
    payload: Dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Serialization Functions
# =============================================================================


def engine_event_to_dict(event: EngineEvent) -> Dict[str, Any]:
    """Convert EngineEvent to a dictionary for serialization.

    Args:
        event: The EngineEvent to convert.

    Returns:
        Dictionary representation suitable for JSON serialization.
    """
    return {
        "event_id": event.event_id,
        "seq": event.seq,
        "scenario_key": event.scenario_key,
        "ts": _datetime_to_iso(event.ts),
        "kind": event.kind,
        "step_id": event.step_id,
        "payload": dict(event.payload),
    }


def engine_event_from_dict(data: Dict[str, Any]) -> EngineEvent:
    """Parse EngineEvent from a dictionary.

    Args:
        data: Dictionary with EngineEvent fields.

    Returns:
        Parsed EngineEvent instance.
    """
    return EngineEvent(
        scenario_key=data.get("scenario_key", ""),
        kind=data["kind"],
        seq=data.get("seq", 0),
        ts=_iso_to_datetime(data.get("ts")) or _utcnow(),
        event_id=data.get("event_id") or _generate_event_id(),
        step_id=data.get("step_id"),
        payload=dict(data.get("payload", {})),
    )
