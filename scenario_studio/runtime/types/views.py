"""Runtime projections and derived view models.

ScenarioMessage and InterruptPayload are runtime state owned by the engine.
ProgressGroup, RenderSegment and ScenarioSnapshot are read-only views
recomputed on every state change and handed to presentation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from ._ids import StepId
from .runs import RunState, ToolStatus
from .steps import InterruptOption, StepKind, interrupt_option_to_dict


@dataclass
class ScenarioMessage:
    """Runtime projection of a StepDefinition once it starts executing.

    Created when a step begins; its tool_status is updated in place when
    the step completes. Never deleted during a run.

    Attributes:
        id: Message identifier ("msg-<step_id>").
        step_id: The step this message projects.
        kind: StepKind of the step.
        tool_kind: Tool identifier for tool messages.
        tool_status: pending, running or completed.
        content: Utterance for text messages.
        selected_option: Choice recorded when an interrupt is resolved.
        tool_input: Optional structured input payload.
        options: Interrupt options shown with the message, if any.
    """

    id: str
    step_id: StepId
    kind: StepKind
    tool_kind: Optional[str] = None
    tool_status: ToolStatus = ToolStatus.PENDING
    content: Optional[str] = None
    selected_option: Optional[str] = None
    tool_input: Optional[Dict[str, Any]] = None
    options: Tuple[InterruptOption, ...] = ()


@dataclass(frozen=True)
class InterruptPayload:
    """The open human decision the engine is frozen on."""

    step_id: StepId
    tool_kind: Optional[str]
    question: str
    options: Tuple[InterruptOption, ...] = ()


@dataclass(frozen=True)
class ProgressGroup:
    """Progress view for one progress group.

    progress is None while the group is pending.
    """

    id: str
    label: str
    status: str
    progress: Optional[int] = None


@dataclass(frozen=True)
class RenderSegment:
    """One ordered segment of the render view.

    A "tool-group" segment carries group_id, label, expanded and messages;
    a "text" segment carries the following text message.
    """

    kind: str
    group_id: Optional[str] = None
    label: Optional[str] = None
    messages: Tuple[ScenarioMessage, ...] = ()
    message: Optional[ScenarioMessage] = None
    expanded: bool = False


SEGMENT_TOOL_GROUP = "tool-group"
SEGMENT_TEXT = "text"


@dataclass(frozen=True)
class ScenarioSnapshot:
    """Immutable bundle of every value the engine emits to consumers."""

    scenario_key: str
    run_state: RunState
    messages: Tuple[ScenarioMessage, ...]
    current_step_id: Optional[StepId]
    completed_step_ids: FrozenSet[StepId]
    active_interrupt: Optional[InterruptPayload]
    pending_async_step_id: Optional[StepId]
    progress_groups: Tuple[ProgressGroup, ...]
    render_segments: Tuple[RenderSegment, ...]
    expanded_group_ids: FrozenSet[str]
    active_message_id: Optional[str] = None
    selections: Dict[StepId, str] = field(default_factory=dict)


# =============================================================================
# Serialization Functions
# =============================================================================


def scenario_message_to_dict(message: ScenarioMessage) -> Dict[str, Any]:
    """Convert ScenarioMessage to a dictionary for serialization."""
    return {
        "id": message.id,
        "step_id": message.step_id,
        "kind": message.kind.value,
        "tool_kind": message.tool_kind,
        "tool_status": message.tool_status.value,
        "content": message.content,
        "selected_option": message.selected_option,
        "tool_input": dict(message.tool_input) if message.tool_input else None,
        "options": [interrupt_option_to_dict(o) for o in message.options],
    }


def interrupt_payload_to_dict(payload: InterruptPayload) -> Dict[str, Any]:
    """Convert InterruptPayload to a dictionary for serialization."""
    return {
        "step_id": payload.step_id,
        "tool_kind": payload.tool_kind,
        "question": payload.question,
        "options": [interrupt_option_to_dict(o) for o in payload.options],
    }


def progress_group_to_dict(group: ProgressGroup) -> Dict[str, Any]:
    """Convert ProgressGroup to a dictionary for serialization."""
    return {
        "id": group.id,
        "label": group.label,
        "status": group.status,
        "progress": group.progress,
    }


def render_segment_to_dict(segment: RenderSegment) -> Dict[str, Any]:
    """Convert RenderSegment to a dictionary for serialization."""
    if segment.kind == SEGMENT_TEXT:
        return {
            "kind": segment.kind,
            "message": scenario_message_to_dict(segment.message) if segment.message else None,
        }
    return {
        "kind": segment.kind,
        "group_id": segment.group_id,
        "label": segment.label,
        "expanded": segment.expanded,
        "messages": [scenario_message_to_dict(m) for m in segment.messages],
    }


def scenario_snapshot_to_dict(snapshot: ScenarioSnapshot) -> Dict[str, Any]:
    """Convert ScenarioSnapshot to a dictionary for serialization.

    Sets are emitted as sorted lists so the output is deterministic.
    """
    completed: List[str] = sorted(snapshot.completed_step_ids)
    return {
        "scenario_key": snapshot.scenario_key,
        "run_state": snapshot.run_state.value,
        "messages": [scenario_message_to_dict(m) for m in snapshot.messages],
        "current_step_id": snapshot.current_step_id,
        "completed_step_ids": completed,
        "active_interrupt": (
            interrupt_payload_to_dict(snapshot.active_interrupt)
            if snapshot.active_interrupt
            else None
        ),
        "pending_async_step_id": snapshot.pending_async_step_id,
        "progress_groups": [progress_group_to_dict(g) for g in snapshot.progress_groups],
        "render_segments": [render_segment_to_dict(s) for s in snapshot.render_segments],
        "expanded_group_ids": sorted(snapshot.expanded_group_ids),
        "active_message_id": snapshot.active_message_id,
        "selections": dict(snapshot.selections),
    }
