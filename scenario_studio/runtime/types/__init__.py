"""
types - Core type definitions for the scenario runtime

This package provides the data types shared by the engine, the derived
view builders and the API layer: authored step definitions, run state,
runtime messages, view models and the engine event record.

All types use dataclasses with full type annotations.

Usage:
    from scenario_studio.runtime.types import (
        RunState, ToolStatus, StepKind,
        StepDefinition, InterruptOption,
        ProgressGroupDefinition, RenderGroupDefinition,
        ScenarioMessage, InterruptPayload,
        ProgressGroup, RenderSegment, ScenarioSnapshot,
        EngineEvent, EventKind,
        scenario_snapshot_to_dict, engine_event_to_dict,
    )
"""

from __future__ import annotations

from ._ids import SessionId, StepId, generate_session_id, message_id_for_step
from .runs import (
    EngineEvent,
    EventKind,
    RunState,
    ToolStatus,
    engine_event_from_dict,
    engine_event_to_dict,
)
from .steps import (
    FINAL_TEXT_MARKER,
    InterruptOption,
    ProgressGroupDefinition,
    RenderGroupDefinition,
    StepDefinition,
    StepKind,
    interrupt_option_from_dict,
    interrupt_option_to_dict,
    progress_group_from_dict,
    render_group_from_dict,
    step_definition_from_dict,
    step_definition_to_dict,
)
from .views import (
    SEGMENT_TEXT,
    SEGMENT_TOOL_GROUP,
    InterruptPayload,
    ProgressGroup,
    RenderSegment,
    ScenarioMessage,
    ScenarioSnapshot,
    interrupt_payload_to_dict,
    progress_group_to_dict,
    render_segment_to_dict,
    scenario_message_to_dict,
    scenario_snapshot_to_dict,
)

__all__ = [
    # IDs
    "SessionId",
    "StepId",
    "generate_session_id",
    "message_id_for_step",
    # Run lifecycle
    "RunState",
    "ToolStatus",
    "EventKind",
    "EngineEvent",
    "engine_event_to_dict",
    "engine_event_from_dict",
    # Definitions
    "FINAL_TEXT_MARKER",
    "StepKind",
    "StepDefinition",
    "InterruptOption",
    "ProgressGroupDefinition",
    "RenderGroupDefinition",
    "step_definition_to_dict",
    "step_definition_from_dict",
    "interrupt_option_to_dict",
    "interrupt_option_from_dict",
    "progress_group_from_dict",
    "render_group_from_dict",
    # Views
    "SEGMENT_TOOL_GROUP",
    "SEGMENT_TEXT",
    "ScenarioMessage",
    "InterruptPayload",
    "ProgressGroup",
    "RenderSegment",
    "ScenarioSnapshot",
    "scenario_message_to_dict",
    "interrupt_payload_to_dict",
    "progress_group_to_dict",
    "render_segment_to_dict",
    "scenario_snapshot_to_dict",
]
