"""
message_views.py - Display descriptors for messages and tool-group segments.

Rendering must degrade gracefully: a tool kind missing from the catalog
produces a view with a placeholder body instead of an error.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from scenario_studio.config.tool_catalog import ToolCatalog
from scenario_studio.runtime.types import (
    SEGMENT_TOOL_GROUP,
    RenderSegment,
    ScenarioMessage,
    StepKind,
    ToolStatus,
)

NO_DETAIL_PLACEHOLDER = "도구 상세 정보가 없습니다."
AWAITING_INPUT_SUFFIX = " (입력 대기)"


@dataclass(frozen=True)
class MessageView:
    """How one message should be presented.

    Attributes:
        message_id: Id of the described message.
        title: Tool display label, or empty for text messages.
        status_label: Header text for the current tool status.
        has_detail: False when the tool kind is unknown.
        placeholder: Body text to show instead of tool details, if any.
    """

    message_id: str
    title: str
    status_label: str
    has_detail: bool = True
    placeholder: Optional[str] = None


@dataclass(frozen=True)
class SegmentView:
    """Header summary of a tool-group segment."""

    group_id: str
    label: str
    completed_count: int
    total_count: int
    is_complete: bool
    is_running: bool
    active_tool_label: Optional[str] = None


def describe_message(
    message: ScenarioMessage,
    catalog: ToolCatalog,
    awaiting_input: bool = False,
) -> MessageView:
    """Describe a message for presentation.

    Args:
        message: The message to describe.
        catalog: Tool catalog for labels.
        awaiting_input: The message is the step an open interrupt froze on.
    """
    if message.kind == StepKind.TEXT:
        return MessageView(message_id=message.id, title="", status_label=message.content or "")

    meta = catalog.get_metadata(message.tool_kind)
    if meta is None:
        return MessageView(
            message_id=message.id,
            title=message.tool_kind or "",
            status_label=message.tool_kind or "",
            has_detail=False,
            placeholder=NO_DETAIL_PLACEHOLDER,
        )

    if awaiting_input:
        status_label = f"{meta.label}{AWAITING_INPUT_SUFFIX}"
    elif message.tool_status == ToolStatus.RUNNING:
        status_label = meta.label_running or meta.label
    elif message.tool_status == ToolStatus.COMPLETED:
        status_label = meta.label_complete or meta.label
    else:
        status_label = meta.label

    return MessageView(message_id=message.id, title=meta.label, status_label=status_label)


def describe_segment(segment: RenderSegment, catalog: ToolCatalog) -> Optional[SegmentView]:
    """Summarize a tool-group segment header; None for text segments."""
    if segment.kind != SEGMENT_TOOL_GROUP:
        return None

    total = len(segment.messages)
    done = sum(1 for m in segment.messages if m.tool_status == ToolStatus.COMPLETED)
    active = next((m for m in segment.messages if m.tool_status == ToolStatus.RUNNING), None)
    active_label = None
    if active is not None:
        meta = catalog.get_metadata(active.tool_kind)
        active_label = meta.label_running if meta else None

    return SegmentView(
        group_id=segment.group_id or "",
        label=segment.label or "",
        completed_count=done,
        total_count=total,
        is_complete=total > 0 and done == total,
        is_running=active is not None,
        active_tool_label=active_label,
    )


def message_view_to_dict(view: MessageView) -> Dict[str, Any]:
    return {
        "message_id": view.message_id,
        "title": view.title,
        "status_label": view.status_label,
        "has_detail": view.has_detail,
        "placeholder": view.placeholder,
    }


def segment_view_to_dict(view: SegmentView) -> Dict[str, Any]:
    return {
        "group_id": view.group_id,
        "label": view.label,
        "completed_count": view.completed_count,
        "total_count": view.total_count,
        "is_complete": view.is_complete,
        "is_running": view.is_running,
        "active_tool_label": view.active_tool_label,
    }
