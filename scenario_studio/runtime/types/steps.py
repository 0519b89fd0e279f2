"""Authored step and grouping definitions.

These types are static configuration supplied by a scenario. They are
immutable once loaded; the engine only reads them.

Types:
    StepKind: Whether a step is a tool invocation or an agent utterance.
    InterruptOption: One preset choice offered by an interrupt step.
    StepDefinition: One authored unit of work in the scripted workflow.
    ProgressGroupDefinition: Labeled bucket of step ids for progress display.
    RenderGroupDefinition: Labeled bucket of tool step ids for segment display.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from ._ids import StepId

# Literal text content that marks the closing agent utterance. Presentation
# renders a dedicated "done" view for it instead of a text segment.
FINAL_TEXT_MARKER = "final"


class StepKind(str, Enum):
    """Kind of an authored step."""

    TOOL = "tool"
    TEXT = "text"


@dataclass(frozen=True)
class InterruptOption:
    """A single preset choice offered while the engine waits on a human.

    Attributes:
        id: Choice identifier passed back through resume_interrupt().
        label: Short human-readable label.
        description: Optional longer explanation.
        icon: Optional icon glyph for presentation.
        recommended: Whether presentation should highlight this option.
    """

    id: str
    label: str
    description: str = ""
    icon: Optional[str] = None
    recommended: bool = False


@dataclass(frozen=True)
class StepDefinition:
    """A single authored step within a scenario.

    Steps form a linear sequence. Execution is index-ordered; when a step
    declares depends_on equal to the step just before it, the engine
    inserts the settle delay between the two.

    Attributes:
        id: Unique identifier within the scenario.
        kind: StepKind.TOOL or StepKind.TEXT.
        tool_kind: Tool identifier for tool steps (keys the tool catalog).
        depends_on: Optional id of a prerequisite (earlier) step.
        delay_ms: Simulated execution latency. None means "use the
            configured default for this kind of step". An explicit 0 is
            kept as 0 (complete on the next scheduler tick); it does not
            fall back to the default.
        is_interrupt: Suspend for a human choice instead of a timer.
        is_async: Suspend for an external completion signal.
        text_content: Utterance for text steps.
        tool_input: Optional structured payload copied onto the message.
        question: Optional interrupt question overriding the catalog.
        options: Optional interrupt options overriding the catalog.
    """

    id: StepId
    kind: StepKind
    tool_kind: Optional[str] = None
    depends_on: Optional[StepId] = None
    delay_ms: Optional[int] = None
    is_interrupt: bool = False
    is_async: bool = False
    text_content: Optional[str] = None
    tool_input: Optional[Dict[str, Any]] = None
    question: Optional[str] = None
    options: Tuple[InterruptOption, ...] = ()

    @property
    def is_suspending(self) -> bool:
        """True when the step freezes the engine instead of scheduling a timer."""
        return self.kind == StepKind.TOOL and (self.is_interrupt or self.is_async)


@dataclass(frozen=True)
class ProgressGroupDefinition:
    """Labeled bucket of step ids used by the progress aggregator."""

    id: str
    label: str
    step_ids: Tuple[StepId, ...] = ()


@dataclass(frozen=True)
class RenderGroupDefinition:
    """Labeled bucket of tool step ids rendered as one collapsible segment.

    Attributes:
        id: Group identifier (also the expand/collapse key).
        label: Static fallback label; the rendered label is generated
            from the member tool kinds.
        step_ids: Member tool step ids, in display order.
        following_text_step_id: Optional text step rendered right after
            the group.
        initially_expanded: Expand flag restored on construction and reset.
    """

    id: str
    label: str
    step_ids: Tuple[StepId, ...] = ()
    following_text_step_id: Optional[StepId] = None
    initially_expanded: bool = False


# =============================================================================
# Serialization Functions
# =============================================================================


def interrupt_option_to_dict(option: InterruptOption) -> Dict[str, Any]:
    """Convert InterruptOption to a dictionary for serialization."""
    return {
        "id": option.id,
        "label": option.label,
        "description": option.description,
        "icon": option.icon,
        "recommended": option.recommended,
    }


def interrupt_option_from_dict(data: Dict[str, Any]) -> InterruptOption:
    """Parse InterruptOption from a dictionary.

    Args:
        data: Dictionary with at least "id" and "label".

    Returns:
        Parsed InterruptOption instance.
    """
    return InterruptOption(
        id=str(data["id"]),
        label=str(data.get("label", data["id"])),
        description=data.get("description", "") or "",
        icon=data.get("icon"),
        recommended=bool(data.get("recommended", False)),
    )


def step_definition_to_dict(step: StepDefinition) -> Dict[str, Any]:
    """Convert StepDefinition to a dictionary for serialization."""
    return {
        "id": step.id,
        "kind": step.kind.value,
        "tool_kind": step.tool_kind,
        "depends_on": step.depends_on,
        "delay_ms": step.delay_ms,
        "is_interrupt": step.is_interrupt,
        "is_async": step.is_async,
        "text_content": step.text_content,
        "tool_input": dict(step.tool_input) if step.tool_input else None,
        "question": step.question,
        "options": [interrupt_option_to_dict(o) for o in step.options],
    }


def step_definition_from_dict(data: Dict[str, Any]) -> StepDefinition:
    """Parse StepDefinition from a dictionary.

    Accepts both the YAML authoring keys (``kind``, ``tool_kind``,
    ``depends_on``, ``delay_ms``, ``interrupt``, ``async``, ``text``) and
    the serialized keys produced by step_definition_to_dict().

    Args:
        data: Dictionary with step fields.

    Returns:
        Parsed StepDefinition instance.

    Raises:
        ValueError: If the kind is not a known StepKind.
    """
    delay = data.get("delay_ms")
    return StepDefinition(
        id=str(data["id"]),
        kind=StepKind(data.get("kind", "tool")),
        tool_kind=data.get("tool_kind"),
        depends_on=data.get("depends_on"),
        delay_ms=int(delay) if delay is not None else None,
        is_interrupt=bool(data.get("is_interrupt", data.get("interrupt", False))),
        is_async=bool(data.get("is_async", data.get("async", False))),
        text_content=data.get("text_content", data.get("text")),
        tool_input=data.get("tool_input"),
        question=data.get("question"),
        options=tuple(interrupt_option_from_dict(o) for o in data.get("options") or ()),
    )


def progress_group_from_dict(data: Dict[str, Any]) -> ProgressGroupDefinition:
    """Parse ProgressGroupDefinition from a dictionary."""
    return ProgressGroupDefinition(
        id=str(data["id"]),
        label=str(data.get("label", data["id"])),
        step_ids=tuple(data.get("step_ids", ())),
    )


def render_group_from_dict(data: Dict[str, Any]) -> RenderGroupDefinition:
    """Parse RenderGroupDefinition from a dictionary."""
    return RenderGroupDefinition(
        id=str(data["id"]),
        label=str(data.get("label", data["id"])),
        step_ids=tuple(data.get("step_ids", ())),
        following_text_step_id=data.get("following_text_step_id"),
        initially_expanded=bool(data.get("initially_expanded", False)),
    )
