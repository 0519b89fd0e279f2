"""
segments.py - Render segmentation of the message stream.

Turns the flat message list into ordered "tool-group" and "text" segments
using the scenario's render group definitions, and owns the auto-collapse
side effect for groups whose member steps have all completed.

Label rule for a tool-group segment (walks the group's step ids):
    - each step maps to its tool kind's display label
    - a tool kind already seen in the group is skipped
    - no labels        -> "작업"
    - one label        -> "A"
    - two labels       -> "A 및 B"
    - three or more    -> "A 및 Z" (first and last only)
"""

from __future__ import annotations

import logging
import threading
from typing import AbstractSet, Callable, Dict, List, Mapping, Optional, Sequence, Set

from scenario_studio.config.tool_catalog import FALLBACK_GROUP_LABEL, ToolCatalog
from scenario_studio.runtime.scheduler import Scheduler, TimerHandle
from scenario_studio.runtime.types import (
    FINAL_TEXT_MARKER,
    SEGMENT_TEXT,
    SEGMENT_TOOL_GROUP,
    RenderGroupDefinition,
    RenderSegment,
    ScenarioMessage,
    StepId,
    StepKind,
)

logger = logging.getLogger(__name__)

LABEL_JOINER = " 및 "

# Progress-reporting tool messages are shown outside any group.
UNGROUPED_TOOL_KINDS = frozenset({"todo_update"})


def generate_group_label(
    step_ids: Sequence[StepId],
    step_tool_kinds: Mapping[StepId, str],
    catalog: ToolCatalog,
) -> str:
    """Build the header label for a render group."""
    labels: List[str] = []
    seen_kinds: Set[str] = set()

    for step_id in step_ids:
        kind = step_tool_kinds.get(step_id)
        if not kind or kind in seen_kinds or kind in UNGROUPED_TOOL_KINDS:
            continue
        seen_kinds.add(kind)
        label = catalog.get_label(kind)
        if label:
            labels.append(label)

    if not labels:
        return FALLBACK_GROUP_LABEL
    if len(labels) <= 2:
        return LABEL_JOINER.join(labels)
    return f"{labels[0]}{LABEL_JOINER}{labels[-1]}"


def build_render_segments(
    messages: Sequence[ScenarioMessage],
    groups: Sequence[RenderGroupDefinition],
    step_tool_kinds: Mapping[StepId, str],
    catalog: ToolCatalog,
    expanded_group_ids: AbstractSet[str] = frozenset(),
) -> List[RenderSegment]:
    """Partition messages into ordered render segments.

    For each group in declared order: a tool-group segment with the
    group's started tool messages (skipped when none started yet), then
    the group's following text message if it has been emitted and is not
    the final marker.
    """
    by_step: Dict[StepId, ScenarioMessage] = {m.step_id: m for m in messages}
    segments: List[RenderSegment] = []

    for group in groups:
        members = tuple(
            by_step[step_id]
            for step_id in group.step_ids
            if step_id in by_step
            and by_step[step_id].kind == StepKind.TOOL
            and by_step[step_id].tool_kind not in UNGROUPED_TOOL_KINDS
        )
        if members:
            segments.append(
                RenderSegment(
                    kind=SEGMENT_TOOL_GROUP,
                    group_id=group.id,
                    label=generate_group_label(group.step_ids, step_tool_kinds, catalog),
                    messages=members,
                    expanded=group.id in expanded_group_ids,
                )
            )

        if group.following_text_step_id:
            text = by_step.get(group.following_text_step_id)
            if text is not None and text.kind == StepKind.TEXT and text.content != FINAL_TEXT_MARKER:
                segments.append(RenderSegment(kind=SEGMENT_TEXT, message=text))

    return segments


class AutoCollapser:
    """Collapses each fully completed render group once, after a grace delay.

    The collapser only tracks which groups it has already handled and the
    timers it scheduled. The actual expand flag belongs to the engine,
    which receives the group id through on_collapse when a timer fires.
    Re-expanding a group manually never re-arms it; only reset() does.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        delay_ms: int,
        on_collapse: Callable[[str], None],
        lock: Optional[threading.RLock] = None,
        after_collapse: Optional[Callable[[], None]] = None,
    ):
        self._scheduler = scheduler
        self._delay_ms = delay_ms
        self._on_collapse = on_collapse
        self._lock = lock or threading.RLock()
        self._after_collapse = after_collapse
        self._collapsed: Set[str] = set()
        self._timers: Dict[str, TimerHandle] = {}
        self._generation = 0

    @property
    def auto_collapsed_group_ids(self) -> frozenset:
        """Groups already marked for auto-collapse."""
        return frozenset(self._collapsed)

    @property
    def pending_group_ids(self) -> frozenset:
        """Groups whose collapse timer has not fired yet."""
        return frozenset(self._timers)

    def evaluate(
        self,
        completed: AbstractSet[StepId],
        groups: Sequence[RenderGroupDefinition],
    ) -> List[str]:
        """Mark newly completed groups and schedule their collapse.

        Call whenever the completed-step set changes. Returns the ids of
        groups marked by this call.
        """
        marked: List[str] = []
        for group in groups:
            if group.id in self._collapsed or not group.step_ids:
                continue
            if all(step_id in completed for step_id in group.step_ids):
                self._collapsed.add(group.id)
                self._timers[group.id] = self._scheduler.schedule_once(
                    self._delay_ms, self._make_callback(group.id, self._generation)
                )
                marked.append(group.id)
                logger.debug("Group %s complete; collapsing in %d ms", group.id, self._delay_ms)
        return marked

    def _make_callback(self, group_id: str, generation: int) -> Callable[[], None]:
        def _fire() -> None:
            with self._lock:
                # A timer from before the last reset may still fire.
                if generation != self._generation or self._timers.pop(group_id, None) is None:
                    logger.debug("Stale collapse timer ignored for group %s", group_id)
                    return
                self._on_collapse(group_id)
            if self._after_collapse is not None:
                self._after_collapse()

        return _fire

    def reset(self) -> None:
        """Cancel pending collapse timers and forget handled groups."""
        self._generation += 1
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        self._collapsed.clear()
