"""
progress.py - Per-group progress derived from the completed-step set.

Pure functions; nothing here holds state.
"""

from __future__ import annotations

from typing import AbstractSet, List, Optional, Sequence

from scenario_studio.runtime.types import ProgressGroup, ProgressGroupDefinition, StepId

STATUS_PENDING = "pending"
STATUS_RUNNING = "running"
STATUS_COMPLETED = "completed"


def _round_half_up(value: float) -> int:
    # round() is banker's rounding; 12.5 must become 13.
    return int(value + 0.5)


def group_progress(
    group: ProgressGroupDefinition,
    completed: AbstractSet[StepId],
    current_step_id: Optional[StepId],
) -> ProgressGroup:
    """Compute the progress view of a single group.

    A group is completed when every member is complete, running when the
    current step is a member or some members are complete, and pending
    otherwise. Pending groups carry no percentage.
    """
    total = len(group.step_ids)
    done = sum(1 for step_id in group.step_ids if step_id in completed)

    if total > 0 and done == total:
        return ProgressGroup(id=group.id, label=group.label, status=STATUS_COMPLETED, progress=100)

    if done > 0 or (current_step_id is not None and current_step_id in group.step_ids):
        percent = _round_half_up(100 * done / total) if total else 0
        return ProgressGroup(id=group.id, label=group.label, status=STATUS_RUNNING, progress=percent)

    return ProgressGroup(id=group.id, label=group.label, status=STATUS_PENDING, progress=None)


def aggregate_progress(
    completed: AbstractSet[StepId],
    current_step_id: Optional[StepId],
    groups: Sequence[ProgressGroupDefinition],
    first_gate_step_id: Optional[StepId] = None,
) -> List[ProgressGroup]:
    """Compute progress for every group, in declared order.

    Returns an empty list until first_gate_step_id is complete. With no
    gate, progress is reported from the first call.
    """
    if first_gate_step_id is not None and first_gate_step_id not in completed:
        return []
    return [group_progress(g, completed, current_step_id) for g in groups]
