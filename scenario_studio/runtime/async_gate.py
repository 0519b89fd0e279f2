"""
async_gate.py - External-completion suspension state.

An async step freezes the engine until something outside it (a renderer,
a review panel) reports that the work finished. Completion signals may
arrive more than once for the same step; only the first one counts.
"""

from __future__ import annotations

import logging
from typing import Optional, Set

from scenario_studio.runtime.types import StepId

logger = logging.getLogger(__name__)


class AsyncGate:
    """Tracks the open async step and which async steps already resolved."""

    def __init__(self):
        self._step_id: Optional[StepId] = None
        self._frozen_index: Optional[int] = None
        self._resolved: Set[StepId] = set()

    @property
    def pending_step_id(self) -> Optional[StepId]:
        return self._step_id

    @property
    def is_open(self) -> bool:
        return self._step_id is not None

    def open(self, step_id: StepId, index: int) -> None:
        self._step_id = step_id
        self._frozen_index = index
        logger.debug("Async gate opened for step %s at index %d", step_id, index)

    def is_resolved(self, step_id: StepId) -> bool:
        return step_id in self._resolved

    def resolve(self, step_id: StepId) -> Optional[int]:
        """Resolve the gate for step_id.

        Returns:
            The frozen index the first time the open step is resolved;
            None for a repeat signal or a step that is not the open one.
        """
        if step_id in self._resolved:
            logger.debug("Duplicate async completion for step %s ignored", step_id)
            return None
        if step_id != self._step_id:
            return None
        index = self._frozen_index
        self._resolved.add(step_id)
        self._step_id = None
        self._frozen_index = None
        return index

    def clear(self) -> None:
        """Forget the open gate and every resolution (reset)."""
        self._step_id = None
        self._frozen_index = None
        self._resolved.clear()
