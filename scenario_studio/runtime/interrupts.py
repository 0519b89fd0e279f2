"""
interrupts.py - Human-in-the-loop suspension state.

The InterruptController holds at most one open InterruptPayload together
with the index of the step the engine froze on. The index is captured
when the interrupt opens and handed back on close, so resumption never
depends on how many steps happen to be complete.

Question and options are resolved in order:
    1. per-step overrides on the StepDefinition
    2. the tool catalog entry for the step's tool_kind
    3. the catalog's default question and data-source options
"""

from __future__ import annotations

import logging
from typing import Optional

from scenario_studio.config.tool_catalog import ToolCatalog, get_tool_catalog
from scenario_studio.runtime.types import InterruptPayload, StepDefinition, StepId

logger = logging.getLogger(__name__)


class InterruptStateError(RuntimeError):
    """Raised when an interrupt is opened while another is still open."""


class InterruptController:
    """Tracks the single open interrupt of an engine."""

    def __init__(self, catalog: Optional[ToolCatalog] = None):
        self._catalog = catalog or get_tool_catalog()
        self._payload: Optional[InterruptPayload] = None
        self._frozen_index: Optional[int] = None

    @property
    def payload(self) -> Optional[InterruptPayload]:
        return self._payload

    @property
    def frozen_index(self) -> Optional[int]:
        return self._frozen_index

    @property
    def is_open(self) -> bool:
        return self._payload is not None

    def build_payload(self, step: StepDefinition) -> InterruptPayload:
        """Build the payload a step would open, without opening it."""
        question = step.question or self._catalog.get_interrupt_question(step.tool_kind)
        options = step.options or self._catalog.get_interrupt_options(step.tool_kind)
        return InterruptPayload(
            step_id=step.id,
            tool_kind=step.tool_kind,
            question=question,
            options=tuple(options),
        )

    def open(self, step: StepDefinition, index: int) -> InterruptPayload:
        """Open an interrupt for step, freezing at index.

        Raises:
            InterruptStateError: If an interrupt is already open.
        """
        if self._payload is not None:
            raise InterruptStateError(
                f"Cannot open interrupt for '{step.id}': '{self._payload.step_id}' is still open"
            )
        self._payload = self.build_payload(step)
        self._frozen_index = index
        logger.debug("Interrupt opened for step %s at index %d", step.id, index)
        return self._payload

    def matches(self, step_id: StepId) -> bool:
        """True when step_id is the step currently frozen on."""
        return self._payload is not None and self._payload.step_id == step_id

    def has_option(self, choice_id: str) -> bool:
        """True when choice_id is one of the open interrupt's options."""
        if self._payload is None:
            return False
        return any(o.id == choice_id for o in self._payload.options)

    def close(self) -> Optional[int]:
        """Clear the open interrupt and return its frozen index."""
        index = self._frozen_index
        self._payload = None
        self._frozen_index = None
        return index

    def clear(self) -> None:
        """Drop any open interrupt (reset)."""
        self.close()
