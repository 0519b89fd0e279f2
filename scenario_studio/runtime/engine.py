"""
engine.py - ScenarioEngine, the step sequencer behind every scenario run.

The engine walks a scenario's steps in index order. Tool and text steps
complete after their simulated delay; interrupt steps wait for a human
choice and async steps wait for an external completion signal. Derived
views (progress, render segments) are recomputed from engine state on
every snapshot.

Threading model:
    All state sits behind one RLock. Scheduler callbacks, API handlers
    and direct callers may arrive on different threads. Listener and
    callback invocations are queued while the lock is held and delivered
    after it is released, in order, so a listener may call back into the
    engine without re-entering a half-finished transition.

Entry points never raise. They return True when the call was applied and
False when it was ignored; every ignored call is logged and published as
a transition_ignored event.

Usage:
    from scenario_studio.config.scenario_registry import get_scenario
    from scenario_studio.runtime.engine import ScenarioEngine
    from scenario_studio.runtime.scheduler import ManualScheduler

    scheduler = ManualScheduler()
    engine = ScenarioEngine(get_scenario("ppt"), scheduler)
    engine.start()
    scheduler.run_until_idle()
    engine.snapshot().active_interrupt
"""

from __future__ import annotations

import copy
import logging
import threading
from collections import deque
from dataclasses import replace
from typing import Any, Callable, Deque, Dict, List, Optional, Set

from scenario_studio.config.runtime_config import EngineSettings, load_engine_settings
from scenario_studio.config.scenario_registry import ScenarioDefinition
from scenario_studio.config.tool_catalog import ToolCatalog, get_tool_catalog
from scenario_studio.runtime.async_gate import AsyncGate
from scenario_studio.runtime.interrupts import InterruptController
from scenario_studio.runtime.progress import aggregate_progress
from scenario_studio.runtime.scheduler import Scheduler, ThreadingScheduler, TimerHandle
from scenario_studio.runtime.segments import AutoCollapser, build_render_segments
from scenario_studio.runtime.types import (
    EngineEvent,
    EventKind,
    InterruptPayload,
    RunState,
    ScenarioMessage,
    ScenarioSnapshot,
    StepDefinition,
    StepId,
    StepKind,
    ToolStatus,
    interrupt_payload_to_dict,
    message_id_for_step,
)

logger = logging.getLogger(__name__)

EventListener = Callable[[EngineEvent], None]


class ScenarioEngine:
    """Drives one scenario run through its steps.

    Args:
        scenario: The scenario to run.
        scheduler: Timer source. Defaults to a ThreadingScheduler.
        settings: Pacing settings. Defaults to load_engine_settings().
        catalog: Tool catalog for interrupt presets. Defaults to the
            bundled catalog.
        on_step_start: Called with the step id when a step begins.
        on_step_complete: Called with the step id when a step completes.
        on_interrupt: Called with the InterruptPayload when the run freezes
            on an interrupt step.
        on_async_wait: Called with the step id when the run freezes on an
            async step.
        on_complete: Called once when the run reaches the end.
    """

    def __init__(
        self,
        scenario: ScenarioDefinition,
        scheduler: Optional[Scheduler] = None,
        settings: Optional[EngineSettings] = None,
        catalog: Optional[ToolCatalog] = None,
        on_step_start: Optional[Callable[[StepId], None]] = None,
        on_step_complete: Optional[Callable[[StepId], None]] = None,
        on_interrupt: Optional[Callable[[InterruptPayload], None]] = None,
        on_async_wait: Optional[Callable[[StepId], None]] = None,
        on_complete: Optional[Callable[[], None]] = None,
    ):
        self._scenario = scenario
        self._steps = scenario.steps
        self._scheduler = scheduler or ThreadingScheduler()
        self._settings = settings or load_engine_settings()
        self._catalog = catalog or get_tool_catalog()
        self._step_tool_kinds = scenario.step_tool_kinds()
        self._group_ids = frozenset(g.id for g in scenario.render_groups)

        self._on_step_start = on_step_start
        self._on_step_complete = on_step_complete
        self._on_interrupt = on_interrupt
        self._on_async_wait = on_async_wait
        self._on_complete = on_complete

        self._lock = threading.RLock()
        self._listeners: List[EventListener] = []
        self._outbox: Deque[Callable[[], None]] = deque()
        self._flushing = False
        self._seq = 0
        self._disposed = False

        self._interrupts = InterruptController(self._catalog)
        self._async_gate = AsyncGate()
        self._collapser = AutoCollapser(
            self._scheduler,
            self._settings.auto_collapse_delay_ms,
            self._collapse_group,
            lock=self._lock,
            after_collapse=self._flush,
        )

        self._timer: Optional[TimerHandle] = None
        self._timer_token = 0
        self._init_state()

    def _init_state(self) -> None:
        """Restore every piece of run state to the idle baseline."""
        self._run_state = RunState.IDLE
        self._messages: List[ScenarioMessage] = []
        self._messages_by_step: Dict[StepId, ScenarioMessage] = {}
        self._current_step_id: Optional[StepId] = None
        self._completed: Set[StepId] = set()
        self._cursor = 0
        self._expanded: Set[str] = set(self._scenario.initial_expanded_group_ids())
        self._active_message_id: Optional[str] = None
        self._selections: Dict[StepId, str] = {}
        self._completion_notified = False

    # =========================================================================
    # Read-only state
    # =========================================================================

    @property
    def scenario(self) -> ScenarioDefinition:
        return self._scenario

    @property
    def run_state(self) -> RunState:
        with self._lock:
            return self._run_state

    @property
    def current_step_id(self) -> Optional[StepId]:
        with self._lock:
            return self._current_step_id

    @property
    def completed_step_ids(self) -> frozenset:
        with self._lock:
            return frozenset(self._completed)

    @property
    def active_interrupt(self) -> Optional[InterruptPayload]:
        with self._lock:
            return self._interrupts.payload

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    def snapshot(self) -> ScenarioSnapshot:
        """Capture every emitted value as one immutable snapshot.

        Messages in the snapshot are copies, tool_input included; later
        engine mutations do not show through, and changing a snapshot
        does not reach the engine.
        """
        with self._lock:
            messages = tuple(
                replace(m, tool_input=copy.deepcopy(m.tool_input)) for m in self._messages
            )
            completed = frozenset(self._completed)
            expanded = frozenset(self._expanded)
            progress = aggregate_progress(
                completed,
                self._current_step_id,
                self._scenario.progress_groups,
                self._scenario.first_gate_step_id,
            )
            segments = build_render_segments(
                messages,
                self._scenario.render_groups,
                self._step_tool_kinds,
                self._catalog,
                expanded,
            )
            return ScenarioSnapshot(
                scenario_key=self._scenario.key,
                run_state=self._run_state,
                messages=messages,
                current_step_id=self._current_step_id,
                completed_step_ids=completed,
                active_interrupt=self._interrupts.payload,
                pending_async_step_id=self._async_gate.pending_step_id,
                progress_groups=tuple(progress),
                render_segments=tuple(segments),
                expanded_group_ids=expanded,
                active_message_id=self._active_message_id,
                selections=dict(self._selections),
            )

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """Register an event listener.

        Returns:
            A callable that removes the listener again.
        """
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    # =========================================================================
    # Entry points
    # =========================================================================

    def start(self) -> bool:
        """Start a fresh run. Valid from idle or completed."""
        with self._lock:
            if self._disposed:
                accepted = self._ignore("start", "engine disposed")
            elif self._run_state not in (RunState.IDLE, RunState.COMPLETED):
                accepted = self._ignore("start", "run already in progress")
            else:
                self._clear_runtime()
                self._run_state = RunState.RUNNING
                logger.info("Scenario %s started (%d steps)", self._scenario.key, len(self._steps))
                self._emit(EventKind.RUN_STARTED, payload={"step_count": len(self._steps)})
                self._advance_to(0)
                accepted = True
        self._flush()
        return accepted

    def reset(self) -> bool:
        """Cancel pending work and return to the idle baseline."""
        with self._lock:
            if self._disposed:
                accepted = self._ignore("reset", "engine disposed")
            else:
                previous = self._run_state
                self._clear_runtime()
                logger.info("Scenario %s reset from %s", self._scenario.key, previous.value)
                self._emit(EventKind.RUN_RESET, payload={"previous_state": previous.value})
                accepted = True
        self._flush()
        return accepted

    def resume_interrupt(self, step_id: StepId, choice_id: str) -> bool:
        """Resolve the open interrupt with a choice and continue the run."""
        with self._lock:
            if self._disposed:
                accepted = self._ignore("resume_interrupt", "engine disposed", step_id)
            elif self._run_state != RunState.INTERRUPTED or not self._interrupts.is_open:
                accepted = self._ignore("resume_interrupt", "no open interrupt", step_id)
            elif not self._interrupts.matches(step_id):
                accepted = self._ignore(
                    "resume_interrupt",
                    f"step is not the frozen step '{self._interrupts.payload.step_id}'",
                    step_id,
                )
            else:
                if not self._interrupts.has_option(choice_id):
                    logger.debug("Choice %s is not a preset option of step %s", choice_id, step_id)
                index = self._interrupts.close()
                step = self._steps[index]
                message = self._messages_by_step.get(step_id)
                if message is not None:
                    message.selected_option = choice_id
                self._selections[step_id] = choice_id
                self._run_state = RunState.RUNNING
                self._emit(EventKind.INTERRUPT_RESOLVED, step_id, {"choice_id": choice_id})
                self._mark_completed(step)
                self._advance_to(index + 1)
                accepted = True
        self._flush()
        return accepted

    def complete_async_step(self, step_id: StepId) -> bool:
        """Signal that the open async step finished. Repeat signals are no-ops."""
        with self._lock:
            if self._disposed:
                accepted = self._ignore("complete_async_step", "engine disposed", step_id)
            elif self._async_gate.is_resolved(step_id):
                accepted = self._ignore(
                    "complete_async_step", "already completed", step_id, level=logging.DEBUG
                )
            elif self._run_state != RunState.INTERRUPTED or self._async_gate.pending_step_id != step_id:
                accepted = self._ignore("complete_async_step", "step is not awaiting completion", step_id)
            else:
                index = self._async_gate.resolve(step_id)
                step = self._steps[index]
                self._run_state = RunState.RUNNING
                self._emit(EventKind.ASYNC_COMPLETED, step_id)
                self._mark_completed(step)
                self._advance_to(index + 1)
                accepted = True
        self._flush()
        return accepted

    def toggle_segment_expand(self, group_id: str) -> bool:
        """Flip a render group's expand flag."""
        with self._lock:
            if self._disposed:
                accepted = self._ignore("toggle_segment_expand", "engine disposed")
            elif group_id not in self._group_ids:
                accepted = self._ignore("toggle_segment_expand", f"unknown group '{group_id}'")
            else:
                if group_id in self._expanded:
                    self._expanded.discard(group_id)
                    expanded = False
                else:
                    self._expanded.add(group_id)
                    expanded = True
                self._emit(EventKind.GROUP_TOGGLED, payload={"group_id": group_id, "expanded": expanded})
                accepted = True
        self._flush()
        return accepted

    def toggle_message_expand(self, message_id: str) -> bool:
        """Expand a message, collapsing any other; toggling it again collapses it."""
        with self._lock:
            if self._disposed:
                accepted = self._ignore("toggle_message_expand", "engine disposed")
            elif not any(m.id == message_id for m in self._messages):
                accepted = self._ignore("toggle_message_expand", f"unknown message '{message_id}'")
            else:
                if self._active_message_id == message_id:
                    self._active_message_id = None
                else:
                    self._active_message_id = message_id
                self._emit(
                    EventKind.MESSAGE_TOGGLED,
                    payload={"message_id": message_id, "expanded": self._active_message_id is not None},
                )
                accepted = True
        self._flush()
        return accepted

    def dispose(self) -> bool:
        """Tear the engine down. Every later entry point is ignored."""
        with self._lock:
            if self._disposed:
                return False
            self._cancel_timer()
            self._collapser.reset()
            self._disposed = True
            logger.info("Scenario %s engine disposed in state %s", self._scenario.key, self._run_state.value)
            self._emit(EventKind.ENGINE_DISPOSED, payload={"run_state": self._run_state.value})
        self._flush()
        with self._lock:
            self._listeners.clear()
        return True

    # =========================================================================
    # Sequencing (lock held)
    # =========================================================================

    def _advance_to(self, index: int) -> None:
        """Begin the step at index, or finish the run past the last step."""
        if index >= len(self._steps):
            self._finish()
            return

        step = self._steps[index]
        self._cursor = index
        self._current_step_id = step.id

        message = ScenarioMessage(
            id=message_id_for_step(step.id),
            step_id=step.id,
            kind=step.kind,
            tool_kind=step.tool_kind,
            tool_status=ToolStatus.RUNNING if step.kind == StepKind.TOOL else ToolStatus.PENDING,
            content=step.text_content if step.kind == StepKind.TEXT else None,
            tool_input=dict(step.tool_input) if step.tool_input else None,
        )
        self._messages.append(message)
        self._messages_by_step[step.id] = message
        self._emit(EventKind.STEP_STARTED, step.id, {"index": index, "kind": step.kind.value})
        self._notify(self._on_step_start, step.id)

        if step.kind == StepKind.TOOL and step.is_interrupt:
            payload = self._interrupts.open(step, index)
            message.options = payload.options
            self._run_state = RunState.INTERRUPTED
            logger.info("Scenario %s waiting on interrupt %s", self._scenario.key, step.id)
            self._emit(EventKind.RUN_INTERRUPTED, step.id, interrupt_payload_to_dict(payload))
            self._notify(self._on_interrupt, payload)
            return

        if step.kind == StepKind.TOOL and step.is_async:
            self._async_gate.open(step.id, index)
            self._run_state = RunState.INTERRUPTED
            logger.info("Scenario %s waiting on async step %s", self._scenario.key, step.id)
            self._emit(EventKind.ASYNC_WAIT_STARTED, step.id)
            self._notify(self._on_async_wait, step.id)
            return

        self._schedule(self._delay_for(step), lambda: self._complete_step(index))

    def _complete_step(self, index: int) -> None:
        """Timer completion of a timed step, then the inter-step gap."""
        step = self._steps[index]
        self._mark_completed(step)

        next_index = index + 1
        self._cursor = next_index
        next_step = self._steps[next_index] if next_index < len(self._steps) else None
        settle = self._settings.settle_delay_ms
        if next_step is not None and next_step.depends_on == step.id and settle > 0:
            self._schedule(settle, lambda: self._advance_to(next_index))
        else:
            self._advance_to(next_index)

    def _mark_completed(self, step: StepDefinition) -> None:
        message = self._messages_by_step.get(step.id)
        if message is not None and message.kind == StepKind.TOOL:
            message.tool_status = ToolStatus.COMPLETED
        if step.id in self._completed:
            return
        self._completed.add(step.id)
        self._emit(EventKind.STEP_COMPLETED, step.id)
        self._notify(self._on_step_complete, step.id)
        for group_id in self._collapser.evaluate(self._completed, self._scenario.render_groups):
            logger.debug("Group %s scheduled for auto-collapse", group_id)

    def _finish(self) -> None:
        self._cursor = len(self._steps)
        self._run_state = RunState.COMPLETED
        self._active_message_id = None
        self._expanded.clear()
        logger.info("Scenario %s completed (%d steps)", self._scenario.key, len(self._completed))
        self._emit(EventKind.RUN_COMPLETED, payload={"completed_count": len(self._completed)})
        if not self._completion_notified:
            self._completion_notified = True
            self._notify(self._on_complete)

    def _delay_for(self, step: StepDefinition) -> int:
        if step.delay_ms is not None:
            return step.delay_ms
        if step.kind == StepKind.TOOL:
            return self._settings.default_tool_delay_ms
        return self._settings.default_text_delay_ms

    def _clear_runtime(self) -> None:
        self._cancel_timer()
        self._collapser.reset()
        self._interrupts.clear()
        self._async_gate.clear()
        self._init_state()

    def _collapse_group(self, group_id: str) -> None:
        """Auto-collapse timer target (lock held by the collapser)."""
        if self._disposed:
            return
        self._expanded.discard(group_id)
        self._emit(EventKind.GROUP_AUTO_COLLAPSED, payload={"group_id": group_id})

    # =========================================================================
    # Timers
    # =========================================================================

    def _schedule(self, delay_ms: int, action: Callable[[], None]) -> None:
        """Replace the outstanding step timer with a new one."""
        self._cancel_timer()
        self._timer_token += 1
        token = self._timer_token
        self._timer = self._scheduler.schedule_once(delay_ms, lambda: self._on_timer(token, action))

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        # Invalidate callbacks that already left the scheduler.
        self._timer_token += 1

    def _on_timer(self, token: int, action: Callable[[], None]) -> None:
        with self._lock:
            if self._disposed or token != self._timer_token:
                logger.debug("Stale timer %d ignored for %s", token, self._scenario.key)
            else:
                self._timer = None
                action()
        self._flush()

    # =========================================================================
    # Events and callbacks
    # =========================================================================

    def _ignore(
        self,
        operation: str,
        reason: str,
        step_id: Optional[StepId] = None,
        level: int = logging.WARNING,
    ) -> bool:
        logger.log(
            level,
            "Ignored %s on %s (step=%s, state=%s): %s",
            operation,
            self._scenario.key,
            step_id,
            self._run_state.value,
            reason,
        )
        if not self._disposed:
            self._emit(
                EventKind.TRANSITION_IGNORED,
                step_id,
                {"operation": operation, "reason": reason, "run_state": self._run_state.value},
            )
        return False

    def _emit(self, kind: str, step_id: Optional[StepId] = None, payload: Optional[Dict[str, Any]] = None) -> None:
        self._seq += 1
        event = EngineEvent(
            scenario_key=self._scenario.key,
            kind=kind,
            seq=self._seq,
            step_id=step_id,
            payload=payload or {},
        )
        listeners = list(self._listeners)
        if not listeners:
            return

        def _deliver() -> None:
            for listener in listeners:
                try:
                    listener(event)
                except Exception:
                    logger.exception("Event listener failed on %s", kind)

        self._outbox.append(_deliver)

    def _notify(self, callback: Optional[Callable[..., None]], *args: Any) -> None:
        if callback is None:
            return

        def _call() -> None:
            try:
                callback(*args)
            except Exception:
                logger.exception("Engine callback %s failed", getattr(callback, "__name__", callback))

        self._outbox.append(_call)

    def _flush(self) -> None:
        """Deliver queued notifications outside the lock, one flusher at a time."""
        with self._lock:
            if self._flushing:
                return
            self._flushing = True
        try:
            while True:
                with self._lock:
                    if not self._outbox:
                        self._flushing = False
                        return
                    item = self._outbox.popleft()
                item()
        except BaseException:
            with self._lock:
                self._flushing = False
            raise
