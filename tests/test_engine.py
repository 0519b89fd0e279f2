"""
Tests for engine.py - ScenarioEngine sequencing and suspension.

These tests verify:
1. Timer-paced sequencing of text and tool steps
2. Settle delay between dependent steps
3. Interrupt freeze/resume and stale resume calls
4. Async gate freeze/complete and idempotent completion
5. Reset, restart and dispose mid-run
6. Auto-collapse of completed render groups and manual toggles
7. Callback and event delivery
"""

import logging
from dataclasses import replace

import pytest

from conftest import build_scenario, text, tool
from scenario_studio.runtime.engine import ScenarioEngine
from scenario_studio.runtime.scheduler import Scheduler, TimerHandle
from scenario_studio.runtime.types import EventKind, RunState, StepKind, ToolStatus


def message_ids(engine):
    return [m.id for m in engine.snapshot().messages]


# =============================================================================
# Basic Sequencing
# =============================================================================


class TestSequencing:
    """Tests for timer-paced advancement."""

    def test_three_step_interrupt_scenario(self, make_engine, scheduler, three_step_scenario):
        """Test text -> interrupt -> tool runs, freezes and completes."""
        engine = make_engine(three_step_scenario)

        assert engine.start() is True
        snap = engine.snapshot()
        assert snap.run_state == RunState.RUNNING
        assert [m.step_id for m in snap.messages] == ["step1"]
        assert snap.messages[0].kind == StepKind.TEXT

        scheduler.advance(500)
        snap = engine.snapshot()
        assert snap.run_state == RunState.INTERRUPTED
        assert [m.step_id for m in snap.messages] == ["step1", "step2"]
        assert snap.active_interrupt is not None
        assert snap.active_interrupt.step_id == "step2"
        # Frozen without a timer
        assert scheduler.pending_count == 0

        scheduler.advance(60_000)
        assert engine.run_state == RunState.INTERRUPTED
        assert "step2" not in engine.completed_step_ids

        assert engine.resume_interrupt("step2", "A") is True
        snap = engine.snapshot()
        assert snap.run_state == RunState.RUNNING
        assert snap.active_interrupt is None
        assert [m.step_id for m in snap.messages] == ["step1", "step2", "step3"]
        assert snap.messages[2].tool_status == ToolStatus.RUNNING

        scheduler.advance(1000)
        snap = engine.snapshot()
        assert snap.run_state == RunState.COMPLETED
        assert snap.completed_step_ids == {"step1", "step2", "step3"}
        assert snap.messages[2].tool_status == ToolStatus.COMPLETED

    def test_tool_message_starts_running_text_stays_pending(self, make_engine):
        """Test initial message statuses by step kind."""
        engine = make_engine(build_scenario([tool("t1", "web_search"), text("a1", "hi")]))
        engine.start()
        assert engine.snapshot().messages[0].tool_status == ToolStatus.RUNNING

        engine2 = make_engine(build_scenario([text("a1", "hi")], key="other"))
        engine2.start()
        assert engine2.snapshot().messages[0].tool_status == ToolStatus.PENDING

    def test_default_delays_apply_when_delay_missing(self, make_engine, scheduler):
        """Test configured defaults: 1000 ms for tools, 500 ms for text."""
        engine = make_engine(build_scenario([tool("t1", "web_search"), text("a1", "done")]))
        engine.start()

        scheduler.advance(999)
        assert engine.completed_step_ids == frozenset()
        scheduler.advance(1)
        assert engine.completed_step_ids == {"t1"}

        scheduler.advance(499)
        assert engine.run_state == RunState.RUNNING
        scheduler.advance(1)
        assert engine.run_state == RunState.COMPLETED

    def test_zero_delay_is_honored(self, make_engine, scheduler):
        """Test an explicit delay_ms of 0 completes without waiting."""
        engine = make_engine(build_scenario([tool("t1", "web_search", delay_ms=0)]))
        engine.start()
        scheduler.advance(0)
        assert engine.run_state == RunState.COMPLETED

    def test_completed_set_only_grows(self, make_engine, scheduler):
        """Test the completed-step set is monotonic during a run."""
        scenario = build_scenario(
            [
                text("a1", "one", delay_ms=300),
                tool("t1", "web_search", delay_ms=700, depends_on="a1"),
                tool("t2", "slide_planning", delay_ms=400),
                text("a2", "two", delay_ms=200, depends_on="t2"),
            ]
        )
        engine = make_engine(scenario)
        engine.start()

        previous = frozenset()
        for _ in range(40):
            scheduler.advance(100)
            current = engine.completed_step_ids
            assert previous <= current
            previous = current
        assert engine.run_state == RunState.COMPLETED

    def test_start_while_running_is_ignored(self, make_engine, scheduler, three_step_scenario, caplog):
        """Test a second start() does not double-schedule timers."""
        engine = make_engine(three_step_scenario)
        engine.start()

        with caplog.at_level(logging.WARNING, logger="scenario_studio.runtime.engine"):
            assert engine.start() is False

        assert scheduler.pending_count == 1
        assert message_ids(engine) == ["msg-step1"]
        assert "Ignored start" in caplog.text

    def test_restart_after_completion(self, make_engine, scheduler):
        """Test start() from completed begins a fresh run."""
        engine = make_engine(build_scenario([tool("t1", "web_search", delay_ms=100)]))
        engine.start()
        scheduler.advance(100)
        assert engine.run_state == RunState.COMPLETED

        assert engine.start() is True
        snap = engine.snapshot()
        assert snap.run_state == RunState.RUNNING
        assert snap.completed_step_ids == frozenset()
        assert len(snap.messages) == 1


# =============================================================================
# Settle Delay
# =============================================================================


class TestSettleDelay:
    """Tests for the inter-step settle gap."""

    def test_settle_delay_before_dependent_step(self, make_engine, scheduler):
        """Test a dependent step starts 500 ms after its prerequisite completes."""
        scenario = build_scenario(
            [
                text("a1", "hello", delay_ms=500),
                tool("t1", "web_search", delay_ms=1000, depends_on="a1"),
            ]
        )
        engine = make_engine(scenario)
        engine.start()

        scheduler.advance(500)
        assert engine.completed_step_ids == {"a1"}
        assert message_ids(engine) == ["msg-a1"]

        scheduler.advance(499)
        assert message_ids(engine) == ["msg-a1"]

        scheduler.advance(1)
        assert message_ids(engine) == ["msg-a1", "msg-t1"]

    def test_no_settle_delay_without_dependency(self, make_engine, scheduler):
        """Test an independent step starts right after the previous one."""
        scenario = build_scenario(
            [text("a1", "hello", delay_ms=500), tool("t1", "web_search", delay_ms=1000)]
        )
        engine = make_engine(scenario)
        engine.start()

        scheduler.advance(500)
        assert message_ids(engine) == ["msg-a1", "msg-t1"]

    def test_settle_delay_is_configurable(self, make_engine, scheduler, settings):
        """Test settle_delay_ms comes from EngineSettings."""
        scenario = build_scenario(
            [text("a1", "hello", delay_ms=100), text("a2", "again", delay_ms=100, depends_on="a1")]
        )
        engine = make_engine(scenario, settings=replace(settings, settle_delay_ms=0))
        engine.start()

        scheduler.advance(100)
        assert message_ids(engine) == ["msg-a1", "msg-a2"]

    def test_dependent_step_starts_only_after_prerequisite(self, make_engine, scheduler):
        """Test a step's message is not emitted before its depends_on completes."""
        starts = []
        engine = None

        def on_step_start(step_id):
            starts.append((step_id, set(engine.completed_step_ids)))

        scenario = build_scenario(
            [
                text("a1", "one", delay_ms=200),
                tool("t1", "web_search", delay_ms=300, depends_on="a1"),
                tool("t2", "slide_planning", delay_ms=300, depends_on="t1"),
            ]
        )
        engine = make_engine(scenario, on_step_start=on_step_start)
        engine.start()
        scheduler.run_until_idle()

        by_step = dict(starts)
        assert "a1" in by_step["t1"]
        assert "t1" in by_step["t2"]

    def test_resume_advances_without_settle(self, make_engine, scheduler):
        """Test the step after a resolved interrupt starts immediately."""
        scenario = build_scenario(
            [
                tool("t1", "data_source_select", interrupt=True),
                text("a1", "chosen", depends_on="t1"),
            ]
        )
        engine = make_engine(scenario)
        engine.start()
        engine.resume_interrupt("t1", "erp")

        assert message_ids(engine) == ["msg-t1", "msg-a1"]


# =============================================================================
# Interrupts
# =============================================================================


class TestInterrupts:
    """Tests for interrupt freeze and resume."""

    def test_interrupt_payload_from_catalog(self, make_engine, scheduler, three_step_scenario):
        """Test the payload question and options come from the tool catalog."""
        engine = make_engine(three_step_scenario)
        engine.start()
        scheduler.advance(500)

        payload = engine.active_interrupt
        assert payload.tool_kind == "data_source_select"
        assert payload.question
        assert [o.id for o in payload.options] == ["erp", "upload", "sample"]

        message = engine.snapshot().messages[1]
        assert [o.id for o in message.options] == ["erp", "upload", "sample"]

    def test_resume_records_choice(self, make_engine, scheduler, three_step_scenario):
        """Test the choice is stored on the message and in selections."""
        engine = make_engine(three_step_scenario)
        engine.start()
        scheduler.advance(500)
        engine.resume_interrupt("step2", "upload")

        snap = engine.snapshot()
        assert snap.messages[1].selected_option == "upload"
        assert snap.messages[1].tool_status == ToolStatus.COMPLETED
        assert snap.selections == {"step2": "upload"}
        assert "step2" in snap.completed_step_ids

    def test_resume_with_wrong_step_is_noop(self, make_engine, scheduler, three_step_scenario, recorder):
        """Test a resume for a step that is not frozen changes nothing."""
        engine = make_engine(three_step_scenario)
        engine.subscribe(recorder)
        engine.start()
        scheduler.advance(500)
        before = engine.snapshot()

        assert engine.resume_interrupt("step3", "erp") is False

        after = engine.snapshot()
        assert after.run_state == RunState.INTERRUPTED
        assert after.active_interrupt == before.active_interrupt
        assert after.completed_step_ids == before.completed_step_ids
        assert recorder.kinds[-1] == EventKind.TRANSITION_IGNORED
        assert recorder.events[-1].payload["operation"] == "resume_interrupt"

    def test_resume_when_not_interrupted_is_noop(self, make_engine, three_step_scenario):
        """Test resume while running is ignored."""
        engine = make_engine(three_step_scenario)
        engine.start()
        assert engine.resume_interrupt("step2", "erp") is False
        assert engine.run_state == RunState.RUNNING

    def test_resume_after_reset_is_noop(self, make_engine, scheduler, three_step_scenario):
        """Test a stale resume arriving after reset is ignored."""
        engine = make_engine(three_step_scenario)
        engine.start()
        scheduler.advance(500)
        engine.reset()

        assert engine.resume_interrupt("step2", "erp") is False
        assert engine.run_state == RunState.IDLE
        assert engine.snapshot().messages == ()

    def test_interrupt_cleared_no_later_than_completion(self, make_engine, scheduler, three_step_scenario):
        """Test the payload is gone by the time the step counts as completed."""
        engine = None
        observed = []

        def on_step_complete(step_id):
            observed.append((step_id, engine.active_interrupt))

        engine = make_engine(three_step_scenario, on_step_complete=on_step_complete)
        engine.start()
        scheduler.advance(500)
        engine.resume_interrupt("step2", "erp")

        assert ("step2", None) in observed

    def test_on_interrupt_callback_may_resume(self, make_engine, scheduler, three_step_scenario):
        """Test a callback can call back into the engine."""
        engine = None

        def on_interrupt(payload):
            engine.resume_interrupt(payload.step_id, payload.options[0].id)

        engine = make_engine(three_step_scenario, on_interrupt=on_interrupt)
        engine.start()
        scheduler.run_until_idle()

        assert engine.run_state == RunState.COMPLETED
        assert engine.snapshot().selections == {"step2": "erp"}


# =============================================================================
# Async Gate
# =============================================================================


class TestAsyncGate:
    """Tests for async suspension and external completion."""

    @pytest.fixture
    def async_scenario(self):
        return build_scenario(
            [
                tool("t1", "slide_generation", **{"async": True}),
                tool("t2", "completion", delay_ms=100),
            ],
            key="async_test",
        )

    def test_async_step_freezes_without_timer(self, make_engine, scheduler, async_scenario):
        """Test the engine waits on an async step indefinitely."""
        waits = []
        engine = make_engine(async_scenario, on_async_wait=waits.append)
        engine.start()

        snap = engine.snapshot()
        assert snap.run_state == RunState.INTERRUPTED
        assert snap.pending_async_step_id == "t1"
        assert snap.active_interrupt is None
        assert scheduler.pending_count == 0
        assert waits == ["t1"]

    def test_complete_async_step_resumes(self, make_engine, scheduler, async_scenario):
        """Test completion resumes at the next step."""
        engine = make_engine(async_scenario)
        engine.start()

        assert engine.complete_async_step("t1") is True
        snap = engine.snapshot()
        assert snap.run_state == RunState.RUNNING
        assert snap.pending_async_step_id is None
        assert snap.messages[0].tool_status == ToolStatus.COMPLETED

        scheduler.advance(100)
        assert engine.run_state == RunState.COMPLETED

    def test_complete_async_step_is_idempotent(self, make_engine, scheduler, async_scenario, recorder):
        """Test a repeated completion signal is a no-op."""
        engine = make_engine(async_scenario)
        engine.subscribe(recorder)
        engine.start()

        assert engine.complete_async_step("t1") is True
        assert engine.complete_async_step("t1") is False
        scheduler.advance(100)
        assert engine.complete_async_step("t1") is False

        assert recorder.kinds.count(EventKind.ASYNC_COMPLETED) == 1
        completed = [e.step_id for e in recorder.events if e.kind == EventKind.STEP_COMPLETED]
        assert completed == ["t1", "t2"]
        assert engine.run_state == RunState.COMPLETED

    def test_duplicate_completion_logged_at_debug(self, make_engine, async_scenario, caplog):
        """Test duplicate completions do not produce warnings."""
        engine = make_engine(async_scenario)
        engine.start()
        engine.complete_async_step("t1")

        with caplog.at_level(logging.DEBUG, logger="scenario_studio.runtime.engine"):
            engine.complete_async_step("t1")

        records = [r for r in caplog.records if "complete_async_step" in r.getMessage()]
        assert records and all(r.levelno == logging.DEBUG for r in records)

    def test_complete_unknown_async_step_is_ignored(self, make_engine, async_scenario):
        """Test completing a step that is not pending is ignored."""
        engine = make_engine(async_scenario)
        engine.start()
        assert engine.complete_async_step("t2") is False
        assert engine.run_state == RunState.INTERRUPTED
        assert engine.snapshot().pending_async_step_id == "t1"


# =============================================================================
# Reset and Dispose
# =============================================================================


class TestResetAndDispose:
    """Tests for reset, restart and teardown."""

    def test_reset_while_interrupted_clears_state(self, make_engine, scheduler, three_step_scenario):
        """Test reset clears interrupt, messages and completed set."""
        engine = make_engine(three_step_scenario)
        engine.start()
        scheduler.advance(500)
        assert engine.run_state == RunState.INTERRUPTED

        assert engine.reset() is True
        snap = engine.snapshot()
        assert snap.run_state == RunState.IDLE
        assert snap.active_interrupt is None
        assert snap.messages == ()
        assert snap.completed_step_ids == frozenset()
        assert snap.current_step_id is None

    def test_restart_reproduces_ordering(self, make_engine, scheduler, three_step_scenario, recorder):
        """Test a run after reset emits the same messages and events as a fresh run."""

        def run_once(engine):
            recorder.events.clear()
            engine.start()
            scheduler.advance(500)
            engine.resume_interrupt("step2", "erp")
            scheduler.run_until_idle()
            return message_ids(engine), [(e.kind, e.step_id) for e in recorder.events]

        engine = make_engine(three_step_scenario)
        engine.subscribe(recorder)

        fresh_messages, fresh_events = run_once(engine)

        engine.reset()
        engine.start()
        scheduler.advance(500)
        engine.reset()
        again_messages, again_events = run_once(engine)

        assert again_messages == fresh_messages == ["msg-step1", "msg-step2", "msg-step3"]
        assert again_events == fresh_events

    def test_reset_cancels_pending_timer(self, make_engine, scheduler, three_step_scenario):
        """Test a timer scheduled before reset never fires."""
        engine = make_engine(three_step_scenario)
        engine.start()
        engine.reset()

        scheduler.advance(10_000)
        assert engine.run_state == RunState.IDLE
        assert engine.snapshot().messages == ()

    def test_stale_timer_callback_is_ignored(self, settings, catalog):
        """Test a callback that escaped cancellation does nothing."""

        class LeakyHandle(TimerHandle):
            def cancel(self):
                pass

            @property
            def cancelled(self):
                return False

        class CapturingScheduler(Scheduler):
            def __init__(self):
                self.callbacks = []

            def schedule_once(self, delay_ms, callback):
                self.callbacks.append(callback)
                return LeakyHandle()

        capturing = CapturingScheduler()
        scenario = build_scenario([tool("t1", "web_search", delay_ms=100), tool("t2", "completion")])
        engine = ScenarioEngine(scenario, capturing, settings=settings, catalog=catalog)
        engine.start()
        stale = capturing.callbacks[-1]
        engine.reset()
        engine.start()

        stale()
        snap = engine.snapshot()
        assert snap.completed_step_ids == frozenset()
        assert [m.step_id for m in snap.messages] == ["t1"]
        engine.dispose()

    def test_dispose_stops_everything(self, make_engine, scheduler, three_step_scenario, recorder):
        """Test dispose cancels timers and ignores later calls."""
        engine = make_engine(three_step_scenario)
        engine.subscribe(recorder)
        engine.start()

        assert engine.dispose() is True
        assert engine.is_disposed
        assert recorder.kinds[-1] == EventKind.ENGINE_DISPOSED

        count = len(recorder.events)
        scheduler.advance(10_000)
        assert engine.start() is False
        assert engine.reset() is False
        assert engine.resume_interrupt("step2", "erp") is False
        assert engine.dispose() is False
        assert len(recorder.events) == count
        assert [m.step_id for m in engine.snapshot().messages] == ["step1"]


# =============================================================================
# Render Groups and Toggles
# =============================================================================


class TestRenderGroups:
    """Tests for render segments, auto-collapse and toggles."""

    @pytest.fixture
    def grouped_scenario(self):
        return build_scenario(
            [
                tool("t1", "web_search", delay_ms=1000),
                tool("t2", "slide_planning", delay_ms=1000),
                text("a1", "planned", delay_ms=500),
                tool("t3", "slide_generation", **{"async": True}),
            ],
            key="grouped",
            render_groups=[
                {"id": "g1", "label": "Research", "step_ids": ["t1", "t2"], "following_text_step_id": "a1"},
                {"id": "g2", "label": "Build", "step_ids": ["t3"]},
            ],
        )

    def test_segments_follow_group_order(self, make_engine, scheduler, grouped_scenario):
        """Test tool-group segment label and following text segment."""
        engine = make_engine(grouped_scenario)
        engine.start()
        scheduler.advance(2500)

        segments = engine.snapshot().render_segments
        assert [s.kind for s in segments] == ["tool-group", "text", "tool-group"]
        assert segments[0].label == "웹 검색 및 슬라이드 계획"
        assert [m.step_id for m in segments[0].messages] == ["t1", "t2"]
        assert segments[1].message.step_id == "a1"
        assert segments[2].label == "슬라이드 제작"

    def test_group_auto_collapses_after_grace_delay(self, make_engine, scheduler, grouped_scenario, recorder):
        """Test a completed group collapses 800 ms after its last step."""
        engine = make_engine(grouped_scenario)
        engine.subscribe(recorder)
        engine.start()
        assert engine.toggle_segment_expand("g1") is True
        assert "g1" in engine.snapshot().expanded_group_ids

        scheduler.advance(2000)
        assert engine.completed_step_ids >= {"t1", "t2"}
        assert "g1" in engine.snapshot().expanded_group_ids

        scheduler.advance(799)
        assert "g1" in engine.snapshot().expanded_group_ids

        scheduler.advance(1)
        assert "g1" not in engine.snapshot().expanded_group_ids
        assert recorder.kinds.count(EventKind.GROUP_AUTO_COLLAPSED) == 1

    def test_manual_reexpand_is_not_collapsed_again(self, make_engine, scheduler, grouped_scenario):
        """Test a user can re-expand an auto-collapsed group and it stays open."""
        engine = make_engine(grouped_scenario)
        engine.start()
        scheduler.advance(2800)
        assert "g1" not in engine.snapshot().expanded_group_ids

        engine.toggle_segment_expand("g1")
        scheduler.advance(10_000)

        snap = engine.snapshot()
        assert snap.run_state == RunState.INTERRUPTED
        assert "g1" in snap.expanded_group_ids
        assert snap.render_segments[0].expanded is True

    def test_reset_rearms_auto_collapse(self, make_engine, scheduler, grouped_scenario, recorder):
        """Test auto-collapse bookkeeping is cleared by reset."""
        engine = make_engine(grouped_scenario)
        engine.subscribe(recorder)
        engine.start()
        scheduler.advance(2800)
        engine.reset()
        engine.start()
        scheduler.advance(2800)

        assert recorder.kinds.count(EventKind.GROUP_AUTO_COLLAPSED) == 2

    def test_reset_cancels_pending_collapse(self, make_engine, scheduler, grouped_scenario, recorder):
        """Test a collapse timer pending at reset never fires."""
        engine = make_engine(grouped_scenario)
        engine.subscribe(recorder)
        engine.start()
        scheduler.advance(2000)
        engine.reset()
        scheduler.advance(5000)

        assert EventKind.GROUP_AUTO_COLLAPSED not in recorder.kinds

    def test_toggle_unknown_group_is_ignored(self, make_engine, grouped_scenario):
        """Test toggling an undefined group returns False."""
        engine = make_engine(grouped_scenario)
        assert engine.toggle_segment_expand("nope") is False
        assert engine.snapshot().expanded_group_ids == frozenset()

    def test_initially_expanded_groups_restored_on_reset(self, make_engine):
        """Test initially_expanded seeds the expand flags."""
        scenario = build_scenario(
            [tool("t1", "web_search")],
            render_groups=[{"id": "g1", "label": "G", "step_ids": ["t1"], "initially_expanded": True}],
        )
        engine = make_engine(scenario)
        assert engine.snapshot().expanded_group_ids == {"g1"}
        engine.toggle_segment_expand("g1")
        engine.reset()
        assert engine.snapshot().expanded_group_ids == {"g1"}

    def test_message_toggle_is_accordion(self, make_engine, scheduler, grouped_scenario):
        """Test at most one message is expanded at a time."""
        engine = make_engine(grouped_scenario)
        engine.start()
        scheduler.advance(1000)

        assert engine.toggle_message_expand("msg-t1") is True
        assert engine.snapshot().active_message_id == "msg-t1"
        engine.toggle_message_expand("msg-t2")
        assert engine.snapshot().active_message_id == "msg-t2"
        engine.toggle_message_expand("msg-t2")
        assert engine.snapshot().active_message_id is None
        assert engine.toggle_message_expand("msg-missing") is False

    def test_completion_collapses_groups_and_clears_selection(self, make_engine, scheduler, grouped_scenario):
        """Test the end of the run collapses every group and clears the active message."""
        engine = make_engine(grouped_scenario)
        engine.start()
        scheduler.advance(2500)
        engine.toggle_segment_expand("g2")
        engine.toggle_message_expand("msg-t3")
        engine.complete_async_step("t3")

        snap = engine.snapshot()
        assert snap.run_state == RunState.COMPLETED
        assert snap.expanded_group_ids == frozenset()
        assert snap.active_message_id is None


# =============================================================================
# Progress
# =============================================================================


class TestProgressView:
    """Tests for progress in engine snapshots."""

    def test_progress_hidden_until_first_gate(self, make_engine, scheduler):
        """Test progress groups appear once the gate step completes."""
        scenario = build_scenario(
            [
                text("a1", "hi", delay_ms=100),
                tool("t1", "deep_thinking", delay_ms=1000),
                tool("t2", "web_search", delay_ms=1000),
            ],
            progress_groups=[
                {"id": "p1", "label": "Plan", "step_ids": ["a1", "t1"]},
                {"id": "p2", "label": "Search", "step_ids": ["t2"]},
            ],
            first_gate_step_id="t1",
        )
        engine = make_engine(scenario)
        engine.start()
        scheduler.advance(100)
        assert engine.snapshot().progress_groups == ()

        scheduler.advance(1000)
        groups = engine.snapshot().progress_groups
        assert [(g.id, g.status, g.progress) for g in groups] == [
            ("p1", "completed", 100),
            ("p2", "running", 0),
        ]


# =============================================================================
# Events and Callbacks
# =============================================================================


class TestEvents:
    """Tests for the event stream and callbacks."""

    def test_event_sequence_numbers_increase(self, make_engine, scheduler, three_step_scenario, recorder):
        """Test events carry strictly increasing seq numbers."""
        engine = make_engine(three_step_scenario)
        engine.subscribe(recorder)
        engine.start()
        scheduler.advance(500)
        engine.resume_interrupt("step2", "erp")
        scheduler.run_until_idle()

        seqs = [e.seq for e in recorder.events]
        assert seqs == sorted(seqs)
        assert len(set(seqs)) == len(seqs)
        assert recorder.kinds[0] == EventKind.RUN_STARTED
        assert recorder.kinds[-1] == EventKind.RUN_COMPLETED
        assert EventKind.RUN_INTERRUPTED in recorder.kinds
        assert EventKind.INTERRUPT_RESOLVED in recorder.kinds

    def test_unsubscribe_stops_delivery(self, make_engine, three_step_scenario, recorder):
        """Test an unsubscribed listener receives nothing more."""
        engine = make_engine(three_step_scenario)
        unsubscribe = engine.subscribe(recorder)
        unsubscribe()
        engine.start()
        assert recorder.events == []

    def test_on_complete_fires_once_per_run(self, make_engine, scheduler, three_step_scenario):
        """Test the completion callback fires exactly once."""
        completions = []
        engine = make_engine(three_step_scenario, on_complete=lambda: completions.append(1))
        engine.start()
        scheduler.advance(500)
        engine.resume_interrupt("step2", "erp")
        scheduler.run_until_idle()
        engine.resume_interrupt("step2", "erp")
        scheduler.run_until_idle()

        assert completions == [1]

    def test_failing_listener_does_not_break_engine(self, make_engine, scheduler, three_step_scenario, caplog):
        """Test listener exceptions are logged, not propagated."""
        engine = make_engine(three_step_scenario)

        def boom(event):
            raise RuntimeError("listener failure")

        engine.subscribe(boom)
        with caplog.at_level(logging.ERROR, logger="scenario_studio.runtime.engine"):
            assert engine.start() is True
            scheduler.advance(500)

        assert engine.run_state == RunState.INTERRUPTED
        assert "Event listener failed" in caplog.text

    def test_snapshot_messages_are_copies(self, make_engine, scheduler):
        """Test a snapshot does not change when the engine moves on."""
        engine = make_engine(build_scenario([tool("t1", "web_search", delay_ms=100)]))
        engine.start()
        before = engine.snapshot()
        scheduler.advance(100)

        assert before.messages[0].tool_status == ToolStatus.RUNNING
        assert engine.snapshot().messages[0].tool_status == ToolStatus.COMPLETED

    def test_tool_input_copied_to_message(self, make_engine):
        """Test tool_input from the definition lands on the message."""
        scenario = build_scenario([tool("t1", "data_query", tool_input={"queryId": "income_statement"})])
        engine = make_engine(scenario)
        engine.start()
        assert engine.snapshot().messages[0].tool_input == {"queryId": "income_statement"}

    def test_changing_snapshot_tool_input_leaves_engine_alone(self, make_engine):
        """Test a consumer editing a snapshot's tool_input does not reach engine state."""
        scenario = build_scenario([tool("t1", "data_query", tool_input={"queryId": "income_statement"})])
        engine = make_engine(scenario)
        engine.start()

        engine.snapshot().messages[0].tool_input["queryId"] = "mutated"

        assert engine.snapshot().messages[0].tool_input == {"queryId": "income_statement"}
