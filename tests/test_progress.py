"""
Tests for progress.py - per-group progress aggregation.
"""

import pytest

from scenario_studio.runtime.progress import aggregate_progress, group_progress
from scenario_studio.runtime.types import ProgressGroupDefinition


def _group(*step_ids, group_id="g"):
    return ProgressGroupDefinition(id=group_id, label=group_id.upper(), step_ids=tuple(step_ids))


class TestGroupProgress:
    """Tests for a single group's status and percentage."""

    @pytest.mark.parametrize(
        "total,done,expected",
        [
            (8, 1, 13),  # 12.5 rounds half up
            (3, 1, 33),
            (3, 2, 67),
            (4, 2, 50),
        ],
    )
    def test_rounding(self, total, done, expected):
        step_ids = [f"s{i}" for i in range(total)]
        result = group_progress(_group(*step_ids), set(step_ids[:done]), "s_other")
        assert result.status == "running"
        assert result.progress == expected

    def test_pending_has_no_percentage(self):
        result = group_progress(_group("a", "b"), set(), "x")
        assert result.status == "pending"
        assert result.progress is None

    def test_current_member_is_running_at_zero(self):
        result = group_progress(_group("a", "b"), set(), "a")
        assert result.status == "running"
        assert result.progress == 0

    def test_completed_reports_100(self):
        result = group_progress(_group("a", "b"), {"a", "b"}, None)
        assert result.status == "completed"
        assert result.progress == 100

    def test_empty_group_is_pending(self):
        result = group_progress(_group(), {"a"}, "a")
        assert result.status == "pending"


class TestAggregateProgress:
    """Tests for the first-gate rule and ordering."""

    def test_hidden_until_gate_completes(self):
        groups = [_group("a", group_id="g1")]
        assert aggregate_progress(set(), "a", groups, first_gate_step_id="gate") == []
        assert len(aggregate_progress({"gate"}, "a", groups, first_gate_step_id="gate")) == 1

    def test_no_gate_reports_immediately(self):
        groups = [_group("a", group_id="g1"), _group("b", group_id="g2")]
        result = aggregate_progress(set(), None, groups)
        assert [(g.id, g.status) for g in result] == [("g1", "pending"), ("g2", "pending")]

    def test_declared_order_preserved(self):
        groups = [_group("b", group_id="later"), _group("a", group_id="earlier")]
        result = aggregate_progress({"a"}, "b", groups)
        assert [(g.id, g.status, g.progress) for g in result] == [
            ("later", "running", 0),
            ("earlier", "completed", 100),
        ]
