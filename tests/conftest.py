"""
Test fixtures and utilities for scenario_studio tests.

This module provides reusable fixtures: a fake-clock scheduler, default
engine settings, small hand-authored scenarios, an engine factory, and
singleton/caches reset around every test.
"""

from typing import Any, Dict, List, Optional

import pytest

from scenario_studio.config import runtime_config
from scenario_studio.config.runtime_config import EngineSettings
from scenario_studio.config.scenario_registry import ScenarioDefinition, ScenarioRegistry
from scenario_studio.config.tool_catalog import get_tool_catalog, reset_catalog_cache
from scenario_studio.runtime.engine import ScenarioEngine
from scenario_studio.runtime.scheduler import ManualScheduler
from scenario_studio.runtime.service import ScenarioService

# ============================================================================
# Singleton Reset
# ============================================================================


@pytest.fixture(autouse=True)
def reset_singletons(monkeypatch):
    """Start every test from clean caches and without env overrides."""
    for name in (
        "SCENARIO_SETTLE_DELAY_MS",
        "SCENARIO_AUTO_COLLAPSE_DELAY_MS",
        "SCENARIO_DEFAULT_TOOL_DELAY_MS",
        "SCENARIO_DEFAULT_TEXT_DELAY_MS",
        "SCENARIO_EVENT_LOG_LIMIT",
    ):
        monkeypatch.delenv(name, raising=False)
    runtime_config.reset_config()
    reset_catalog_cache()
    ScenarioRegistry.reset()
    ScenarioService.reset()
    yield
    ScenarioService.reset()
    ScenarioRegistry.reset()
    reset_catalog_cache()
    runtime_config.reset_config()


# ============================================================================
# Engine Fixtures
# ============================================================================


@pytest.fixture
def scheduler():
    """Deterministic fake-clock scheduler starting at 0 ms."""
    return ManualScheduler()


@pytest.fixture
def settings():
    """Default pacing: settle 500, collapse 800, tool 1000, text 500."""
    return EngineSettings()


@pytest.fixture
def catalog():
    """The bundled tool catalog."""
    return get_tool_catalog()


def tool(step_id: str, tool_kind: str, **extra: Any) -> Dict[str, Any]:
    """Authoring helper for a tool step mapping."""
    data = {"id": step_id, "kind": "tool", "tool_kind": tool_kind}
    data.update(extra)
    return data


def text(step_id: str, content: str, **extra: Any) -> Dict[str, Any]:
    """Authoring helper for a text step mapping."""
    data = {"id": step_id, "kind": "text", "text": content}
    data.update(extra)
    return data


def build_scenario(
    steps: List[Dict[str, Any]],
    key: str = "test",
    render_groups: Optional[List[Dict[str, Any]]] = None,
    progress_groups: Optional[List[Dict[str, Any]]] = None,
    first_gate_step_id: Optional[str] = None,
) -> ScenarioDefinition:
    """Build a validated ScenarioDefinition from plain mappings."""
    return ScenarioDefinition.from_dict(
        {
            "steps": steps,
            "render_groups": render_groups or [],
            "progress_groups": progress_groups or [],
            "first_gate_step_id": first_gate_step_id,
        },
        key=key,
    )


@pytest.fixture
def three_step_scenario():
    """text -> tool(interrupt) -> tool, with no dependency annotations."""
    return build_scenario(
        [
            text("step1", "Starting.", delay_ms=500),
            tool("step2", "data_source_select", interrupt=True),
            tool("step3", "erp_connect", delay_ms=1000),
        ],
        key="three_step",
    )


@pytest.fixture
def make_engine(scheduler, settings, catalog):
    """Factory: ScenarioEngine on the shared fake clock."""
    engines: List[ScenarioEngine] = []

    def _make(scenario: ScenarioDefinition, **kwargs: Any) -> ScenarioEngine:
        kwargs.setdefault("settings", settings)
        kwargs.setdefault("catalog", catalog)
        engine = ScenarioEngine(scenario, scheduler, **kwargs)
        engines.append(engine)
        return engine

    yield _make

    for engine in engines:
        engine.dispose()


@pytest.fixture
def recorder():
    """Event listener collecting engine events in delivery order."""

    class _Recorder:
        def __init__(self):
            self.events = []

        def __call__(self, event):
            self.events.append(event)

        @property
        def kinds(self):
            return [e.kind for e in self.events]

    return _Recorder()
