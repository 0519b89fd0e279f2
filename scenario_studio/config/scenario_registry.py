"""
scenario_registry.py - Load bundled scenario definitions from scenarios.yaml

This module is the single source of truth for which scenarios exist and
what their steps, progress groups and render groups are.

Usage:
    from scenario_studio.config.scenario_registry import get_scenario_keys, get_scenario
    from scenario_studio.config.scenario_registry import get_scenario_steps

Caller-authored scenarios (not bundled) go through ScenarioDefinition.from_dict
and are validated the same way:

    scenario = ScenarioDefinition.from_dict(data)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from scenario_studio.runtime.types import (
    ProgressGroupDefinition,
    RenderGroupDefinition,
    StepDefinition,
    progress_group_from_dict,
    render_group_from_dict,
    step_definition_from_dict,
    step_definition_to_dict,
)
from scenario_studio.validator import ScenarioValidationError, validate_scenario

logger = logging.getLogger(__name__)

_CONFIG_FILE = Path(__file__).parent / "scenarios.yaml"
_SCENARIOS_DIR = Path(__file__).parent / "scenarios"


@dataclass(frozen=True)
class ScenarioDefinition:
    """A complete authored scenario.

    Attributes:
        key: Scenario identifier (e.g., "ppt").
        index: 1-based position in the registry.
        title: Display title.
        short_title: Short display title.
        description: One-sentence description.
        steps: Ordered step definitions.
        progress_groups: Buckets for the progress aggregator.
        render_groups: Buckets for the render segmenter.
        first_gate_step_id: Progress stays hidden until this step completes.
            None shows progress from the start.
    """

    key: str
    index: int = 0
    title: str = ""
    short_title: str = ""
    description: str = ""
    steps: Tuple[StepDefinition, ...] = ()
    progress_groups: Tuple[ProgressGroupDefinition, ...] = ()
    render_groups: Tuple[RenderGroupDefinition, ...] = ()
    first_gate_step_id: Optional[str] = None

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        key: Optional[str] = None,
        validate: bool = True,
        location: Optional[str] = None,
    ) -> "ScenarioDefinition":
        """Build a scenario from its YAML/JSON structure.

        Args:
            data: Mapping with "steps" and optional "progress_groups",
                "render_groups", "first_gate_step_id" and display fields.
            key: Scenario key; falls back to data["key"].
            validate: Run validate_scenario and reject definitions with errors.
            location: Source description used in validation findings.

        Raises:
            ScenarioValidationError: If validate is set and the definition
                has errors.
            ValueError: If a step names an unknown kind.
        """
        scenario_key = key or data.get("key")
        if not scenario_key:
            raise ValueError("Scenario definition requires a 'key'")

        scenario = cls(
            key=scenario_key,
            index=int(data.get("index", 0)),
            title=data.get("title", scenario_key),
            short_title=data.get("short_title", data.get("title", scenario_key)),
            description=data.get("description", ""),
            steps=tuple(step_definition_from_dict(s) for s in data.get("steps") or ()),
            progress_groups=tuple(
                progress_group_from_dict(g) for g in data.get("progress_groups") or ()
            ),
            render_groups=tuple(
                render_group_from_dict(g) for g in data.get("render_groups") or ()
            ),
            first_gate_step_id=data.get("first_gate_step_id"),
        )

        if validate:
            result = validate_scenario(scenario, location=location)
            for warning in result.sorted_warnings():
                logger.warning("Scenario %s: %s", scenario_key, warning.format())
            if result.has_errors():
                raise ScenarioValidationError(scenario_key, result)

        return scenario

    def get_step(self, step_id: str) -> Optional[StepDefinition]:
        """Get a step by id."""
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def step_index(self, step_id: str) -> int:
        """Get the 0-based index of a step, or -1 when unknown."""
        for idx, step in enumerate(self.steps):
            if step.id == step_id:
                return idx
        return -1

    def step_tool_kinds(self) -> Dict[str, str]:
        """Map every tool step id to its tool kind."""
        return {s.id: s.tool_kind for s in self.steps if s.tool_kind}

    def initial_expanded_group_ids(self) -> frozenset:
        """Render group ids that start expanded."""
        return frozenset(g.id for g in self.render_groups if g.initially_expanded)


def scenario_definition_to_dict(scenario: ScenarioDefinition, include_steps: bool = True) -> Dict[str, Any]:
    """Convert ScenarioDefinition to a dictionary for serialization."""
    data: Dict[str, Any] = {
        "key": scenario.key,
        "index": scenario.index,
        "title": scenario.title,
        "short_title": scenario.short_title,
        "description": scenario.description,
        "step_count": len(scenario.steps),
        "first_gate_step_id": scenario.first_gate_step_id,
    }
    if include_steps:
        data["steps"] = [step_definition_to_dict(s) for s in scenario.steps]
        data["progress_groups"] = [
            {"id": g.id, "label": g.label, "step_ids": list(g.step_ids)}
            for g in scenario.progress_groups
        ]
        data["render_groups"] = [
            {
                "id": g.id,
                "label": g.label,
                "step_ids": list(g.step_ids),
                "following_text_step_id": g.following_text_step_id,
                "initially_expanded": g.initially_expanded,
            }
            for g in scenario.render_groups
        ]
    return data


class ScenarioRegistry:
    """Registry of all bundled scenarios in index order."""

    _instance: Optional["ScenarioRegistry"] = None

    def __init__(self, config_path: Path = _CONFIG_FILE, scenarios_dir: Path = _SCENARIOS_DIR):
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        self._scenarios: List[ScenarioDefinition] = []
        self._by_key: Dict[str, ScenarioDefinition] = {}

        for entry in data.get("scenarios", []):
            scenario = self._load_scenario(scenarios_dir, entry)
            if scenario is None:
                continue
            self._scenarios.append(scenario)
            self._by_key[scenario.key] = scenario

        logger.debug("Loaded %d scenario(s) from %s", len(self._scenarios), config_path)

    def _load_scenario(self, scenarios_dir: Path, entry: Dict[str, Any]) -> Optional[ScenarioDefinition]:
        """Load one scenario from its per-scenario YAML file.

        Index-level display fields win over the same fields in the
        per-scenario file. An entry with neither a file nor inline steps
        is skipped.
        """
        key = entry["key"]
        scenario_file = scenarios_dir / f"{key}.yaml"

        body: Dict[str, Any] = {}
        if scenario_file.exists():
            with open(scenario_file, encoding="utf-8") as f:
                body = yaml.safe_load(f) or {}
        elif "steps" not in entry:
            logger.warning("Scenario file %s not found; skipping scenario '%s'", scenario_file, key)
            return None

        merged = dict(body)
        merged.update(entry)
        return ScenarioDefinition.from_dict(merged, key=key, location=str(scenario_file.name))

    @classmethod
    def get_instance(cls, config_path: Path = _CONFIG_FILE) -> "ScenarioRegistry":
        if cls._instance is None:
            cls._instance = cls(config_path)
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset singleton for testing."""
        cls._instance = None

    @property
    def scenario_order(self) -> List[str]:
        """Return list of scenario keys in index order."""
        return [s.key for s in self._scenarios]

    @property
    def scenarios(self) -> List[ScenarioDefinition]:
        """Return all scenario definitions in order."""
        return list(self._scenarios)

    def get_scenario(self, key: str) -> Optional[ScenarioDefinition]:
        """Get scenario by key."""
        return self._by_key.get(key)

    def get_steps(self, key: str) -> List[StepDefinition]:
        """Get steps for a scenario."""
        scenario = self._by_key.get(key)
        return list(scenario.steps) if scenario else []


# Module-level convenience functions
def _get_registry() -> ScenarioRegistry:
    return ScenarioRegistry.get_instance()


def get_scenario_keys() -> List[str]:
    """Get list of scenario keys in index order."""
    return _get_registry().scenario_order


def get_scenario(key: str) -> Optional[ScenarioDefinition]:
    """Get a bundled scenario by key."""
    return _get_registry().get_scenario(key)


def get_scenario_steps(key: str) -> List[StepDefinition]:
    """Get steps for a bundled scenario."""
    return _get_registry().get_steps(key)
