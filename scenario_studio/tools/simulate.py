#!/usr/bin/env python3
"""
simulate.py - Run a scenario end to end on a fake clock.

Drives a ScenarioEngine with a ManualScheduler, answering every interrupt
(explicit --choice, else the recommended option, else the first option)
and completing every async step as soon as the run freezes on it. Prints
the event timeline with fake timestamps, then the final progress and
render segments.

## CLI Usage

  python -m scenario_studio.tools.simulate --scenario ppt
  python -m scenario_studio.tools.simulate --scenario ppt --choice tool_data_source=upload
  python -m scenario_studio.tools.simulate --file my_scenario.yaml --json

## Exit Codes

0   Run completed
1   Run stalled before completing
2   Fatal error (unknown scenario, bad arguments, invalid definition)
"""

import argparse
import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import yaml

from scenario_studio.config.runtime_config import EngineSettings
from scenario_studio.config.scenario_registry import (
    ScenarioDefinition,
    get_scenario,
    get_scenario_keys,
)
from scenario_studio.config.tool_catalog import ToolCatalog
from scenario_studio.runtime.engine import ScenarioEngine
from scenario_studio.runtime.scheduler import ManualScheduler
from scenario_studio.runtime.types import (
    SEGMENT_TOOL_GROUP,
    EngineEvent,
    InterruptPayload,
    RunState,
    ScenarioSnapshot,
    engine_event_to_dict,
    scenario_snapshot_to_dict,
)
from scenario_studio.validator import ScenarioValidationError

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_STALLED = 1
EXIT_FATAL_ERROR = 2

# Upper bound on interrupt/async rounds; a scenario has at most one per step.
_MAX_ROUNDS = 10_000


@dataclass
class SimulationResult:
    """Outcome of a simulated run.

    Attributes:
        scenario_key: Scenario that was run.
        completed: Whether the run reached the end.
        elapsed_ms: Fake time consumed.
        timeline: (fake time, event) pairs in emission order.
        snapshot: Engine snapshot after the last timer fired.
    """

    scenario_key: str
    completed: bool
    elapsed_ms: int
    snapshot: ScenarioSnapshot
    timeline: List[Tuple[int, EngineEvent]] = field(default_factory=list)


def pick_choice(payload: InterruptPayload, choices: Optional[Dict[str, str]] = None) -> str:
    """Choose the option to answer an interrupt with."""
    if choices and payload.step_id in choices:
        return choices[payload.step_id]
    for option in payload.options:
        if option.recommended:
            return option.id
    if payload.options:
        return payload.options[0].id
    return "default"


def simulate(
    scenario: ScenarioDefinition,
    choices: Optional[Dict[str, str]] = None,
    settings: Optional[EngineSettings] = None,
    catalog: Optional[ToolCatalog] = None,
) -> SimulationResult:
    """Run a scenario to completion on a ManualScheduler."""
    scheduler = ManualScheduler()
    engine = ScenarioEngine(scenario, scheduler, settings=settings, catalog=catalog)
    timeline: List[Tuple[int, EngineEvent]] = []
    unsubscribe = engine.subscribe(lambda event: timeline.append((scheduler.now_ms, event)))

    engine.start()
    completed = False
    for _ in range(_MAX_ROUNDS):
        scheduler.run_until_idle()
        snapshot = engine.snapshot()
        if snapshot.run_state == RunState.COMPLETED:
            completed = True
            break
        if snapshot.active_interrupt is not None:
            choice = pick_choice(snapshot.active_interrupt, choices)
            logger.debug("Answering %s with %s", snapshot.active_interrupt.step_id, choice)
            engine.resume_interrupt(snapshot.active_interrupt.step_id, choice)
        elif snapshot.pending_async_step_id is not None:
            engine.complete_async_step(snapshot.pending_async_step_id)
        else:
            logger.warning("Scenario %s stalled at %s", scenario.key, snapshot.current_step_id)
            break

    result = SimulationResult(
        scenario_key=scenario.key,
        completed=completed,
        elapsed_ms=scheduler.now_ms,
        snapshot=engine.snapshot(),
        timeline=timeline,
    )
    unsubscribe()
    engine.dispose()
    return result


def simulation_result_to_dict(result: SimulationResult) -> Dict[str, Any]:
    return {
        "scenario_key": result.scenario_key,
        "completed": result.completed,
        "elapsed_ms": result.elapsed_ms,
        "timeline": [
            {"t_ms": t_ms, **engine_event_to_dict(event)} for t_ms, event in result.timeline
        ],
        "snapshot": scenario_snapshot_to_dict(result.snapshot),
    }


# ============================================================================
# Reporting
# ============================================================================


def print_result(result: SimulationResult) -> None:
    for t_ms, event in result.timeline:
        detail = ""
        if "choice_id" in event.payload:
            detail = f" -> {event.payload['choice_id']}"
        elif "group_id" in event.payload:
            detail = f" [{event.payload['group_id']}]"
        print(f"[{t_ms:>7}ms] {event.kind:<22} {event.step_id or '':<32}{detail}")

    snapshot = result.snapshot
    print(f"\nScenario {result.scenario_key}: {snapshot.run_state.value} after {result.elapsed_ms}ms")

    if snapshot.progress_groups:
        print("\nProgress:")
        for group in snapshot.progress_groups:
            pct = "-" if group.progress is None else f"{group.progress}%"
            print(f"  {group.label:<24} {group.status:<10} {pct}")

    print("\nSegments:")
    for segment in snapshot.render_segments:
        if segment.kind == SEGMENT_TOOL_GROUP:
            print(f"  [{segment.group_id}] {segment.label} ({len(segment.messages)} tools)")
        elif segment.message is not None:
            print(f"  text: {segment.message.content}")


# ============================================================================
# CLI and Main
# ============================================================================


def _parse_choices(values: Sequence[str]) -> Dict[str, str]:
    choices: Dict[str, str] = {}
    for value in values:
        step_id, sep, choice_id = value.partition("=")
        if not sep or not step_id or not choice_id:
            raise ValueError(f"--choice expects STEP=CHOICE, got '{value}'")
        choices[step_id] = choice_id
    return choices


def _load_file(path: Path) -> ScenarioDefinition:
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return ScenarioDefinition.from_dict(data, key=data.get("key") or path.stem, location=str(path))


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point. Returns the exit code."""
    parser = argparse.ArgumentParser(description="Simulate a scenario run on a fake clock")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--scenario", default="ppt", help="Bundled scenario key (default: ppt)")
    source.add_argument("--file", type=Path, help="Scenario YAML file to run instead")
    parser.add_argument(
        "--choice",
        action="append",
        default=[],
        metavar="STEP=CHOICE",
        help="Answer for an interrupt step (repeatable)",
    )
    parser.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    args = parser.parse_args(argv)

    try:
        choices = _parse_choices(args.choice)
        if args.file:
            scenario = _load_file(args.file)
        else:
            scenario = get_scenario(args.scenario)
            if scenario is None:
                raise LookupError(
                    f"Scenario '{args.scenario}' not found. Available scenarios: {get_scenario_keys()}"
                )
    except (OSError, yaml.YAMLError, LookupError, ValueError, ScenarioValidationError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_FATAL_ERROR

    result = simulate(scenario, choices=choices)

    if args.json:
        print(json.dumps(simulation_result_to_dict(result), indent=2, ensure_ascii=False))
    else:
        print_result(result)

    return EXIT_SUCCESS if result.completed else EXIT_STALLED


if __name__ == "__main__":
    sys.exit(main())
