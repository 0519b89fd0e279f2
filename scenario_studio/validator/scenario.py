# scenario_studio/validator/scenario.py
"""Structural validation of scenario definitions.

Checks performed:
    - at least one step, unique step ids
    - depends_on names an earlier step
    - tool steps name a tool_kind; text steps carry text
    - a step is not both an interrupt and an async gate
    - delay_ms is not negative
    - group ids are unique, group members reference known steps
    - tool kinds are known to the tool catalog
    - the first-gate step exists
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, Optional, Set

from scenario_studio.config.tool_catalog import ToolCatalog, get_tool_catalog
from scenario_studio.runtime.types import StepKind

from .errors import ValidationResult

if TYPE_CHECKING:
    from scenario_studio.config.scenario_registry import ScenarioDefinition

logger = logging.getLogger(__name__)


def validate_scenario(
    scenario: "ScenarioDefinition",
    catalog: Optional[ToolCatalog] = None,
    location: Optional[str] = None,
) -> ValidationResult:
    """Validate a scenario definition.

    Args:
        scenario: The definition to check.
        catalog: Tool catalog used for tool-kind checks (bundled by default).
        location: Source the definition was read from, typically a file.

    Returns:
        ValidationResult with errors (definition must not be loaded) and
        warnings (definition loads but is probably mis-authored).
    """
    catalog = catalog or get_tool_catalog()
    result = ValidationResult(scenario.key, source=location)

    if not scenario.steps:
        result.add_error("EMPTY_SCENARIO", "defines no steps", "Add at least one entry under 'steps'")

    seen: Dict[str, int] = {}
    for index, step in enumerate(scenario.steps):
        at = {"step_id": step.id, "step_index": index}

        if step.id in seen:
            result.add_error(
                "DUPLICATE_STEP",
                f"reuses step id '{step.id}' (first defined at index {seen[step.id]})",
                "Give every step a unique id",
                **at,
            )
        else:
            seen[step.id] = index

        if step.depends_on is not None and step.depends_on not in seen:
            result.add_error(
                "BAD_DEPENDENCY",
                f"depends_on '{step.depends_on}' which is not an earlier step",
                "Point depends_on at a step defined before this one",
                **at,
            )

        if step.delay_ms is not None and step.delay_ms < 0:
            result.add_error(
                "NEGATIVE_DELAY",
                f"has negative delay_ms {step.delay_ms}",
                "Use 0 or a positive number of milliseconds",
                **at,
            )

        if step.kind == StepKind.TOOL:
            if not step.tool_kind:
                result.add_error(
                    "MISSING_TOOL_KIND",
                    "is a tool step without tool_kind",
                    "Set tool_kind to an entry of tool_catalog.yaml",
                    **at,
                )
            elif not catalog.has_tool(step.tool_kind):
                result.add_warning(
                    "UNKNOWN_TOOL_KIND",
                    f"uses tool_kind '{step.tool_kind}' missing from the tool catalog",
                    "Add the tool to tool_catalog.yaml or fix the spelling",
                    **at,
                )
            if step.is_interrupt and step.is_async:
                result.add_error(
                    "CONFLICTING_SUSPENSION",
                    "is marked both interrupt and async",
                    "Keep only one of 'interrupt' or 'async'",
                    **at,
                )
        else:
            if not step.text_content:
                result.add_error(
                    "MISSING_TEXT",
                    "is a text step without text",
                    "Set 'text' to the agent utterance",
                    **at,
                )
            if step.is_interrupt or step.is_async:
                result.add_warning(
                    "IGNORED_FLAG",
                    "is a text step marked interrupt/async; text steps never suspend",
                    "Move the flag to a tool step",
                    **at,
                )

    _validate_groups(scenario, seen, result)

    gate = scenario.first_gate_step_id
    if gate is not None and gate not in seen:
        result.add_error(
            "UNKNOWN_FIRST_GATE",
            f"first_gate_step_id '{gate}' is not a step of this scenario",
            "Point first_gate_step_id at an existing step or remove it",
        )

    if result.has_errors():
        logger.debug(
            "Scenario %s failed validation with %d error(s)", scenario.key, len(result.errors)
        )
    return result


def _validate_groups(
    scenario: "ScenarioDefinition",
    step_indexes: Dict[str, int],
    result: ValidationResult,
) -> None:
    """Check progress and render group definitions."""
    steps_by_id = {s.id: s for s in scenario.steps}

    for section, groups in (
        ("progress_groups", scenario.progress_groups),
        ("render_groups", scenario.render_groups),
    ):
        group_ids: Set[str] = set()
        for group in groups:
            at = {"section": section, "group_id": group.id}
            if group.id in group_ids:
                result.add_error(
                    "DUPLICATE_GROUP",
                    f"reuses group id '{group.id}'",
                    "Give every group in a section a unique id",
                    **at,
                )
            group_ids.add(group.id)

            for step_id in group.step_ids:
                if step_id not in step_indexes:
                    result.add_warning(
                        "UNKNOWN_STEP_REF",
                        f"references unknown step '{step_id}'",
                        "Remove the id or add the step",
                        **at,
                    )

    for group in scenario.render_groups:
        at = {"section": "render_groups", "group_id": group.id}
        for step_id in group.step_ids:
            step = steps_by_id.get(step_id)
            if step is not None and step.kind != StepKind.TOOL:
                result.add_warning(
                    "NON_TOOL_MEMBER",
                    f"lists text step '{step_id}'; only tool messages are grouped",
                    "Use following_text_step_id for the text step",
                    **at,
                )
        following = group.following_text_step_id
        if following is None:
            continue
        step = steps_by_id.get(following)
        if step is None:
            result.add_warning(
                "UNKNOWN_STEP_REF",
                f"following_text_step_id '{following}' is not a step",
                "Remove following_text_step_id or add the step",
                **at,
            )
        elif step.kind != StepKind.TEXT:
            result.add_warning(
                "NON_TEXT_FOLLOWER",
                f"following_text_step_id '{following}' is not a text step",
                "Point following_text_step_id at a text step",
                **at,
            )
