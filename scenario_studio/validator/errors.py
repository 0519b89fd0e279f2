# scenario_studio/validator/errors.py
"""Validation findings for scenario definitions.

A finding points at a place inside a scenario rather than at a line of a
file: the scenario itself, one step (by id and index), or one group of a
group section. The printable location is derived from those fields, so
the same finding reads the same whether the scenario came from a bundled
YAML file, a standalone file or a caller-built dict.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

SEVERITY_ERROR = "error"
SEVERITY_WARNING = "warning"

# [FAIL] TYPE: location problem -> Fix: action
FINDING_TEMPLATE = "[{tag}] {error_type}: {location} {problem}\n  Fix: {fix_action}"
_TAGS = {SEVERITY_ERROR: "FAIL", SEVERITY_WARNING: "WARN"}

SECTION_SCENARIO = "scenario"
SECTION_STEPS = "steps"
# Order sections appear in a scenario file.
SECTION_ORDER = (SECTION_SCENARIO, SECTION_STEPS, "progress_groups", "render_groups")


@dataclass(frozen=True)
class ValidationError:
    """One finding about a scenario definition (error or warning).

    Attributes:
        error_type: Upper-case finding code, e.g. BAD_DEPENDENCY.
        problem: What is wrong, phrased to follow the location.
        fix_action: How to fix it.
        severity: "error" rejects the definition; "warning" only flags it.
        scenario_key: Scenario the finding belongs to.
        source: Where the scenario was read from (file name or path).
        section: "scenario", "steps", "progress_groups" or "render_groups".
        step_id: Offending step, for step findings.
        step_index: Position of that step in the step list.
        group_id: Offending group, for group findings.
    """

    error_type: str
    problem: str
    fix_action: str
    severity: str = SEVERITY_ERROR
    scenario_key: Optional[str] = None
    source: Optional[str] = None
    section: str = SECTION_SCENARIO
    step_id: Optional[str] = None
    step_index: Optional[int] = None
    group_id: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.severity == SEVERITY_ERROR

    @property
    def location(self) -> str:
        """Printable location, e.g. "ppt.yaml:steps[3](tool_planning)"."""
        base = self.source or self.scenario_key or "<scenario>"
        if self.step_id is not None:
            index = "" if self.step_index is None else f"[{self.step_index}]"
            return f"{base}:steps{index}({self.step_id})"
        if self.group_id is not None:
            return f"{base}:{self.section}({self.group_id})"
        return base

    def format(self) -> str:
        """Format the finding as a one-line message plus fix hint."""
        return FINDING_TEMPLATE.format(
            tag=_TAGS.get(self.severity, "FAIL"),
            error_type=self.error_type,
            location=self.location,
            problem=self.problem,
            fix_action=self.fix_action,
        )

    def sort_key(self) -> Tuple[str, int, int, str, str]:
        """Scenario, then file order: section, step position, group id."""
        section_rank = (
            SECTION_ORDER.index(self.section) if self.section in SECTION_ORDER else len(SECTION_ORDER)
        )
        return (
            self.source or self.scenario_key or "",
            section_rank,
            self.step_index if self.step_index is not None else -1,
            self.group_id or "",
            self.error_type,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert the finding to a dictionary for JSON serialization."""
        return {
            "type": self.error_type,
            "severity": self.severity,
            "scenario_key": self.scenario_key,
            "location": self.location,
            "section": self.section,
            "step_id": self.step_id,
            "step_index": self.step_index,
            "group_id": self.group_id,
            "problem": self.problem,
            "fix_action": self.fix_action,
        }


class ValidationResult:
    """Collects the findings for one scenario, or several after extend().

    Args:
        scenario_key: Key stamped on every finding added here.
        source: Source file stamped on every finding added here.
    """

    def __init__(self, scenario_key: Optional[str] = None, source: Optional[str] = None):
        self.scenario_key = scenario_key
        self.source = source
        self.errors: List[ValidationError] = []
        self.warnings: List[ValidationError] = []

    def _finding(
        self,
        severity: str,
        error_type: str,
        problem: str,
        fix_action: str,
        step_id: Optional[str],
        step_index: Optional[int],
        section: Optional[str],
        group_id: Optional[str],
    ) -> ValidationError:
        if section is None:
            section = SECTION_STEPS if step_id is not None else SECTION_SCENARIO
        return ValidationError(
            error_type=error_type,
            problem=problem,
            fix_action=fix_action,
            severity=severity,
            scenario_key=self.scenario_key,
            source=self.source,
            section=section,
            step_id=step_id,
            step_index=step_index,
            group_id=group_id,
        )

    def add_error(
        self,
        error_type: str,
        problem: str,
        fix_action: str,
        step_id: Optional[str] = None,
        step_index: Optional[int] = None,
        section: Optional[str] = None,
        group_id: Optional[str] = None,
    ) -> ValidationError:
        """Add a finding that rejects the definition."""
        finding = self._finding(
            SEVERITY_ERROR, error_type, problem, fix_action, step_id, step_index, section, group_id
        )
        self.errors.append(finding)
        return finding

    def add_warning(
        self,
        error_type: str,
        problem: str,
        fix_action: str,
        step_id: Optional[str] = None,
        step_index: Optional[int] = None,
        section: Optional[str] = None,
        group_id: Optional[str] = None,
    ) -> ValidationError:
        """Add a finding for a loadable but probably mis-authored definition."""
        finding = self._finding(
            SEVERITY_WARNING, error_type, problem, fix_action, step_id, step_index, section, group_id
        )
        self.warnings.append(finding)
        return finding

    def extend(self, other: "ValidationResult") -> None:
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)

    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def has_warnings(self) -> bool:
        return len(self.warnings) > 0

    def sorted_errors(self) -> List[ValidationError]:
        return sorted(self.errors, key=lambda e: e.sort_key())

    def sorted_warnings(self) -> List[ValidationError]:
        return sorted(self.warnings, key=lambda e: e.sort_key())

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary for JSON serialization."""
        return {
            "errors": [e.to_dict() for e in self.sorted_errors()],
            "warnings": [w.to_dict() for w in self.sorted_warnings()],
            "error_count": len(self.errors),
            "warning_count": len(self.warnings),
            "status": "FAIL" if self.has_errors() else "PASS",
        }


class ScenarioValidationError(ValueError):
    """Raised when a scenario definition cannot be loaded because it has errors.

    Attributes:
        scenario_key: Key of the rejected scenario.
        result: The ValidationResult holding every finding.
    """

    def __init__(self, scenario_key: str, result: ValidationResult):
        self.scenario_key = scenario_key
        self.result = result
        first = result.sorted_errors()[0].format() if result.errors else "unknown error"
        super().__init__(
            f"Scenario '{scenario_key}' has {len(result.errors)} validation error(s); first: {first}"
        )
