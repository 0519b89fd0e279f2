"""
validator - Scenario definition validation

Usage:
    from scenario_studio.validator import validate_scenario, ValidationResult

    result = validate_scenario(scenario)
    if result.has_errors():
        for err in result.sorted_errors():
            print(err.format())
"""

from .errors import ScenarioValidationError, ValidationError, ValidationResult
from .scenario import validate_scenario

__all__ = [
    "ScenarioValidationError",
    "ValidationError",
    "ValidationResult",
    "validate_scenario",
]
