#!/usr/bin/env python3
"""
validate_scenarios.py - Scenario definition validator

Checks authored scenario definitions before they are loaded by the
engine. Without arguments the bundled scenarios (config/scenarios.yaml
plus config/scenarios/<key>.yaml) are checked; otherwise each given YAML
file is checked as a standalone scenario.

## CLI Usage

Validate bundled scenarios:
  python -m scenario_studio.tools.validate_scenarios

Validate caller-authored files:
  python -m scenario_studio.tools.validate_scenarios my_scenario.yaml

Treat warnings as errors:
  python -m scenario_studio.tools.validate_scenarios --strict

## Exit Codes

0   All validation checks passed
1   Validation failed (errors, or warnings under --strict)
2   Fatal error (missing files, YAML parse errors)

## Error Message Format

  [FAIL] TYPE: location problem
    Fix: action
"""

import argparse
import json
import sys
from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import yaml

from scenario_studio.config.scenario_registry import ScenarioDefinition
from scenario_studio.config.tool_catalog import get_tool_catalog
from scenario_studio.validator import (
    ValidationError,
    ValidationResult,
    validate_scenario,
)

# Exit codes per contract
EXIT_SUCCESS = 0
EXIT_VALIDATION_FAILED = 1
EXIT_FATAL_ERROR = 2

_CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"


class FatalValidationError(Exception):
    """A scenario source could not be read at all."""


# ============================================================================
# Loading
# ============================================================================


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise FatalValidationError(f"Cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise FatalValidationError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise FatalValidationError(f"{path} must contain a mapping at the top level")
    return data


def load_bundled_sources(config_dir: Path = _CONFIG_DIR) -> List[Tuple[str, str, Dict[str, Any]]]:
    """Collect (key, location, merged data) for every bundled scenario."""
    index = _read_yaml(config_dir / "scenarios.yaml")
    sources = []
    for entry in index.get("scenarios", []):
        key = entry.get("key")
        if not key:
            raise FatalValidationError("scenarios.yaml has an entry without 'key'")
        scenario_file = config_dir / "scenarios" / f"{key}.yaml"
        body = _read_yaml(scenario_file) if scenario_file.exists() else {}
        merged = dict(body)
        merged.update(entry)
        sources.append((key, scenario_file.name, merged))
    return sources


def load_file_sources(paths: Sequence[Path]) -> List[Tuple[str, str, Dict[str, Any]]]:
    """Collect (key, location, data) for standalone scenario files."""
    sources = []
    for path in paths:
        if not path.exists():
            raise FatalValidationError(f"File not found: {path}")
        data = _read_yaml(path)
        sources.append((data.get("key") or path.stem, str(path), data))
    return sources


# ============================================================================
# Validation
# ============================================================================


def run_validation(
    sources: Sequence[Tuple[str, str, Dict[str, Any]]],
) -> Tuple[ValidationResult, Dict[str, Dict[str, Any]]]:
    """Validate every source.

    Returns:
        The combined result and a per-scenario summary keyed by scenario key.
    """
    catalog = get_tool_catalog()
    combined = ValidationResult()
    per_scenario: Dict[str, Dict[str, Any]] = {}

    for key, location, data in sources:
        try:
            scenario = ScenarioDefinition.from_dict(data, key=key, validate=False)
        except (KeyError, TypeError, ValueError) as e:
            result = ValidationResult(key, source=location)
            result.add_error(
                "MALFORMED_SCENARIO",
                f"cannot be parsed: {e}",
                "Check step and group fields against the scenario format",
            )
        else:
            result = validate_scenario(scenario, catalog=catalog, location=location)

        combined.extend(result)
        per_scenario[key] = {
            "location": location,
            "status": "FAIL" if result.has_errors() else ("WARN" if result.has_warnings() else "PASS"),
            "error_count": len(result.errors),
            "warning_count": len(result.warnings),
        }

    return combined, per_scenario


def is_failure(result: ValidationResult, strict: bool) -> bool:
    return result.has_errors() or (strict and result.has_warnings())


# ============================================================================
# Reporting
# ============================================================================


def build_json_output(
    result: ValidationResult,
    per_scenario: Dict[str, Dict[str, Any]],
    strict: bool,
) -> Dict[str, Any]:
    """Machine-readable report."""
    output = result.to_dict()
    output["status"] = "FAIL" if is_failure(result, strict) else "PASS"
    output["strict"] = strict
    output["timestamp"] = datetime.now(timezone.utc).isoformat(timespec="seconds")
    output["scenarios"] = per_scenario
    return output


def _print_grouped(findings: List[ValidationError], kind: str) -> None:
    by_type: Dict[str, List[ValidationError]] = defaultdict(list)
    for finding in findings:
        by_type[finding.error_type].append(finding)

    for finding_type in sorted(by_type.keys()):
        group = by_type[finding_type]
        print(f"\n{finding_type} {kind} ({len(group)}):", file=sys.stderr)
        print("=" * 70, file=sys.stderr)
        for finding in group:
            print(finding.format(), file=sys.stderr)


def print_report(result: ValidationResult, per_scenario: Dict[str, Dict[str, Any]], strict: bool) -> None:
    """Human-readable report; findings go to stderr."""
    if result.has_errors():
        _print_grouped(result.sorted_errors(), "Errors")
    if result.has_warnings():
        _print_grouped(result.sorted_warnings(), "Warnings")
        if not strict:
            print("\nNote: Warnings do not fail validation. Use --strict to treat them as errors.", file=sys.stderr)

    if is_failure(result, strict):
        print(
            f"\nScenario validation FAILED ({len(result.errors)} errors, {len(result.warnings)} warnings).",
            file=sys.stderr,
        )
        return

    print("Scenario validation PASSED.")
    for key, summary in per_scenario.items():
        print(f"  [{summary['status']}] {key} ({summary['location']})")


# ============================================================================
# CLI and Main
# ============================================================================


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point. Returns the exit code."""
    parser = argparse.ArgumentParser(
        description="Validate scenario definitions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit Codes:
  0 - All validation checks passed
  1 - Validation failed
  2 - Fatal error (missing files, parse errors)
        """,
    )
    parser.add_argument("files", nargs="*", type=Path, help="Scenario YAML files (default: bundled scenarios)")
    parser.add_argument("--strict", action="store_true", help="Treat warnings as errors")
    parser.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    args = parser.parse_args(argv)

    try:
        sources = load_file_sources(args.files) if args.files else load_bundled_sources()
    except FatalValidationError as e:
        if args.json:
            print(json.dumps({"status": "ERROR", "message": str(e)}, indent=2))
        else:
            print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_FATAL_ERROR

    result, per_scenario = run_validation(sources)

    if args.json:
        print(json.dumps(build_json_output(result, per_scenario, args.strict), indent=2, ensure_ascii=False))
    else:
        print_report(result, per_scenario, args.strict)

    return EXIT_VALIDATION_FAILED if is_failure(result, args.strict) else EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())
