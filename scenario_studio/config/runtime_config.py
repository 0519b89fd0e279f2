"""Runtime configuration for scenario engine pacing.

Provides centralized configuration for the presentation-pacing constants
used by the engine. Environment variables take precedence over YAML config.

Usage:
    from scenario_studio.config.runtime_config import load_engine_settings

    settings = load_engine_settings()
    settings.settle_delay_ms        # 500 unless overridden
    settings.auto_collapse_delay_ms # 800 unless overridden

Environment overrides (integers, milliseconds unless noted):
    SCENARIO_SETTLE_DELAY_MS
    SCENARIO_AUTO_COLLAPSE_DELAY_MS
    SCENARIO_DEFAULT_TOOL_DELAY_MS
    SCENARIO_DEFAULT_TEXT_DELAY_MS
    SCENARIO_EVENT_LOG_LIMIT (count)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

_CONFIG_PATH = Path(__file__).parent / "runtime.yaml"
_cached_config: Optional[Dict[str, Any]] = None

# Extra pause between a completed step and a step that depends on it.
SETTLE_DELAY_MS = 500

# Grace period before a fully completed render group is collapsed.
AUTO_COLLAPSE_DELAY_MS = 800

# Fallback latencies for steps authored without delay_ms.
DEFAULT_TOOL_DELAY_MS = 1000
DEFAULT_TEXT_DELAY_MS = 500

# Per-session event log bound kept by the service layer.
EVENT_LOG_LIMIT = 1000


@dataclass(frozen=True)
class EngineSettings:
    """Resolved engine pacing configuration.

    Attributes:
        settle_delay_ms: Gap inserted before a step whose depends_on is the
            step that just finished.
        auto_collapse_delay_ms: Delay before a completed render group's
            expand flag is forced to collapsed.
        default_tool_delay_ms: Latency for tool steps without delay_ms.
        default_text_delay_ms: Latency for text steps without delay_ms.
        event_log_limit: Max events retained per session by the service.
    """

    settle_delay_ms: int = SETTLE_DELAY_MS
    auto_collapse_delay_ms: int = AUTO_COLLAPSE_DELAY_MS
    default_tool_delay_ms: int = DEFAULT_TOOL_DELAY_MS
    default_text_delay_ms: int = DEFAULT_TEXT_DELAY_MS
    event_log_limit: int = EVENT_LOG_LIMIT


def _load_config() -> Dict[str, Any]:
    """Load runtime.yaml configuration, with caching."""
    global _cached_config
    if _cached_config is not None:
        return _cached_config

    if _CONFIG_PATH.exists():
        with open(_CONFIG_PATH, encoding="utf-8") as f:
            _cached_config = yaml.safe_load(f) or {}
    else:
        _cached_config = _default_config()

    return _cached_config


def _default_config() -> Dict[str, Any]:
    """Return default configuration if runtime.yaml doesn't exist."""
    return {
        "version": "1.0",
        "engine": {
            "settle_delay_ms": SETTLE_DELAY_MS,
            "auto_collapse_delay_ms": AUTO_COLLAPSE_DELAY_MS,
            "default_tool_delay_ms": DEFAULT_TOOL_DELAY_MS,
            "default_text_delay_ms": DEFAULT_TEXT_DELAY_MS,
            "event_log_limit": EVENT_LOG_LIMIT,
        },
    }


def reset_config() -> None:
    """Reset cached config (for testing)."""
    global _cached_config
    _cached_config = None


def _coerce_non_negative_int(value: Any, name: str, source: str) -> Optional[int]:
    """Parse a non-negative integer, logging and returning None when invalid."""
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        logger.warning(
            "Invalid %s value '%s' from %s (expected integer). Ignoring.",
            name,
            value,
            source,
        )
        return None
    if parsed < 0:
        logger.warning(
            "Negative %s value %d from %s. Ignoring.",
            name,
            parsed,
            source,
        )
        return None
    return parsed


def get_engine_setting(name: str, fallback: int) -> int:
    """Get an engine setting, respecting environment variable overrides.

    Precedence (highest to lowest):
    1. SCENARIO_<NAME> environment variable (e.g., SCENARIO_SETTLE_DELAY_MS)
    2. Config file value under "engine"
    3. fallback

    Args:
        name: Setting name (e.g., "settle_delay_ms").
        fallback: Value to return when no valid override exists.

    Returns:
        The resolved integer value.
    """
    env_var = f"SCENARIO_{name.upper()}"
    env_value = os.environ.get(env_var)
    if env_value:
        parsed = _coerce_non_negative_int(env_value, name, env_var)
        if parsed is not None:
            return parsed

    config = _load_config()
    engine_config = config.get("engine", {}) or {}
    if name in engine_config:
        parsed = _coerce_non_negative_int(engine_config[name], name, str(_CONFIG_PATH.name))
        if parsed is not None:
            return parsed

    return fallback


def load_engine_settings(**overrides: int) -> EngineSettings:
    """Resolve EngineSettings from environment, config file and defaults.

    Args:
        **overrides: Explicit values that win over every other source
            (e.g., ``load_engine_settings(settle_delay_ms=0)``).

    Returns:
        Fully resolved EngineSettings.

    Raises:
        TypeError: If an override names an unknown setting.
    """
    defaults = EngineSettings()
    values: Dict[str, int] = {}
    for f in fields(EngineSettings):
        if f.name in overrides:
            values[f.name] = int(overrides.pop(f.name))
        else:
            values[f.name] = get_engine_setting(f.name, getattr(defaults, f.name))
    if overrides:
        raise TypeError(f"Unknown engine settings: {sorted(overrides)}")
    return EngineSettings(**values)
