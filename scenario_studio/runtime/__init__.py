# scenario_studio/runtime package
# Provides the scenario engine and everything it derives views from.
#
# Core components:
#   - types: Core dataclasses (StepDefinition, ScenarioMessage, ScenarioSnapshot, EngineEvent)
#   - scheduler: One-shot timer abstraction (ThreadingScheduler, ManualScheduler)
#   - engine: ScenarioEngine step sequencer
#   - interrupts / async_gate: the two suspension points
#   - progress / segments / message_views: derived views
#   - service: ScenarioService session registry singleton
#
# Usage:
#     from scenario_studio.runtime import ScenarioService
#     service = ScenarioService.get_instance()
#     session = service.create_session("ppt", autostart=True)
#     snapshot = session.engine.snapshot()

from typing import TYPE_CHECKING

from .scheduler import ManualScheduler, Scheduler, ThreadingScheduler, TimerHandle
from .types import (
    EngineEvent,
    EventKind,
    RunState,
    ScenarioMessage,
    ScenarioSnapshot,
    StepDefinition,
    StepKind,
    ToolStatus,
)

# Engine and service pull in config modules that import runtime.types;
# they are imported lazily to keep package initialization acyclic.
if TYPE_CHECKING:
    from .engine import ScenarioEngine as ScenarioEngine
    from .service import ScenarioService as ScenarioService
    from .service import get_scenario_service as get_scenario_service

__all__ = [
    # Types
    "EngineEvent",
    "EventKind",
    "RunState",
    "ScenarioMessage",
    "ScenarioSnapshot",
    "StepDefinition",
    "StepKind",
    "ToolStatus",
    # Scheduling
    "Scheduler",
    "TimerHandle",
    "ThreadingScheduler",
    "ManualScheduler",
    # Engine and service (imported lazily)
    "ScenarioEngine",
    "ScenarioService",
    "get_scenario_service",
]


def __getattr__(name: str):
    """Lazy import for engine and service to avoid circular dependencies."""
    if name == "ScenarioEngine":
        from .engine import ScenarioEngine

        return ScenarioEngine
    if name == "ScenarioService":
        from .service import ScenarioService

        return ScenarioService
    if name == "get_scenario_service":
        from .service import get_scenario_service

        return get_scenario_service
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
