"""
service.py - ScenarioService session registry

This module provides the ScenarioService singleton that owns every live
scenario session. A session is one ScenarioEngine plus the scheduler it
runs on and a bounded log of the events it emitted. All consumers (API,
CLI) should go through ScenarioService rather than building engines
directly when they need sessions to outlive a single call.

Usage:
    from scenario_studio.runtime.service import ScenarioService

    service = ScenarioService.get_instance()
    session = service.create_session("ppt", autostart=True)
    session.engine.snapshot()
    service.events_since(session.session_id, 0)
    service.close_session(session.session_id)
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Deque, Dict, List, Optional

from scenario_studio.config.runtime_config import EngineSettings, load_engine_settings
from scenario_studio.config.scenario_registry import ScenarioDefinition, ScenarioRegistry
from scenario_studio.runtime.engine import ScenarioEngine
from scenario_studio.runtime.scheduler import Scheduler, ThreadingScheduler
from scenario_studio.runtime.types import EngineEvent, SessionId, generate_session_id
from scenario_studio.runtime.types._time import _datetime_to_iso, _utcnow

logger = logging.getLogger(__name__)


class ScenarioNotFoundError(LookupError):
    """Raised when a session is requested for an unknown scenario key."""


@dataclass
class ScenarioSession:
    """One live engine and its bookkeeping.

    Attributes:
        session_id: Unique session identifier.
        scenario_key: Key of the scenario being run.
        engine: The engine driving the run.
        scheduler: Timer source the engine was built with.
        created_at: Creation timestamp.
        events: Most recent engine events, oldest first, bounded.
    """

    session_id: SessionId
    scenario_key: str
    engine: ScenarioEngine
    scheduler: Scheduler
    created_at: datetime = field(default_factory=_utcnow)
    events: Deque[EngineEvent] = field(default_factory=deque)
    _unsubscribe: Optional[Callable[[], None]] = None
    _events_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def last_seq(self) -> int:
        with self._events_lock:
            return self.events[-1].seq if self.events else 0

    def record(self, event: EngineEvent) -> None:
        """Append an event to the bounded log (engine listener)."""
        with self._events_lock:
            self.events.append(event)

    def events_after(self, seq: int) -> List[EngineEvent]:
        """Logged events with a sequence number greater than seq."""
        with self._events_lock:
            return [e for e in self.events if e.seq > seq]


def session_summary_to_dict(session: ScenarioSession) -> Dict[str, object]:
    """Convert a session to a short dictionary for listings."""
    return {
        "session_id": session.session_id,
        "scenario_key": session.scenario_key,
        "run_state": session.engine.run_state.value,
        "created_at": _datetime_to_iso(session.created_at),
        "last_seq": session.last_seq,
    }


class ScenarioService:
    """Central registry of scenario sessions.

    This is a singleton. Sessions live until close_session() is called;
    closing disposes the engine and shuts down its scheduler.
    """

    _instance: Optional["ScenarioService"] = None

    def __init__(
        self,
        registry: Optional[ScenarioRegistry] = None,
        settings: Optional[EngineSettings] = None,
    ):
        self._registry = registry
        self._settings = settings
        self._sessions: Dict[SessionId, ScenarioSession] = {}
        self._lock = threading.Lock()

    @classmethod
    def get_instance(cls) -> "ScenarioService":
        """Get the singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton (for testing). Open sessions are closed."""
        if cls._instance is not None:
            cls._instance.close_all()
        cls._instance = None

    @property
    def registry(self) -> ScenarioRegistry:
        if self._registry is None:
            self._registry = ScenarioRegistry.get_instance()
        return self._registry

    @property
    def settings(self) -> EngineSettings:
        if self._settings is None:
            self._settings = load_engine_settings()
        return self._settings

    # =========================================================================
    # Session Lifecycle
    # =========================================================================

    def create_session(
        self,
        scenario_key: str,
        scheduler: Optional[Scheduler] = None,
        autostart: bool = False,
        scenario: Optional[ScenarioDefinition] = None,
    ) -> ScenarioSession:
        """Create a session for a scenario.

        Args:
            scenario_key: Key of a registered scenario.
            scheduler: Timer source; a ThreadingScheduler by default.
            autostart: Call engine.start() before returning.
            scenario: Use this definition instead of looking the key up.

        Returns:
            The new session.

        Raises:
            ScenarioNotFoundError: If scenario is None and the key is not
                registered.
        """
        definition = scenario or self.registry.get_scenario(scenario_key)
        if definition is None:
            available = self.registry.scenario_order
            raise ScenarioNotFoundError(
                f"Scenario '{scenario_key}' not found. Available scenarios: {available}"
            )

        scheduler = scheduler or ThreadingScheduler()
        engine = ScenarioEngine(definition, scheduler, settings=self.settings)
        session = ScenarioSession(
            session_id=generate_session_id(definition.key),
            scenario_key=definition.key,
            engine=engine,
            scheduler=scheduler,
            events=deque(maxlen=max(self.settings.event_log_limit, 1)),
        )
        session._unsubscribe = engine.subscribe(session.record)

        with self._lock:
            self._sessions[session.session_id] = session
        logger.info("Created session %s for scenario %s", session.session_id, definition.key)

        if autostart:
            engine.start()
        return session

    def get_session(self, session_id: SessionId) -> Optional[ScenarioSession]:
        """Get a session by id."""
        with self._lock:
            return self._sessions.get(session_id)

    def list_sessions(self) -> List[ScenarioSession]:
        """List open sessions, oldest first."""
        with self._lock:
            sessions = list(self._sessions.values())
        return sorted(sessions, key=lambda s: s.created_at)

    def close_session(self, session_id: SessionId) -> bool:
        """Dispose a session's engine and forget the session.

        Returns:
            True if the session existed.
        """
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.engine.dispose()
        session.scheduler.shutdown()
        logger.info("Closed session %s", session_id)
        return True

    def close_all(self) -> None:
        """Close every open session."""
        for session in self.list_sessions():
            self.close_session(session.session_id)

    # =========================================================================
    # Event Log
    # =========================================================================

    def events_since(self, session_id: SessionId, seq: int = 0) -> List[EngineEvent]:
        """Get logged events with a sequence number greater than seq.

        Raises:
            KeyError: If the session does not exist.
        """
        session = self.get_session(session_id)
        if session is None:
            raise KeyError(session_id)
        return session.events_after(seq)


def get_scenario_service() -> ScenarioService:
    """Convenience accessor for the ScenarioService singleton."""
    return ScenarioService.get_instance()
