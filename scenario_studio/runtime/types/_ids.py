"""ID types and generators for the types package.

Provides session and event ID generation, plus type aliases.
"""

from __future__ import annotations

import secrets
import string
import uuid
from datetime import datetime, timezone

# Type aliases
SessionId = str
StepId = str


def _generate_event_id() -> str:
    """Generate a globally unique event ID using UUID4."""
    return str(uuid.uuid4())


def generate_session_id(scenario_key: str = "scenario") -> SessionId:
    """Generate a unique session ID.

    Creates IDs in the format: <scenario_key>-YYYYMMDD-HHMMSS-xxxxxx
    where xxxxxx is a random 6-character alphanumeric suffix.

    Args:
        scenario_key: Scenario the session runs, used as the ID prefix.

    Returns:
        A unique session identifier string.

    Example:
        >>> session_id = generate_session_id("ppt")
        >>> session_id  # e.g., "ppt-20251208-143022-abc123"
    """
    now = datetime.now(timezone.utc)
    timestamp = now.strftime("%Y%m%d-%H%M%S")
    suffix = "".join(secrets.choice(string.ascii_lowercase + string.digits) for _ in range(6))
    return f"{scenario_key}-{timestamp}-{suffix}"


def message_id_for_step(step_id: StepId) -> str:
    """Return the message ID for a step's runtime projection.

    Each step is projected at most once per run, so the ID is stable
    across reset/start cycles.
    """
    return f"msg-{step_id}"
