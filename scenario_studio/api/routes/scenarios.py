"""
Scenario endpoints for the Scenario Studio API.

Provides REST endpoints for:
- Listing bundled scenarios
- Getting a scenario's steps and groups
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from scenario_studio.config.scenario_registry import scenario_definition_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scenarios", tags=["scenarios"])


# =============================================================================
# Pydantic Models
# =============================================================================


class ScenarioSummary(BaseModel):
    """Scenario summary for list endpoint."""

    key: str
    index: int
    title: str
    short_title: str
    description: str = ""
    step_count: int
    first_gate_step_id: Optional[str] = None


class ScenarioListResponse(BaseModel):
    """Response for list scenarios endpoint."""

    scenarios: List[ScenarioSummary]


# =============================================================================
# Endpoints
# =============================================================================


@router.get("", response_model=ScenarioListResponse)
async def list_scenarios():
    """List bundled scenarios in index order."""
    from ..server import get_service

    registry = get_service().registry
    return ScenarioListResponse(
        scenarios=[
            ScenarioSummary(**scenario_definition_to_dict(s, include_steps=False))
            for s in registry.scenarios
        ]
    )


@router.get("/{scenario_key}")
async def get_scenario(scenario_key: str) -> Dict[str, Any]:
    """Get a scenario with its steps, progress groups and render groups.

    Raises:
        HTTPException: 404 if the scenario is not registered.
    """
    from ..server import get_service

    scenario = get_service().registry.get_scenario(scenario_key)
    if scenario is None:
        raise HTTPException(
            status_code=404,
            detail={
                "error": "scenario_not_found",
                "message": f"Scenario '{scenario_key}' not found",
                "details": {"scenario_key": scenario_key},
            },
        )
    return scenario_definition_to_dict(scenario)
