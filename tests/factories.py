"""Builders for serialized workflow definitions used across tests."""

from __future__ import annotations

from typing import Any


def step(
    step_id: str,
    step_type: str = "action",
    next_steps: list[str] | None = None,
    **config: Any,
) -> dict[str, Any]:
    """Build a serialized step definition."""
    return {
        "id": step_id,
        "name": step_id.replace("-", " ").title(),
        "type": step_type,
        "config": config,
        "nextSteps": next_steps or [],
    }


def definition(*steps: dict[str, Any], name: str = "test workflow") -> dict[str, Any]:
    """Build a serialized workflow definition with a manual trigger."""
    return {
        "name": name,
        "description": "",
        "trigger": {"type": "manual", "config": {}},
        "steps": list(steps),
    }
