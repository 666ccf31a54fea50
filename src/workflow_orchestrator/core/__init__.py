"""Core package initialization."""

from workflow_orchestrator.core.config import (
    AIConfig,
    EngineConfig,
    SupportConfig,
    WorkflowSettings,
)

__all__ = [
    "AIConfig",
    "EngineConfig",
    "SupportConfig",
    "WorkflowSettings",
]
