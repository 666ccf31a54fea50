"""Test configuration and fixtures."""

from __future__ import annotations

from typing import Any

import pytest

from workflow_orchestrator.core.config import (
    AIConfig,
    EngineConfig,
    SupportConfig,
    WorkflowSettings,
)
from workflow_orchestrator.workflow.engine import WorkflowEngine
from workflow_orchestrator.workflow.events import EngineEvent


@pytest.fixture
def engine_config() -> EngineConfig:
    """Provide a test engine configuration."""
    return EngineConfig(
        default_step_timeout_seconds=5.0,
        approval_timeout_seconds=5.0,
    )


@pytest.fixture
def ai_config() -> AIConfig:
    """Provide a test AI configuration."""
    return AIConfig(
        provider="openai",
        openai_api_key="test-key",
        openai_model="gpt-4",
    )


@pytest.fixture
def support_config() -> SupportConfig:
    """Provide a test support workflow configuration."""
    return SupportConfig(encryption_key="test-encryption-key")


@pytest.fixture
def workflow_settings(
    engine_config: EngineConfig,
    ai_config: AIConfig,
    support_config: SupportConfig,
) -> WorkflowSettings:
    """Provide a test orchestrator configuration."""
    return WorkflowSettings(
        log_level="DEBUG",
        debug=True,
        engine=engine_config,
        ai=ai_config,
        support=support_config,
    )


@pytest.fixture
def engine(engine_config: EngineConfig) -> WorkflowEngine:
    """Provide an engine with short deadlines."""
    return WorkflowEngine(engine_config)


@pytest.fixture
def recorded_events(engine: WorkflowEngine) -> list[tuple[str, Any]]:
    """Record every lifecycle event published by the engine, in order."""
    events: list[tuple[str, Any]] = []
    for event in EngineEvent:
        engine.events.on(event, lambda payload, name=event.value: events.append((name, payload)))
    return events
