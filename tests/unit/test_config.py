"""Unit tests for configuration."""

import pytest

from workflow_orchestrator.core.config import (
    AIConfig,
    EngineConfig,
    SupportConfig,
    WorkflowSettings,
)


def test_engine_config_defaults() -> None:
    """Test engine config default values."""
    config = EngineConfig()

    assert config.default_step_timeout_seconds is None
    assert config.approval_timeout_seconds == 86400.0


def test_engine_config_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WORKFLOW_ENGINE_DEFAULT_STEP_TIMEOUT_SECONDS", "2.5")

    assert EngineConfig().default_step_timeout_seconds == 2.5


def test_ai_config_defaults() -> None:
    """Test AI config default values."""
    config = AIConfig(openai_api_key="test-key")

    assert config.provider == "openai"
    assert config.openai_model == "gpt-4-turbo-preview"
    assert config.openai_temperature == 0.7


def test_support_config_defaults() -> None:
    config = SupportConfig()

    assert config.encryption_key == ""
    assert config.agent_id == "agent-123"


def test_workflow_settings_composition() -> None:
    """Test settings with nested configs."""
    settings = WorkflowSettings(
        log_level="DEBUG",
        debug=True,
    )

    assert settings.log_level == "DEBUG"
    assert settings.log_format == "json"
    assert settings.debug is True
    assert isinstance(settings.engine, EngineConfig)
    assert isinstance(settings.ai, AIConfig)
    assert isinstance(settings.support, SupportConfig)


def test_engine_config_rejects_non_positive_timeout() -> None:
    with pytest.raises(ValueError):
        EngineConfig(default_step_timeout_seconds=0)
