"""Configuration for the workflow orchestrator.

Settings are loaded from environment variables and a local `.env` file (if
present). Each section has its own prefix:

- WORKFLOW_            top-level (log level/format, debug)
- WORKFLOW_ENGINE_     engine deadlines
- WORKFLOW_AI_         AI text service
- WORKFLOW_SUPPORT_    customer-support workflow
"""

import logging
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from workflow_orchestrator.logging import configure_logging


class EngineConfig(BaseSettings):
    """Configuration for the workflow engine."""

    default_step_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Deadline applied to steps without their own timeout (None = unbounded)",
    )
    approval_timeout_seconds: float | None = Field(
        default=86400.0,
        gt=0,
        description="Deadline applied to approval steps without their own timeout",
    )

    model_config = SettingsConfigDict(
        env_prefix="WORKFLOW_ENGINE_",
        env_file=".env",
        extra="ignore",
    )


class AIConfig(BaseSettings):
    """Configuration for the AI text service."""

    provider: Literal["openai"] = Field(
        default="openai",
        description="AI provider to use",
    )
    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI API key",
    )
    openai_model: str = Field(
        default="gpt-4-turbo-preview",
        description="OpenAI model to use",
    )
    openai_temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Temperature for OpenAI model",
    )

    model_config = SettingsConfigDict(
        env_prefix="WORKFLOW_AI_",
        env_file=".env",
        extra="ignore",
    )


class SupportConfig(BaseSettings):
    """Configuration for the customer-support workflow."""

    encryption_key: str = Field(
        default="",
        description="Key used to encrypt automated responses",
    )
    agent_id: str = Field(
        default="agent-123",
        description="Support agent assigned to high-touch requests",
    )
    agent_name: str = Field(
        default="John Doe",
        description="Display name of the assigned support agent",
    )

    model_config = SettingsConfigDict(
        env_prefix="WORKFLOW_SUPPORT_",
        env_file=".env",
        extra="ignore",
    )


class WorkflowSettings(BaseSettings):
    """Main configuration for the orchestrator."""

    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Structured JSON lines or human-readable text",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    engine: EngineConfig = Field(
        default_factory=EngineConfig,
        description="Engine configuration",
    )
    ai: AIConfig = Field(
        default_factory=AIConfig,
        description="AI service configuration",
    )
    support: SupportConfig = Field(
        default_factory=SupportConfig,
        description="Customer-support workflow configuration",
    )

    model_config = SettingsConfigDict(
        env_prefix="WORKFLOW_",
        env_file=".env",
        extra="ignore",
    )

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        if self.log_format == "json":
            configure_logging(self.log_level)
        else:
            level = getattr(logging, self.log_level.upper(), logging.INFO)
            logging.basicConfig(
                level=level,
                format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )

        if self.debug:
            logging.getLogger("workflow_orchestrator").setLevel(logging.DEBUG)
