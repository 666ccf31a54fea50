"""Factory for creating AI services."""

import logging

from workflow_orchestrator.core.config import AIConfig
from workflow_orchestrator.llm.openai_provider import OpenAIService
from workflow_orchestrator.llm.provider import AIService

logger = logging.getLogger(__name__)


class AIServiceFactory:
    """Factory for creating AI service instances."""

    @staticmethod
    def create(config: AIConfig) -> AIService:
        """Create an AI service based on configuration.

        Args:
            config: AI configuration specifying the provider.

        Returns:
            Configured AI service instance.

        Raises:
            ValueError: If provider type is not supported.
        """
        logger.info(f"Creating AI service: {config.provider}")

        if config.provider == "openai":
            return OpenAIService(config)
        raise ValueError(f"Unsupported AI provider: {config.provider}")
