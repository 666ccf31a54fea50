"""OpenAI implementation of the AI text service."""

import json
import logging
from typing import Any

from openai import AsyncOpenAI

from workflow_orchestrator.core.config import AIConfig
from workflow_orchestrator.llm.provider import AIService, ConversationAnalysis

logger = logging.getLogger(__name__)

_ANALYSIS_PROMPT = (
    "Analyze this conversation and provide sentiment, main topics, and suggested next "
    'actions as a JSON object with the keys "sentiment", "topics" and "nextActions".'
)
_TAGS_PROMPT = (
    "Generate relevant tags for the following content. "
    'Return a JSON object of the form {"tags": [...]}.'
)


class OpenAIService(AIService):
    """OpenAI API implementation."""

    def __init__(self, config: AIConfig, client: AsyncOpenAI | None = None) -> None:
        """Initialize the OpenAI service.

        Args:
            config: AI configuration.
            client: Pre-built client, mainly for tests.

        Raises:
            ValueError: If no client is given and the API key is missing.
        """
        if client is None and not config.openai_api_key:
            raise ValueError("OpenAI API key is required")

        self.config = config
        self.client = client or AsyncOpenAI(api_key=config.openai_api_key)
        self.model = config.openai_model
        self.temperature = config.openai_temperature

        logger.info(f"OpenAI service initialized with model: {self.model}")

    async def _complete(self, messages: list[dict[str, str]], **kwargs: Any) -> str:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,  # type: ignore
            temperature=self.temperature,
            **kwargs,
        )
        return response.choices[0].message.content or ""

    async def generate_suggestions(self, prompt: str) -> str:
        """Generate a suggestion for a single prompt.

        Calls are independent: one service instance serves every request, so no
        conversation history is carried between them.
        """
        logger.debug(f"Generating suggestion for prompt: {prompt[:100]}...")

        content = await self._complete([{"role": "user", "content": prompt}])

        logger.debug(f"Generated {len(content)} characters")
        return content

    async def analyze_conversation(self, messages: list[str]) -> ConversationAnalysis:
        content = await self._complete(
            [
                {"role": "system", "content": _ANALYSIS_PROMPT},
                {"role": "user", "content": "\n".join(messages)},
            ],
            response_format={"type": "json_object"},
        )
        return ConversationAnalysis.model_validate(json.loads(content or "{}"))

    async def generate_tags(self, text: str) -> list[str]:
        content = await self._complete(
            [
                {"role": "system", "content": _TAGS_PROMPT},
                {"role": "user", "content": text},
            ],
            response_format={"type": "json_object"},
        )
        parsed = json.loads(content or "{}")
        tags = parsed.get("tags", []) if isinstance(parsed, dict) else parsed
        return [str(tag) for tag in tags] if isinstance(tags, list) else []
