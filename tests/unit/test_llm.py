"""Unit tests for AI service implementations."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, Mock

import pytest

from workflow_orchestrator.core.config import AIConfig
from workflow_orchestrator.llm.factory import AIServiceFactory
from workflow_orchestrator.llm.openai_provider import OpenAIService
from workflow_orchestrator.llm.provider import ConversationAnalysis


def _client(*contents: str) -> Mock:
    client = Mock()
    client.chat.completions.create = AsyncMock(
        side_effect=[Mock(choices=[Mock(message=Mock(content=content))]) for content in contents]
    )
    return client


def test_openai_service_requires_api_key() -> None:
    """Test that OpenAI service requires API key."""
    config = AIConfig(provider="openai", openai_api_key=None)

    with pytest.raises(ValueError, match="OpenAI API key is required"):
        OpenAIService(config)


def test_factory_creates_openai_service(ai_config: AIConfig) -> None:
    """Test factory creates OpenAI service."""
    service = AIServiceFactory.create(ai_config)

    assert isinstance(service, OpenAIService)
    assert service.model == "gpt-4"


@pytest.mark.asyncio
async def test_generate_suggestions_does_not_share_history(ai_config: AIConfig) -> None:
    client = _client(*(f"answer {n}" for n in range(50)))
    service = OpenAIService(ai_config, client=client)

    for n in range(50):
        assert await service.generate_suggestions(f"ticket {n}") == f"answer {n}"

    last_call = client.chat.completions.create.call_args_list[-1].kwargs
    assert last_call["model"] == "gpt-4"
    assert last_call["temperature"] == 0.7
    assert last_call["messages"] == [{"role": "user", "content": "ticket 49"}]


@pytest.mark.asyncio
async def test_analyze_conversation_parses_json(ai_config: AIConfig) -> None:
    payload = {"sentiment": "negative", "topics": ["billing"], "nextActions": ["refund"]}
    client = _client(json.dumps(payload))
    service = OpenAIService(ai_config, client=client)

    analysis = await service.analyze_conversation(["I was charged twice"])

    assert analysis == ConversationAnalysis(
        sentiment="negative", topics=["billing"], next_actions=["refund"]
    )
    call = client.chat.completions.create.call_args.kwargs
    assert call["response_format"] == {"type": "json_object"}
    assert call["messages"][1] == {"role": "user", "content": "I was charged twice"}


@pytest.mark.asyncio
async def test_generate_tags(ai_config: AIConfig) -> None:
    service = OpenAIService(ai_config, client=_client('{"tags": ["billing", 7]}', "{}"))

    assert await service.generate_tags("charged twice") == ["billing", "7"]
    assert await service.generate_tags("nothing") == []
