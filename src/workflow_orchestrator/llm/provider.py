"""Abstract base class for the AI text service."""

from abc import ABC, abstractmethod

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ConversationAnalysis(BaseModel):
    """Structured analysis of a customer conversation."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    sentiment: str = "neutral"
    topics: list[str] = Field(default_factory=list)
    next_actions: list[str] = Field(default_factory=list)


class AIService(ABC):
    """Abstract base class for AI text capabilities.

    Workflow handlers depend on this interface only, so any backend (OpenAI,
    a local model, a test double) can be injected.
    """

    @abstractmethod
    async def generate_suggestions(self, prompt: str) -> str:
        """Generate a free-text suggestion for a prompt.

        Args:
            prompt: The input prompt.

        Returns:
            Generated text.
        """
        pass

    @abstractmethod
    async def analyze_conversation(self, messages: list[str]) -> ConversationAnalysis:
        """Analyze a conversation.

        Args:
            messages: Conversation messages, oldest first.

        Returns:
            Sentiment, main topics and suggested next actions.
        """
        pass

    @abstractmethod
    async def generate_tags(self, text: str) -> list[str]:
        """Generate descriptive tags for a piece of text.

        Args:
            text: Content to tag.

        Returns:
            A list of tags.
        """
        pass
