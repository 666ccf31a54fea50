"""AI service package initialization."""

from workflow_orchestrator.llm.factory import AIServiceFactory
from workflow_orchestrator.llm.provider import AIService, ConversationAnalysis

__all__ = [
    "AIService",
    "AIServiceFactory",
    "ConversationAnalysis",
]
