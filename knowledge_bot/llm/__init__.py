"""Chat completion client module."""

from knowledge_bot.llm.client import Completer, OpenAICompatibleClient
from knowledge_bot.llm.models import GenerationResult, Message, Role
from knowledge_bot.llm.prompts import GroundedPromptTemplate

__all__ = [
    "Completer",
    "GenerationResult",
    "GroundedPromptTemplate",
    "Message",
    "OpenAICompatibleClient",
    "Role",
]
