"""Question answering module."""

from knowledge_bot.query.context import assemble_context
from knowledge_bot.query.history import ConversationHistory
from knowledge_bot.query.models import Answer, ContextFragment, ContextWindow
from knowledge_bot.query.pipeline import NO_KNOWLEDGE_ANSWER, QueryPipeline

__all__ = [
    "NO_KNOWLEDGE_ANSWER",
    "Answer",
    "ContextFragment",
    "ContextWindow",
    "ConversationHistory",
    "QueryPipeline",
    "assemble_context",
]
