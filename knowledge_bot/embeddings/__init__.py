"""Embedding provider, cache and gateway."""

from knowledge_bot.embeddings.cache import EmbeddingCache, fingerprint, normalize_text
from knowledge_bot.embeddings.gateway import EmbeddingGateway
from knowledge_bot.embeddings.models import EmbeddingResult
from knowledge_bot.embeddings.service import Embedder, OpenAIEmbeddingService

__all__ = [
    "Embedder",
    "EmbeddingCache",
    "EmbeddingGateway",
    "EmbeddingResult",
    "OpenAIEmbeddingService",
    "fingerprint",
    "normalize_text",
]
