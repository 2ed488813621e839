"""Vector store module."""

from knowledge_bot.vectorstore.models import KnowledgeEntry, KnowledgeRecord, SearchHit
from knowledge_bot.vectorstore.service import QdrantVectorStore, VectorStore

__all__ = [
    "KnowledgeEntry",
    "KnowledgeRecord",
    "QdrantVectorStore",
    "SearchHit",
    "VectorStore",
]
