"""Knowledge ingestion module."""

from knowledge_bot.ingestion.loader import JsonKnowledgeLoader
from knowledge_bot.ingestion.models import IngestResult, KnowledgeDocument
from knowledge_bot.ingestion.pipeline import IngestionPipeline

__all__ = [
    "IngestResult",
    "IngestionPipeline",
    "JsonKnowledgeLoader",
    "KnowledgeDocument",
]
