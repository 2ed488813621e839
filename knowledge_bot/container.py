"""Builds the shared services from settings.

One container per process: the embedding cache is shared by ingestion and
queries, and the conversation history by every question.
"""

from dataclasses import dataclass

from knowledge_bot.config import Settings, get_settings
from knowledge_bot.embeddings.cache import EmbeddingCache
from knowledge_bot.embeddings.gateway import EmbeddingGateway
from knowledge_bot.embeddings.service import Embedder, OpenAIEmbeddingService
from knowledge_bot.ingestion.pipeline import IngestionPipeline
from knowledge_bot.llm.client import Completer, OpenAICompatibleClient
from knowledge_bot.logging_config import get_logger
from knowledge_bot.query.history import ConversationHistory
from knowledge_bot.query.pipeline import QueryPipeline
from knowledge_bot.retry import RetryingCompleter, RetryingEmbedder
from knowledge_bot.tokens import Encoding, TokenAccountant
from knowledge_bot.vectorstore.service import QdrantVectorStore, VectorStore

logger = get_logger(__name__)


@dataclass
class Services:
    """Wired pipelines plus the resources they share."""

    settings: Settings
    embedder: Embedder
    completer: Completer
    store: VectorStore
    cache: EmbeddingCache
    gateway: EmbeddingGateway
    history: ConversationHistory
    ingestion: IngestionPipeline
    query: QueryPipeline

    async def close(self) -> None:
        """Release HTTP and database clients owned by the services."""
        for resource in (self.embedder, self.completer, self.store):
            close = getattr(resource, "close", None)
            if close is not None:
                await close()


def build_services(
    settings: Settings | None = None,
    embedder: Embedder | None = None,
    completer: Completer | None = None,
    store: VectorStore | None = None,
    encoding: Encoding | None = None,
) -> Services:
    """Wire the pipelines. Any collaborator can be substituted (tests, dev)."""
    settings = settings or get_settings()
    query_settings = settings.query

    if embedder is None:
        raw_embedder = OpenAIEmbeddingService(settings.embedding)
        embedder = (
            RetryingEmbedder(
                raw_embedder, query_settings.max_retries, query_settings.retry_wait_seconds
            )
            if query_settings.max_retries
            else raw_embedder
        )
    if completer is None:
        raw_completer = OpenAICompatibleClient(settings.llm)
        completer = (
            RetryingCompleter(
                raw_completer, query_settings.max_retries, query_settings.retry_wait_seconds
            )
            if query_settings.max_retries
            else raw_completer
        )
    store = store or QdrantVectorStore(settings.qdrant)

    cache = EmbeddingCache(settings.embedding.cache_capacity)
    gateway = EmbeddingGateway(embedder, cache)
    history = ConversationHistory(
        query_settings.history_messages, query_settings.history_conversations
    )
    accountant = TokenAccountant(
        model=settings.llm.model,
        encoding=encoding,
        safety_margin=query_settings.token_safety_margin,
    )

    logger.debug(
        "Services built",
        extra={
            "embedding_model": settings.embedding.model,
            "completion_model": settings.llm.model,
            "cache_capacity": cache.capacity,
        },
    )

    return Services(
        settings=settings,
        embedder=embedder,
        completer=completer,
        store=store,
        cache=cache,
        gateway=gateway,
        history=history,
        ingestion=IngestionPipeline(
            gateway, store, concurrency=query_settings.ingest_concurrency
        ),
        query=QueryPipeline(
            gateway,
            store,
            completer,
            accountant,
            top_k=query_settings.top_k,
            token_budget=query_settings.token_budget,
            answer_headroom=settings.llm.max_tokens,
            history=history,
        ),
    )
