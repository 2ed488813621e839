"""Observability module for metrics and monitoring."""

from knowledge_bot.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    get_metrics_content_type,
    track_cache_lookup,
    track_embedding_request,
    track_ingest,
    track_llm_request,
    track_query,
    track_vectorstore_operation,
)

__all__ = [
    "MetricsMiddleware",
    "get_metrics",
    "get_metrics_content_type",
    "track_cache_lookup",
    "track_embedding_request",
    "track_ingest",
    "track_llm_request",
    "track_query",
    "track_vectorstore_operation",
]
