"""Prometheus metrics for the knowledge bot.

Provides metrics instrumentation for:
- HTTP request latency and counts
- Completion token usage and latency
- Embedding request latency and cache effectiveness
- Vector store operation latency
- Query and ingestion outcomes
"""

import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware

# HTTP Request Metrics
HTTP_REQUEST_DURATION = Histogram(
    "kb_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

HTTP_REQUEST_TOTAL = Counter(
    "kb_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

# Completion Metrics
LLM_REQUEST_DURATION = Histogram(
    "kb_llm_request_duration_seconds",
    "Completion request duration in seconds",
    ["model", "status"],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
)

LLM_TOKENS_TOTAL = Counter(
    "kb_llm_tokens_total",
    "Total completion tokens used",
    ["model", "type"],
)

# Embedding Metrics
EMBEDDING_REQUEST_DURATION = Histogram(
    "kb_embedding_request_duration_seconds",
    "Embedding request duration in seconds",
    ["model", "status"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

EMBEDDING_CACHE_LOOKUPS = Counter(
    "kb_embedding_cache_lookups_total",
    "Embedding cache lookups",
    ["result"],
)

# Vector Store Metrics
VECTORSTORE_OPERATION_DURATION = Histogram(
    "kb_vectorstore_operation_duration_seconds",
    "Vector store operation duration",
    ["operation", "status"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0],
)

# Pipeline Metrics
QUERY_TOTAL = Counter(
    "kb_queries_total",
    "Answered questions by outcome",
    ["outcome"],
)

QUERY_CONTEXT_TOKENS = Histogram(
    "kb_query_context_tokens",
    "Tokens of retrieved context placed in prompts",
    buckets=[0, 64, 128, 256, 512, 1024, 2048, 4096, 8192],
)

INGEST_TOTAL = Counter(
    "kb_ingested_documents_total",
    "Ingested documents by outcome",
    ["outcome"],
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect HTTP request metrics."""

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Process request and collect metrics."""
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        endpoint = self._normalize_endpoint(request.url.path)
        HTTP_REQUEST_DURATION.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).observe(duration)
        HTTP_REQUEST_TOTAL.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()

        return response

    def _normalize_endpoint(self, path: str) -> str:
        """Collapse collection names out of paths to bound label cardinality."""
        if path.startswith("/health"):
            return "/health"
        parts = path.split("/")
        # /api/v1/collections/{collection}/{action}
        if path.startswith("/api/v1/collections/") and len(parts) >= 5:
            action = parts[5] if len(parts) > 5 else ""
            return f"/api/v1/collections/{{collection}}/{action}".rstrip("/")
        return path


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    """Get the content type for metrics response."""
    return CONTENT_TYPE_LATEST


def track_llm_request(
    model: str,
    duration: float,
    prompt_tokens: int,
    completion_tokens: int,
    success: bool = True,
) -> None:
    """Track completion request metrics."""
    status = "success" if success else "error"
    LLM_REQUEST_DURATION.labels(model=model, status=status).observe(duration)
    if success:
        LLM_TOKENS_TOTAL.labels(model=model, type="prompt").inc(prompt_tokens)
        LLM_TOKENS_TOTAL.labels(model=model, type="completion").inc(completion_tokens)


def track_embedding_request(model: str, duration: float, success: bool = True) -> None:
    """Track an embedding provider call."""
    status = "success" if success else "error"
    EMBEDDING_REQUEST_DURATION.labels(model=model, status=status).observe(duration)


def track_cache_lookup(hit: bool) -> None:
    """Track an embedding cache lookup."""
    EMBEDDING_CACHE_LOOKUPS.labels(result="hit" if hit else "miss").inc()


def track_vectorstore_operation(operation: str, duration: float, success: bool) -> None:
    """Track a vector store call."""
    status = "success" if success else "error"
    VECTORSTORE_OPERATION_DURATION.labels(operation=operation, status=status).observe(
        duration
    )


def track_query(outcome: str, context_tokens: int = 0) -> None:
    """Track a finished question (grounded, no_knowledge, error)."""
    QUERY_TOTAL.labels(outcome=outcome).inc()
    if outcome == "grounded":
        QUERY_CONTEXT_TOKENS.observe(context_tokens)


def track_ingest(success: bool) -> None:
    """Track a single ingested document."""
    INGEST_TOTAL.labels(outcome="success" if success else "error").inc()
