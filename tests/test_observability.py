"""Tests for observability module."""

from unittest.mock import MagicMock

import pytest
from httpx import ASGITransport, AsyncClient
from prometheus_client import REGISTRY

from knowledge_bot.api.app import app
from knowledge_bot.container import Services
from knowledge_bot.ingestion.models import KnowledgeDocument
from knowledge_bot.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    track_cache_lookup,
    track_embedding_request,
    track_llm_request,
    track_vectorstore_operation,
)


def _sample(name: str, labels: dict[str, str] | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


class TestMetricsEndpoint:
    """Tests for /metrics endpoint."""

    @pytest.mark.asyncio
    async def test_metrics_endpoint_returns_prometheus_format(self) -> None:
        """Metrics endpoint returns Prometheus format."""
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/metrics")

        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]
        assert b"# HELP" in response.content


class TestMetricsFunctions:
    """Tests for metrics tracking functions."""

    def test_get_metrics_returns_bytes(self) -> None:
        assert isinstance(get_metrics(), bytes)

    def test_track_llm_request_counts_tokens(self) -> None:
        labels = {"model": "metrics-test", "type": "prompt"}
        before = _sample("kb_llm_tokens_total", labels)

        track_llm_request(
            model="metrics-test",
            duration=1.5,
            prompt_tokens=100,
            completion_tokens=50,
        )

        assert _sample("kb_llm_tokens_total", labels) == before + 100

    def test_failed_llm_request_counts_no_tokens(self) -> None:
        labels = {"model": "metrics-fail", "type": "prompt"}
        track_llm_request("metrics-fail", 0.5, 0, 0, success=False)

        assert _sample("kb_llm_tokens_total", labels) == 0.0
        assert (
            _sample(
                "kb_llm_request_duration_seconds_count",
                {"model": "metrics-fail", "status": "error"},
            )
            >= 1
        )

    def test_track_embedding_request(self) -> None:
        track_embedding_request(model="metrics-embed", duration=0.1)

        metrics = get_metrics().decode()
        assert "kb_embedding_request_duration_seconds" in metrics

    def test_track_cache_lookup(self) -> None:
        before = _sample("kb_embedding_cache_lookups_total", {"result": "hit"})
        track_cache_lookup(True)
        assert _sample("kb_embedding_cache_lookups_total", {"result": "hit"}) == before + 1

    def test_track_vectorstore_operation(self) -> None:
        track_vectorstore_operation("search", 0.02, True)

        metrics = get_metrics().decode()
        assert "kb_vectorstore_operation_duration_seconds" in metrics


class TestPipelineMetrics:
    """Pipelines report their outcomes."""

    async def test_query_and_ingest_outcomes(self, services: Services) -> None:
        no_knowledge = _sample("kb_queries_total", {"outcome": "no_knowledge"})
        grounded = _sample("kb_queries_total", {"outcome": "grounded"})
        ingested = _sample("kb_ingested_documents_total", {"outcome": "success"})
        misses = _sample("kb_embedding_cache_lookups_total", {"result": "miss"})

        await services.query.answer("faq", "How much is Plan X?")
        await services.ingestion.ingest(
            "faq", KnowledgeDocument(title="Pricing", content="Plan X costs $10/mo")
        )
        await services.query.answer("faq", "How much is Plan X?")

        assert _sample("kb_queries_total", {"outcome": "no_knowledge"}) == no_knowledge + 1
        assert _sample("kb_queries_total", {"outcome": "grounded"}) == grounded + 1
        assert _sample("kb_ingested_documents_total", {"outcome": "success"}) == ingested + 1
        assert _sample("kb_embedding_cache_lookups_total", {"result": "miss"}) == misses + 2


class TestMetricsMiddleware:
    """Tests for MetricsMiddleware."""

    @pytest.mark.asyncio
    async def test_middleware_records_request_metrics(self, client: AsyncClient) -> None:
        labels = {"method": "GET", "endpoint": "/health", "status_code": "200"}
        before = _sample("kb_http_requests_total", labels)

        await client.get("/health")
        await client.get("/health/live")

        assert _sample("kb_http_requests_total", labels) == before + 2

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("/health/ready", "/health"),
            ("/api/v1/collections/faq/answer", "/api/v1/collections/{collection}/answer"),
            (
                "/api/v1/collections/pricing/documents",
                "/api/v1/collections/{collection}/documents",
            ),
            ("/api/v1/collections/faq", "/api/v1/collections/{collection}"),
            ("/metrics", "/metrics"),
        ],
    )
    def test_normalizes_endpoints(self, path: str, expected: str) -> None:
        """Collection names never become label values."""
        middleware = MetricsMiddleware(app=MagicMock())
        assert middleware._normalize_endpoint(path) == expected
