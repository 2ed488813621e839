"""Tests for knowledge API routes."""

import pytest
from httpx import AsyncClient
from pydantic import ValidationError

from knowledge_bot.api.app import _get_status_code
from knowledge_bot.api.routes import (
    AnswerRequest,
    IngestRequest,
    answer_to_response,
    results_to_response,
)
from knowledge_bot.exceptions import (
    ErrorCode,
    IngestError,
    KnowledgeBotError,
    ProviderError,
    QueryError,
    StoreError,
    ValidationError as BotValidationError,
)
from knowledge_bot.ingestion.models import IngestResult
from knowledge_bot.query.models import Answer, ContextFragment
from tests.fakes import FakeCompleter

PRICING = {
    "title": "Pricing",
    "url": "https://example.com/pricing",
    "content": "Plan X costs $10/mo",
}


class TestRequests:
    """Tests for request models."""

    def test_answer_request_defaults(self) -> None:
        req = AnswerRequest(question="How much?")
        assert req.top_k is None
        assert req.token_budget is None
        assert req.reply_target is None

    def test_answer_request_rejects_empty_question(self) -> None:
        with pytest.raises(ValidationError):
            AnswerRequest(question="")

    def test_ingest_request_needs_documents(self) -> None:
        with pytest.raises(ValidationError):
            IngestRequest(documents=[])


class TestConverters:
    """Tests for response converters."""

    def test_answer_to_response(self) -> None:
        answer = Answer(
            text="Plan X costs $10/mo [1]",
            grounded=True,
            sources=[
                ContextFragment(
                    record_id="plan-x",
                    title="Pricing",
                    url="https://example.com/pricing",
                    text="[1] Pricing\nPlan X costs $10/mo\n\n",
                    score=0.91,
                    tokens=33,
                )
            ],
            context_tokens=33,
            model="gpt-3.5-turbo",
            tokens_used=120,
        )

        result = answer_to_response(answer)

        assert result.answer == "Plan X costs $10/mo [1]"
        assert result.sources == [
            {
                "record_id": "plan-x",
                "title": "Pricing",
                "url": "https://example.com/pricing",
                "score": 0.91,
                "truncated": False,
            }
        ]
        assert result.tokens_used == 120

    def test_results_to_response(self) -> None:
        results = [
            IngestResult(title="ok", record_id="r1"),
            IngestResult(title="bad", error=IngestError("Document has no content")),
        ]

        response = results_to_response(results)

        assert response.ingested == 1
        assert response.failed == 1
        assert response.results[0] == {"title": "ok", "success": True, "record_id": "r1"}
        assert response.results[1]["error"]["code"] == ErrorCode.EMPTY_CONTENT.value


class TestStatusCodes:
    """Tests for error to HTTP status mapping."""

    @pytest.mark.parametrize(
        ("error", "status"),
        [
            (BotValidationError("bad"), 400),
            (QueryError("x", code=ErrorCode.NO_USABLE_CONTEXT), 422),
            (QueryError("x", code=ErrorCode.COMPLETION_FAILED), 502),
            (StoreError("x"), 502),
            (StoreError("x", code=ErrorCode.STORE_TIMEOUT), 504),
            (ProviderError("x", code=ErrorCode.PROVIDER_RATE_LIMIT), 429),
            (KnowledgeBotError("x"), 500),
        ],
    )
    def test_mapping(self, error: KnowledgeBotError, status: int) -> None:
        assert _get_status_code(error) == status


class TestIngestEndpoint:
    """Tests for POST /api/v1/collections/{collection}/documents."""

    async def test_reports_per_document_results(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/collections/faq/documents",
            json={"documents": [PRICING, {"title": "Empty", "content": ""}]},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["ingested"] == 1
        assert data["failed"] == 1
        assert data["results"][0]["success"] is True
        assert data["results"][1]["error"]["code"] == ErrorCode.EMPTY_CONTENT.value
        assert data["results"][1]["error"]["category"] == "invalid_request"

    async def test_validates_request(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/collections/faq/documents", json={})
        assert response.status_code == 422


class TestAnswerEndpoint:
    """Tests for POST /api/v1/collections/{collection}/answer."""

    async def test_grounded_answer(self, client: AsyncClient) -> None:
        await client.post("/api/v1/collections/faq/documents", json={"documents": [PRICING]})

        response = await client.post(
            "/api/v1/collections/faq/answer",
            json={"question": "How much is Plan X?", "top_k": 3},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["grounded"] is True
        assert data["answer"] == "Grounded answer"
        assert data["sources"][0]["title"] == "Pricing"
        assert data["context_tokens"] > 0

    async def test_unknown_collection_refuses(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/collections/nothing-here/answer",
            json={"question": "How much is Plan X?"},
        )

        assert response.status_code == 200
        assert response.json()["grounded"] is False

    async def test_validates_request(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/collections/faq/answer", json={"question": ""})
        assert response.status_code == 422

    async def test_budget_too_small(self, client: AsyncClient) -> None:
        await client.post("/api/v1/collections/faq/documents", json={"documents": [PRICING]})

        response = await client.post(
            "/api/v1/collections/faq/answer",
            json={"question": "How much is Plan X?", "token_budget": 5},
        )

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == ErrorCode.NO_USABLE_CONTEXT.value
        assert error["category"] == "no_knowledge"

    async def test_provider_failure(
        self, client: AsyncClient, completer: FakeCompleter
    ) -> None:
        await client.post("/api/v1/collections/faq/documents", json={"documents": [PRICING]})
        completer.error = ProviderError("upstream 500")

        response = await client.post(
            "/api/v1/collections/faq/answer",
            json={"question": "How much is Plan X?"},
        )

        assert response.status_code == 502
        error = response.json()["error"]
        assert error["code"] == ErrorCode.COMPLETION_FAILED.value
        assert error["user_message"].startswith("AI provider problem:")

    async def test_reply_target_keeps_conversation(
        self, client: AsyncClient, completer: FakeCompleter
    ) -> None:
        await client.post("/api/v1/collections/faq/documents", json={"documents": [PRICING]})
        body = {"question": "How much is Plan X?", "reply_target": "user-42"}

        first = await client.post("/api/v1/collections/faq/answer", json=body)
        second = await client.post(
            "/api/v1/collections/faq/answer",
            json={"question": "And per year?", "reply_target": "user-42"},
        )

        assert first.json()["history_messages"] == 0
        assert second.json()["history_messages"] == 2
        replayed = completer.requests[1]
        assert replayed[1].content == "How much is Plan X?"
        assert replayed[2].content == "Grounded answer"


class TestClearEndpoint:
    """Tests for DELETE /api/v1/collections/{collection}."""

    async def test_clear_forgets_knowledge(self, client: AsyncClient) -> None:
        await client.post("/api/v1/collections/faq/documents", json={"documents": [PRICING]})

        response = await client.delete("/api/v1/collections/faq")
        assert response.status_code == 204

        answer = await client.post(
            "/api/v1/collections/faq/answer",
            json={"question": "How much is Plan X?"},
        )
        assert answer.json()["grounded"] is False
