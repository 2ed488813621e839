"""API routes for knowledge management and question answering."""

from typing import Any

from fastapi import APIRouter, Request, status
from pydantic import BaseModel, Field

from knowledge_bot.container import Services, build_services
from knowledge_bot.ingestion.models import IngestResult, KnowledgeDocument
from knowledge_bot.logging_config import get_logger
from knowledge_bot.query.models import Answer

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Knowledge"])


class AnswerRequest(BaseModel):
    """Request body for a question."""

    question: str = Field(min_length=1, description="Question to answer")
    top_k: int | None = Field(default=None, ge=1, le=50, description="Candidates")
    token_budget: int | None = Field(default=None, ge=1, description="Token budget")
    reply_target: str | None = Field(
        default=None,
        min_length=1,
        max_length=200,
        description="Conversation to continue (e.g. a chat user id)",
    )


class AnswerResponse(BaseModel):
    """Answer with its sources."""

    answer: str = Field(description="Answer text")
    grounded: bool = Field(description="Whether knowledge was used")
    sources: list[dict[str, Any]] = Field(description="Context fragments used")
    context_tokens: int = Field(description="Tokens of context in the prompt")
    history_messages: int = Field(description="Earlier conversation messages replayed")
    model: str = Field(description="Completion model")
    tokens_used: int = Field(description="Provider-reported tokens")


class IngestRequest(BaseModel):
    """Request body for batch ingestion."""

    documents: list[KnowledgeDocument] = Field(min_length=1, description="Documents")


class IngestResponse(BaseModel):
    """Per-document ingestion outcomes."""

    ingested: int = Field(description="Documents stored")
    failed: int = Field(description="Documents rejected")
    results: list[dict[str, Any]] = Field(description="One entry per document")


def get_services(request: Request) -> Services:
    """Services attached to the app, built from settings on first use."""
    services: Services | None = getattr(request.app.state, "services", None)
    if services is None:
        services = build_services()
        request.app.state.services = services
    return services


def answer_to_response(answer: Answer) -> AnswerResponse:
    """Convert an internal Answer to the API response."""
    return AnswerResponse(
        answer=answer.text,
        grounded=answer.grounded,
        sources=[
            {
                "record_id": s.record_id,
                "title": s.title,
                "url": s.url,
                "score": s.score,
                "truncated": s.truncated,
            }
            for s in answer.sources
        ],
        context_tokens=answer.context_tokens,
        history_messages=answer.history_messages,
        model=answer.model,
        tokens_used=answer.tokens_used,
    )


def results_to_response(results: list[IngestResult]) -> IngestResponse:
    """Convert ingestion results to the API response."""
    entries: list[dict[str, Any]] = []
    for result in results:
        entry: dict[str, Any] = {"title": result.title, "success": result.success}
        if result.success:
            entry["record_id"] = result.record_id
        elif result.error is not None:
            entry["error"] = result.error.to_dict()["error"]
        entries.append(entry)

    ingested = sum(1 for r in results if r.success)
    return IngestResponse(
        ingested=ingested,
        failed=len(results) - ingested,
        results=entries,
    )


@router.post("/collections/{collection}/answer", response_model=AnswerResponse)
async def answer_endpoint(
    collection: str,
    body: AnswerRequest,
    request: Request,
) -> AnswerResponse:
    """Answer a question from a collection."""
    services = get_services(request)
    answer = await services.query.answer(
        collection,
        body.question,
        top_k=body.top_k,
        token_budget=body.token_budget,
        reply_target=body.reply_target,
    )
    return answer_to_response(answer)


@router.post("/collections/{collection}/documents", response_model=IngestResponse)
async def ingest_endpoint(
    collection: str,
    body: IngestRequest,
    request: Request,
) -> IngestResponse:
    """Ingest a batch of documents; failures are reported per document."""
    services = get_services(request)
    results = await services.ingestion.ingest_batch(collection, body.documents)
    return results_to_response(results)


@router.delete("/collections/{collection}", status_code=status.HTTP_204_NO_CONTENT)
async def clear_endpoint(collection: str, request: Request) -> None:
    """Delete every record of a collection."""
    services = get_services(request)
    await services.store.clear(collection)
    logger.info(f"Collection cleared via API: {collection}")
