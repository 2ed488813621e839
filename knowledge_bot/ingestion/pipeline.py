"""Turns knowledge documents into embedded, stored knowledge records."""

from pathlib import Path
from uuid import uuid4

from knowledge_bot.embeddings.gateway import EmbeddingGateway
from knowledge_bot.exceptions import (
    ErrorCode,
    IngestError,
    KnowledgeBotError,
    ProviderError,
    StoreError,
    wrap_error,
)
from knowledge_bot.ingestion.loader import JsonKnowledgeLoader
from knowledge_bot.ingestion.models import IngestResult, KnowledgeDocument
from knowledge_bot.logging_config import get_logger
from knowledge_bot.observability.metrics import track_ingest
from knowledge_bot.vectorstore.models import KnowledgeRecord
from knowledge_bot.vectorstore.service import VectorStore

logger = get_logger(__name__)


class IngestionPipeline:
    """Validates, embeds and upserts knowledge documents.

    A record is only built once its embedding exists, so a failed ingestion
    never leaves a partial record behind.
    """

    def __init__(
        self,
        gateway: EmbeddingGateway,
        store: VectorStore,
        loader: JsonKnowledgeLoader | None = None,
        concurrency: int = 4,
    ) -> None:
        """Initialize the ingestion pipeline.

        Args:
            gateway: Cached embedding access.
            store: Knowledge store to write to.
            loader: Knowledge file reader.
            concurrency: Documents embedded in parallel by ``ingest_batch``.
        """
        self._gateway = gateway
        self._store = store
        self._loader = loader or JsonKnowledgeLoader()
        self._concurrency = concurrency

    async def ingest(self, collection: str, document: KnowledgeDocument) -> KnowledgeRecord:
        """Embed and store one document.

        Raises:
            IngestError: EMPTY_CONTENT, INGEST_EMBEDDING_FAILED or
                INGEST_STORE_FAILED.
        """
        try:
            self._validate(document)
            try:
                vector = await self._gateway.embed(document.content)
            except ProviderError as e:
                raise wrap_error(
                    e, IngestError, ErrorCode.INGEST_EMBEDDING_FAILED, "Embedding",
                    title=document.title,
                ) from e
            record = await self._store_record(collection, document, vector)
        except IngestError:
            track_ingest(False)
            raise

        track_ingest(True)
        return record

    async def ingest_batch(
        self,
        collection: str,
        documents: list[KnowledgeDocument],
    ) -> list[IngestResult]:
        """Ingest documents independently, one result per document in input order.

        Embeddings are fetched in parallel; each document is then stored on
        its own, so one failure never aborts the rest of the batch.
        """
        to_embed = [doc for doc in documents if doc.content.strip()]
        outcomes = await self._gateway.embed_many(
            [doc.content for doc in to_embed],
            concurrency=self._concurrency,
        )
        vectors = {id(doc): outcome for doc, outcome in zip(to_embed, outcomes, strict=True)}

        results: list[IngestResult] = []
        for document in documents:
            try:
                self._validate(document)
                outcome = vectors[id(document)]
                if isinstance(outcome, ProviderError):
                    raise wrap_error(
                        outcome, IngestError, ErrorCode.INGEST_EMBEDDING_FAILED,
                        "Embedding", title=document.title,
                    ) from outcome
                if isinstance(outcome, BaseException):
                    raise outcome
                record = await self._store_record(collection, document, outcome)
            except KnowledgeBotError as e:
                logger.warning(
                    f"Skipping document: {e.message}",
                    extra={"collection": collection, "title": document.title},
                )
                track_ingest(False)
                results.append(IngestResult(title=document.title, error=e))
                continue

            track_ingest(True)
            results.append(IngestResult(title=document.title, record_id=record.id))

        succeeded = sum(1 for r in results if r.success)
        logger.info(
            f"Ingested {succeeded}/{len(results)} documents",
            extra={"collection": collection},
        )
        return results

    async def ingest_file(self, collection: str, path: str | Path) -> list[IngestResult]:
        """Read a knowledge file and ingest every document in it.

        Raises:
            DocumentError: If the file cannot be read.
        """
        logger.info(f"Loading knowledge from {path}", extra={"collection": collection})
        documents = self._loader.load(path)
        return await self.ingest_batch(collection, documents)

    def _validate(self, document: KnowledgeDocument) -> None:
        if not document.content.strip():
            raise IngestError(
                "Document has no content",
                code=ErrorCode.EMPTY_CONTENT,
                details={"title": document.title},
            )

    async def _store_record(
        self,
        collection: str,
        document: KnowledgeDocument,
        vector: list[float],
    ) -> KnowledgeRecord:
        record = KnowledgeRecord(
            id=document.id or str(uuid4()),
            title=document.title,
            url=document.url,
            content=document.content,
            embedding=vector,
        )
        try:
            await self._store.ensure_collection(collection, len(vector))
            await self._store.upsert(collection, record)
        except StoreError as e:
            raise wrap_error(
                e, IngestError, ErrorCode.INGEST_STORE_FAILED, "Storing",
                collection=collection, record_id=record.id,
            ) from e

        logger.debug(
            f"Stored record {record.id}",
            extra={"collection": collection, "title": record.title},
        )
        return record
