"""Vector store interface and Qdrant implementation."""

import asyncio
import time
import uuid
from abc import ABC, abstractmethod
from collections.abc import Awaitable
from typing import Any, TypeVar

from qdrant_client import AsyncQdrantClient
from qdrant_client.http.exceptions import UnexpectedResponse
from qdrant_client.models import Distance, PointStruct, VectorParams

from knowledge_bot.config import QdrantSettings, get_settings
from knowledge_bot.exceptions import ErrorCode, StoreError
from knowledge_bot.logging_config import get_logger
from knowledge_bot.observability.metrics import track_vectorstore_operation
from knowledge_bot.vectorstore.models import KnowledgeEntry, KnowledgeRecord, SearchHit

logger = get_logger(__name__)

T = TypeVar("T")

# Namespace for mapping arbitrary record ids onto Qdrant's UUID point ids.
_POINT_ID_NAMESPACE = uuid.UUID("6f0c3a52-7a3e-4d59-9d0e-2b8f6a1c4e11")


def point_id(record_id: str) -> str:
    """Qdrant point id for a record id (UUIDs pass through unchanged)."""
    try:
        return str(uuid.UUID(record_id))
    except ValueError:
        return str(uuid.uuid5(_POINT_ID_NAMESPACE, record_id))


def _is_missing_collection(error: Exception) -> bool:
    """Servers answer 404; the in-process client raises ValueError."""
    if isinstance(error, UnexpectedResponse):
        return error.status_code == 404
    return isinstance(error, ValueError) and "not found" in str(error)


class VectorStore(ABC):
    """Abstract base class for knowledge stores.

    Defines the collection lifecycle, upsert and similarity search.
    """

    @abstractmethod
    async def ensure_collection(self, name: str, dimension: int) -> None:
        """Create the collection if absent.

        Raises:
            StoreError: DIMENSION_MISMATCH if it exists with another dimension.
        """
        ...

    @abstractmethod
    async def collection_exists(self, name: str) -> bool:
        """Check if a collection exists."""
        ...

    @abstractmethod
    async def upsert_many(self, collection: str, records: list[KnowledgeRecord]) -> int:
        """Insert or replace records by id.

        Returns:
            Number of records written.

        Raises:
            StoreError: If the write fails or dimensions do not match.
        """
        ...

    async def upsert(self, collection: str, record: KnowledgeRecord) -> None:
        """Insert or replace a single record by id."""
        await self.upsert_many(collection, [record])

    @abstractmethod
    async def search(
        self,
        collection: str,
        query_vector: list[float],
        top_k: int,
    ) -> list[SearchHit]:
        """Nearest neighbours ordered by descending similarity.

        A missing or empty collection yields an empty list.
        """
        ...

    @abstractmethod
    async def clear(self, collection: str) -> None:
        """Remove every record of a collection."""
        ...

    @abstractmethod
    async def count(self, collection: str) -> int:
        """Number of records in a collection (0 if it does not exist)."""
        ...


class QdrantVectorStore(VectorStore):
    """Qdrant-backed knowledge store.

    ``clear`` deletes the collection; the next upsert recreates it with the
    dimension of the incoming records.
    """

    def __init__(
        self,
        settings: QdrantSettings | None = None,
        client: AsyncQdrantClient | None = None,
    ) -> None:
        """Initialize Qdrant vector store.

        Args:
            settings: Qdrant configuration.
            client: Existing client (for testing).
        """
        self._settings = settings or get_settings().qdrant
        self._client = client
        self._owns_client = client is None
        self._dimensions: dict[str, int] = {}

    async def _get_client(self) -> AsyncQdrantClient:
        """Get or create Qdrant client."""
        if self._client is None:
            if self._settings.url == ":memory:":
                self._client = AsyncQdrantClient(location=":memory:")
            else:
                api_key = None
                if self._settings.api_key:
                    api_key = self._settings.api_key.get_secret_value()
                self._client = AsyncQdrantClient(
                    url=self._settings.url,
                    api_key=api_key,
                    timeout=int(self._settings.timeout),
                )
        return self._client

    async def close(self) -> None:
        """Close the Qdrant client."""
        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None

    async def _call(self, operation: str, collection: str, call: Awaitable[T]) -> T:
        """Await a client call under the configured timeout, mapping failures."""
        start = time.perf_counter()
        try:
            result = await asyncio.wait_for(call, timeout=self._settings.timeout)
        except TimeoutError as e:
            track_vectorstore_operation(operation, time.perf_counter() - start, False)
            logger.error(
                f"Vector store {operation} timed out",
                extra={"collection": collection, "timeout": self._settings.timeout},
            )
            raise StoreError(
                f"Vector store {operation} timed out after {self._settings.timeout}s",
                code=ErrorCode.STORE_TIMEOUT,
                details={"collection": collection, "operation": operation},
            ) from e
        except Exception as e:
            track_vectorstore_operation(operation, time.perf_counter() - start, False)
            if _is_missing_collection(e):
                logger.info(
                    f"Vector store {operation}: collection not found",
                    extra={"collection": collection},
                )
                raise StoreError(
                    f"Collection {collection} not found",
                    code=ErrorCode.COLLECTION_NOT_FOUND,
                    details={"collection": collection, "operation": operation},
                ) from e
            logger.error(
                f"Vector store {operation} failed: {e}",
                extra={"collection": collection},
            )
            raise StoreError(
                f"Vector store {operation} failed: {e}",
                code=ErrorCode.STORE_ERROR,
                details={"collection": collection, "operation": operation, "error": str(e)},
            ) from e

        track_vectorstore_operation(operation, time.perf_counter() - start, True)
        return result

    async def collection_exists(self, name: str) -> bool:
        client = await self._get_client()
        return await self._call("exists", name, client.collection_exists(name))

    async def _stored_dimension(self, name: str) -> int:
        client = await self._get_client()
        info = await self._call("get_collection", name, client.get_collection(name))
        vectors: Any = info.config.params.vectors
        return int(vectors.size)

    async def ensure_collection(self, name: str, dimension: int) -> None:
        """Create the collection on first use; reject a dimension change."""
        known = self._dimensions.get(name)
        if known is not None and known != dimension:
            # Another store may have recreated it; confirm before rejecting.
            del self._dimensions[name]
            known = None
        if known is None:
            if await self.collection_exists(name):
                known = await self._stored_dimension(name)
            else:
                known = await self._create(name, dimension)
            self._dimensions[name] = known

        if known != dimension:
            raise StoreError(
                f"Collection {name} stores {known}-dimensional vectors, got {dimension}",
                code=ErrorCode.DIMENSION_MISMATCH,
                details={"collection": name, "expected": known, "actual": dimension},
            )

    async def _create(self, name: str, dimension: int) -> int:
        client = await self._get_client()
        try:
            await self._call(
                "create_collection",
                name,
                client.create_collection(
                    collection_name=name,
                    vectors_config=VectorParams(size=dimension, distance=Distance.COSINE),
                ),
            )
        except StoreError:
            # Lost a creation race with a concurrent ingestion.
            if not await self.collection_exists(name):
                raise
            return await self._stored_dimension(name)

        logger.info(f"Created collection: {name}", extra={"dimensions": dimension})
        return dimension

    async def upsert_many(self, collection: str, records: list[KnowledgeRecord]) -> int:
        if not records:
            return 0

        dimensions = {record.dimensions for record in records}
        if len(dimensions) > 1:
            raise StoreError(
                "Records in one upsert must share a dimension",
                code=ErrorCode.DIMENSION_MISMATCH,
                details={"collection": collection, "dimensions": sorted(dimensions)},
            )
        dimension = dimensions.pop()
        await self.ensure_collection(collection, dimension)

        points = [
            PointStruct(
                id=point_id(record.id),
                vector=record.embedding,
                payload=record.payload(),
            )
            for record in records
        ]
        try:
            await self._upsert_points(collection, points)
        except StoreError as e:
            if e.code != ErrorCode.COLLECTION_NOT_FOUND:
                raise
            # Deleted by another store (e.g. a separate `clear` process).
            logger.info(f"Recreating deleted collection: {collection}")
            self._dimensions.pop(collection, None)
            await self.ensure_collection(collection, dimension)
            await self._upsert_points(collection, points)

        logger.debug(
            f"Upserted {len(points)} records",
            extra={"collection": collection},
        )
        return len(points)

    async def _upsert_points(self, collection: str, points: list[PointStruct]) -> None:
        client = await self._get_client()
        await self._call(
            "upsert",
            collection,
            client.upsert(collection_name=collection, points=points, wait=True),
        )

    async def search(
        self,
        collection: str,
        query_vector: list[float],
        top_k: int,
    ) -> list[SearchHit]:
        if top_k <= 0:
            return []

        client = await self._get_client()
        try:
            response = await self._call(
                "search",
                collection,
                client.query_points(
                    collection_name=collection,
                    query=query_vector,
                    limit=top_k,
                    with_payload=True,
                ),
            )
        except StoreError as e:
            if e.code != ErrorCode.COLLECTION_NOT_FOUND:
                raise
            self._dimensions.pop(collection, None)
            return []

        hits: list[SearchHit] = []
        for point in response.points:
            payload = dict(point.payload or {})
            if not payload.get("content"):
                logger.warning(
                    "Skipping malformed point",
                    extra={"collection": collection, "point_id": str(point.id)},
                )
                continue
            hits.append(
                SearchHit(
                    record=KnowledgeEntry(
                        id=payload.get("record_id", str(point.id)),
                        title=payload.get("title", ""),
                        url=payload.get("url", ""),
                        content=payload["content"],
                    ),
                    score=point.score if point.score is not None else 0.0,
                )
            )

        # sorted() is stable, so equal scores keep the store's order.
        return sorted(hits, key=lambda hit: hit.score, reverse=True)

    async def clear(self, collection: str) -> None:
        """Delete the collection; a no-op if it does not exist."""
        self._dimensions.pop(collection, None)
        client = await self._get_client()
        try:
            deleted = await self._call(
                "delete_collection", collection, client.delete_collection(collection)
            )
        except StoreError as e:
            if e.code != ErrorCode.COLLECTION_NOT_FOUND:
                raise
            return
        if deleted:
            logger.info(f"Cleared collection: {collection}")

    async def count(self, collection: str) -> int:
        client = await self._get_client()
        try:
            result = await self._call(
                "count", collection, client.count(collection_name=collection, exact=True)
            )
        except StoreError as e:
            if e.code != ErrorCode.COLLECTION_NOT_FOUND:
                raise
            return 0
        return result.count
