"""Embedding provider interface and the OpenAI-compatible implementation."""

import time
from abc import ABC, abstractmethod

import httpx

from knowledge_bot.config import EmbeddingSettings, get_settings
from knowledge_bot.embeddings.models import EmbeddingResult
from knowledge_bot.exceptions import ErrorCode, ProviderError
from knowledge_bot.logging_config import get_logger
from knowledge_bot.observability.metrics import track_embedding_request
from knowledge_bot.provider_http import auth_headers, post_json

logger = get_logger(__name__)


class Embedder(ABC):
    """Abstract base class for embedding providers.

    Implementations call the provider exactly once per request and never
    cache or retry; the gateway and retry wrappers layer those on top.
    """

    @abstractmethod
    async def embed(self, text: str) -> EmbeddingResult:
        """Generate embedding for a single text.

        Raises:
            ProviderError: If the provider call fails.
        """
        ...

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        """Generate embeddings for multiple texts, in input order.

        Raises:
            ProviderError: If any provider call fails.
        """
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model name used for embeddings."""
        ...

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Get the embedding dimensions."""
        ...


class OpenAIEmbeddingService(Embedder):
    """Embedder for OpenAI-style ``/embeddings`` endpoints."""

    # Known model dimensions
    MODEL_DIMENSIONS = {
        "text-embedding-ada-002": 1536,
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "BAAI/bge-large-en-v1.5": 1024,
        "BAAI/bge-base-en-v1.5": 768,
        "BAAI/bge-small-en-v1.5": 384,
    }

    def __init__(
        self,
        settings: EmbeddingSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the embedding service.

        Args:
            settings: Embedding configuration. Uses defaults if not provided.
            client: HTTP client. Creates new one if not provided.
        """
        self._settings = settings or get_settings().embedding
        self._client = client
        self._owns_client = client is None
        self._dimensions: int | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def model_name(self) -> str:
        return self._settings.model

    @property
    def dimensions(self) -> int:
        """Dimensions learned from the provider, else the known model size."""
        if self._dimensions is not None:
            return self._dimensions
        return self.MODEL_DIMENSIONS.get(self._settings.model, 1536)

    async def embed(self, text: str) -> EmbeddingResult:
        results = await self.embed_batch([text])
        return results[0]

    async def embed_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        if not texts:
            return []

        client = await self._get_client()
        url = f"{self._settings.base_url}/embeddings"
        batch_size = self._settings.batch_size

        all_results: list[EmbeddingResult] = []
        for i in range(0, len(texts), batch_size):
            batch = texts[i : i + batch_size]
            all_results.extend(await self._embed_batch_request(client, url, batch))
        return all_results

    async def _embed_batch_request(
        self,
        client: httpx.AsyncClient,
        url: str,
        texts: list[str],
    ) -> list[EmbeddingResult]:
        """Make one embedding request for a batch."""
        payload = {"input": texts, "model": self._settings.model}

        start = time.perf_counter()
        try:
            data = await post_json(
                client,
                url,
                payload,
                auth_headers(self._settings.api_key),
                provider="embedding provider",
            )
            results = self._parse(data, texts)
        except ProviderError:
            track_embedding_request(self.model_name, time.perf_counter() - start, False)
            raise

        track_embedding_request(self.model_name, time.perf_counter() - start)
        return results

    def _parse(self, data: dict, texts: list[str]) -> list[EmbeddingResult]:
        try:
            # The API may return items out of order; "index" is authoritative.
            items = sorted(data["data"], key=lambda item: item.get("index", 0))
            if len(items) != len(texts):
                raise ValueError(f"expected {len(texts)} embeddings, got {len(items)}")

            results: list[EmbeddingResult] = []
            for text, item in zip(texts, items, strict=True):
                embedding = item["embedding"]
                if not embedding:
                    raise ValueError("empty embedding")
                if self._dimensions is None:
                    self._dimensions = len(embedding)
                results.append(
                    EmbeddingResult(
                        text=text,
                        embedding=embedding,
                        model=self._settings.model,
                        dimensions=len(embedding),
                    )
                )
            return results

        except (KeyError, TypeError, ValueError) as e:
            raise ProviderError(
                f"Invalid response from embedding provider: {e}",
                code=ErrorCode.PROVIDER_ERROR,
                details={"error": str(e)},
            ) from e
