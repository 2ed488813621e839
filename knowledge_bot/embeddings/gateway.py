"""Cache-fronted access to the embedding provider."""

import asyncio

from knowledge_bot.embeddings.cache import EmbeddingCache, fingerprint
from knowledge_bot.embeddings.service import Embedder
from knowledge_bot.exceptions import ValidationError
from knowledge_bot.logging_config import get_logger
from knowledge_bot.observability.metrics import track_cache_lookup

logger = get_logger(__name__)


class EmbeddingGateway:
    """Embeds text through an :class:`Embedder`, consulting an LRU cache first.

    The provider receives the original text; the cache is keyed by the
    normalized fingerprint, so texts differing only in whitespace share one
    entry. Failures are never cached and propagate unchanged: the gateway
    does not retry.
    """

    def __init__(self, embedder: Embedder, cache: EmbeddingCache) -> None:
        self._embedder = embedder
        self._cache = cache

    @property
    def cache(self) -> EmbeddingCache:
        return self._cache

    @property
    def model_name(self) -> str:
        return self._embedder.model_name

    async def embed(self, text: str) -> list[float]:
        """Return the embedding for ``text``.

        Raises:
            ValidationError: If ``text`` is blank.
            ProviderError: If the provider call fails.
        """
        if not text.strip():
            raise ValidationError("Cannot embed empty text")

        key = fingerprint(text)
        cached = self._cache.get(key)
        track_cache_lookup(cached is not None)
        if cached is not None:
            logger.debug("Embedding cache hit", extra={"fingerprint": key[:12]})
            return cached

        result = await self._embedder.embed(text)
        self._cache.put(key, result.embedding)
        return result.embedding

    async def embed_many(
        self,
        texts: list[str],
        concurrency: int = 4,
    ) -> list[list[float] | BaseException]:
        """Embed several texts with bounded parallelism.

        Returns one entry per input, in order: the vector, or the exception
        raised for that text. One failure does not cancel the others.
        """
        semaphore = asyncio.Semaphore(max(1, concurrency))

        async def _one(text: str) -> list[float]:
            async with semaphore:
                return await self.embed(text)

        return await asyncio.gather(*(_one(t) for t in texts), return_exceptions=True)
