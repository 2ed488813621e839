"""Retry decorators around the embedding and completion providers.

The core components never retry; wrap a provider with these when building
the services to get exponential backoff on transient failures.
"""

import logging

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from knowledge_bot.embeddings.models import EmbeddingResult
from knowledge_bot.embeddings.service import Embedder
from knowledge_bot.exceptions import ErrorCode, ProviderError
from knowledge_bot.llm.client import Completer
from knowledge_bot.llm.models import GenerationResult, Message
from knowledge_bot.logging_config import get_logger

logger = get_logger(__name__)

TRANSIENT_CODES = frozenset(
    {
        ErrorCode.PROVIDER_UNAVAILABLE,
        ErrorCode.PROVIDER_TIMEOUT,
        ErrorCode.PROVIDER_RATE_LIMIT,
    }
)


def is_transient(error: BaseException) -> bool:
    """Provider failures worth retrying: 5xx, connection errors, timeouts and 429.

    Other 4xx responses and malformed bodies fail the same way on every attempt.
    """
    return isinstance(error, ProviderError) and error.code in TRANSIENT_CODES


async def _close(inner: object) -> None:
    close = getattr(inner, "close", None)
    if close is not None:
        await close()


def _retrying(max_retries: int, wait_seconds: float) -> AsyncRetrying:
    return AsyncRetrying(
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(multiplier=wait_seconds, max=wait_seconds * 16),
        retry=retry_if_exception(is_transient),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


class RetryingEmbedder(Embedder):
    """Embedder that retries transient provider errors with backoff."""

    def __init__(self, inner: Embedder, max_retries: int = 3, wait_seconds: float = 1.0) -> None:
        self._inner = inner
        self._max_retries = max_retries
        self._wait_seconds = wait_seconds

    @property
    def model_name(self) -> str:
        return self._inner.model_name

    @property
    def dimensions(self) -> int:
        return self._inner.dimensions

    async def close(self) -> None:
        await _close(self._inner)

    async def embed(self, text: str) -> EmbeddingResult:
        async for attempt in _retrying(self._max_retries, self._wait_seconds):
            with attempt:
                return await self._inner.embed(text)
        raise AssertionError("unreachable")

    async def embed_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        async for attempt in _retrying(self._max_retries, self._wait_seconds):
            with attempt:
                return await self._inner.embed_batch(texts)
        raise AssertionError("unreachable")


class RetryingCompleter(Completer):
    """Completer that retries transient provider errors with backoff."""

    def __init__(self, inner: Completer, max_retries: int = 3, wait_seconds: float = 1.0) -> None:
        self._inner = inner
        self._max_retries = max_retries
        self._wait_seconds = wait_seconds

    @property
    def model_name(self) -> str:
        return self._inner.model_name

    async def close(self) -> None:
        await _close(self._inner)

    async def generate(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> GenerationResult:
        async for attempt in _retrying(self._max_retries, self._wait_seconds):
            with attempt:
                return await self._inner.generate(
                    messages, temperature=temperature, max_tokens=max_tokens
                )
        raise AssertionError("unreachable")
