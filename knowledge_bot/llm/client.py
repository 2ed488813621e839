"""Chat completion interface and the OpenAI-compatible implementation."""

import time
from abc import ABC, abstractmethod

import httpx

from knowledge_bot.config import LLMSettings, get_settings
from knowledge_bot.exceptions import ErrorCode, ProviderError
from knowledge_bot.llm.models import GenerationResult, Message
from knowledge_bot.logging_config import get_logger
from knowledge_bot.observability.metrics import track_llm_request
from knowledge_bot.provider_http import auth_headers, post_json

logger = get_logger(__name__)


class Completer(ABC):
    """Abstract base class for chat completion providers."""

    @abstractmethod
    async def generate(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> GenerationResult:
        """Generate text from messages.

        Args:
            messages: Conversation messages.
            temperature: Sampling temperature override.
            max_tokens: Maximum tokens override.

        Returns:
            GenerationResult with generated text.

        Raises:
            ProviderError: If generation fails.
        """
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model name."""
        ...


class OpenAICompatibleClient(Completer):
    """Completer for OpenAI-compatible chat completions APIs.

    Works with the OpenAI API, Azure-style proxies, vLLM and Ollama.
    """

    def __init__(
        self,
        settings: LLMSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: LLM configuration.
            client: HTTP client (for testing).
        """
        self._settings = settings or get_settings().llm
        self._client = client
        self._owns_client = client is None

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
        """Get the model name."""
        return self._settings.model

    async def generate(
        self,
        messages: list[Message],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> GenerationResult:
        """Generate text using the chat completions API."""
        client = await self._get_client()
        url = f"{self._settings.base_url}/chat/completions"

        payload = {
            "model": self._settings.model,
            "messages": [
                {"role": msg.role.value, "content": msg.content} for msg in messages
            ],
            "temperature": (
                self._settings.temperature if temperature is None else temperature
            ),
            "max_tokens": max_tokens or self._settings.max_tokens,
        }

        start = time.perf_counter()
        try:
            data = await post_json(
                client,
                url,
                payload,
                auth_headers(self._settings.api_key),
                provider="completion provider",
            )
            choice = data["choices"][0]
            result = GenerationResult(
                content=choice["message"]["content"] or "",
                model=data.get("model", self._settings.model),
                prompt_tokens=data.get("usage", {}).get("prompt_tokens", 0),
                completion_tokens=data.get("usage", {}).get("completion_tokens", 0),
                total_tokens=data.get("usage", {}).get("total_tokens", 0),
            )
        except ProviderError:
            track_llm_request(self.model_name, time.perf_counter() - start, 0, 0, False)
            raise
        except (KeyError, IndexError, TypeError) as e:
            track_llm_request(self.model_name, time.perf_counter() - start, 0, 0, False)
            raise ProviderError(
                f"Invalid response from completion provider: {e}",
                code=ErrorCode.PROVIDER_ERROR,
                details={"error": str(e)},
            ) from e

        track_llm_request(
            self.model_name,
            time.perf_counter() - start,
            result.prompt_tokens,
            result.completion_tokens,
        )
        logger.debug(
            "Completion finished",
            extra={"model": result.model, "total_tokens": result.total_tokens},
        )
        return result
