"""Token accounting against the tokenizer of the downstream chat model."""

import math
from collections.abc import Sequence
from typing import Protocol

import tiktoken

from knowledge_bot.llm.models import Message

FALLBACK_ENCODING = "cl100k_base"

# Chat format framing, per the OpenAI cookbook token counting recipe.
TOKENS_PER_MESSAGE = 4
TOKENS_REPLY_PRIMING = 2


class Encoding(Protocol):
    """Subset of ``tiktoken.Encoding`` used here."""

    def encode(self, text: str) -> list[int]: ...

    def decode(self, tokens: list[int]) -> str: ...


def load_encoding(model: str) -> Encoding:
    """Return the tiktoken encoding for a model, or cl100k_base if unknown."""
    try:
        return tiktoken.encoding_for_model(model)
    except KeyError:
        return tiktoken.get_encoding(FALLBACK_ENCODING)


class TokenAccountant:
    """Counts tokens so prompts stay under a budget.

    Counts may overestimate (via ``safety_margin``) but never undercount
    relative to the wrapped encoding.
    """

    def __init__(
        self,
        model: str = "gpt-3.5-turbo",
        encoding: Encoding | None = None,
        safety_margin: float = 0.0,
    ) -> None:
        if safety_margin < 0:
            raise ValueError("safety_margin must be >= 0")
        self._model = model
        self._encoding = encoding
        self._safety_margin = safety_margin

    @property
    def encoding(self) -> Encoding:
        if self._encoding is None:
            self._encoding = load_encoding(self._model)
        return self._encoding

    def _inflate(self, raw: int) -> int:
        if raw == 0 or self._safety_margin == 0:
            return raw
        return math.ceil(raw * (1 + self._safety_margin))

    def count(self, text: str) -> int:
        """Estimate tokens in ``text``. Empty text is zero tokens."""
        if not text:
            return 0
        return self._inflate(len(self.encoding.encode(text)))

    def fits(self, existing_tokens: int, candidate_text: str, budget: int) -> bool:
        """Whether adding ``candidate_text`` keeps the total within ``budget``."""
        return existing_tokens + self.count(candidate_text) <= budget

    def truncate(self, text: str, max_tokens: int) -> str:
        """Cut ``text`` to the longest token prefix counting at most ``max_tokens``."""
        if max_tokens <= 0 or not text:
            return ""
        if self.count(text) <= max_tokens:
            return text

        tokens = self.encoding.encode(text)
        keep = min(len(tokens), math.floor(max_tokens / (1 + self._safety_margin)))
        truncated = self.encoding.decode(tokens[:keep])
        # Decoding a partial sequence can re-encode to more tokens.
        while keep > 0 and self.count(truncated) > max_tokens:
            keep -= 1
            truncated = self.encoding.decode(tokens[:keep])
        return truncated

    def count_messages(self, messages: Sequence[Message]) -> int:
        """Tokens consumed by a chat completion request with these messages."""
        total = TOKENS_REPLY_PRIMING
        for message in messages:
            total += TOKENS_PER_MESSAGE
            total += self.count(message.role.value)
            total += self.count(message.content)
        return total
