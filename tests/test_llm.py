"""Tests for LLM module."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from knowledge_bot.config import LLMSettings
from knowledge_bot.exceptions import ErrorCode, ProviderError
from knowledge_bot.llm.client import OpenAICompatibleClient
from knowledge_bot.llm.models import Message, Role
from knowledge_bot.llm.prompts import GroundedPromptTemplate


def _mock_client(body: object) -> AsyncMock:
    mock_response = MagicMock()
    mock_response.json.return_value = body
    mock_response.raise_for_status = MagicMock()

    mock_client = AsyncMock(spec=httpx.AsyncClient)
    mock_client.post.return_value = mock_response
    return mock_client


class TestMessage:
    """Tests for Message model."""

    def test_role_values(self) -> None:
        """Role enum has expected values."""
        assert Role.SYSTEM.value == "system"
        assert Role.USER.value == "user"
        assert Role.ASSISTANT.value == "assistant"


class TestOpenAICompatibleClient:
    """Tests for OpenAICompatibleClient."""

    def test_model_name(self) -> None:
        """Client returns configured model name."""
        client = OpenAICompatibleClient(settings=LLMSettings(model="gpt-4o-mini"))
        assert client.model_name == "gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_generate(self) -> None:
        """Client generates text."""
        settings = LLMSettings(
            base_url="http://test/v1",
            model="test-model",
            api_key="sk-test",
            temperature=0.3,
        )
        mock_client = _mock_client(
            {
                "choices": [{"message": {"content": "Plan X costs $10/mo."}}],
                "model": "test-model-0613",
                "usage": {
                    "prompt_tokens": 10,
                    "completion_tokens": 20,
                    "total_tokens": 30,
                },
            }
        )

        client = OpenAICompatibleClient(settings=settings, client=mock_client)
        result = await client.generate(
            [Message(role=Role.USER, content="How much is Plan X?")],
            max_tokens=64,
        )

        assert result.content == "Plan X costs $10/mo."
        assert result.model == "test-model-0613"
        assert result.total_tokens == 30

        assert mock_client.post.call_args.args[0] == "http://test/v1/chat/completions"
        call_kwargs = mock_client.post.call_args.kwargs
        assert call_kwargs["json"] == {
            "model": "test-model",
            "messages": [{"role": "user", "content": "How much is Plan X?"}],
            "temperature": 0.3,
            "max_tokens": 64,
        }
        assert call_kwargs["headers"] == {"Authorization": "Bearer sk-test"}

    @pytest.mark.asyncio
    async def test_no_auth_header_without_key(self) -> None:
        mock_client = _mock_client({"choices": [{"message": {"content": "ok"}}]})
        client = OpenAICompatibleClient(settings=LLMSettings(api_key=""), client=mock_client)

        await client.generate([Message(role=Role.USER, content="Hello")])

        assert mock_client.post.call_args.kwargs["headers"] == {}

    @pytest.mark.asyncio
    async def test_timeout_error(self) -> None:
        """Timeout raises ProviderError with correct code."""
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.side_effect = httpx.TimeoutException("Timeout")

        client = OpenAICompatibleClient(settings=LLMSettings(), client=mock_client)

        with pytest.raises(ProviderError) as exc_info:
            await client.generate([Message(role=Role.USER, content="Hello")])

        assert exc_info.value.code == ErrorCode.PROVIDER_TIMEOUT

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status", "code"),
        [
            (401, ErrorCode.PROVIDER_AUTH),
            (403, ErrorCode.PROVIDER_AUTH),
            (429, ErrorCode.PROVIDER_RATE_LIMIT),
            (400, ErrorCode.PROVIDER_ERROR),
            (503, ErrorCode.PROVIDER_UNAVAILABLE),
        ],
    )
    async def test_status_errors(self, status: int, code: ErrorCode) -> None:
        mock_response = MagicMock()
        mock_response.status_code = status
        mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "error",
            request=MagicMock(),
            response=mock_response,
        )
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.return_value = mock_response

        client = OpenAICompatibleClient(settings=LLMSettings(), client=mock_client)

        with pytest.raises(ProviderError) as exc_info:
            await client.generate([Message(role=Role.USER, content="Hello")])

        assert exc_info.value.code == code
        assert exc_info.value.details["status_code"] == status

    @pytest.mark.asyncio
    async def test_malformed_response(self) -> None:
        mock_client = _mock_client({"choices": []})
        client = OpenAICompatibleClient(settings=LLMSettings(), client=mock_client)

        with pytest.raises(ProviderError) as exc_info:
            await client.generate([Message(role=Role.USER, content="Hello")])

        assert exc_info.value.code == ErrorCode.PROVIDER_ERROR

    @pytest.mark.asyncio
    async def test_connection_error(self) -> None:
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_client.post.side_effect = httpx.ConnectError("refused")

        client = OpenAICompatibleClient(settings=LLMSettings(), client=mock_client)

        with pytest.raises(ProviderError) as exc_info:
            await client.generate([Message(role=Role.USER, content="Hello")])

        assert exc_info.value.code == ErrorCode.PROVIDER_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_close(self) -> None:
        """Client closes owned HTTP client."""
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        client = OpenAICompatibleClient(settings=LLMSettings(), client=mock_client)
        client._owns_client = True

        await client.close()

        mock_client.aclose.assert_called_once()


class TestGroundedPromptTemplate:
    """Tests for GroundedPromptTemplate."""

    def test_default_prompts(self) -> None:
        template = GroundedPromptTemplate()
        assert "context" in template.system_prompt
        assert "{context}" in template.user_template
        assert "{question}" in template.user_template

    def test_format_fragment(self) -> None:
        template = GroundedPromptTemplate()
        assert template.format_fragment(1, "Pricing", "https://x.y", "Plan X") == (
            "[1] Pricing (https://x.y)\nPlan X\n\n"
        )
        assert template.format_fragment(2, "", "", "Plan Y") == "[2]\nPlan Y\n\n"

    def test_build_messages(self) -> None:
        template = GroundedPromptTemplate(
            system_prompt="Be brief.",
            user_template="{context}\n---\n{question}",
        )

        messages = template.build_messages(
            "How much?",
            ["[1] A\nalpha\n\n", "[2] B\nbeta\n\n"],
        )

        assert messages[0].role == Role.SYSTEM
        assert messages[0].content == "Be brief."
        assert messages[1].role == Role.USER
        assert messages[1].content == "[1] A\nalpha\n\n[2] B\nbeta\n---\nHow much?"

    def test_build_messages_with_history(self) -> None:
        template = GroundedPromptTemplate(user_template="{context}|{question}")
        history = [
            Message(role=Role.USER, content="Plan X?"),
            Message(role=Role.ASSISTANT, content="$10/mo"),
        ]

        messages = template.build_messages("And Y?", ["[1]\nctx\n\n"], history)

        assert [m.role for m in messages] == [
            Role.SYSTEM,
            Role.USER,
            Role.ASSISTANT,
            Role.USER,
        ]
        assert messages[1:3] == history
        assert messages[3].content == "[1]\nctx|And Y?"

    def test_build_messages_without_context(self) -> None:
        template = GroundedPromptTemplate(user_template="[{context}] {question}")
        messages = template.build_messages("Hi?", [])
        assert messages[1].content == "[] Hi?"
