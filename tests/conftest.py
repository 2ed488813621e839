"""Pytest configuration and shared fixtures.

All providers are replaced by deterministic offline fakes; the vector store
is Qdrant's in-process ``:memory:`` mode.
"""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from qdrant_client import AsyncQdrantClient

from knowledge_bot.api.app import create_app
from knowledge_bot.config import LLMSettings, QdrantSettings, QuerySettings, Settings
from knowledge_bot.container import Services, build_services
from knowledge_bot.tokens import TokenAccountant
from knowledge_bot.vectorstore.service import QdrantVectorStore
from tests.fakes import CharEncoding, FakeCompleter, FakeEmbedder


@pytest.fixture
def accountant() -> TokenAccountant:
    return TokenAccountant(encoding=CharEncoding())


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def completer() -> FakeCompleter:
    return FakeCompleter()


@pytest.fixture
async def store() -> AsyncGenerator[QdrantVectorStore, None]:
    client = AsyncQdrantClient(location=":memory:")
    vector_store = QdrantVectorStore(settings=QdrantSettings(url=":memory:"), client=client)
    yield vector_store
    await client.close()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        llm=LLMSettings(max_tokens=50),
        query=QuerySettings(top_k=3, token_budget=2000, max_retries=0),
    )


@pytest.fixture
def services(
    settings: Settings,
    embedder: FakeEmbedder,
    completer: FakeCompleter,
    store: QdrantVectorStore,
) -> Services:
    return build_services(
        settings,
        embedder=embedder,
        completer=completer,
        store=store,
        encoding=CharEncoding(),
    )


@pytest.fixture
async def client(services: Services) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client for the FastAPI app.

    Yields:
        AsyncClient configured for testing.
    """
    transport = ASGITransport(app=create_app(services))
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
