"""Application configuration using Pydantic Settings.

All configuration is loaded from environment variables (or a `.env` file).
The rest of the package receives an already-built Settings object and
never reads the environment itself.
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LLMSettings(BaseSettings):
    """Chat completion provider configuration.

    Any OpenAI-compatible chat completions endpoint works.
    """

    model_config = SettingsConfigDict(env_prefix="LLM_")

    base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Chat completions API base URL",
    )
    model: str = Field(
        default="gpt-3.5-turbo",
        description="Model name to use for generation",
    )
    api_key: SecretStr = Field(
        default=SecretStr(""),
        description="Provider API key",
    )
    timeout: float = Field(
        default=60.0,
        gt=0,
        description="Request timeout in seconds",
    )
    max_tokens: int = Field(
        default=512,
        ge=1,
        description="Tokens reserved for the generated answer",
    )
    temperature: float = Field(
        default=0.2,
        description="Sampling temperature (lower = more deterministic)",
    )


class EmbeddingSettings(BaseSettings):
    """Embedding provider configuration."""

    model_config = SettingsConfigDict(env_prefix="EMBEDDING_")

    base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Embeddings API base URL",
    )
    model: str = Field(
        default="text-embedding-ada-002",
        description="Embedding model name",
    )
    api_key: SecretStr = Field(
        default=SecretStr(""),
        description="Provider API key",
    )
    timeout: float = Field(
        default=30.0,
        gt=0,
        description="Request timeout in seconds",
    )
    batch_size: int = Field(
        default=32,
        ge=1,
        description="Batch size for embedding requests",
    )
    cache_capacity: int = Field(
        default=4096,
        ge=1,
        description="Maximum number of cached embeddings",
    )


class QdrantSettings(BaseSettings):
    """Qdrant vector database configuration."""

    model_config = SettingsConfigDict(env_prefix="QDRANT_")

    url: str = Field(
        default="http://localhost:6333",
        description="Qdrant server URL (':memory:' for an in-process store)",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="Qdrant API key (optional for local)",
    )
    timeout: float = Field(
        default=10.0,
        gt=0,
        description="Per-call timeout in seconds",
    )


class QuerySettings(BaseSettings):
    """Retrieval, context budget and ingestion tuning."""

    model_config = SettingsConfigDict(env_prefix="QUERY_")

    top_k: int = Field(
        default=3,
        ge=1,
        le=50,
        description="Candidates retrieved per question",
    )
    token_budget: int = Field(
        default=4096,
        ge=1,
        description="Total prompt + answer token budget",
    )
    token_safety_margin: float = Field(
        default=0.0,
        ge=0.0,
        description="Ratio added to token estimates for non-OpenAI tokenizers",
    )
    ingest_concurrency: int = Field(
        default=4,
        ge=1,
        description="Documents embedded in parallel during batch ingestion",
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        description="Retries for transient provider errors (0 disables)",
    )
    retry_wait_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Initial exponential backoff wait",
    )
    history_messages: int = Field(
        default=20,
        ge=0,
        description="Messages remembered per conversation (0 disables history)",
    )
    history_conversations: int = Field(
        default=1000,
        ge=1,
        description="Conversations remembered before the least active is dropped",
    )


class Settings(BaseSettings):
    """Main application settings.

    Aggregates all configuration sections.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application settings
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    # API settings
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host",
    )
    api_port: int = Field(
        default=8000,
        description="API server port",
    )

    # Nested settings
    llm: LLMSettings = Field(default_factory=LLMSettings)
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    qdrant: QdrantSettings = Field(default_factory=QdrantSettings)
    query: QuerySettings = Field(default_factory=QuerySettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()
