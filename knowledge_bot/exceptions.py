"""Application exception hierarchy.

All custom exceptions inherit from KnowledgeBotError.
Each exception has an error code for structured error handling, and every
code belongs to a category that decides the message shown to chat users.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for structured error handling."""

    # General errors (1xxx)
    INTERNAL_ERROR = "KB-1000"
    CONFIGURATION_ERROR = "KB-1001"
    VALIDATION_ERROR = "KB-1002"

    # Document reading errors (2xxx)
    DOCUMENT_NOT_FOUND = "KB-2000"
    DOCUMENT_PARSE_ERROR = "KB-2001"

    # Embedding / completion provider errors (3xxx)
    PROVIDER_ERROR = "KB-3000"
    PROVIDER_TIMEOUT = "KB-3001"
    PROVIDER_RATE_LIMIT = "KB-3002"
    PROVIDER_AUTH = "KB-3003"
    PROVIDER_UNAVAILABLE = "KB-3004"

    # Vector store errors (4xxx)
    STORE_ERROR = "KB-4000"
    STORE_TIMEOUT = "KB-4001"
    DIMENSION_MISMATCH = "KB-4002"
    COLLECTION_NOT_FOUND = "KB-4003"

    # Ingestion errors (5xxx)
    EMPTY_CONTENT = "KB-5000"
    INGEST_EMBEDDING_FAILED = "KB-5001"
    INGEST_STORE_FAILED = "KB-5002"

    # Query errors (6xxx)
    QUERY_EMBEDDING_FAILED = "KB-6000"
    SEARCH_FAILED = "KB-6001"
    COMPLETION_FAILED = "KB-6002"
    NO_USABLE_CONTEXT = "KB-6003"


class ErrorCategory(str, Enum):
    """Who is at fault, from the point of view of a chat user."""

    KNOWLEDGE_BASE = "knowledge_base"
    AI_PROVIDER = "ai_provider"
    NO_KNOWLEDGE = "no_knowledge"
    INVALID_REQUEST = "invalid_request"
    INTERNAL = "internal"


_CATEGORY_BY_CODE: dict[ErrorCode, ErrorCategory] = {
    ErrorCode.VALIDATION_ERROR: ErrorCategory.INVALID_REQUEST,
    ErrorCode.EMPTY_CONTENT: ErrorCategory.INVALID_REQUEST,
    ErrorCode.DOCUMENT_NOT_FOUND: ErrorCategory.INVALID_REQUEST,
    ErrorCode.DOCUMENT_PARSE_ERROR: ErrorCategory.INVALID_REQUEST,
    ErrorCode.PROVIDER_ERROR: ErrorCategory.AI_PROVIDER,
    ErrorCode.PROVIDER_TIMEOUT: ErrorCategory.AI_PROVIDER,
    ErrorCode.PROVIDER_RATE_LIMIT: ErrorCategory.AI_PROVIDER,
    ErrorCode.PROVIDER_AUTH: ErrorCategory.AI_PROVIDER,
    ErrorCode.PROVIDER_UNAVAILABLE: ErrorCategory.AI_PROVIDER,
    ErrorCode.INGEST_EMBEDDING_FAILED: ErrorCategory.AI_PROVIDER,
    ErrorCode.QUERY_EMBEDDING_FAILED: ErrorCategory.AI_PROVIDER,
    ErrorCode.COMPLETION_FAILED: ErrorCategory.AI_PROVIDER,
    ErrorCode.STORE_ERROR: ErrorCategory.KNOWLEDGE_BASE,
    ErrorCode.STORE_TIMEOUT: ErrorCategory.KNOWLEDGE_BASE,
    ErrorCode.DIMENSION_MISMATCH: ErrorCategory.KNOWLEDGE_BASE,
    ErrorCode.COLLECTION_NOT_FOUND: ErrorCategory.KNOWLEDGE_BASE,
    ErrorCode.INGEST_STORE_FAILED: ErrorCategory.KNOWLEDGE_BASE,
    ErrorCode.SEARCH_FAILED: ErrorCategory.KNOWLEDGE_BASE,
    ErrorCode.NO_USABLE_CONTEXT: ErrorCategory.NO_KNOWLEDGE,
}

_USER_PREFIX: dict[ErrorCategory, str] = {
    ErrorCategory.KNOWLEDGE_BASE: "Knowledge base problem",
    ErrorCategory.AI_PROVIDER: "AI provider problem",
    ErrorCategory.NO_KNOWLEDGE: "No relevant knowledge found",
    ErrorCategory.INVALID_REQUEST: "Invalid request",
    ErrorCategory.INTERNAL: "Internal error",
}


class KnowledgeBotError(Exception):
    """Base exception for all knowledge bot errors.

    Attributes:
        message: Human-readable error message.
        code: Structured error code.
        details: Additional error context.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    @property
    def category(self) -> ErrorCategory:
        """Category used to tell users where the problem lies."""
        return _CATEGORY_BY_CODE.get(self.code, ErrorCategory.INTERNAL)

    def user_message(self) -> str:
        """Render a one-line message suitable for a chat reply."""
        return f"{_USER_PREFIX[self.category]}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": {
                "code": self.code.value,
                "category": self.category.value,
                "message": self.message,
                "user_message": self.user_message(),
                "details": self.details,
            }
        }


class ConfigurationError(KnowledgeBotError):
    """Configuration or environment error."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)


class ValidationError(KnowledgeBotError):
    """Input validation error."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.VALIDATION_ERROR, details)


class DocumentError(KnowledgeBotError):
    """Knowledge file could not be read."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.DOCUMENT_NOT_FOUND,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class ProviderError(KnowledgeBotError):
    """Embedding or completion provider failure (transport, auth, rate limit, timeout)."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.PROVIDER_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class StoreError(KnowledgeBotError):
    """Vector database failure (transport, timeout, dimension mismatch)."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.STORE_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class IngestError(KnowledgeBotError):
    """Ingestion of a single document failed."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.EMPTY_CONTENT,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class QueryError(KnowledgeBotError):
    """Answering a single question failed."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.COMPLETION_FAILED,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


def wrap_error(
    error: KnowledgeBotError,
    wrapper: type[IngestError] | type[QueryError],
    code: ErrorCode,
    step: str,
    **details: Any,
) -> KnowledgeBotError:
    """Wrap a lower-layer error with the failing step, keeping its code.

    The caller is expected to ``raise wrap_error(...) from error``.
    """
    return wrapper(
        f"{step} failed: {error.message}",
        code=code,
        details={"step": step, "cause_code": error.code.value, **details},
    )
