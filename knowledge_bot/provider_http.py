"""HTTP plumbing shared by the embedding and completion provider clients."""

from typing import Any

import httpx
from pydantic import SecretStr

from knowledge_bot.exceptions import ErrorCode, ProviderError
from knowledge_bot.logging_config import get_logger

logger = get_logger(__name__)

_AUTH_STATUSES = (401, 403)
_RATE_LIMIT_STATUS = 429


def auth_headers(api_key: SecretStr | None) -> dict[str, str]:
    """Bearer header for the provider, empty when no key is configured."""
    if api_key is None:
        return {}
    secret = api_key.get_secret_value()
    return {"Authorization": f"Bearer {secret}"} if secret else {}


async def post_json(
    client: httpx.AsyncClient,
    url: str,
    payload: dict[str, Any],
    headers: dict[str, str],
    provider: str,
) -> dict[str, Any]:
    """POST a JSON payload and return the decoded body.

    Raises:
        ProviderError: On timeout, auth, rate limit, transport or
            malformed-body failures.
    """
    try:
        response = await client.post(url, json=payload, headers=headers)
        response.raise_for_status()

    except httpx.TimeoutException as e:
        logger.error(f"{provider} request timed out", extra={"url": url})
        raise ProviderError(
            f"{provider} request timed out",
            code=ErrorCode.PROVIDER_TIMEOUT,
            details={"provider": provider, "url": url},
        ) from e

    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        logger.error(
            f"{provider} request failed: {status}",
            extra={"url": url, "status": status},
        )
        if status in _AUTH_STATUSES:
            code = ErrorCode.PROVIDER_AUTH
            message = f"{provider} rejected the API credentials"
        elif status == _RATE_LIMIT_STATUS:
            code = ErrorCode.PROVIDER_RATE_LIMIT
            message = f"{provider} rate limit exceeded"
        elif status >= 500:
            code = ErrorCode.PROVIDER_UNAVAILABLE
            message = f"{provider} is unavailable: {status}"
        else:
            code = ErrorCode.PROVIDER_ERROR
            message = f"{provider} returned {status}"
        raise ProviderError(
            message,
            code=code,
            details={"provider": provider, "status_code": status},
        ) from e

    except httpx.RequestError as e:
        logger.error(f"{provider} connection error: {e}", extra={"url": url})
        raise ProviderError(
            f"Failed to connect to {provider}: {e}",
            code=ErrorCode.PROVIDER_UNAVAILABLE,
            details={"provider": provider, "url": url},
        ) from e

    try:
        data = response.json()
    except ValueError as e:
        raise ProviderError(
            f"Invalid response from {provider}: {e}",
            code=ErrorCode.PROVIDER_ERROR,
            details={"provider": provider, "error": str(e)},
        ) from e

    if not isinstance(data, dict):
        raise ProviderError(
            f"Invalid response from {provider}: expected a JSON object",
            code=ErrorCode.PROVIDER_ERROR,
            details={"provider": provider},
        )
    return data
