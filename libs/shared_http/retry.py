import asyncio
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({408, 425, 429})


def _is_retryable_error(exc: Exception) -> bool:
    if isinstance(exc, httpx.RequestError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        code = exc.response.status_code
        return code >= 500 or code in RETRYABLE_STATUS_CODES
    return False


def _backoff_seconds(attempt: int, base_delay_seconds: float, max_delay_seconds: float) -> float:
    return min(base_delay_seconds * (2 ** (attempt - 1)), max_delay_seconds)


async def request_json_with_retry(
    method: str,
    url: str,
    *,
    headers: dict[str, str] | None = None,
    json_body: dict[str, Any] | None = None,
    timeout: float = 10.0,
    attempts: int = 3,
    base_delay_seconds: float = 0.25,
    max_delay_seconds: float = 4.0,
    expect_json: bool = True,
) -> Any:
    """Send a JSON request, retrying transport errors and 5xx/429 responses with exponential backoff."""
    async with httpx.AsyncClient() as client:
        for attempt in range(1, attempts + 1):
            try:
                response = await client.request(method, url, headers=headers, json=json_body, timeout=timeout)
                response.raise_for_status()
                if not expect_json or not response.content:
                    return None
                return response.json()
            except (httpx.RequestError, httpx.HTTPStatusError) as exc:
                if attempt >= attempts or not _is_retryable_error(exc):
                    raise
                delay = _backoff_seconds(attempt, base_delay_seconds, max_delay_seconds)
                logger.warning(
                    "%s %s failed on attempt %d/%d (%s); retrying in %.2fs",
                    method,
                    url,
                    attempt,
                    attempts,
                    exc,
                    delay,
                )
                await asyncio.sleep(delay)


async def post_json_with_retry(url: str, **kwargs: Any) -> Any:
    return await request_json_with_retry("POST", url, **kwargs)
