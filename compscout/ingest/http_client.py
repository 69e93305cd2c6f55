"""HTTP error taxonomy and status-aware response handling for external APIs."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

# Transport errors that count as transient failures
RETRYABLE_EXC = (
    httpx.TimeoutException,
    httpx.ConnectError,
    httpx.RemoteProtocolError,
    httpx.ReadError,
)

# 429 and 503 both mean "back off and come back later"
RATE_LIMIT_STATUSES = (429, 503)


class ConfigurationError(RuntimeError):
    """Raised when an external collaborator is missing required configuration."""
    pass


class PermanentURLError(RuntimeError):
    """Raised when a URL is permanently invalid (404/410)."""
    pass


class TransientFetchError(RuntimeError):
    """Raised for timeouts, connection failures and unexpected 5xx responses."""
    pass


class RateLimitedError(RuntimeError):
    """Raised when the provider answers 429 or 503."""

    def __init__(self, status_code: int = 429, retry_after: Optional[int] = None):
        super().__init__(f"Rate limited ({status_code})")
        self.status_code = status_code
        self.retry_after = retry_after


class MarketplaceAPIError(RuntimeError):
    """Raised for any other non-success response."""

    def __init__(self, status_code: int, detail: str = ""):
        super().__init__(f"HTTP {status_code}: {detail}" if detail else f"HTTP {status_code}")
        self.status_code = status_code


TRANSIENT_ERRORS = (RateLimitedError, TransientFetchError)


def is_transient(exc: BaseException) -> bool:
    """True for errors that should be retried after a wait."""
    return isinstance(exc, TRANSIENT_ERRORS)


def sanitize_error_body(body: str, fallback: str = "API error") -> str:
    """Keep error bodies short and drop HTML error pages."""
    if "<!DOCTYPE" in body or "<html" in body:
        return fallback
    return body[:200]


def raise_for_status(resp: httpx.Response, name: str) -> httpx.Response:
    """
    Map a response status onto the error taxonomy.

    Args:
        resp: Response to check
        name: Collaborator name for error messages

    Returns:
        The response unchanged when it is a 2xx

    Raises:
        RateLimitedError: 429/503
        PermanentURLError: 404/410
        TransientFetchError: other 5xx
        MarketplaceAPIError: any other non-2xx
    """
    sc = resp.status_code

    if 200 <= sc < 300:
        return resp

    if sc in RATE_LIMIT_STATUSES:
        retry_after = resp.headers.get("Retry-After")
        retry_seconds = None
        if retry_after:
            try:
                retry_seconds = int(retry_after)
            except (ValueError, TypeError):
                pass
        raise RateLimitedError(status_code=sc, retry_after=retry_seconds)

    if sc in (404, 410):
        raise PermanentURLError(f"{name}: {sc} for {resp.request.url}")

    if 500 <= sc < 600:
        raise TransientFetchError(f"{name}: server error {sc}")

    raise MarketplaceAPIError(sc, sanitize_error_body(resp.text, resp.reason_phrase))


async def send_with_taxonomy(
    client: httpx.AsyncClient,
    request: httpx.Request,
    name: str,
) -> httpx.Response:
    """Send a request, converting transport failures into TransientFetchError."""
    try:
        resp = await client.send(request)
    except RETRYABLE_EXC as e:
        raise TransientFetchError(f"{name}: {type(e).__name__}: {e}") from e
    return raise_for_status(resp, name)
