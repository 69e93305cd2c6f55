"""Tests for the marketplace search client and HTTP error taxonomy."""

from decimal import Decimal

import httpx
import pytest

from compscout.ingest.http_client import (
    ConfigurationError,
    MarketplaceAPIError,
    PermanentURLError,
    RateLimitedError,
    TransientFetchError,
    is_transient,
    sanitize_error_body,
)
from compscout.ingest.marketplace import ListingSummary, MarketplaceClient, SearchPage

BASE_URL = "https://api.test"

ITEM = {
    "itemId": "v1|1234|0",
    "title": "Seiko Prospex SRP777 Automatic",
    "condition": "Pre-owned",
    "price": {"value": "189.99", "currency": "USD"},
    "image": {"imageUrl": "https://img.test/1.jpg"},
    "additionalImages": [
        {"imageUrl": "https://img.test/2.jpg"},
        {"imageUrl": "https://img.test/3.jpg"},
        {"imageUrl": "https://img.test/4.jpg"},
    ],
}


class Recorder:
    """MockTransport handler serving a token and a configurable search response."""

    def __init__(self, search_status: int = 200, search_body=None, headers=None):
        self.requests: list[httpx.Request] = []
        self.search_status = search_status
        self.search_body = search_body if search_body is not None else {
            "itemSummaries": [ITEM],
            "offset": 0,
            "limit": 50,
            "total": 1,
        }
        self.headers = headers or {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.endswith("/oauth2/token"):
            return httpx.Response(200, json={"access_token": "tok", "expires_in": 7200})
        return httpx.Response(self.search_status, json=self.search_body, headers=self.headers)

    @property
    def token_requests(self):
        return [r for r in self.requests if r.url.path.endswith("/oauth2/token")]


def _client(handler) -> MarketplaceClient:
    return MarketplaceClient(
        client_id="id",
        client_secret="secret",
        base_url=BASE_URL,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


@pytest.mark.asyncio
async def test_search_parses_items():
    handler = Recorder()
    client = _client(handler)

    page = await client.search("Seiko Prospex watch", offset=50, limit=50)

    assert client.api_calls == 1
    assert len(page.items) == 1
    item = page.items[0]
    assert item.item_id == "v1|1234|0"
    assert item.price == Decimal("189.99")
    assert item.condition == "Pre-owned"
    assert page.has_next is False

    search = handler.requests[-1]
    assert search.url.params["q"] == "Seiko Prospex watch"
    assert search.url.params["offset"] == "50"
    assert search.url.params["limit"] == "50"
    assert search.url.params["category_ids"] == "31387"
    assert search.headers["Authorization"] == "Bearer tok"


@pytest.mark.asyncio
async def test_token_is_cached():
    handler = Recorder()
    client = _client(handler)

    await client.search("a")
    await client.search("b")

    assert len(handler.token_requests) == 1
    assert client.api_calls == 2


@pytest.mark.asyncio
async def test_rate_limit_surfaced_distinctly():
    client = _client(Recorder(search_status=429, search_body={}, headers={"Retry-After": "30"}))

    with pytest.raises(RateLimitedError) as exc_info:
        await client.search("Seiko")

    assert exc_info.value.status_code == 429
    assert exc_info.value.retry_after == 30
    assert is_transient(exc_info.value)


@pytest.mark.asyncio
async def test_unavailable_is_rate_limited():
    client = _client(Recorder(search_status=503, search_body={}))
    with pytest.raises(RateLimitedError):
        await client.search("Seiko")


@pytest.mark.asyncio
@pytest.mark.parametrize("status, error", [
    (404, PermanentURLError),
    (500, TransientFetchError),
    (502, TransientFetchError),
    (400, MarketplaceAPIError),
])
async def test_status_taxonomy(status, error):
    client = _client(Recorder(search_status=status, search_body={"error": "x"}))
    with pytest.raises(error):
        await client.search("Seiko")


@pytest.mark.asyncio
async def test_timeout_is_transient():
    def handler(request):
        if request.url.path.endswith("/oauth2/token"):
            return httpx.Response(200, json={"access_token": "tok", "expires_in": 7200})
        raise httpx.ReadTimeout("timed out", request=request)

    client = _client(handler)
    with pytest.raises(TransientFetchError):
        await client.search("Seiko")


@pytest.mark.asyncio
async def test_missing_credentials():
    client = MarketplaceClient(client_id="", client_secret="", base_url=BASE_URL)
    assert client.is_configured is False
    with pytest.raises(ConfigurationError):
        await client.search("Seiko")


@pytest.mark.asyncio
async def test_download_image():
    def handler(request):
        return httpx.Response(200, content=b"\xff\xd8bytes")

    client = _client(handler)
    assert await client.download_image("https://img.test/1.jpg") == b"\xff\xd8bytes"


def test_image_candidates_capped_at_three():
    listing = ListingSummary.from_api(ITEM)
    assert listing.image_candidates(3) == [
        "https://img.test/1.jpg",
        "https://img.test/2.jpg",
        "https://img.test/3.jpg",
    ]


def test_image_candidates_without_primary():
    listing = ListingSummary(item_id="1", title="t", additional_image_urls=["a", "b", "c"])
    assert listing.image_candidates(3) == ["a", "b"]


def test_search_page_next_and_missing_ids():
    page = SearchPage.from_api({
        "itemSummaries": [ITEM, {"title": "no id"}],
        "next": "https://api.test/next",
    })
    assert len(page.items) == 1
    assert page.has_next is True


def test_sanitize_error_body():
    assert sanitize_error_body("<!DOCTYPE html><html>", "Bad Gateway") == "Bad Gateway"
    assert sanitize_error_body("x" * 500) == "x" * 200
