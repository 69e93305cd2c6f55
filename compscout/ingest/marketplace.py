"""Marketplace search API client (eBay Browse-style item summary search)."""

from __future__ import annotations

import base64
import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import httpx

from compscout import metrics
from compscout.config import settings
from compscout.ingest.http_client import (
    ConfigurationError,
    RateLimitedError,
    send_with_taxonomy,
)

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; compscout/0.1)"


@dataclass
class ListingSummary:
    """One item returned by the search API."""

    item_id: str
    title: str
    condition: str = "unknown"
    image_url: Optional[str] = None
    additional_image_urls: list[str] = field(default_factory=list)
    price: Optional[Decimal] = None
    currency: str = "USD"

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "ListingSummary":
        price = None
        currency = "USD"
        price_data = data.get("price") or {}
        if price_data.get("value") is not None:
            try:
                price = Decimal(str(price_data["value"]))
            except InvalidOperation:
                logger.debug(f"Unparseable price for {data.get('itemId')}: {price_data}")
            currency = price_data.get("currency", currency)

        image = data.get("image") or {}
        additional = [
            img["imageUrl"]
            for img in (data.get("additionalImages") or [])
            if img.get("imageUrl")
        ]

        return cls(
            item_id=str(data["itemId"]),
            title=data.get("title", ""),
            condition=data.get("condition") or "unknown",
            image_url=image.get("imageUrl"),
            additional_image_urls=additional,
            price=price,
            currency=currency,
        )

    def image_candidates(self, limit: int = 3) -> list[str]:
        """Primary image first, then additional images, up to ``limit`` URLs."""
        urls = []
        if self.image_url:
            urls.append(self.image_url)
        urls.extend(self.additional_image_urls[: max(0, limit - 1)])
        return urls[:limit]


@dataclass
class SearchPage:
    """One page of search results."""

    items: list[ListingSummary]
    offset: int = 0
    limit: int = 0
    total: Optional[int] = None
    next_url: Optional[str] = None

    @property
    def has_next(self) -> bool:
        return bool(self.next_url)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "SearchPage":
        items = []
        for raw in data.get("itemSummaries") or []:
            if not raw.get("itemId"):
                continue
            items.append(ListingSummary.from_api(raw))
        return cls(
            items=items,
            offset=int(data.get("offset") or 0),
            limit=int(data.get("limit") or 0),
            total=data.get("total"),
            next_url=data.get("next"),
        )


class MarketplaceClient:
    """
    Client for the marketplace search API.

    Handles OAuth client-credentials tokens (cached until shortly before
    expiry), paged item search and raw image downloads. Every search request
    sent is counted in ``api_calls``.
    """

    TOKEN_PATH = "/identity/v1/oauth2/token"
    SEARCH_PATH = "/buy/browse/v1/item_summary/search"
    TOKEN_EXPIRY_MARGIN_SECONDS = 60

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.client_id = client_id if client_id is not None else settings.marketplace_client_id
        self.client_secret = (
            client_secret if client_secret is not None else settings.marketplace_client_secret
        )
        self.base_url = (base_url or settings.marketplace_api_base).rstrip("/")
        self._client = http_client
        self._owns_client = http_client is None
        self._token: Optional[str] = None
        self._token_expires_at = 0.0
        self.api_calls = 0

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def ensure_configured(self) -> None:
        """Raise ConfigurationError if credentials are missing."""
        if not self.is_configured:
            raise ConfigurationError("Marketplace API credentials not configured")

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(settings.search_timeout_seconds, connect=10.0),
                headers={"User-Agent": USER_AGENT},
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "MarketplaceClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def get_access_token(self) -> str:
        """Return a cached OAuth token, fetching a new one when needed."""
        self.ensure_configured()

        if self._token and time.monotonic() < self._token_expires_at - self.TOKEN_EXPIRY_MARGIN_SECONDS:
            return self._token

        credentials = base64.b64encode(
            f"{self.client_id}:{self.client_secret}".encode("utf-8")
        ).decode("ascii")

        client = self._get_client()
        request = client.build_request(
            "POST",
            f"{self.base_url}{self.TOKEN_PATH}",
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "Authorization": f"Basic {credentials}",
            },
            data={
                "grant_type": "client_credentials",
                "scope": settings.marketplace_oauth_scope,
            },
        )
        resp = await send_with_taxonomy(client, request, "marketplace oauth")
        data = resp.json()

        self._token = data["access_token"]
        self._token_expires_at = time.monotonic() + float(data.get("expires_in", 7200))
        logger.debug("Fetched new marketplace access token")
        return self._token

    async def search(
        self,
        query: str,
        offset: int = 0,
        limit: Optional[int] = None,
        category_id: Optional[str] = None,
    ) -> SearchPage:
        """
        Fetch one page of search results.

        Args:
            query: Free-text query
            offset: Result offset
            limit: Page size (defaults to settings.search_page_size)
            category_id: Category filter (defaults to settings.marketplace_category_id)

        Returns:
            SearchPage (possibly with no items)

        Raises:
            ConfigurationError: If credentials are missing
            RateLimitedError: On 429/503
            TransientFetchError: On timeouts and other 5xx
            PermanentURLError / MarketplaceAPIError: On other failures
        """
        token = await self.get_access_token()
        client = self._get_client()
        request = client.build_request(
            "GET",
            f"{self.base_url}{self.SEARCH_PATH}",
            params={
                "q": query,
                "category_ids": category_id or settings.marketplace_category_id,
                "limit": limit or settings.search_page_size,
                "offset": offset,
            },
            headers={
                "Authorization": f"Bearer {token}",
                "X-EBAY-C-MARKETPLACE-ID": settings.marketplace_id,
                "Content-Type": "application/json",
            },
            timeout=settings.search_timeout_seconds,
        )

        self.api_calls += 1
        try:
            resp = await send_with_taxonomy(client, request, "marketplace search")
        except RateLimitedError:
            metrics.record_search_call("rate_limited")
            raise
        except Exception:
            metrics.record_search_call("error")
            raise

        metrics.record_search_call("success")
        return SearchPage.from_api(resp.json())

    async def download_image(self, url: str) -> bytes:
        """Download raw image bytes."""
        client = self._get_client()
        request = client.build_request(
            "GET",
            url,
            headers={"Accept": "image/*"},
            timeout=settings.image_download_timeout_seconds,
        )
        resp = await send_with_taxonomy(client, request, "image download")
        return resp.content
