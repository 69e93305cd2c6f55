"""Image embedding generation via a Jina-compatible embeddings API."""

import asyncio
import base64
import hashlib
import logging
from dataclasses import dataclass
from typing import Optional

import httpx
import numpy as np

from compscout import metrics
from compscout.config import settings
from compscout.ingest.http_client import (
    ConfigurationError,
    RateLimitedError,
    TransientFetchError,
    send_with_taxonomy,
)
from compscout.utils.retry import RetryPolicy, SleepFunc, fixed_wait, retry_async

logger = logging.getLogger(__name__)


class EmbeddingNotConfiguredError(ConfigurationError):
    """Raised when no embedding API key is configured."""
    pass


class EmbeddingRateLimitedError(RateLimitedError):
    """Raised when the embedding provider rate-limits us."""
    pass


class EmbeddingResponseError(RuntimeError):
    """Raised when the provider returns a malformed response."""
    pass


@dataclass
class EmbeddingResult:
    """Similarity vector plus the hash of the bytes it was computed from."""

    embedding: np.ndarray
    content_hash: str


@dataclass
class ImageQualityResult:
    score: float
    width: int
    height: int
    passes_threshold: bool


def assess_image_quality(
    width: int,
    height: int,
    blur_score: Optional[float] = None,
    brightness: Optional[float] = None,
) -> ImageQualityResult:
    """
    Heuristic 0-1 quality score from dimensions, aspect ratio, blur and brightness.

    Small or extremely elongated images are penalised; a score of 0.55 or
    more passes.
    """
    score = 1.0

    min_dimension = min(width, height)
    if min_dimension < 200:
        score *= 0.3
    elif min_dimension < 400:
        score *= 0.6
    elif min_dimension < 500:
        score *= 0.8

    aspect_ratio = max(width, height) / max(min_dimension, 1)
    if aspect_ratio > 3:
        score *= 0.5
    elif aspect_ratio > 2:
        score *= 0.8

    if blur_score is not None:
        if blur_score < 50:
            score *= 0.4
        elif blur_score < 100:
            score *= 0.7

    if brightness is not None:
        if brightness < 30 or brightness > 240:
            score *= 0.5
        elif brightness < 50 or brightness > 220:
            score *= 0.8

    return ImageQualityResult(
        score=round(score, 2),
        width=width,
        height=height,
        passes_threshold=score >= 0.55,
    )


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine similarity of two equal-length vectors (0.0 when either is all zeros)."""
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        raise ValueError("Vectors must have same length")
    magnitude = np.linalg.norm(a) * np.linalg.norm(b)
    if magnitude == 0:
        return 0.0
    return float(np.dot(a, b) / magnitude)


class ImageEmbeddingService:
    """
    Service for generating image embeddings.

    Features:
    - Content hash computed locally, so identical bytes always hash identically
    - In-memory cache keyed by content hash
    - Rate-limit aware retry wrapper shared with the crawler's retry policy
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        model: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.embedding_api_key
        self.api_url = api_url or settings.embedding_api_url
        self.model = model or settings.embedding_model
        self._client = http_client
        self._owns_client = http_client is None
        self._cache: dict[str, np.ndarray] = {}

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(settings.embedding_timeout_seconds, connect=10.0)
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def generate_image_embedding(self, image_bytes: bytes) -> EmbeddingResult:
        """
        Generate an embedding for raw image bytes.

        Args:
            image_bytes: Raw image bytes

        Returns:
            EmbeddingResult with the vector and the SHA-256 of the bytes

        Raises:
            EmbeddingNotConfiguredError: If no API key is configured
            EmbeddingRateLimitedError: On 429/503 from the provider
            TransientFetchError: On timeouts and 5xx
            EmbeddingResponseError: If the response has no embedding
        """
        if not image_bytes:
            raise ValueError("Image bytes cannot be empty")
        if not self.is_configured:
            raise EmbeddingNotConfiguredError("Embedding API key is required for image embeddings")

        digest = hashlib.sha256(image_bytes).hexdigest()

        if settings.embedding_cache_enabled and digest in self._cache:
            logger.debug(f"Cache hit for embedding: {digest[:16]}...")
            return EmbeddingResult(embedding=self._cache[digest], content_hash=digest)

        encoded = base64.b64encode(image_bytes).decode("ascii")
        client = self._get_client()
        request = client.build_request(
            "POST",
            self.api_url,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.api_key}",
            },
            json={
                "model": self.model,
                "input": [{"image": f"data:image/jpeg;base64,{encoded}"}],
            },
            timeout=settings.embedding_timeout_seconds,
        )

        try:
            resp = await send_with_taxonomy(client, request, "embedding api")
        except RateLimitedError as e:
            metrics.record_embedding("rate_limited")
            raise EmbeddingRateLimitedError(e.status_code, e.retry_after) from e
        except Exception:
            metrics.record_embedding("error")
            raise

        data = resp.json()
        try:
            vector = data["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError) as e:
            metrics.record_embedding("error")
            raise EmbeddingResponseError("Invalid response from embedding API: missing embedding") from e

        embedding = np.asarray(vector, dtype=np.float32)
        if settings.embedding_cache_enabled:
            self._cache[digest] = embedding

        metrics.record_embedding("success")
        return EmbeddingResult(embedding=embedding, content_hash=digest)

    async def embed_with_retry(
        self,
        image_bytes: bytes,
        sleep: SleepFunc = asyncio.sleep,
    ) -> Optional[EmbeddingResult]:
        """
        Generate an embedding, retrying once after a rate-limit wait.

        Any failure returns None: the image can be stored without a vector
        and backfilled later.
        """
        policy = RetryPolicy(
            max_attempts=settings.embedding_max_attempts,
            wait=fixed_wait(settings.rate_limit_backoff_seconds),
            is_retryable=lambda e: isinstance(e, (EmbeddingRateLimitedError, TransientFetchError)),
        )
        try:
            return await retry_async(
                lambda: self.generate_image_embedding(image_bytes),
                policy,
                sleep=sleep,
                name="embedding",
            )
        except Exception as e:
            logger.warning(f"Embedding failed, storing image without vector: {e}")
            return None

    def clear_cache(self):
        """Clear the embedding cache."""
        self._cache.clear()
        logger.info("Embedding cache cleared")

    def get_cache_size(self) -> int:
        """Get the number of cached embeddings."""
        return len(self._cache)
