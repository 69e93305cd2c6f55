"""Resumable, deduplicated reference-image crawler.

Families are seeded strictly one after another. For each family the crawler
pages through the marketplace search API for each query variant, downloads
up to three images per new listing, and stores every image whose content
hash is new to the library. All progress lives in the database, so a rerun
picks up exactly where the previous run stopped.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from compscout import metrics
from compscout.ai.embedding_service import EmbeddingNotConfiguredError, ImageEmbeddingService
from compscout.config import settings
from compscout.db.models import Family, ReferenceImage
from compscout.ingest.dedup import DedupContext
from compscout.ingest.families import FamilySeed
from compscout.ingest.http_client import (
    ConfigurationError,
    MarketplaceAPIError,
    PermanentURLError,
    RateLimitedError,
    TransientFetchError,
    is_transient,
)
from compscout.ingest.image_store import ImageStore
from compscout.ingest.marketplace import ListingSummary, MarketplaceClient, SearchPage
from compscout.ingest.quota import FamilyQuotaTracker
from compscout.logging_config import get_logger
from compscout.utils.retry import (
    RetryExhaustedError,
    RetryPolicy,
    SleepFunc,
    fixed_wait,
    retry_async,
)

logger = logging.getLogger(__name__)

DOWNLOAD_ERRORS = (PermanentURLError, TransientFetchError, RateLimitedError, MarketplaceAPIError)


class CrawlState(str, Enum):
    """Per-family crawl state. Terminal states are the last two."""

    PENDING = "pending"
    PAGING = "paging"
    ITEM_PROCESSING = "item_processing"
    FAMILY_COMPLETE = "family_complete"
    FAMILY_INCOMPLETE = "family_incomplete"


@dataclass
class ListingOutcome:
    stored: int = 0
    duplicates: int = 0
    failed: int = 0
    skipped: bool = False


@dataclass
class FamilySeedResult:
    """What one family's crawl achieved."""

    brand: str
    family: str
    images_stored: int = 0
    listings_scanned: int = 0
    api_calls: int = 0
    duplicates_skipped: int = 0
    listing_duplicates: int = 0
    download_failed: int = 0
    completed: bool = False
    final_count: int = 0
    final_status: Optional[str] = None
    state: CrawlState = CrawlState.PENDING
    error: Optional[str] = None


@dataclass
class SeederStats:
    """Totals for a batch run."""

    completed_families: list[FamilySeedResult] = field(default_factory=list)
    incomplete_families: list[FamilySeedResult] = field(default_factory=list)
    total_api_calls: int = 0
    total_images_stored: int = 0

    def add(self, result: FamilySeedResult) -> None:
        self.total_api_calls += result.api_calls
        self.total_images_stored += result.images_stored
        if result.completed:
            self.completed_families.append(result)
        else:
            self.incomplete_families.append(result)


class ReferenceImageCrawler:
    """
    Seeds reference images for families, one family at a time.

    Collaborators are injected so tests can swap the marketplace, embedding
    service and sleep function. Every await is sequential: no two network
    calls are ever in flight at once.
    """

    def __init__(
        self,
        db: AsyncSession,
        marketplace: MarketplaceClient,
        embedding_service: Optional[ImageEmbeddingService] = None,
        image_store: Optional[ImageStore] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.db = db
        self.marketplace = marketplace
        self.embedding_service = embedding_service
        self.image_store = image_store or ImageStore()
        self.sleep = sleep
        self.quota = FamilyQuotaTracker(db)

        self.embeddings_enabled = bool(embedding_service and embedding_service.is_configured)
        if embedding_service is not None and not self.embeddings_enabled:
            logger.warning("Embedding API key not configured; images will be stored without vectors")

        self.search_policy = RetryPolicy(
            max_attempts=settings.search_max_attempts,
            wait=fixed_wait(settings.rate_limit_backoff_seconds),
            is_retryable=is_transient,
        )

    async def _fetch_page(self, query: str, offset: int, log) -> Optional[SearchPage]:
        """One search page, or None when the page could not be fetched."""
        try:
            return await retry_async(
                lambda: self.marketplace.search(query, offset=offset, limit=settings.search_page_size),
                self.search_policy,
                sleep=self.sleep,
                name=f"search {query!r} offset={offset}",
            )
        except RetryExhaustedError as e:
            log.warning(f"Search gave up for {query!r} at offset {offset}: {e.last_error}")
            metrics.record_failure("search_exhausted")
        except (PermanentURLError, MarketplaceAPIError) as e:
            log.warning(f"Search failed for {query!r} at offset {offset}: {e}")
            metrics.record_failure("search_error")
        return None

    async def _embed(self, data: bytes) -> Optional[list[float]]:
        if not self.embeddings_enabled:
            return None
        try:
            result = await self.embedding_service.embed_with_retry(data, sleep=self.sleep)
        except EmbeddingNotConfiguredError:
            self.embeddings_enabled = False
            return None
        if result is None:
            return None
        return result.embedding.tolist()

    async def process_listing(
        self,
        listing: ListingSummary,
        record: Family,
        dedup: DedupContext,
        remaining: int,
    ) -> ListingOutcome:
        """
        Ingest one listing's images and record it in the ledger.

        Args:
            listing: Search result
            record: Family the listing was found for
            dedup: The family's dedup context
            remaining: Images still needed to reach the quota

        Returns:
            ListingOutcome (``skipped`` when the listing was already processed)
        """
        outcome = ListingOutcome()

        if await dedup.is_listing_processed(listing.item_id):
            outcome.skipped = True
            metrics.record_duplicate("listing")
            return outcome

        family_id, brand, family = record.id, record.brand, record.family
        urls = listing.image_candidates(settings.max_images_per_listing)

        for index, url in enumerate(urls):
            if outcome.stored >= remaining:
                break
            if index:
                await self.sleep(settings.request_delay_seconds)

            try:
                data = await self.marketplace.download_image(url)
            except DOWNLOAD_ERRORS as e:
                logger.debug(f"Download failed for {url}: {e}")
                outcome.failed += 1
                metrics.record_failure("download")
                continue

            validation = self.image_store.validate(data)
            if not validation.valid:
                logger.debug(f"Rejected image {url}: {validation.error}")
                outcome.failed += 1
                metrics.record_failure("validation")
                continue

            digest = validation.content_hash
            if await dedup.is_known_hash(digest):
                outcome.duplicates += 1
                metrics.record_duplicate("image")
                continue

            stored = self.image_store.save(data, brand, family, family_id, validation)
            embedding = await self._embed(data)

            self.db.add(
                ReferenceImage(
                    family_id=family_id,
                    content_hash=digest,
                    storage_path=stored.storage_path,
                    original_url=url,
                    file_size=validation.file_size,
                    width=validation.width,
                    height=validation.height,
                    content_type=validation.content_type,
                    quality_score=validation.quality_score,
                    source=settings.image_source_tag,
                    embedding=embedding,
                )
            )
            try:
                await self.db.commit()
            except IntegrityError:
                # Another writer stored the same bytes first
                await self.db.rollback()
                await self.db.refresh(record)
                self.image_store.remove(stored)
                dedup.remember_hash(digest)
                outcome.duplicates += 1
                metrics.record_duplicate("image")
                continue

            dedup.remember_hash(digest)
            outcome.stored += 1
            metrics.record_image_stored(brand)

        await dedup.mark_listing_processed(listing, outcome.stored)
        return outcome

    async def seed_family(
        self,
        brand: str,
        family: str,
        search_terms: Iterable[str],
    ) -> FamilySeedResult:
        """
        Crawl until the family reaches its target image count or runs out of results.

        Args:
            brand: Brand name
            family: Model line label
            search_terms: Query variants, tried in order

        Returns:
            FamilySeedResult
        """
        log = get_logger(__name__, brand=brand, family=family)
        result = FamilySeedResult(brand=brand, family=family)
        started = time.monotonic()
        calls_before = self.marketplace.api_calls

        record = await self.quota.get_or_create_family(brand, family)
        family_id, target = record.id, record.target_images
        count = await self.quota.count_images(family_id)

        if await self.quota.is_complete(record, count):
            log.info(f"{record.display_name} already complete: {count}/{target} images ({record.status})")
            result.completed = True
            result.final_count = count
            result.final_status = record.status
            result.state = CrawlState.FAMILY_COMPLETE
            return result

        log.info(f"Seeding {record.display_name}: {count}/{target} images")

        dedup = DedupContext(self.db, family_id)
        await dedup.preload_family_hashes()
        soft_limit_logged = False

        for query in search_terms:
            if count >= target:
                break

            log.info(f"Query: {query!r}")
            result.state = CrawlState.PAGING
            offset = 0
            unproductive_pages = 0

            while count < target:
                page = await self._fetch_page(query, offset, log)

                if page is None or not page.items:
                    unproductive_pages += 1
                    if unproductive_pages >= settings.max_empty_pages:
                        log.info(f"No more results for {query!r}")
                        break
                    if page is not None:
                        offset += settings.search_page_size
                    await self.sleep(settings.request_delay_seconds)
                    continue

                unproductive_pages = 0
                result.state = CrawlState.ITEM_PROCESSING
                log.debug(f"Processing {len(page.items)} listings (offset {offset})")

                for listing in page.items:
                    if count >= target:
                        break

                    result.listings_scanned += 1
                    if result.listings_scanned >= settings.max_listings_per_family and not soft_limit_logged:
                        log.warning(
                            f"{record.display_name} scanned {result.listings_scanned} listings "
                            f"(soft limit {settings.max_listings_per_family}), continuing"
                        )
                        soft_limit_logged = True

                    outcome = await self.process_listing(listing, record, dedup, target - count)
                    if outcome.skipped:
                        result.listing_duplicates += 1
                        continue

                    result.images_stored += outcome.stored
                    result.duplicates_skipped += outcome.duplicates
                    result.download_failed += outcome.failed
                    count += outcome.stored

                    if outcome.stored:
                        log.info(f"+{outcome.stored} images (now {count}/{target})")

                    await self.sleep(settings.request_delay_seconds)

                result.state = CrawlState.PAGING
                offset += len(page.items)
                await self.sleep(settings.request_delay_seconds)

                if not page.has_next:
                    break

        count = await self.quota.count_images(family_id)
        status = await self.quota.promote(record, count)

        result.completed = count >= target
        result.final_count = count
        result.final_status = status.value
        result.api_calls = self.marketplace.api_calls - calls_before
        result.state = CrawlState.FAMILY_COMPLETE if result.completed else CrawlState.FAMILY_INCOMPLETE
        metrics.family_seed_duration_seconds.observe(time.monotonic() - started)

        log.info(
            f"{record.display_name} {'complete' if result.completed else 'incomplete'}: "
            f"{count}/{target} images, status={status.value}, api_calls={result.api_calls}, "
            f"listings={result.listings_scanned}, duplicates={result.duplicates_skipped}"
        )
        return result

    async def run_batch(self, families: Iterable[FamilySeed]) -> SeederStats:
        """
        Seed families sequentially, at most ``max_active_families`` of them.

        Raises:
            ConfigurationError: If marketplace credentials are missing
        """
        self.marketplace.ensure_configured()

        stats = SeederStats()
        active = 0

        for seed in families:
            if active >= settings.max_active_families:
                logger.info(f"Reached max active families limit ({settings.max_active_families}), stopping")
                break
            if active:
                await self.sleep(settings.family_pause_seconds)

            try:
                result = await self.seed_family(seed.brand, seed.family, seed.search_terms)
            except ConfigurationError:
                raise
            except Exception as e:
                logger.error(f"Seeding {seed.brand} {seed.family} failed: {e}", exc_info=True)
                await self.db.rollback()
                result = FamilySeedResult(
                    brand=seed.brand,
                    family=seed.family,
                    state=CrawlState.FAMILY_INCOMPLETE,
                    error=str(e),
                )

            stats.add(result)
            active += 1

        logger.info(
            f"Seeder finished: {len(stats.completed_families)} complete, "
            f"{len(stats.incomplete_families)} incomplete, "
            f"{stats.total_images_stored} images stored, {stats.total_api_calls} API calls"
        )
        return stats


@dataclass
class BackfillResult:
    processed: int = 0
    updated: int = 0
    failed: int = 0
    missing_files: int = 0


async def backfill_embeddings(
    db: AsyncSession,
    service: ImageEmbeddingService,
    limit: Optional[int] = None,
    sleep: SleepFunc = asyncio.sleep,
) -> BackfillResult:
    """
    Attach embeddings to stored images that were saved without one.

    Args:
        db: Database session
        service: Embedding service
        limit: Optional cap on images processed
        sleep: Sleep function used between rate-limit retries

    Returns:
        BackfillResult

    Raises:
        EmbeddingNotConfiguredError: If the service has no API key
    """
    if not service.is_configured:
        raise EmbeddingNotConfiguredError("Embedding API key is required for backfill")

    query = select(ReferenceImage).where(ReferenceImage.embedding.is_(None)).order_by(ReferenceImage.id)
    if limit:
        query = query.limit(limit)
    images = (await db.execute(query)).scalars().all()

    result = BackfillResult()
    logger.info(f"Found {len(images)} images without embeddings")

    for image in images:
        result.processed += 1
        path = Path(image.storage_path)
        if not path.exists():
            logger.warning(f"Stored file missing for image {image.id}: {path}")
            result.missing_files += 1
            continue

        embedded = await service.embed_with_retry(path.read_bytes(), sleep=sleep)
        if embedded is None:
            result.failed += 1
            continue

        image.embedding = embedded.embedding.tolist()
        await db.commit()
        result.updated += 1

    logger.info(
        f"Backfill done: {result.updated} updated, {result.failed} failed, "
        f"{result.missing_files} missing files"
    )
    return result
