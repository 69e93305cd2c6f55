"""Per-family dedup context backed by the processed-listing ledger and image table."""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from compscout.db.models import ProcessedListing, ReferenceImage
from compscout.ingest.marketplace import ListingSummary

logger = logging.getLogger(__name__)


class DedupContext:
    """
    Dedup state for one family's crawl.

    Constructed when a family starts and discarded when it ends. The
    in-memory sets only save queries; the database unique constraints on
    ``processed_listings.external_listing_id`` and
    ``reference_images.content_hash`` remain the source of truth, so a crash
    never loses dedup correctness.
    """

    def __init__(self, db: AsyncSession, family_id: int):
        self.db = db
        self.family_id = family_id
        self._known_hashes: set[str] = set()
        self._processed_listings: set[str] = set()

    async def preload_family_hashes(self) -> int:
        """Warm the hash cache with the family's existing images."""
        result = await self.db.execute(
            select(ReferenceImage.content_hash).where(ReferenceImage.family_id == self.family_id)
        )
        hashes = set(result.scalars().all())
        self._known_hashes.update(hashes)
        return len(hashes)

    async def is_listing_processed(self, listing_id: str) -> bool:
        if listing_id in self._processed_listings:
            return True
        found = await self.db.get(ProcessedListing, listing_id)
        if found is not None:
            self._processed_listings.add(listing_id)
            return True
        return False

    async def is_known_hash(self, digest: str) -> bool:
        """True if any family in the library already holds this content hash."""
        if digest in self._known_hashes:
            return True
        result = await self.db.execute(
            select(ReferenceImage.id).where(ReferenceImage.content_hash == digest).limit(1)
        )
        if result.scalar_one_or_none() is not None:
            self._known_hashes.add(digest)
            return True
        return False

    def remember_hash(self, digest: str) -> None:
        self._known_hashes.add(digest)

    async def mark_listing_processed(
        self,
        listing: ListingSummary,
        image_count: int,
    ) -> None:
        """Append the listing to the ledger (no-op if already present)."""
        if await self.is_listing_processed(listing.item_id):
            return
        self.db.add(
            ProcessedListing(
                external_listing_id=listing.item_id,
                family_id=self.family_id,
                title=listing.title,
                condition=listing.condition or "unknown",
                image_count=image_count,
            )
        )
        await self.db.commit()
        self._processed_listings.add(listing.item_id)

    @property
    def known_hash_count(self) -> int:
        return len(self._known_hashes)
