"""Family quota tracking and library progress reporting.

Counts are always recomputed from ``reference_images`` so a rerun after a
crash resumes from what is actually stored.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from compscout.config import settings
from compscout.db.models import Family, FamilyStatus, ProcessedListing, ReferenceImage

logger = logging.getLogger(__name__)


@dataclass
class FamilyReport:
    """Progress of one family."""

    brand: str
    family: str
    display_name: str
    image_count: int
    status: str
    min_images_required: int
    target_images: int

    @property
    def below_minimum(self) -> bool:
        return self.image_count < self.min_images_required


@dataclass
class LibraryReport:
    """Progress summary of the whole reference library."""

    families: list[FamilyReport] = field(default_factory=list)
    total_families: int = 0
    total_images: int = 0
    min_images_per_family: int = 0
    max_images_per_family: int = 0
    avg_images_per_family: float = 0.0
    underfilled_families: int = 0
    ready_families: int = 0
    processed_listings: int = 0

    @property
    def library_ready(self) -> bool:
        """Every family has at least its minimum and there is at least one family."""
        return self.total_families > 0 and self.underfilled_families == 0

    def to_dict(self) -> dict:
        return {
            "total_families": self.total_families,
            "total_images": self.total_images,
            "min_images_per_family": self.min_images_per_family,
            "max_images_per_family": self.max_images_per_family,
            "avg_images_per_family": self.avg_images_per_family,
            "underfilled_families": self.underfilled_families,
            "ready_families": self.ready_families,
            "processed_listings": self.processed_listings,
            "library_ready": self.library_ready,
            "families": [
                {
                    "brand": f.brand,
                    "family": f.family,
                    "display_name": f.display_name,
                    "image_count": f.image_count,
                    "status": f.status,
                    "min_images_required": f.min_images_required,
                    "target_images": f.target_images,
                    "below_minimum": f.below_minimum,
                }
                for f in self.families
            ],
        }


def status_for_count(count: int, min_images: int, target_images: int) -> FamilyStatus:
    """Status a family with ``count`` images deserves."""
    if count >= target_images:
        return FamilyStatus.LOCKED
    if count >= min_images:
        return FamilyStatus.READY
    return FamilyStatus.BUILDING


class FamilyQuotaTracker:
    """
    Tracks per-family image counts against their quotas.

    Families are created on first sighting and never deleted. Status only
    ever moves forward: building -> ready -> locked.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_family(self, brand: str, family: str) -> Optional[Family]:
        result = await self.db.execute(
            select(Family).where(Family.brand == brand, Family.family == family)
        )
        return result.scalar_one_or_none()

    async def get_or_create_family(
        self,
        brand: str,
        family: str,
        attributes: Optional[dict] = None,
    ) -> Family:
        """
        Fetch a family, creating it with default quotas on first sighting.

        Args:
            brand: Brand name
            family: Model line label
            attributes: Optional free-form metadata stored on creation

        Returns:
            Family row
        """
        existing = await self.get_family(brand, family)
        if existing:
            return existing

        record = Family(
            brand=brand,
            family=family,
            display_name=f"{brand} {family}",
            attributes=attributes or {},
            min_images_required=settings.family_min_images,
            target_images=settings.family_target_images,
            status=FamilyStatus.BUILDING.value,
        )
        self.db.add(record)
        await self.db.commit()
        await self.db.refresh(record)
        logger.info(f"Created family: {record.display_name} (id={record.id})")
        return record

    async def count_images(self, family_id: int) -> int:
        result = await self.db.execute(
            select(func.count(ReferenceImage.id)).where(ReferenceImage.family_id == family_id)
        )
        return result.scalar_one()

    async def is_complete(self, record: Family, count: Optional[int] = None) -> bool:
        """True when the family is locked or already holds its target count."""
        if record.family_status is FamilyStatus.LOCKED:
            return True
        if count is None:
            count = await self.count_images(record.id)
        return count >= record.target_images

    async def promote(self, record: Family, count: Optional[int] = None) -> FamilyStatus:
        """
        Move the family's status forward to match its image count.

        Never demotes: a family that was ready stays ready even if images
        were later removed.
        """
        if count is None:
            count = await self.count_images(record.id)

        current = record.family_status
        earned = status_for_count(count, record.min_images_required, record.target_images)
        if earned.rank <= current.rank:
            return current

        record.status = earned.value
        record.updated_at = datetime.utcnow()
        await self.db.commit()
        logger.info(
            f"Family {record.display_name} promoted {current.value} -> {earned.value} "
            f"({count}/{record.target_images} images)"
        )
        return earned

    async def build_report(self) -> LibraryReport:
        """Summarise every family's progress plus the size of the ledger."""
        counts = (
            select(ReferenceImage.family_id, func.count(ReferenceImage.id).label("image_count"))
            .group_by(ReferenceImage.family_id)
            .subquery()
        )
        result = await self.db.execute(
            select(Family, func.coalesce(counts.c.image_count, 0))
            .outerjoin(counts, counts.c.family_id == Family.id)
            .order_by(Family.brand, Family.family)
        )

        families = [
            FamilyReport(
                brand=record.brand,
                family=record.family,
                display_name=record.display_name,
                image_count=int(image_count),
                status=record.status,
                min_images_required=record.min_images_required,
                target_images=record.target_images,
            )
            for record, image_count in result.all()
        ]

        processed = await self.db.execute(select(func.count()).select_from(ProcessedListing))

        report = LibraryReport(
            families=families,
            total_families=len(families),
            processed_listings=processed.scalar_one(),
        )
        if families:
            image_counts = [f.image_count for f in families]
            report.total_images = sum(image_counts)
            report.min_images_per_family = min(image_counts)
            report.max_images_per_family = max(image_counts)
            report.avg_images_per_family = round(report.total_images / len(families), 1)
            report.underfilled_families = sum(1 for f in families if f.below_minimum)
            report.ready_families = sum(
                1 for f in families
                if f.status in (FamilyStatus.READY.value, FamilyStatus.LOCKED.value)
            )
        return report
