"""Reference library progress routes."""

from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from compscout.api.deps import get_quota_tracker
from compscout.ingest.quota import FamilyQuotaTracker

router = APIRouter(prefix="/api/families", tags=["families"])


class FamilyReportResponse(BaseModel):
    brand: str
    family: str
    display_name: str
    image_count: int
    status: str
    min_images_required: int
    target_images: int
    below_minimum: bool


class LibraryReportResponse(BaseModel):
    total_families: int
    total_images: int
    min_images_per_family: int
    max_images_per_family: int
    avg_images_per_family: float
    underfilled_families: int
    ready_families: int
    processed_listings: int
    library_ready: bool
    families: List[FamilyReportResponse]


@router.get("/report", response_model=LibraryReportResponse)
async def library_report(tracker: FamilyQuotaTracker = Depends(get_quota_tracker)):
    """Per-family image counts and overall library readiness."""
    report = await tracker.build_report()
    return report.to_dict()
