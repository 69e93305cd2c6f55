"""Tests for family quota tracking and the library report."""

import pytest

from compscout.db.models import Family, FamilyStatus, ProcessedListing, ReferenceImage
from compscout.ingest.quota import FamilyQuotaTracker, status_for_count


def _image(family_id: int, n: int) -> ReferenceImage:
    return ReferenceImage(
        family_id=family_id,
        content_hash=f"{family_id:04d}{n:060d}",
        storage_path=f"/tmp/{family_id}/{n}.jpg",
        file_size=30000,
        width=400,
        height=400,
        content_type="image/jpeg",
    )


async def _add_images(db, family_id: int, count: int):
    for n in range(count):
        db.add(_image(family_id, n))
    await db.commit()


@pytest.mark.parametrize("count, expected", [
    (0, FamilyStatus.BUILDING),
    (14, FamilyStatus.BUILDING),
    (15, FamilyStatus.READY),
    (24, FamilyStatus.READY),
    (25, FamilyStatus.LOCKED),
    (40, FamilyStatus.LOCKED),
])
def test_status_for_count(count, expected):
    assert status_for_count(count, min_images=15, target_images=25) == expected


@pytest.mark.asyncio
async def test_get_or_create_family(db_session):
    tracker = FamilyQuotaTracker(db_session)

    created = await tracker.get_or_create_family("Seiko", "Prospex", attributes={"category": "diver"})
    again = await tracker.get_or_create_family("Seiko", "Prospex")

    assert created.id == again.id
    assert created.display_name == "Seiko Prospex"
    assert created.status == FamilyStatus.BUILDING.value
    assert created.min_images_required == 15
    assert created.target_images == 25
    assert again.attributes == {"category": "diver"}


@pytest.mark.asyncio
async def test_promote_moves_forward(db_session):
    tracker = FamilyQuotaTracker(db_session)
    family = await tracker.get_or_create_family("Tissot", "PRX")

    await _add_images(db_session, family.id, 15)
    assert await tracker.promote(family) == FamilyStatus.READY
    assert family.status == "ready"


@pytest.mark.asyncio
async def test_promote_never_demotes(db_session):
    tracker = FamilyQuotaTracker(db_session)
    family = await tracker.get_or_create_family("Tissot", "PRX")
    family.status = FamilyStatus.LOCKED.value
    await db_session.commit()

    assert await tracker.promote(family, count=3) == FamilyStatus.LOCKED
    assert family.status == "locked"


@pytest.mark.asyncio
async def test_is_complete(db_session):
    tracker = FamilyQuotaTracker(db_session)
    family = await tracker.get_or_create_family("Orient", "Bambino")

    assert await tracker.is_complete(family) is False
    assert await tracker.is_complete(family, count=25) is True

    family.status = FamilyStatus.LOCKED.value
    assert await tracker.is_complete(family, count=0) is True


@pytest.mark.asyncio
async def test_empty_report(db_session):
    report = await FamilyQuotaTracker(db_session).build_report()

    assert report.total_families == 0
    assert report.total_images == 0
    assert report.library_ready is False


@pytest.mark.asyncio
async def test_build_report(db_session):
    tracker = FamilyQuotaTracker(db_session)
    seiko = await tracker.get_or_create_family("Seiko", "Prospex")
    tissot = await tracker.get_or_create_family("Tissot", "PRX")
    await tracker.get_or_create_family("Casio", "Duro")

    await _add_images(db_session, seiko.id, 25)
    await _add_images(db_session, tissot.id, 10)
    await tracker.promote(seiko)
    db_session.add(ProcessedListing(external_listing_id="abc", family_id=seiko.id, image_count=1))
    await db_session.commit()

    report = await tracker.build_report()

    assert report.total_families == 3
    assert report.total_images == 35
    assert report.min_images_per_family == 0
    assert report.max_images_per_family == 25
    assert report.avg_images_per_family == 11.7
    assert report.underfilled_families == 2
    assert report.ready_families == 1
    assert report.processed_listings == 1
    assert report.library_ready is False

    by_name = {f.display_name: f for f in report.families}
    assert by_name["Seiko Prospex"].status == "locked"
    assert by_name["Seiko Prospex"].below_minimum is False
    assert by_name["Tissot PRX"].below_minimum is True
    assert by_name["Casio Duro"].image_count == 0

    payload = report.to_dict()
    assert payload["library_ready"] is False
    assert len(payload["families"]) == 3


@pytest.mark.asyncio
async def test_library_ready_when_no_family_underfilled(db_session):
    db_session.add(Family(brand="Seiko", family="SKX", display_name="Seiko SKX", min_images_required=1))
    await db_session.commit()
    family = (await FamilyQuotaTracker(db_session).get_family("Seiko", "SKX"))
    await _add_images(db_session, family.id, 1)

    report = await FamilyQuotaTracker(db_session).build_report()
    assert report.library_ready is True
