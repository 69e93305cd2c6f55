"""Seed the reference-image library from marketplace listings.

Usage:
    python scripts/run_image_seeder.py                      # all priority families
    python scripts/run_image_seeder.py --family "Seiko:Prospex" --family "Tissot:PRX"
    python scripts/run_image_seeder.py --report             # print library progress only
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from compscout.ai.embedding_service import ImageEmbeddingService
from compscout.db.models import Base
from compscout.db.session import AsyncSessionLocal, engine
from compscout.ingest.crawler import ReferenceImageCrawler, SeederStats
from compscout.ingest.families import PRIORITY_FAMILIES, FamilySeed, parse_family_arg
from compscout.ingest.http_client import ConfigurationError
from compscout.ingest.marketplace import MarketplaceClient
from compscout.ingest.quota import FamilyQuotaTracker, LibraryReport
from compscout.logging_config import setup_logging

logger = logging.getLogger(__name__)


def print_summary(stats: SeederStats) -> None:
    print("\n" + "=" * 60)
    print("SEEDER COMPLETE - SUMMARY")
    print("=" * 60)
    print(f"Families completed:  {len(stats.completed_families)}")
    print(f"Families incomplete: {len(stats.incomplete_families)}")
    print(f"Total images stored: {stats.total_images_stored}")
    print(f"Total API calls:     {stats.total_api_calls}")

    if stats.incomplete_families:
        print("\nIncomplete families:")
        for result in stats.incomplete_families:
            suffix = f" (error: {result.error})" if result.error else ""
            print(f"  - {result.brand} {result.family}: {result.final_count} images{suffix}")


def print_report(report: LibraryReport) -> None:
    print("\n" + "=" * 60)
    print("REFERENCE LIBRARY REPORT")
    print("=" * 60)
    print(f"Families:            {report.total_families}")
    print(f"Total images:        {report.total_images}")
    print(
        f"Images per family:   min {report.min_images_per_family}, "
        f"max {report.max_images_per_family}, avg {report.avg_images_per_family}"
    )
    print(f"Ready families:      {report.ready_families}")
    print(f"Underfilled:         {report.underfilled_families}")
    print(f"Processed listings:  {report.processed_listings}")
    print(f"Library ready:       {'yes' if report.library_ready else 'no'}")

    if report.families:
        print()
        for family in report.families:
            marker = "!" if family.below_minimum else " "
            print(
                f" {marker} {family.display_name:<40} "
                f"{family.image_count:>3}/{family.target_images} [{family.status}]"
            )


async def run_seeder(families: Optional[list[FamilySeed]] = None, report_only: bool = False) -> int:
    """
    Run the seeder (or just the report) and return a process exit code.

    Only unrecoverable startup problems return 1.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        async with AsyncSessionLocal() as db:
            if report_only:
                print_report(await FamilyQuotaTracker(db).build_report())
                return 0

            embedding_service = ImageEmbeddingService()
            async with MarketplaceClient() as marketplace:
                crawler = ReferenceImageCrawler(db, marketplace, embedding_service)
                try:
                    stats = await crawler.run_batch(families or PRIORITY_FAMILIES)
                except ConfigurationError as e:
                    logger.error(f"Cannot start seeder: {e}")
                    print(f"Error: {e}")
                    return 1
                finally:
                    await embedding_service.close()

            print_summary(stats)
            print_report(await FamilyQuotaTracker(db).build_report())
            return 0
    finally:
        await engine.dispose()


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Seed reference images per product family")
    parser.add_argument(
        "--family",
        action="append",
        default=[],
        metavar="BRAND:FAMILY",
        help="Seed only this family (repeatable); defaults to the priority list",
    )
    parser.add_argument(
        "--report",
        action="store_true",
        help="Print the library report and exit without crawling",
    )
    args = parser.parse_args()

    setup_logging("image_seeder")

    try:
        selected = [parse_family_arg(value) for value in args.family]
    except ValueError as e:
        parser.error(str(e))

    sys.exit(asyncio.run(run_seeder(selected or None, report_only=args.report)))
