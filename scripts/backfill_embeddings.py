"""Backfill embeddings for reference images stored without one."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from compscout.ai.embedding_service import EmbeddingNotConfiguredError, ImageEmbeddingService
from compscout.db.session import AsyncSessionLocal, engine
from compscout.ingest.crawler import backfill_embeddings
from compscout.logging_config import setup_logging

logger = logging.getLogger(__name__)


async def run_backfill(limit: Optional[int] = None) -> int:
    service = ImageEmbeddingService()
    try:
        async with AsyncSessionLocal() as db:
            result = await backfill_embeddings(db, service, limit=limit)
    except EmbeddingNotConfiguredError as e:
        logger.error(f"Cannot backfill: {e}")
        return 1
    finally:
        await service.close()
        await engine.dispose()

    print(f"Processed:     {result.processed}")
    print(f"Updated:       {result.updated}")
    print(f"Failed:        {result.failed}")
    print(f"Missing files: {result.missing_files}")
    return 0


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Generate embeddings for stored reference images")
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Limit number of images to process (for testing)",
    )
    args = parser.parse_args()

    setup_logging("backfill_embeddings")
    sys.exit(asyncio.run(run_backfill(limit=args.limit)))
