"""FastAPI dependencies."""

from collections.abc import AsyncIterator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from compscout.db.session import get_db
from compscout.ingest.quota import FamilyQuotaTracker


async def get_database() -> AsyncIterator[AsyncSession]:
    """One session per request."""
    async for session in get_db():
        yield session


def get_quota_tracker(db: AsyncSession = Depends(get_database)) -> FamilyQuotaTracker:
    return FamilyQuotaTracker(db)
