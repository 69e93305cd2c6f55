"""Shared fixtures: in-memory database, generated images, no-op sleep."""

import io
import random

import pytest
import pytest_asyncio
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from compscout.db.models import Base


@pytest_asyncio.fixture
async def db_session():
    """Fresh in-memory SQLite database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


def _noise_image(seed: int, size: tuple[int, int], fmt: str) -> bytes:
    # Random pixels do not compress, so the file stays well above the minimum size
    rng = random.Random(seed)
    width, height = size
    pixels = bytes(rng.getrandbits(8) for _ in range(width * height * 3))
    img = Image.frombytes("RGB", size, pixels)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def make_image():
    """Factory for distinct, valid image bytes (distinct seeds give distinct bytes)."""

    def _make(seed: int = 0, size: tuple[int, int] = (300, 300), fmt: str = "PNG") -> bytes:
        return _noise_image(seed, size, fmt)

    return _make


class SleepRecorder:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def no_sleep():
    return SleepRecorder()
