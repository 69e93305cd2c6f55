"""SQLAlchemy database models."""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class FamilyStatus(str, enum.Enum):
    """Ingestion status of a family. Transitions only move forward."""

    BUILDING = "building"
    READY = "ready"
    LOCKED = "locked"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK = {
    FamilyStatus.BUILDING: 0,
    FamilyStatus.READY: 1,
    FamilyStatus.LOCKED: 2,
}

# Postgres gets native JSONB/ARRAY, other dialects (tests) fall back to JSON
JsonType = JSON().with_variant(JSONB(), "postgresql")
VectorType = JSON(none_as_null=True).with_variant(ARRAY(Float), "postgresql")


class Family(Base):
    """A product line (brand + model line) whose reference images are collected."""

    __tablename__ = "families"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    brand: Mapped[str] = mapped_column(String(64), nullable=False)
    family: Mapped[str] = mapped_column(String(128), nullable=False)
    display_name: Mapped[str] = mapped_column(String(256), nullable=False)
    attributes: Mapped[dict] = mapped_column(JsonType, default=dict, nullable=False)
    min_images_required: Mapped[int] = mapped_column(Integer, default=15, nullable=False)
    target_images: Mapped[int] = mapped_column(Integer, default=25, nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), default=FamilyStatus.BUILDING.value, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    # Relationships
    images: Mapped[list["ReferenceImage"]] = relationship(
        "ReferenceImage", back_populates="family_ref", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("brand", "family", name="uq_family_brand_family"),
        CheckConstraint(
            "status IN ('building', 'ready', 'locked')", name="ck_family_status"
        ),
        Index("ix_families_status", "status"),
    )

    @property
    def family_status(self) -> FamilyStatus:
        return FamilyStatus(self.status)


class ReferenceImage(Base):
    """One stored, deduplicated reference image."""

    __tablename__ = "reference_images"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("families.id", ondelete="CASCADE"), nullable=False
    )
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)  # sha256 hex
    storage_path: Mapped[str] = mapped_column(Text, nullable=False)
    original_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    width: Mapped[int] = mapped_column(Integer, nullable=False)
    height: Mapped[int] = mapped_column(Integer, nullable=False)
    content_type: Mapped[str] = mapped_column(String(32), nullable=False)
    quality_score: Mapped[Optional[float]] = mapped_column(Numeric(4, 2), nullable=True)
    source: Mapped[str] = mapped_column(String(32), default="marketplace", nullable=False)
    embedding: Mapped[Optional[list[float]]] = mapped_column(VectorType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    # Relationships
    family_ref: Mapped["Family"] = relationship("Family", back_populates="images")

    __table_args__ = (
        # Unique across the whole library, not per family
        UniqueConstraint("content_hash", name="uq_reference_image_content_hash"),
        Index("ix_reference_images_family_id", "family_id"),
    )


class ProcessedListing(Base):
    """Ledger of marketplace listings already scanned. Append-only."""

    __tablename__ = "processed_listings"

    external_listing_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    family_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("families.id", ondelete="SET NULL"), nullable=True
    )
    title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    condition: Mapped[str] = mapped_column(String(64), default="unknown", nullable=False)
    image_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    processed_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
