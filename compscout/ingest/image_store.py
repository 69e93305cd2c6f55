"""Image validation and content-addressed storage for reference images."""

import hashlib
import io
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from PIL import Image

from compscout.ai.embedding_service import assess_image_quality
from compscout.config import settings

logger = logging.getLogger(__name__)


def content_hash(data: bytes) -> str:
    """SHA-256 hex digest of raw bytes (the library-wide dedup key)."""
    return hashlib.sha256(data).hexdigest()


def sanitize_path(value: str) -> str:
    """Lowercase and replace anything that is not alphanumeric with underscores."""
    return re.sub(r"[^a-z0-9]+", "_", value.lower()).strip("_") or "unknown"


@dataclass
class ImageValidation:
    """Result of validating downloaded image bytes."""

    valid: bool
    error: Optional[str] = None
    content_hash: Optional[str] = None
    width: int = 0
    height: int = 0
    file_size: int = 0
    content_type: str = ""
    extension: str = "jpg"
    quality_score: Optional[float] = None


@dataclass
class StoredImage:
    """Where an image ended up on disk."""

    storage_path: str
    content_hash: str
    file_size: int
    created: bool


class ImageStore:
    """
    Validates images and writes them to a content-addressed directory tree.

    Layout: ``{root}/{brand}/{family}/{family_id}/{content_hash}.{ext}``.
    The stored bytes are the downloaded bytes, so the file name always
    matches the hash of its content.
    """

    def __init__(
        self,
        root: Optional[str | Path] = None,
        min_file_size: Optional[int] = None,
        min_dimension: Optional[int] = None,
    ):
        self.root = Path(root or settings.image_storage_path)
        self.min_file_size = (
            min_file_size if min_file_size is not None else settings.image_min_file_size
        )
        self.min_dimension = (
            min_dimension if min_dimension is not None else settings.image_min_dimension
        )

    def validate(self, data: bytes) -> ImageValidation:
        """
        Check that bytes are a decodable image of acceptable size.

        Args:
            data: Raw downloaded bytes

        Returns:
            ImageValidation; ``valid`` is False with an ``error`` when rejected
        """
        file_size = len(data)
        if file_size < self.min_file_size:
            return ImageValidation(
                valid=False,
                error=f"File too small: {file_size} bytes (min {self.min_file_size})",
                file_size=file_size,
            )

        try:
            # verify() catches truncated/corrupt files but leaves the image unusable
            with Image.open(io.BytesIO(data)) as probe:
                probe.verify()
            with Image.open(io.BytesIO(data)) as img:
                width, height = img.size
                fmt = (img.format or "JPEG").lower()
        except Exception as e:
            return ImageValidation(
                valid=False,
                error=f"Could not decode image: {type(e).__name__}: {e}",
                file_size=file_size,
            )

        if width < self.min_dimension or height < self.min_dimension:
            return ImageValidation(
                valid=False,
                error=(
                    f"Image too small: {width}x{height} "
                    f"(min {self.min_dimension}x{self.min_dimension})"
                ),
                width=width,
                height=height,
                file_size=file_size,
            )

        if fmt in ("jpeg", "jpg", "mpo"):
            fmt = "jpeg"
        extension = "jpg" if fmt == "jpeg" else fmt
        quality = assess_image_quality(width, height)

        return ImageValidation(
            valid=True,
            content_hash=content_hash(data),
            width=width,
            height=height,
            file_size=file_size,
            content_type=f"image/{fmt}",
            extension=extension,
            quality_score=quality.score,
        )

    def path_for(
        self,
        brand: str,
        family: str,
        family_id: int,
        digest: str,
        extension: str = "jpg",
    ) -> Path:
        return (
            self.root
            / sanitize_path(brand)
            / sanitize_path(family)
            / str(family_id)
            / f"{digest}.{extension}"
        )

    def save(
        self,
        data: bytes,
        brand: str,
        family: str,
        family_id: int,
        validation: ImageValidation,
    ) -> StoredImage:
        """Write validated bytes to storage. Existing files are left untouched."""
        if not validation.valid or not validation.content_hash:
            raise ValueError("Refusing to store an image that failed validation")

        path = self.path_for(brand, family, family_id, validation.content_hash, validation.extension)
        created = not path.exists()
        if created:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(path.suffix + ".tmp")
            tmp_path.write_bytes(data)
            tmp_path.replace(path)

        return StoredImage(
            storage_path=str(path),
            content_hash=validation.content_hash,
            file_size=len(data),
            created=created,
        )

    def remove(self, stored: StoredImage) -> None:
        """Delete a file written by ``save`` (used when the database insert loses a race)."""
        if not stored.created:
            return
        try:
            Path(stored.storage_path).unlink()
        except FileNotFoundError:
            pass
