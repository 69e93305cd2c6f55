"""Tests for image validation and content-addressed storage."""

import hashlib
from pathlib import Path

import pytest

from compscout.ingest.image_store import ImageStore, content_hash, sanitize_path


def test_content_hash_is_sha256():
    data = b"abc" * 100
    assert content_hash(data) == hashlib.sha256(data).hexdigest()
    assert content_hash(data) == content_hash(bytes(data))


def test_sanitize_path():
    assert sanitize_path("Tag Heuer") == "tag_heuer"
    assert sanitize_path("Eco-Drive") == "eco_drive"
    assert sanitize_path("!!!") == "unknown"


class TestValidate:
    """Test image validation."""

    def setup_method(self):
        self.store = ImageStore(root="unused", min_file_size=20 * 1024, min_dimension=200)

    def test_valid_png(self, make_image):
        data = make_image(seed=1)
        result = self.store.validate(data)

        assert result.valid is True
        assert result.width == 300
        assert result.height == 300
        assert result.content_type == "image/png"
        assert result.extension == "png"
        assert result.content_hash == content_hash(data)
        assert result.file_size == len(data)
        assert result.quality_score is not None

    def test_valid_jpeg(self, make_image):
        result = self.store.validate(make_image(seed=2, fmt="JPEG"))
        assert result.valid is True
        assert result.content_type == "image/jpeg"
        assert result.extension == "jpg"

    def test_too_small_file(self):
        result = self.store.validate(b"\x89PNG" + b"\x00" * 100)
        assert result.valid is False
        assert "too small" in result.error

    def test_undecodable(self):
        result = self.store.validate(b"not an image" * 3000)
        assert result.valid is False
        assert "Could not decode" in result.error

    def test_truncated_image(self, make_image):
        data = make_image(seed=3)
        result = self.store.validate(data[: len(data) // 2])
        assert result.valid is False

    def test_small_dimensions(self, make_image):
        result = self.store.validate(make_image(seed=4, size=(150, 150)))
        assert result.valid is False
        assert "150x150" in result.error


class TestSave:
    """Test content-addressed writes."""

    def test_layout_and_content(self, tmp_path, make_image):
        store = ImageStore(root=tmp_path)
        data = make_image(seed=5)
        validation = store.validate(data)

        stored = store.save(data, "Seiko", "Prospex", 7, validation)

        expected = tmp_path / "seiko" / "prospex" / "7" / f"{validation.content_hash}.png"
        assert Path(stored.storage_path) == expected
        assert expected.read_bytes() == data
        assert stored.created is True

    def test_existing_file_untouched(self, tmp_path, make_image):
        store = ImageStore(root=tmp_path)
        data = make_image(seed=6)
        validation = store.validate(data)

        first = store.save(data, "Seiko", "Prospex", 7, validation)
        second = store.save(data, "Seiko", "Prospex", 7, validation)

        assert first.created is True
        assert second.created is False
        assert second.storage_path == first.storage_path

        # Only the writer that created the file may remove it
        store.remove(second)
        assert Path(first.storage_path).exists()
        store.remove(first)
        assert not Path(first.storage_path).exists()

    def test_refuses_invalid(self, tmp_path):
        store = ImageStore(root=tmp_path)
        validation = store.validate(b"tiny")
        with pytest.raises(ValueError):
            store.save(b"tiny", "Seiko", "Prospex", 1, validation)
