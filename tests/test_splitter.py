"""Tests for preview cropping, photo extraction and enhancement."""

import base64
import io

import numpy as np
import pytest
from PIL import Image

from scansplit.color.enhance import enhance_extracted_photo
from scansplit.photo_detection import splitter
from scansplit.photo_detection.regions import Region
from scansplit.photo_detection.splitter import (
    attach_previews,
    clamp_crop,
    crop_region,
    extract_photos,
    make_preview,
)


def _region(x, y, w, h, region_id="photo_0"):
    return Region(id=region_id, x=x, y=y, width=w, height=h, confidence=1.0)


def _decode_data_url(data_url: str) -> Image.Image:
    prefix = "data:image/jpeg;base64,"
    assert data_url.startswith(prefix)
    return Image.open(io.BytesIO(base64.b64decode(data_url[len(prefix):])))


class TestPreviews:
    """Tests for preview generation."""

    def test_preview_fits_box(self):
        """Test that previews fit the 400px box."""
        image = np.full((500, 1000, 3), 0.5, dtype=np.float32)

        preview = _decode_data_url(make_preview(image, _region(0, 50, 400, 300)))

        assert preview.format == "JPEG"
        assert preview.size == (200, 150)

    def test_small_crop_not_upscaled(self):
        """Test that small crops keep their size."""
        image = np.full((500, 1000, 3), 0.5, dtype=np.float32)

        preview = _decode_data_url(make_preview(image, _region(10, 10, 120, 80)))

        assert preview.size == (120, 80)

    def test_attach_previews_keeps_order(self):
        """Test that previews are attached in region order."""
        image = np.full((500, 1000, 3), 0.5, dtype=np.float32)
        regions = [_region(0, 0, 300, 300, "photo_0"), _region(500, 0, 300, 300, "photo_1")]

        with_previews = attach_previews(image, regions)

        assert [r.id for r in with_previews] == ["photo_0", "photo_1"]
        assert all(r.preview is not None for r in with_previews)
        assert all(r.preview is None for r in regions)

    def test_failed_preview_leaves_region_without_preview(self, monkeypatch):
        """Test that one failed preview does not affect the others."""
        image = np.full((500, 1000, 3), 0.5, dtype=np.float32)
        regions = [_region(0, 0, 300, 300, "photo_0"), _region(500, 0, 300, 300, "photo_1")]
        original = splitter.make_preview

        def flaky_preview(img, region, size, quality):
            if region.id == "photo_1":
                raise RuntimeError("encoder exploded")
            return original(img, region, size, quality)

        monkeypatch.setattr(splitter, "make_preview", flaky_preview)

        with_previews = attach_previews(image, regions)

        assert with_previews[0].preview is not None
        assert with_previews[1].preview is None
        assert with_previews[1].id == "photo_1"


class TestCropping:
    """Tests for clamped cropping."""

    def test_clamp_crop(self):
        """Test clamping a crop box to the image."""
        assert clamp_crop(_region(250, 150, 200, 200), 300, 200) == (250, 150, 50, 50)
        assert clamp_crop(_region(-20, -10, 100, 100), 300, 200) == (0, 0, 80, 90)

    def test_crop_outside_image(self):
        """Test the error for a crop box outside the image."""
        image = np.zeros((200, 300, 3), dtype=np.float32)

        with pytest.raises(ValueError):
            crop_region(image, _region(-200, 0, 100, 100))


class TestExtraction:
    """Tests for full-resolution extraction."""

    def test_extract_clamps_to_image(self):
        """Test extracting a region that overhangs the image."""
        image = np.full((200, 300, 3), 0.4, dtype=np.float32)

        result = extract_photos(image, [_region(250, 150, 200, 200)])

        assert result.errors == []
        assert len(result.photos) == 1
        assert result.photos[0].shape == (50, 50, 3)
        clamped = result.regions[0]
        assert (clamped.x, clamped.y, clamped.width, clamped.height) == (250, 150, 50, 50)

    def test_too_small_after_cropping(self):
        """Test skipping regions left too small after clamping."""
        image = np.full((200, 300, 3), 0.4, dtype=np.float32)
        regions = [_region(280, 10, 100, 100), _region(0, 0, 100, 100)]

        result = extract_photos(image, regions)

        assert result.errors == ["Photo 1: Too small after cropping"]
        assert len(result.photos) == 1
        assert result.photos[0].shape == (100, 100, 3)

    def test_extract_with_enhancement(self):
        """Test extraction with contrast enhancement on."""
        image = np.random.default_rng(0).random((200, 300, 3)).astype(np.float32)

        result = extract_photos(image, [_region(0, 0, 100, 80)], enhance=True)

        assert result.photos[0].shape == (160, 200, 3)
        assert result.photos[0].dtype == np.float32

    def test_extracted_photo_is_a_copy(self):
        """Test that extracted photos do not share memory with the page."""
        image = np.full((200, 300, 3), 0.4, dtype=np.float32)

        result = extract_photos(image, [_region(0, 0, 100, 100)])
        result.photos[0][:] = 0.0

        assert image[0, 0, 0] == pytest.approx(0.4)


class TestEnhancement:
    """Tests for extracted-photo enhancement."""

    def test_enhance_output_range(self):
        """Test that enhancement keeps values in [0, 1]."""
        photo = np.random.default_rng(1).uniform(0.3, 0.6, (60, 80, 3)).astype(np.float32)

        enhanced, info = enhance_extracted_photo(photo)

        assert enhanced.shape == (120, 160, 3)
        assert enhanced.min() >= 0.0 and enhanced.max() <= 1.0
        assert info['upscale'] == 2.0
        # Contrast stretch widens a compressed range
        assert enhanced.max() - enhanced.min() > 0.3

    def test_no_upscale(self):
        """Test that an upscale factor of 1 keeps the photo size."""
        photo = np.full((40, 50, 3), 0.5, dtype=np.float32)

        enhanced, _ = enhance_extracted_photo(photo, upscale=1.0)

        assert enhanced.shape == (40, 50, 3)

    def test_invalid_shape(self):
        """Test that a non-RGB array is returned untouched with an error flag."""
        photo = np.zeros((40, 50), dtype=np.float32)

        enhanced, info = enhance_extracted_photo(photo)

        assert info == {'error': 'invalid_shape'}
        assert enhanced is photo
