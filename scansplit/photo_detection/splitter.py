"""Photo splitting: preview crops and full-resolution extraction of detected regions."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from scansplit.color.enhance import enhance_extracted_photo
from scansplit.photo_detection.regions import Region
from scansplit.utils.imaging import encode_jpeg, jpeg_data_url

logger = logging.getLogger(__name__)

DEFAULT_PREVIEW_SIZE = 200  # px, longest side of the preview box
DEFAULT_PREVIEW_QUALITY = 60
DEFAULT_MAX_PREVIEW_WORKERS = 20
DEFAULT_EXTRACT_MIN_SIZE = 50  # px


@dataclass
class ExtractionResult:
    """Photos cropped out of a page image."""

    photos: List[np.ndarray] = field(default_factory=list)  # float32 RGB [0, 1]
    regions: List[Region] = field(default_factory=list)  # region used for each photo
    errors: List[str] = field(default_factory=list)


def clamp_crop(
    region: Region,
    image_width: int,
    image_height: int,
) -> Tuple[int, int, int, int]:
    """Clamp a region to the image.

    Returns:
        (left, top, width, height); width or height may be <= 0 when the
        region lies outside the image
    """
    left = max(0, min(region.x, image_width - 1))
    top = max(0, min(region.y, image_height - 1))
    width = min(region.right, image_width) - left
    height = min(region.bottom, image_height) - top
    return left, top, width, height


def crop_region(image: np.ndarray, region: Region) -> np.ndarray:
    """Crop a region out of the image, clamped to the image bounds.

    Raises:
        ValueError: If nothing of the region lies inside the image
    """
    h, w = image.shape[:2]
    left, top, width, height = clamp_crop(region, w, h)
    if width <= 0 or height <= 0:
        raise ValueError(f"Region {region.id} lies outside the {w}x{h} image")
    return image[top:top + height, left:left + width]


def make_preview(
    image: np.ndarray,
    region: Region,
    size: int = DEFAULT_PREVIEW_SIZE,
    quality: int = DEFAULT_PREVIEW_QUALITY,
) -> str:
    """Encode a small JPEG preview of one region as a data URL.

    The crop is shrunk to fit inside a ``size`` x ``size`` box.
    """
    crop = crop_region(image, region)
    jpeg_bytes = encode_jpeg(crop, quality=quality, max_size=(size, size))
    return jpeg_data_url(jpeg_bytes)


def attach_previews(
    image: np.ndarray,
    regions: Sequence[Region],
    size: int = DEFAULT_PREVIEW_SIZE,
    quality: int = DEFAULT_PREVIEW_QUALITY,
    max_workers: int = DEFAULT_MAX_PREVIEW_WORKERS,
) -> List[Region]:
    """Crop and encode a preview for every region concurrently.

    A region whose crop fails is returned without a preview; the others are
    unaffected.

    Args:
        image: Full-resolution source image, float32 RGB [0, 1]
        regions: Final regions in output order
        size: Preview bounding box in pixels
        quality: JPEG quality for previews
        max_workers: Upper bound on concurrent crop workers

    Returns:
        New regions, same order, with ``preview`` set where cropping succeeded
    """
    if not regions:
        return []

    def _preview_one(region: Region) -> Region:
        try:
            return replace(region, preview=make_preview(image, region, size, quality))
        except Exception as e:
            logger.warning(f"Preview crop failed for {region.id}: {e}")
            return region

    workers = max(1, min(len(regions), max_workers))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        with_previews = list(executor.map(_preview_one, regions))

    logger.debug(
        f"Generated {sum(r.preview is not None for r in with_previews)}/{len(regions)} previews"
    )
    return with_previews


def extract_photos(
    image: np.ndarray,
    regions: Sequence[Region],
    enhance: bool = False,
    min_size: int = DEFAULT_EXTRACT_MIN_SIZE,
    enhance_options: Optional[Dict[str, float]] = None,
) -> ExtractionResult:
    """Extract individual photos from the page based on detected regions.

    Args:
        image: Full-resolution page image, float32 RGB [0, 1]
        regions: Regions to extract
        enhance: Upscale and enhance each extracted photo
        min_size: Minimum clamped crop width and height in pixels
        enhance_options: Keyword overrides for enhance_extracted_photo

    Returns:
        ExtractionResult with the photos, the clamped regions and per-photo errors
    """
    h, w = image.shape[:2]
    result = ExtractionResult()

    for i, region in enumerate(regions, 1):
        try:
            left, top, width, height = clamp_crop(region, w, h)
            if width < min_size or height < min_size:
                result.errors.append(f"Photo {i}: Too small after cropping")
                continue

            clamped = replace(
                region, x=left, y=top, width=width, height=height, preview=None
            )
            photo = image[top:top + height, left:left + width].copy()

            if enhance:
                photo, info = enhance_extracted_photo(photo, **(enhance_options or {}))
                logger.debug(f"Photo {i} enhancement: {info}")

            result.photos.append(photo)
            result.regions.append(clamped)
            logger.debug(f"Extracted photo {i}: shape {photo.shape}")

        except Exception as e:
            logger.warning(f"Failed to extract photo {i}: {e}")
            result.errors.append(f"Photo {i}: {e}")

    logger.info(f"Successfully extracted {len(result.photos)}/{len(regions)} photos")

    return result
