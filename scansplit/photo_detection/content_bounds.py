"""Content-bounds scanning: bounding box of non-background pixels."""

import logging
from dataclasses import replace
from typing import List, Optional, Tuple

import numpy as np

from scansplit.photo_detection.regions import Region
from scansplit.preprocessing.normalizer import AnalysisImage

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_BRIGHTNESS_THRESHOLD = 230.0  # 0-255, darker pixels are content
DEFAULT_MIN_CONTENT_SIZE = 100  # source px
FALLBACK_CONFIDENCE = 0.7


def find_content_bounds(
    brightness: np.ndarray,
    threshold: float = DEFAULT_CONTENT_BRIGHTNESS_THRESHOLD,
) -> Optional[Tuple[int, int, int, int]]:
    """Scan inward from each edge for the first row/column holding content.

    A row or column holds content when any of its pixels is darker than
    ``threshold``.

    Args:
        brightness: Per-pixel brightness, shape (H, W), 0-255 scale
        threshold: Brightness cutoff below which a pixel counts as content

    Returns:
        (left, top, right, bottom) with exclusive right/bottom, or None when
        every pixel is background
    """
    content = brightness < threshold
    rows = np.flatnonzero(content.any(axis=1))
    if rows.size == 0:
        return None
    cols = np.flatnonzero(content.any(axis=0))

    return int(cols[0]), int(rows[0]), int(cols[-1]) + 1, int(rows[-1]) + 1


def _bounds_to_source(
    bounds: Tuple[int, int, int, int],
    analysis: AnalysisImage,
    image_width: int,
    image_height: int,
) -> Tuple[int, int, int, int]:
    left, top, right, bottom = bounds
    x1 = min(max(0, analysis.to_source(left)), image_width)
    y1 = min(max(0, analysis.to_source(top)), image_height)
    x2 = min(max(x1, analysis.to_source(right)), image_width)
    y2 = min(max(y1, analysis.to_source(bottom)), image_height)
    return x1, y1, x2, y2


def detect_content_bounds(
    analysis: AnalysisImage,
    image_width: int,
    image_height: int,
    threshold: float = DEFAULT_CONTENT_BRIGHTNESS_THRESHOLD,
    min_size: int = DEFAULT_MIN_CONTENT_SIZE,
    confidence: float = FALLBACK_CONFIDENCE,
) -> List[Region]:
    """Single-photo fallback: one box around all non-background content.

    Args:
        analysis: Reduced-resolution analysis image
        image_width: Source image width
        image_height: Source image height
        threshold: Brightness cutoff (0-255) for content pixels
        min_size: Minimum width and height of the box in source pixels
        confidence: Confidence assigned to the fallback region

    Returns:
        List with one region, or an empty list when no content is found or
        the content box is smaller than ``min_size``
    """
    bounds = find_content_bounds(analysis.brightness, threshold)
    if bounds is None:
        logger.debug("Content bounds: no content pixels found")
        return []

    x1, y1, x2, y2 = _bounds_to_source(bounds, analysis, image_width, image_height)
    width, height = x2 - x1, y2 - y1

    if width < min_size or height < min_size:
        logger.debug(f"Content bounds too small ({width}x{height}), rejecting")
        return []

    logger.debug(f"Content bounds: ({x1}, {y1}) {width}x{height}")
    return [Region(id="photo_0", x=x1, y=y1, width=width, height=height, confidence=confidence)]


def tighten_to_content(
    region: Region,
    analysis: AnalysisImage,
    image_width: int,
    image_height: int,
    threshold: float = DEFAULT_CONTENT_BRIGHTNESS_THRESHOLD,
) -> Optional[Region]:
    """Shrink a region to the content it contains.

    Args:
        region: Region in source coordinates
        analysis: Reduced-resolution analysis image
        image_width: Source image width
        image_height: Source image height
        threshold: Brightness cutoff (0-255) for content pixels

    Returns:
        A new, tighter region, or None when the region holds only background
    """
    ax1 = max(0, analysis.to_analysis(region.x))
    ay1 = max(0, analysis.to_analysis(region.y))
    ax2 = min(analysis.width, analysis.to_analysis(region.right))
    ay2 = min(analysis.height, analysis.to_analysis(region.bottom))

    if ax2 <= ax1 or ay2 <= ay1:
        return None

    bounds = find_content_bounds(analysis.brightness[ay1:ay2, ax1:ax2], threshold)
    if bounds is None:
        return None

    left, top, right, bottom = bounds
    x1, y1, x2, y2 = _bounds_to_source(
        (left + ax1, top + ay1, right + ax1, bottom + ay1),
        analysis,
        image_width,
        image_height,
    )

    # Never grow past the original cell
    x1, y1 = max(x1, region.x), max(y1, region.y)
    x2, y2 = min(x2, region.right), min(y2, region.bottom)
    if x2 <= x1 or y2 <= y1:
        return None

    return replace(region, x=x1, y=y1, width=x2 - x1, height=y2 - y1)
