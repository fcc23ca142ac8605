"""Grid region construction from histogram gap separators."""

import logging
from dataclasses import replace
from typing import List, Optional, Sequence

from scansplit.photo_detection.content_bounds import (
    DEFAULT_CONTENT_BRIGHTNESS_THRESHOLD,
    tighten_to_content,
)
from scansplit.photo_detection.regions import Region
from scansplit.preprocessing.normalizer import AnalysisImage

logger = logging.getLogger(__name__)

DEFAULT_MIN_REGION_SIZE = 100  # px, source coordinates
GRID_CONFIDENCE = 1.0


def _band_bounds(gaps: Sequence[int], extent: int) -> List[int]:
    inner = [g for g in gaps if 0 < g < extent]
    return sorted({0, extent, *inner})


def regions_from_gaps(
    width: int,
    height: int,
    horizontal_gaps: Sequence[int],
    vertical_gaps: Sequence[int],
    min_size: int = DEFAULT_MIN_REGION_SIZE,
    confidence: float = GRID_CONFIDENCE,
) -> List[Region]:
    """Partition the image into a grid of cells using gap separators as cut lines.

    The image edges are implicit boundaries. Every row band is crossed with
    every column band; cells narrower or shorter than ``min_size`` are skipped.

    Args:
        width: Source image width
        height: Source image height
        horizontal_gaps: y coordinates of horizontal separators
        vertical_gaps: x coordinates of vertical separators
        min_size: Minimum cell width and height in pixels
        confidence: Confidence assigned to each cell

    Returns:
        Cells in row-major order with ids ``photo_{n}``. Empty when there are
        no separators at all (no grid found).
    """
    if not horizontal_gaps and not vertical_gaps:
        return []

    y_bounds = _band_bounds(horizontal_gaps, height)
    x_bounds = _band_bounds(vertical_gaps, width)

    regions: List[Region] = []
    for yi in range(len(y_bounds) - 1):
        for xi in range(len(x_bounds) - 1):
            x = x_bounds[xi]
            y = y_bounds[yi]
            w = x_bounds[xi + 1] - x
            h = y_bounds[yi + 1] - y

            # Skip tiny regions
            if w < min_size or h < min_size:
                continue

            regions.append(Region(
                id=f"photo_{len(regions)}",
                x=x,
                y=y,
                width=w,
                height=h,
                confidence=confidence,
            ))

    logger.debug(
        f"Grid: {len(y_bounds) - 1} row band(s) x {len(x_bounds) - 1} column band(s) "
        f"-> {len(regions)} cell(s) >= {min_size}px"
    )
    return regions


def build_grid_regions(
    analysis: AnalysisImage,
    width: int,
    height: int,
    horizontal_gaps: Sequence[int],
    vertical_gaps: Sequence[int],
    min_size: int = DEFAULT_MIN_REGION_SIZE,
    content_threshold: float = DEFAULT_CONTENT_BRIGHTNESS_THRESHOLD,
    confidence: float = GRID_CONFIDENCE,
) -> List[Region]:
    """Build grid cells and tighten each one to the photo it contains.

    Cells that hold only background are dropped, as are cells that fall below
    ``min_size`` once tightened.

    Returns:
        Tightened regions, renumbered ``photo_{n}`` in row-major order
    """
    cells = regions_from_gaps(
        width, height, horizontal_gaps, vertical_gaps, min_size, confidence
    )

    regions: List[Region] = []
    for cell in cells:
        tightened: Optional[Region] = tighten_to_content(
            cell, analysis, width, height, content_threshold
        )
        if tightened is None:
            logger.debug(f"Grid cell {cell.id} holds only background, dropping")
            continue
        if tightened.width < min_size or tightened.height < min_size:
            logger.debug(
                f"Grid cell {cell.id} content too small "
                f"({tightened.width}x{tightened.height}), dropping"
            )
            continue
        regions.append(replace(tightened, id=f"photo_{len(regions)}"))

    logger.debug(f"Grid produced {len(regions)} region(s) from {len(cells)} cell(s)")
    return regions
