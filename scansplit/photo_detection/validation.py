"""Region validation, clamping, overlap merging and padding."""

import logging
from dataclasses import replace
from typing import List, Optional, Sequence

from scansplit.photo_detection.regions import Region

logger = logging.getLogger(__name__)

DEFAULT_MIN_REGION_SIZE = 100  # px
DEFAULT_VISION_MIN_REGION_SIZE = 50  # px, first pass for vision-model regions
DEFAULT_MAX_AREA_FRACTION = 0.98  # larger regions are almost certainly the whole frame
DEFAULT_MERGE_IOU_THRESHOLD = 0.5
DEFAULT_PADDING = 0.01  # fraction of image width/height


def is_valid_region(
    region: Region,
    image_width: int,
    image_height: int,
    min_size: int = DEFAULT_MIN_REGION_SIZE,
    max_area_fraction: float = DEFAULT_MAX_AREA_FRACTION,
) -> bool:
    """Check that a region is a plausible photo: not tiny, not the whole frame.

    Args:
        region: Candidate region
        image_width: Source image width
        image_height: Source image height
        min_size: Minimum width and height in pixels
        max_area_fraction: Maximum region area as a fraction of the image area

    Returns:
        True if the region should be kept
    """
    if not (0 <= region.x < image_width and 0 <= region.y < image_height):
        return False

    if region.width < min_size or region.height < min_size:
        return False

    coverage = region.area / float(image_width * image_height)
    if coverage > max_area_fraction:
        return False

    return True


def filter_valid_regions(
    regions: Sequence[Region],
    image_width: int,
    image_height: int,
    min_size: int = DEFAULT_MIN_REGION_SIZE,
    max_area_fraction: float = DEFAULT_MAX_AREA_FRACTION,
) -> List[Region]:
    """Keep only regions passing :func:`is_valid_region`, preserving order."""
    kept: List[Region] = []
    for region in regions:
        if is_valid_region(region, image_width, image_height, min_size, max_area_fraction):
            kept.append(region)
        else:
            logger.debug(
                f"Rejected {region.id}: ({region.x}, {region.y}) "
                f"{region.width}x{region.height} (min_size={min_size}, "
                f"max_area_fraction={max_area_fraction})"
            )
    return kept


def compute_iou(a: Region, b: Region) -> float:
    """Compute Intersection over Union (IoU) between two regions.

    Returns:
        IoU value between 0.0 and 1.0
    """
    x1 = max(a.x, b.x)
    y1 = max(a.y, b.y)
    x2 = min(a.right, b.right)
    y2 = min(a.bottom, b.bottom)

    if x2 <= x1 or y2 <= y1:
        return 0.0  # No overlap

    intersection = (x2 - x1) * (y2 - y1)
    union = a.area + b.area - intersection

    return intersection / union if union > 0 else 0.0


def union_region(a: Region, b: Region) -> Region:
    """Bounding box of both regions, keeping ``a``'s id and the higher confidence."""
    x1 = min(a.x, b.x)
    y1 = min(a.y, b.y)
    x2 = max(a.right, b.right)
    y2 = max(a.bottom, b.bottom)
    return replace(
        a,
        x=x1,
        y=y1,
        width=x2 - x1,
        height=y2 - y1,
        confidence=max(a.confidence, b.confidence),
        preview=None,
    )


def merge_overlapping_regions(
    regions: Sequence[Region],
    iou_threshold: float = DEFAULT_MERGE_IOU_THRESHOLD,
) -> List[Region]:
    """Collapse heavily overlapping regions into their union.

    Any pair with IoU above ``iou_threshold`` is replaced by the bounding box
    of both; this repeats until no pair exceeds the threshold. Each merge
    removes one region, so the loop always terminates.

    Args:
        regions: Candidate regions in detection order
        iou_threshold: IoU above which two regions are the same photo

    Returns:
        Merged regions; a merged region takes the position of its earlier member
    """
    merged = list(regions)
    if len(merged) <= 1:
        return merged

    changed = True
    while changed:
        changed = False
        for i in range(len(merged)):
            for j in range(i + 1, len(merged)):
                iou = compute_iou(merged[i], merged[j])
                if iou > iou_threshold:
                    logger.debug(
                        f"Merging {merged[j].id} into {merged[i].id} (IoU={iou:.2f})"
                    )
                    merged[i] = union_region(merged[i], merged[j])
                    del merged[j]
                    changed = True
                    break
            if changed:
                break

    if len(merged) != len(regions):
        logger.debug(f"Overlap merge: {len(regions)} -> {len(merged)} regions")
    return merged


def add_padding(
    region: Region,
    image_width: int,
    image_height: int,
    padding: float = DEFAULT_PADDING,
) -> Region:
    """Expand a region by a margin and clamp it to the image.

    Args:
        region: Region to pad
        image_width: Source image width
        image_height: Source image height
        padding: Margin per side as a fraction of the image width (horizontal)
            and height (vertical)

    Returns:
        New region with ``0 <= x``, ``0 <= y``, ``x + width <= image_width``
        and ``y + height <= image_height``
    """
    pad_x = int(round(image_width * padding))
    pad_y = int(round(image_height * padding))

    x1 = min(max(0, region.x - pad_x), image_width)
    y1 = min(max(0, region.y - pad_y), image_height)
    x2 = min(image_width, max(x1, region.right + pad_x))
    y2 = min(image_height, max(y1, region.bottom + pad_y))

    return replace(region, x=x1, y=y1, width=x2 - x1, height=y2 - y1)


def clamp_to_image(region: Region, image_width: int, image_height: int) -> Optional[Region]:
    """Clip a region to ``[0, image_width] x [0, image_height]``.

    Returns:
        The clipped region, or None when nothing of it lies inside the image
    """
    x1 = max(0, region.x)
    y1 = max(0, region.y)
    x2 = min(image_width, region.right)
    y2 = min(image_height, region.bottom)
    if x2 <= x1 or y2 <= y1:
        return None
    if (x1, y1, x2, y2) == region.bbox:
        return region
    return replace(region, x=x1, y=y1, width=x2 - x1, height=y2 - y1)
