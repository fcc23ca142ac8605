"""Photo detection and splitting module."""

from scansplit.photo_detection.regions import DetectionResult, Region
from scansplit.photo_detection.gaps import GapAnalysis, analyze_gaps
from scansplit.photo_detection.grid import build_grid_regions, regions_from_gaps
from scansplit.photo_detection.content_bounds import detect_content_bounds
from scansplit.photo_detection.validation import (
    add_padding,
    compute_iou,
    filter_valid_regions,
    is_valid_region,
    merge_overlapping_regions,
)
from scansplit.photo_detection.splitter import (
    ExtractionResult,
    attach_previews,
    extract_photos,
)

__all__ = [
    "DetectionResult",
    "Region",
    "GapAnalysis",
    "analyze_gaps",
    "build_grid_regions",
    "regions_from_gaps",
    "detect_content_bounds",
    "add_padding",
    "compute_iou",
    "filter_valid_regions",
    "is_valid_region",
    "merge_overlapping_regions",
    "ExtractionResult",
    "attach_previews",
    "extract_photos",
]
