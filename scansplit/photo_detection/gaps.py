"""Histogram gap analysis: find near-white bands separating photos on a scan."""

import logging
from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from scansplit.preprocessing.normalizer import AnalysisImage

logger = logging.getLogger(__name__)

DEFAULT_GAP_BRIGHTNESS_THRESHOLD = 235.0  # 0-255, rows/cols brighter than this are background
DEFAULT_MIN_GAP_RATIO = 0.02  # fraction of the analysis dimension


@dataclass
class GapAnalysis:
    """Separator lines found by the brightness histogram pass.

    Coordinates are in source-image pixels, sorted ascending.
    """

    horizontal_gaps: List[int]  # y positions, split the image into row bands
    vertical_gaps: List[int]  # x positions, split the image into column bands
    row_profile: np.ndarray  # mean brightness per analysis row
    col_profile: np.ndarray  # mean brightness per analysis column

    @property
    def has_gaps(self) -> bool:
        return bool(self.horizontal_gaps or self.vertical_gaps)


def compute_brightness_profiles(brightness: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Compute mean brightness per row and per column.

    Args:
        brightness: Per-pixel brightness, shape (H, W), 0-255 scale

    Returns:
        Tuple of (row profile with H samples, column profile with W samples)
    """
    row_profile = brightness.mean(axis=1)
    col_profile = brightness.mean(axis=0)
    return row_profile, col_profile


def min_gap_size(length: int, min_gap_ratio: float = DEFAULT_MIN_GAP_RATIO) -> int:
    """Minimum run length (in samples) for a bright band to count as a gap."""
    return max(1, int(length * min_gap_ratio))


def find_gap_runs(
    profile: np.ndarray,
    threshold: float = DEFAULT_GAP_BRIGHTNESS_THRESHOLD,
    min_size: int = 1,
) -> List[Tuple[int, int]]:
    """Find runs of consecutive samples brighter than ``threshold``.

    Args:
        profile: 1-D brightness profile
        threshold: Samples strictly above this value are background
        min_size: Minimum run length to report

    Returns:
        List of (start, end) index pairs, ``end`` exclusive, in profile order
    """
    runs: List[Tuple[int, int]] = []
    run_start = -1

    for i, value in enumerate(profile):
        if value > threshold:
            if run_start == -1:
                run_start = i
        else:
            if run_start != -1 and i - run_start >= min_size:
                runs.append((run_start, i))
            run_start = -1

    # A band touching the far edge is still a band
    if run_start != -1 and len(profile) - run_start >= min_size:
        runs.append((run_start, len(profile)))

    return runs


def _runs_to_separators(runs: List[Tuple[int, int]], analysis: AnalysisImage) -> List[int]:
    return sorted({analysis.to_source((start + end) / 2.0) for start, end in runs})


def analyze_gaps(
    analysis: AnalysisImage,
    threshold: float = DEFAULT_GAP_BRIGHTNESS_THRESHOLD,
    min_gap_ratio: float = DEFAULT_MIN_GAP_RATIO,
) -> GapAnalysis:
    """Locate bright separator bands in the row and column brightness profiles.

    A run of rows (or columns) whose mean brightness stays above ``threshold``
    for at least ``min_gap_ratio`` of the analysis height (or width) is a gap.
    Its midpoint, converted back to source coordinates, becomes a cut line.

    Args:
        analysis: Reduced-resolution analysis image
        threshold: Brightness cutoff (0-255) for background rows/columns
        min_gap_ratio: Minimum gap length as a fraction of the axis length

    Returns:
        GapAnalysis with horizontal and vertical separator coordinates
    """
    row_profile, col_profile = compute_brightness_profiles(analysis.brightness)

    row_runs = find_gap_runs(
        row_profile, threshold, min_gap_size(analysis.height, min_gap_ratio)
    )
    col_runs = find_gap_runs(
        col_profile, threshold, min_gap_size(analysis.width, min_gap_ratio)
    )

    result = GapAnalysis(
        horizontal_gaps=_runs_to_separators(row_runs, analysis),
        vertical_gaps=_runs_to_separators(col_runs, analysis),
        row_profile=row_profile,
        col_profile=col_profile,
    )

    logger.debug(
        f"Histogram gaps: horizontal (row bands): {result.horizontal_gaps}, "
        f"vertical (column bands): {result.vertical_gaps}"
    )
    return result
