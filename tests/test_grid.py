"""Tests for grid region construction and content bounds."""

import numpy as np

from scansplit.photo_detection.content_bounds import (
    detect_content_bounds,
    find_content_bounds,
    tighten_to_content,
)
from scansplit.photo_detection.grid import build_grid_regions, regions_from_gaps
from scansplit.photo_detection.regions import Region
from scansplit.preprocessing.normalizer import prepare_analysis_image


def _two_photo_page() -> np.ndarray:
    image = np.ones((500, 1000, 3), dtype=np.float32)
    image[50:450, 0:400] = 0.2
    image[50:450, 600:1000] = 0.2
    return image


class TestRegionsFromGaps:
    """Tests for the raw grid partition."""

    def test_no_gaps_means_no_grid(self):
        """Test that no separators produce no cells."""
        assert regions_from_gaps(1000, 500, [], []) == []

    def test_cells_in_row_major_order(self):
        """Test that cells are numbered row by row."""
        regions = regions_from_gaps(1000, 500, [250], [500])

        assert [r.id for r in regions] == ["photo_0", "photo_1", "photo_2", "photo_3"]
        assert [(r.x, r.y, r.width, r.height) for r in regions] == [
            (0, 0, 500, 250),
            (500, 0, 500, 250),
            (0, 250, 500, 250),
            (500, 250, 500, 250),
        ]
        assert all(r.confidence == 1.0 for r in regions)

    def test_small_cells_skipped(self):
        """Test skipping cells smaller than the minimum size."""
        regions = regions_from_gaps(1000, 500, [50], [500])

        # The 50px top band is dropped, ids stay contiguous
        assert [r.id for r in regions] == ["photo_0", "photo_1"]
        assert all(r.y == 50 and r.height == 450 for r in regions)

    def test_edge_separators_do_not_add_cells(self):
        """Test that margin gaps do not create empty cells."""
        regions = regions_from_gaps(1000, 500, [], [0, 1000])

        assert len(regions) == 1
        assert (regions[0].x, regions[0].y, regions[0].width, regions[0].height) == (0, 0, 1000, 500)


class TestBuildGridRegions:
    """Tests for grid cells tightened to their content."""

    def test_two_photo_page(self):
        """Test detecting two photos separated by a white band."""
        analysis = prepare_analysis_image(_two_photo_page())

        regions = build_grid_regions(analysis, 1000, 500, [25, 475], [500])

        assert [(r.x, r.y, r.width, r.height) for r in regions] == [
            (0, 50, 400, 400),
            (600, 50, 400, 400),
        ]
        assert [r.id for r in regions] == ["photo_0", "photo_1"]

    def test_background_cells_dropped(self):
        """Test that cells holding only background are discarded."""
        analysis = prepare_analysis_image(np.ones((500, 500, 3), dtype=np.float32))

        assert build_grid_regions(analysis, 500, 500, [250], [250]) == []


class TestContentBounds:
    """Tests for the single-photo fallback."""

    def test_find_content_bounds(self):
        """Test the bounding box of non-background pixels."""
        brightness = np.full((20, 30), 255.0, dtype=np.float32)
        brightness[5:15, 8:20] = 50.0

        assert find_content_bounds(brightness) == (8, 5, 20, 15)

    def test_find_content_bounds_background_only(self):
        """Test that a blank page has no content bounds."""
        brightness = np.full((20, 30), 250.0, dtype=np.float32)

        assert find_content_bounds(brightness) is None

    def test_fill_page(self):
        """Test the single-photo fallback on a filled page."""
        image = np.ones((600, 800, 3), dtype=np.float32)
        image[10:590, 10:790] = 0.2

        regions = detect_content_bounds(prepare_analysis_image(image), 800, 600)

        assert len(regions) == 1
        region = regions[0]
        assert (region.x, region.y, region.width, region.height) == (10, 10, 780, 580)
        assert region.confidence == 0.7

    def test_small_content_rejected(self):
        """Test that a small blob is not taken as a photo."""
        image = np.ones((600, 800, 3), dtype=np.float32)
        image[100:150, 100:400] = 0.2  # only 50px tall

        assert detect_content_bounds(prepare_analysis_image(image), 800, 600) == []

    def test_tighten_never_grows(self):
        """Test that tightening stays inside the original cell."""
        image = np.ones((300, 300, 3), dtype=np.float32)
        image[0:300, 0:300] = 0.2
        analysis = prepare_analysis_image(image)
        cell = Region(id="photo_0", x=50, y=60, width=100, height=120, confidence=1.0)

        tightened = tighten_to_content(cell, analysis, 300, 300)

        assert tightened == cell
