"""Tests for the command-line interface."""

import json

import numpy as np
from click.testing import CliRunner
from PIL import Image

from scansplit.cli import main


def _write_two_photo_page(path):
    image = np.full((500, 1000, 3), 255, dtype=np.uint8)
    image[50:450, 0:400] = 51
    image[50:450, 600:1000] = 51
    Image.fromarray(image).save(path)
    return path


class TestDetectCommand:
    """Tests for `scansplit detect`."""

    def test_prints_json_result(self, tmp_path):
        """Test that detect prints the result as JSON."""
        page = _write_two_photo_page(tmp_path / "page.png")

        result = CliRunner().invoke(main, ["detect", str(page), "--no-previews"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["success"] is True
        assert data["originalWidth"] == 1000
        assert len(data["photos"]) == 2
        assert all("preview" not in photo for photo in data["photos"])

    def test_writes_output_file_and_overlay(self, tmp_path):
        """Test writing the result file and the debug overlay."""
        page = _write_two_photo_page(tmp_path / "page.png")
        output_file = tmp_path / "result.json"
        debug_dir = tmp_path / "debug"

        result = CliRunner().invoke(
            main,
            ["detect", str(page), "--output", str(output_file), "--debug", str(debug_dir)],
        )

        assert result.exit_code == 0, result.output
        data = json.loads(output_file.read_text())
        assert len(data["photos"]) == 2
        assert data["photos"][0]["preview"].startswith("data:image/jpeg;base64,")
        assert (debug_dir / "page_regions.jpg").exists()

    def test_invalid_image_exits_with_error(self, tmp_path):
        """Test a non-zero exit for bytes that are not an image."""
        page = tmp_path / "broken.png"
        page.write_bytes(b"not a png")

        result = CliRunner().invoke(main, ["detect", str(page)])

        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["success"] is False
        assert data["photos"] == []


class TestExtractCommand:
    """Tests for `scansplit extract`."""

    def test_extracts_detected_photos(self, tmp_path):
        """Test that extract saves one JPEG per detected photo."""
        page = _write_two_photo_page(tmp_path / "page.png")
        output_dir = tmp_path / "out"

        result = CliRunner().invoke(main, ["extract", str(page), "--output", str(output_dir)])

        assert result.exit_code == 0, result.output
        assert sorted(p.name for p in output_dir.iterdir()) == [
            "page_Photo01.jpg",
            "page_Photo02.jpg",
        ]
        with Image.open(output_dir / "page_Photo01.jpg") as photo:
            assert photo.size == (400, 400)

    def test_extracts_regions_from_file(self, tmp_path):
        """Test extracting the regions listed in a JSON file."""
        page = _write_two_photo_page(tmp_path / "page.png")
        regions_file = tmp_path / "regions.json"
        regions_file.write_text(json.dumps({
            "success": True,
            "photos": [{"id": "photo_0", "x": 600, "y": 50, "width": 400, "height": 400}],
        }))
        output_dir = tmp_path / "out"

        result = CliRunner().invoke(
            main,
            ["extract", str(page), "--regions", str(regions_file), "--enhance",
             "--output", str(output_dir)],
        )

        assert result.exit_code == 0, result.output
        with Image.open(output_dir / "page_Photo01.jpg") as photo:
            assert photo.size == (800, 800)

    def test_bad_regions_file(self, tmp_path):
        """Test rejecting a regions file that is not a list of boxes."""
        page = _write_two_photo_page(tmp_path / "page.png")
        regions_file = tmp_path / "regions.json"
        regions_file.write_text('{"photos": "nope"}')

        result = CliRunner().invoke(
            main, ["extract", str(page), "--regions", str(regions_file)]
        )

        assert result.exit_code == 1

    def test_unsupported_input(self, tmp_path):
        """Test rejecting an input with an unknown extension."""
        notes = tmp_path / "notes.txt"
        notes.write_text("hello")

        result = CliRunner().invoke(
            main, ["extract", str(notes), "--output", str(tmp_path / "out")]
        )

        assert result.exit_code == 1
