"""Tests for vision-model response parsing."""

import json

from scansplit.ai.claude_vision import build_detection_prompt
from scansplit.ai.response_parser import parse_vision_response


class TestParseVisionResponse:
    """Tests for extracting boxes from untrusted model text."""

    def test_bare_array(self):
        """Test parsing a reply that is just a JSON array."""
        text = '[{"x": 50, "y": 30, "width": 400, "height": 300}]'

        regions = parse_vision_response(text)

        assert len(regions) == 1
        region = regions[0]
        assert region.id == "ai_photo_0"
        assert (region.x, region.y, region.width, region.height) == (50, 30, 400, 300)
        assert region.confidence == 0.9

    def test_markdown_fenced_array(self):
        """Test parsing an array wrapped in a markdown code block."""
        text = (
            "Here are the photos I found:\n"
            "```json\n"
            '[{"x": 0, "y": 0, "width": 100, "height": 100},\n'
            ' {"x": 200, "y": 0, "width": 100, "height": 100}]\n'
            "```"
        )

        regions = parse_vision_response(text)

        assert [r.id for r in regions] == ["ai_photo_0", "ai_photo_1"]
        assert regions[1].x == 200

    def test_array_inside_prose(self):
        """Test finding an array surrounded by prose."""
        text = 'Sure. [{"x": 1, "y": 2, "width": 30, "height": 40}] Let me know!'

        regions = parse_vision_response(text)

        assert len(regions) == 1
        assert regions[0].height == 40

    def test_skips_brackets_that_are_not_json(self):
        """Test skipping bracketed text before the real array."""
        text = '[see below] [{"x": 0, "y": 0, "width": 10, "height": 10}]'

        assert len(parse_vision_response(text)) == 1

    def test_malformed_text(self):
        """Test replies with no usable array."""
        assert parse_vision_response("Sure! Here are the boxes: not json") == []
        assert parse_vision_response('{"x": 1, "y": 2, "width": 3, "height": 4}') == []
        assert parse_vision_response("[{broken") == []

    def test_empty_input(self):
        """Test empty and missing replies."""
        assert parse_vision_response("") == []
        assert parse_vision_response(None) == []
        assert parse_vision_response("[]") == []

    def test_invalid_items_dropped(self):
        """Test dropping items with missing or bad fields."""
        text = json.dumps([
            {"x": 0, "y": 0, "width": 100},  # missing height
            {"x": "10", "y": 0, "width": 100, "height": 100},  # string coordinate
            {"x": True, "y": 0, "width": 100, "height": 100},  # boolean
            {"x": 0, "y": 0, "width": -5, "height": 100},  # negative width
            {"x": 0, "y": 0, "width": 0, "height": 100},  # zero width
            "not an object",
            {"x": 5, "y": 6, "width": 70, "height": 80},
        ])

        regions = parse_vision_response(text)

        assert len(regions) == 1
        assert regions[0].id == "ai_photo_0"
        assert (regions[0].x, regions[0].y) == (5, 6)

    def test_non_finite_values_dropped(self):
        """Test dropping items with NaN coordinates."""
        text = '[{"x": NaN, "y": 0, "width": 100, "height": 100}]'

        assert parse_vision_response(text) == []

    def test_huge_integer_drops_only_that_item(self):
        """Test that an integer too large for a float drops just its own item."""
        text = (
            '[{"x": 1' + "0" * 400 + ', "y": 0, "width": 100, "height": 100},'
            ' {"x": 5, "y": 5, "width": 200, "height": 200}]'
        )

        regions = parse_vision_response(text)

        assert len(regions) == 1
        assert (regions[0].x, regions[0].width) == (5, 200)

    def test_float_coordinates_rounded(self):
        """Test rounding fractional coordinates."""
        text = '[{"x": 10.6, "y": 0.4, "width": 99.5, "height": 120.2}]'

        region = parse_vision_response(text)[0]

        assert (region.x, region.y, region.width, region.height) == (11, 0, 100, 120)

    def test_confidence(self):
        """Test reading confidence and defaulting out-of-range values."""
        text = json.dumps([
            {"x": 0, "y": 0, "width": 100, "height": 100, "confidence": 0.75},
            {"x": 0, "y": 0, "width": 100, "height": 100, "confidence": 5},
        ])

        regions = parse_vision_response(text)

        assert regions[0].confidence == 0.75
        assert regions[1].confidence == 0.9

    def test_region_cap(self):
        """Test the limit on regions per reply."""
        items = [{"x": i, "y": 0, "width": 100, "height": 100} for i in range(25)]

        regions = parse_vision_response(json.dumps(items))

        assert len(regions) == 20
        assert regions[-1].id == "ai_photo_19"
        assert len(parse_vision_response(json.dumps(items), max_regions=3)) == 3


class TestDetectionPrompt:
    """Tests for the prompt sent with the image."""

    def test_prompt_embeds_dimensions(self):
        """Test that the prompt names the image size."""
        prompt = build_detection_prompt(1024, 768)

        assert "1024x768" in prompt
        assert "JSON array" in prompt
