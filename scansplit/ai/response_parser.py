"""Parse photo bounding boxes out of free-form vision-model text."""

import json
import logging
import math
from typing import Any, List, Optional

from scansplit.photo_detection.regions import Region

logger = logging.getLogger(__name__)

DEFAULT_MAX_VISION_REGIONS = 20
DEFAULT_VISION_CONFIDENCE = 0.9
REQUIRED_FIELDS = ("x", "y", "width", "height")


def _strip_code_fences(text: str) -> str:
    """Return the body of the first markdown code block, or the text unchanged."""
    if "```json" in text:
        start = text.find("```json") + 7
        end = text.find("```", start)
        return text[start:end if end != -1 else None].strip()
    if "```" in text:
        start = text.find("```") + 3
        end = text.find("```", start)
        return text[start:end if end != -1 else None].strip()
    return text


def _find_json_array(text: str) -> Optional[List[Any]]:
    """Decode the first substring of ``text`` that is a well-formed JSON array."""
    decoder = json.JSONDecoder()
    start = text.find("[")
    while start != -1:
        try:
            value, _end = decoder.raw_decode(text, start)
        except ValueError:
            value = None
        if isinstance(value, list):
            return value
        start = text.find("[", start + 1)
    return None


def _as_number(value: Any) -> Optional[float]:
    # bool is an int subclass; "true" is not a coordinate
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except OverflowError:
        # JSON integers are unbounded
        return None
    if not math.isfinite(number):
        return None
    return number


def _item_to_region(item: Any, index: int) -> Optional[Region]:
    if not isinstance(item, dict):
        return None

    values = {}
    for name in REQUIRED_FIELDS:
        number = _as_number(item.get(name))
        if number is None:
            return None
        values[name] = number

    width = int(round(values["width"]))
    height = int(round(values["height"]))
    if width <= 0 or height <= 0:
        return None

    confidence = _as_number(item.get("confidence"))
    if confidence is None or not 0.0 <= confidence <= 1.0:
        confidence = DEFAULT_VISION_CONFIDENCE

    return Region(
        id=f"ai_photo_{index}",
        x=int(round(values["x"])),
        y=int(round(values["y"])),
        width=width,
        height=height,
        confidence=confidence,
    )


def parse_vision_response(
    response_text: Optional[str],
    max_regions: int = DEFAULT_MAX_VISION_REGIONS,
) -> List[Region]:
    """Extract candidate regions from a vision model's reply.

    The model is asked for a bare JSON array of ``{x, y, width, height}``
    objects, but its reply is untrusted: surrounding prose and markdown fences
    are tolerated, items missing a numeric field or with a non-positive
    width/height are dropped, and at most ``max_regions`` regions are kept.

    Args:
        response_text: Raw text returned by the model
        max_regions: Cap on the number of regions returned

    Returns:
        Regions with ids ``ai_photo_{n}``; an empty list when nothing usable
        was found. Never raises.
    """
    if not response_text or not isinstance(response_text, str):
        return []

    try:
        items = _find_json_array(_strip_code_fences(response_text))
        if items is None:
            # Fences may wrap only part of the answer; retry on the full text
            items = _find_json_array(response_text)
        if items is None:
            logger.debug("Vision response contains no JSON array")
            return []

        regions: List[Region] = []
        dropped = 0
        for item in items:
            if len(regions) >= max_regions:
                logger.debug(f"Vision response capped at {max_regions} regions")
                break
            region = _item_to_region(item, len(regions))
            if region is None:
                dropped += 1
                continue
            regions.append(region)

        if dropped:
            logger.debug(f"Dropped {dropped} malformed item(s) from vision response")
        return regions

    except Exception as e:
        logger.warning(f"Failed to parse vision response: {e}")
        return []
