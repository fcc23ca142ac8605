"""Vision-model photo detection."""

from scansplit.ai.claude_vision import (
    build_detection_prompt,
    detect_photos_with_vision,
    request_photo_boxes,
)
from scansplit.ai.response_parser import parse_vision_response

__all__ = [
    "build_detection_prompt",
    "detect_photos_with_vision",
    "request_photo_boxes",
    "parse_vision_response",
]
