"""Photo boundary detection using the Claude vision API."""

import base64
import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, List, Optional

from anthropic import Anthropic

from scansplit.ai.response_parser import DEFAULT_MAX_VISION_REGIONS, parse_vision_response
from scansplit.photo_detection.regions import Region
from scansplit.utils.secrets import load_secrets

logger = logging.getLogger(__name__)

DEFAULT_VISION_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_VISION_TIMEOUT = 60.0  # seconds, whole request

SUPPORTED_MEDIA_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp")

# (image_bytes, media_type, width, height) -> raw model text
VisionRequester = Callable[[bytes, str, int, int], str]


def build_detection_prompt(width: int, height: int) -> str:
    """Instruction text sent with the image; embeds the known pixel dimensions."""
    return (
        "Analyze this image which contains one or more printed photographs that have "
        "been photographed or scanned.\n\n"
        "Your task is to identify the boundaries of each individual printed photo in "
        "the image.\n\n"
        "Return ONLY a JSON array with the bounding boxes of each photo found. Each "
        "object should have:\n"
        "- x: left position in pixels (from 0)\n"
        "- y: top position in pixels (from 0)\n"
        "- width: width in pixels\n"
        "- height: height in pixels\n\n"
        f"The image dimensions are {width}x{height} pixels.\n\n"
        "Example response:\n"
        '[{"x": 50, "y": 30, "width": 400, "height": 300}, '
        '{"x": 500, "y": 30, "width": 400, "height": 300}]\n\n'
        "Important:\n"
        "- Detect ALL individual photos, even if they overlap slightly\n"
        "- Don't include the background/gaps between photos\n"
        "- Be precise with boundaries\n"
        "- If there's only one photo that fills most of the frame, return a single "
        "bounding box\n"
        "- Return empty array [] if no distinct photos are detected"
    )


def request_photo_boxes(
    image_bytes: bytes,
    media_type: str,
    width: int,
    height: int,
    api_key: Optional[str] = None,
    model: str = DEFAULT_VISION_MODEL,
    timeout: float = DEFAULT_VISION_TIMEOUT,
) -> str:
    """Send the image to Claude and return its raw text reply.

    A single attempt is made (no SDK retries); the deterministic histogram path
    is the fallback for any failure.

    Args:
        image_bytes: Encoded image (JPEG, PNG, GIF or WEBP)
        media_type: MIME type of ``image_bytes``
        width: Image width in pixels, embedded in the prompt
        height: Image height in pixels, embedded in the prompt
        api_key: Anthropic API key. If None, resolved via load_secrets().
        model: Claude model to use
        timeout: Request timeout in seconds

    Returns:
        The model's text reply, unparsed

    Raises:
        ValueError: If no API key is available or the media type is unsupported
        anthropic.APIError: On API, network or timeout failures
    """
    if api_key is None:
        api_key = load_secrets().anthropic_api_key
    if not api_key:
        raise ValueError(
            "Anthropic API key required. Set ANTHROPIC_API_KEY environment variable "
            "or add it to secrets.json."
        )
    if media_type not in SUPPORTED_MEDIA_TYPES:
        raise ValueError(f"Unsupported media type for vision request: {media_type}")

    client = Anthropic(api_key=api_key, timeout=timeout, max_retries=0)

    logger.debug(f"Calling Claude API with model {model} ({width}x{height}, {media_type})")
    response = client.messages.create(
        model=model,
        max_tokens=1024,
        messages=[
            {
                "role": "user",
                "content": [
                    {
                        "type": "image",
                        "source": {
                            "type": "base64",
                            "media_type": media_type,
                            "data": base64.b64encode(image_bytes).decode("utf-8"),
                        },
                    },
                    {"type": "text", "text": build_detection_prompt(width, height)},
                ],
            }
        ],
    )

    response_text = "".join(
        block.text for block in response.content if getattr(block, "type", "") == "text"
    )
    logger.debug(f"Claude photo-box response: {response_text}")
    return response_text


def detect_photos_with_vision(
    image_bytes: bytes,
    media_type: str,
    width: int,
    height: int,
    requester: Optional[VisionRequester] = None,
    max_regions: int = DEFAULT_MAX_VISION_REGIONS,
    timeout: Optional[float] = DEFAULT_VISION_TIMEOUT,
) -> List[Region]:
    """Ask the vision model for photo boxes and parse its reply.

    Any failure (missing key, network error, timeout, malformed reply) is
    logged and yields an empty list so the caller can fall back. The request
    runs on a worker thread so ``timeout`` also bounds custom requesters.

    Args:
        image_bytes: Encoded image
        media_type: MIME type of ``image_bytes``
        width: Image width in pixels
        height: Image height in pixels
        requester: Callable performing the model request; defaults to
            :func:`request_photo_boxes`
        max_regions: Cap on parsed regions
        timeout: Seconds to wait for the reply, None to wait indefinitely

    Returns:
        Parsed, schema-checked regions (not yet validated against the image)
    """
    requester = requester or request_photo_boxes

    executor = ThreadPoolExecutor(max_workers=1)
    try:
        future = executor.submit(requester, image_bytes, media_type, width, height)
        response_text = future.result(timeout=timeout)
    except FutureTimeoutError:
        logger.warning(f"Vision detection timed out after {timeout}s, falling back to histogram")
        return []
    except Exception as e:
        logger.warning(f"Vision detection failed, falling back to histogram: {e}")
        return []
    finally:
        # Don't block on a hung request
        executor.shutdown(wait=False)

    regions = parse_vision_response(response_text, max_regions=max_regions)
    logger.info(f"Vision model proposed {len(regions)} region(s)")
    return regions
