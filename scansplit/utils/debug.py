"""Region overlays and JPEG output for inspecting detections."""

import logging
from pathlib import Path
from typing import Optional, Sequence, Union

import cv2
import numpy as np

from scansplit.photo_detection.regions import Region
from scansplit.utils.imaging import to_uint8

logger = logging.getLogger(__name__)

_VISION_COLOR = (255, 128, 0)  # orange, vision-model regions
_HISTOGRAM_COLOR = (0, 200, 0)  # green, grid and fallback regions
_LABEL_FONT = cv2.FONT_HERSHEY_SIMPLEX

_TO_BGR = {
    1: cv2.COLOR_GRAY2BGR,
    3: cv2.COLOR_RGB2BGR,
    4: cv2.COLOR_RGBA2BGR,
}


def save_debug_image(
    image: np.ndarray,
    output_path: Union[str, Path],
    description: Optional[str] = None,
    quality: int = 90,
) -> Path:
    """Write an RGB image to disk as JPEG.

    Args:
        image: float32 RGB [0,1] or uint8 RGB [0,255]; grayscale and RGBA are accepted
        output_path: Destination; the suffix is forced to ``.jpg``
        description: Logged alongside the path
        quality: JPEG quality (0-100)

    Returns:
        The path written

    Raises:
        ValueError: If the channel count is not 1, 3 or 4
        OSError: If OpenCV cannot write the file
    """
    path = Path(output_path)
    if path.suffix.lower() not in (".jpg", ".jpeg"):
        path = path.with_suffix(".jpg")
    path.parent.mkdir(parents=True, exist_ok=True)

    pixels = to_uint8(image)
    channels = 1 if pixels.ndim == 2 else pixels.shape[2]
    if channels not in _TO_BGR:
        raise ValueError(f"Cannot save image with {channels} channels")
    bgr = cv2.cvtColor(pixels, _TO_BGR[channels])

    if not cv2.imwrite(str(path), bgr, [cv2.IMWRITE_JPEG_QUALITY, quality]):
        raise OSError(f"Failed to write image: {path}")

    logger.debug(f"Wrote {path}" + (f" ({description})" if description else ""))
    return path


def draw_regions(
    image: np.ndarray,
    regions: Sequence[Region],
    thickness: int = 3,
) -> np.ndarray:
    """Overlay region outlines labelled ``id (confidence)`` on a copy of the image.

    Returns:
        float32 RGB [0,1] overlay
    """
    canvas = np.ascontiguousarray(to_uint8(image).copy())
    height, width = canvas.shape[:2]

    for region in regions:
        color = _VISION_COLOR if region.id.startswith("ai_") else _HISTOGRAM_COLOR
        top_left = (region.x, region.y)
        bottom_right = (min(region.right, width - 1), min(region.bottom, height - 1))
        cv2.rectangle(canvas, top_left, bottom_right, color, thickness)

        label = f"{region.id} ({region.confidence:.2f})"
        (text_w, text_h), baseline = cv2.getTextSize(label, _LABEL_FONT, 0.6, 2)
        # Label sits just inside the top-left corner
        cv2.rectangle(
            canvas,
            (region.x, region.y),
            (region.x + text_w + 8, region.y + text_h + baseline + 8),
            color,
            cv2.FILLED,
        )
        cv2.putText(
            canvas,
            label,
            (region.x + 4, region.y + text_h + 4),
            _LABEL_FONT,
            0.6,
            (255, 255, 255),
            2,
            cv2.LINE_AA,
        )

    return canvas.astype(np.float32) / 255.0
