"""Array conversion and JPEG encoding helpers."""

import base64
import io
from typing import Optional, Tuple

import numpy as np
from PIL import Image


def to_uint8(image: np.ndarray) -> np.ndarray:
    """Convert float32 [0, 1] images to uint8 [0, 255]; uint8 input passes through."""
    if image.dtype == np.float32 or image.dtype == np.float64:
        return (np.clip(image, 0, 1) * 255).astype(np.uint8)
    return image


def encode_jpeg(
    image: np.ndarray,
    quality: int = 85,
    max_size: Optional[Tuple[int, int]] = None,
) -> bytes:
    """Encode an RGB image as JPEG bytes.

    Args:
        image: RGB image, float32 [0, 1] or uint8 [0, 255]
        quality: JPEG quality (1-100)
        max_size: Optional (width, height) box to shrink into, aspect preserved

    Returns:
        JPEG-encoded bytes
    """
    pil_image = Image.fromarray(np.ascontiguousarray(to_uint8(image)))

    if max_size is not None:
        pil_image.thumbnail(max_size, Image.Resampling.LANCZOS)

    buffer = io.BytesIO()
    pil_image.save(buffer, format='JPEG', quality=quality)
    return buffer.getvalue()


def jpeg_data_url(jpeg_bytes: bytes) -> str:
    return f"data:image/jpeg;base64,{base64.b64encode(jpeg_bytes).decode('utf-8')}"
