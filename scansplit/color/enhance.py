"""Optional enhancement for extracted photos.

Extracted prints are upscaled, contrast-stretched, sharpened on the L channel
in LAB space and given a slight brightness and saturation lift. Always
conservative to keep the print looking natural.
"""

import logging
from typing import Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)


def enhance_extracted_photo(
    photo: np.ndarray,
    upscale: float = 2.0,
    sharpen_sigma: float = 1.0,
    sharpen_amount: float = 0.5,
    brightness: float = 1.02,
    saturation: float = 1.1,
) -> Tuple[np.ndarray, dict]:
    """Upscale and enhance a single extracted photo.

    Args:
        photo: Input image as float32 RGB [0, 1], shape (H, W, 3)
        upscale: Resize factor applied with Lanczos interpolation (1.0 = none)
        sharpen_sigma: Gaussian sigma for the unsharp mask
        sharpen_amount: Sharpening strength (0.0 = none)
        brightness: Multiplier on the HSV value channel
        saturation: Multiplier on the HSV saturation channel

    Returns:
        Tuple of:
            - Enhanced image as float32 RGB [0, 1]
            - Info dict with enhancement metrics
    """
    if photo.ndim != 3 or photo.shape[2] != 3:
        logger.warning(f"Invalid photo shape: {photo.shape}, expected (H, W, 3)")
        return photo, {'error': 'invalid_shape'}

    photo_uint8 = (np.clip(photo, 0, 1) * 255).astype(np.uint8)
    h, w = photo_uint8.shape[:2]

    if upscale != 1.0:
        new_size = (max(1, int(round(w * upscale))), max(1, int(round(h * upscale))))
        photo_uint8 = cv2.resize(photo_uint8, new_size, interpolation=cv2.INTER_LANCZOS4)

    stretched = _normalize_contrast(photo_uint8)

    lab = cv2.cvtColor(stretched, cv2.COLOR_RGB2LAB).astype(np.float32)
    L = np.ascontiguousarray(lab[:, :, 0])
    sharpness_before = measure_sharpness(L)
    if sharpen_amount > 0.0:
        L = _unsharp_mask(L, sigma=sharpen_sigma, amount=sharpen_amount)
        lab[:, :, 0] = L
    sharpness_after = measure_sharpness(L)
    sharpened = cv2.cvtColor(np.clip(lab, 0, 255).astype(np.uint8), cv2.COLOR_LAB2RGB)

    result = _modulate(sharpened, brightness=brightness, saturation=saturation)

    logger.debug(
        f"Enhanced photo {w}x{h} -> {result.shape[1]}x{result.shape[0]}, "
        f"sharpness {sharpness_before:.2f} -> {sharpness_after:.2f}"
    )

    return result.astype(np.float32) / 255.0, {
        'upscale': float(upscale),
        'sharpness_before': float(sharpness_before),
        'sharpness_after': float(sharpness_after),
        'brightness': float(brightness),
        'saturation': float(saturation),
    }


def _normalize_contrast(image: np.ndarray) -> np.ndarray:
    """Stretch each channel to the full 0-255 range.

    Args:
        image: uint8 RGB image

    Returns:
        uint8 RGB image; flat channels are left unchanged
    """
    out = image.copy()
    for c in range(image.shape[2]):
        channel = image[:, :, c].astype(np.float32)
        lo, hi = float(channel.min()), float(channel.max())
        if hi > lo:
            out[:, :, c] = np.round((channel - lo) * (255.0 / (hi - lo))).astype(np.uint8)
    return out


def _unsharp_mask(
    image: np.ndarray,
    sigma: float = 1.0,
    amount: float = 0.5
) -> np.ndarray:
    """Apply unsharp mask sharpening.

    Unsharp mask: sharp = original + amount * (original - blurred)

    Args:
        image: Input image (single channel, float32, 0-255 range)
        sigma: Gaussian blur sigma in pixels
        amount: Sharpening strength

    Returns:
        Sharpened image (same type as input)
    """
    blurred = cv2.GaussianBlur(image, (0, 0), sigmaX=sigma)
    sharpened = image + amount * (image - blurred)
    return np.clip(sharpened, 0, 255)


def _modulate(image: np.ndarray, brightness: float, saturation: float) -> np.ndarray:
    """Scale HSV value and saturation channels of a uint8 RGB image."""
    hsv = cv2.cvtColor(image, cv2.COLOR_RGB2HSV).astype(np.float32)
    hsv[:, :, 1] = np.clip(hsv[:, :, 1] * saturation, 0, 255)
    hsv[:, :, 2] = np.clip(hsv[:, :, 2] * brightness, 0, 255)
    return cv2.cvtColor(hsv.astype(np.uint8), cv2.COLOR_HSV2RGB)


def measure_sharpness(image: np.ndarray) -> float:
    """Measure image sharpness using Laplacian variance.

    Args:
        image: Input image (single channel, uint8 or float32)

    Returns:
        Sharpness score (higher = sharper)
    """
    if image.dtype != np.uint8:
        image = np.clip(image, 0, 255).astype(np.uint8)

    laplacian = cv2.Laplacian(image, cv2.CV_64F)
    return float(laplacian.var())
