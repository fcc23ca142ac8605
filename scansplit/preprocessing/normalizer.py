"""Analysis-resolution resizing for the brightness passes."""

import logging

import cv2
import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_ANALYSIS_MAX_DIMENSION = 800  # px, longest edge


class AnalysisImage:
    """Reduced-resolution copy of the source image used for brightness analysis."""

    def __init__(
        self,
        image: np.ndarray,
        brightness: np.ndarray,
        scale_factor: float
    ) -> None:
        self.image = image  # float32 RGB [0, 1]
        self.brightness = brightness  # float32 (H, W), mean of R,G,B on the 0-255 scale
        self.scale_factor = scale_factor  # analysis px per source px, <= 1.0

    @property
    def width(self) -> int:
        return self.brightness.shape[1]

    @property
    def height(self) -> int:
        return self.brightness.shape[0]

    def to_source(self, value: float) -> int:
        """Convert an analysis-space coordinate to source pixels."""
        return int(round(value / self.scale_factor))

    def to_analysis(self, value: float) -> int:
        """Convert a source-space coordinate to analysis pixels."""
        return int(round(value * self.scale_factor))


def compute_brightness(image: np.ndarray) -> np.ndarray:
    """Per-pixel brightness as the mean of the R, G, B channels, 0-255 scale.

    Args:
        image: float32 RGB [0, 1], shape (H, W, 3)

    Returns:
        float32 array of shape (H, W)
    """
    return (image.mean(axis=2) * 255.0).astype(np.float32)


def prepare_analysis_image(
    image: np.ndarray,
    max_dimension: int = DEFAULT_ANALYSIS_MAX_DIMENSION,
) -> AnalysisImage:
    """Downscale the image so its longer side is at most ``max_dimension``.

    Images already within the limit are analysed at full resolution
    (scale factor 1.0).

    Args:
        image: Source image as float32 RGB [0,1] array
        max_dimension: Maximum width or height of the analysis image

    Returns:
        AnalysisImage with the resized pixels, brightness map and scale factor
    """
    height, width = image.shape[:2]
    scale_factor = min(1.0, max_dimension / max(height, width))

    if scale_factor < 1.0:
        new_width = max(1, int(round(width * scale_factor)))
        new_height = max(1, int(round(height * scale_factor)))

        # Convert to uint8 for OpenCV resize
        img_uint8 = (np.clip(image, 0.0, 1.0) * 255).astype(np.uint8)

        # Resize using INTER_AREA (best for downscaling)
        resized_uint8 = cv2.resize(
            img_uint8,
            (new_width, new_height),
            interpolation=cv2.INTER_AREA
        )

        analysis = resized_uint8.astype(np.float32) / 255.0

        logger.debug(
            f"Analysis image {width}x{height} -> {new_width}x{new_height} "
            f"(scale: {scale_factor:.3f})"
        )
    else:
        analysis = image
        logger.debug(f"Image {width}x{height} within analysis resolution, no resize needed")

    return AnalysisImage(
        image=analysis,
        brightness=compute_brightness(analysis),
        scale_factor=scale_factor,
    )
