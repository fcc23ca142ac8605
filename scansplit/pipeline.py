"""Detection orchestrator for scanned-page photo segmentation."""

import functools
import logging
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import cv2
import numpy as np

from scansplit.ai.claude_vision import (
    DEFAULT_VISION_MODEL,
    DEFAULT_VISION_TIMEOUT,
    VisionRequester,
    detect_photos_with_vision,
    request_photo_boxes,
)
from scansplit.photo_detection.content_bounds import detect_content_bounds
from scansplit.photo_detection.gaps import GapAnalysis, analyze_gaps
from scansplit.photo_detection.grid import build_grid_regions
from scansplit.photo_detection.regions import DetectionResult, Region
from scansplit.photo_detection.splitter import ExtractionResult, attach_previews, extract_photos
from scansplit.photo_detection.validation import (
    add_padding,
    clamp_to_image,
    filter_valid_regions,
    merge_overlapping_regions,
)
from scansplit.preprocessing.loader import ImageDecodeError, ImageMetadata, decode_image
from scansplit.preprocessing.normalizer import AnalysisImage, prepare_analysis_image
from scansplit.utils.imaging import encode_jpeg, to_uint8

logger = logging.getLogger(__name__)

_VISION_MEDIA_TYPES = {
    "JPEG": "image/jpeg",
    "MPO": "image/jpeg",
    "PNG": "image/png",
    "GIF": "image/gif",
    "WEBP": "image/webp",
}


@dataclass
class DetectionConfig:
    """All tunable parameters in one place."""

    # Analysis
    analysis_max_dimension: int = 800  # px, longest edge

    # Histogram gaps
    gap_brightness_threshold: float = 235.0  # 0-255
    gap_min_size_ratio: float = 0.02  # of the analysis dimension

    # Content bounds / grid tightening
    content_brightness_threshold: float = 230.0  # 0-255

    # Region validation
    min_region_size: int = 100
    vision_min_region_size: int = 50
    max_area_fraction: float = 0.98
    merge_iou_threshold: float = 0.5
    vision_padding: float = 0.01

    # Confidence
    grid_confidence: float = 1.0
    fallback_confidence: float = 0.7

    # Vision model
    vision_model: str = DEFAULT_VISION_MODEL
    vision_timeout: float = DEFAULT_VISION_TIMEOUT  # seconds
    max_vision_regions: int = 20
    vision_max_bytes: int = 5 * 1024 * 1024  # larger payloads are downscaled
    vision_max_dimension: int = 1568  # px, longest edge of a downscaled payload

    # Previews
    preview_size: int = 200
    preview_quality: int = 60
    max_preview_workers: int = 20

    # Extraction
    extract_min_size: int = 50
    extract_quality: int = 90

    # Enhancement of extracted photos
    enhance_upscale: float = 2.0
    enhance_sharpen_sigma: float = 1.0
    enhance_sharpen_amount: float = 0.5
    enhance_brightness: float = 1.02
    enhance_saturation: float = 1.1


class DetectionState(Enum):
    """States of one detection run."""

    AWAITING_IMAGE = "awaiting_image"
    VISION_ATTEMPT = "vision_attempt"
    GAP_ANALYSIS = "gap_analysis"
    GRID_OR_FALLBACK = "grid_or_fallback"
    VALIDATE = "validate"
    MERGE = "merge"
    PAD = "pad"
    CROP_PREVIEWS = "crop_previews"
    DONE = "done"


@dataclass
class DetectionRun:
    """Working state of one detection call; never shared between calls."""

    image_bytes: Optional[bytes]
    use_ai: bool
    filename: Optional[str] = None
    include_previews: bool = True
    image: Optional[np.ndarray] = None
    metadata: Optional[ImageMetadata] = None
    analysis: Optional[AnalysisImage] = None
    gaps: Optional[GapAnalysis] = None
    regions: List[Region] = field(default_factory=list)
    method: str = "none"
    states: List[str] = field(default_factory=list)
    step_times: Dict[str, float] = field(default_factory=dict)

    @property
    def width(self) -> int:
        return 0 if self.image is None else int(self.image.shape[1])

    @property
    def height(self) -> int:
        return 0 if self.image is None else int(self.image.shape[0])


class PhotoSegmenter:
    """Find the rectangle of each printed photo in a scanned page.

    Runs as a state machine: optional vision-model pass, then histogram gap
    analysis with a content-bounds fallback, then validation, merging,
    padding and preview cropping.
    """

    def __init__(
        self,
        config: Optional[DetectionConfig] = None,
        vision_requester: Optional[VisionRequester] = None,
    ) -> None:
        """Initialize the segmenter.

        Args:
            config: Detection configuration. If None, uses defaults.
            vision_requester: Callable ``(image_bytes, media_type, width, height) -> str``
                used for the vision pass. If None, calls Claude with the
                configured model and timeout.
        """
        self.config = config or DetectionConfig()
        self.vision_requester: VisionRequester = vision_requester or functools.partial(
            request_photo_boxes,
            model=self.config.vision_model,
            timeout=self.config.vision_timeout,
        )
        self._handlers: Dict[DetectionState, Callable[[DetectionRun], DetectionState]] = {
            DetectionState.AWAITING_IMAGE: self._decode,
            DetectionState.VISION_ATTEMPT: self._vision_attempt,
            DetectionState.GAP_ANALYSIS: self._gap_analysis,
            DetectionState.GRID_OR_FALLBACK: self._grid_or_fallback,
            DetectionState.VALIDATE: self._validate,
            DetectionState.MERGE: self._merge,
            DetectionState.PAD: self._pad,
            DetectionState.CROP_PREVIEWS: self._crop_previews,
        }

    def detect(
        self,
        image_bytes: Optional[bytes],
        use_ai: bool = False,
        filename: Optional[str] = None,
        include_previews: bool = True,
    ) -> DetectionResult:
        """Detect individual photos in one uploaded image.

        Never raises: undecodable input yields ``success=False`` with a
        descriptive message, any other failure yields ``success=False`` with
        a generic message.

        Args:
            image_bytes: Encoded image
            use_ai: Attempt the vision-model pass before the histogram path
            filename: Optional original filename (selects HEIC/RAW decoding)
            include_previews: Attach a small JPEG preview to each region

        Returns:
            DetectionResult
        """
        start_time = time.time()
        run = DetectionRun(
            image_bytes=image_bytes,
            use_ai=use_ai,
            filename=filename,
            include_previews=include_previews,
        )

        try:
            self._run(run)
        except ImageDecodeError as e:
            logger.warning(f"Rejected input: {e}")
            return DetectionResult.failure(str(e))
        except Exception as e:
            logger.error(f"Photo detection error: {e}", exc_info=True)
            return DetectionResult.failure("Detection failed")

        total_time = time.time() - start_time
        logger.info(
            f"Detected {len(run.regions)} photo(s) via '{run.method}' "
            f"in {total_time:.3f}s ({run.width}x{run.height})"
        )

        return DetectionResult(
            success=True,
            photos=run.regions,
            original_width=run.width,
            original_height=run.height,
            method=run.method,
            states=run.states,
            processing_time=total_time,
        )

    def detect_file(
        self,
        path: Union[str, Path],
        use_ai: bool = False,
        include_previews: bool = True,
    ) -> DetectionResult:
        """Read an image file and run :meth:`detect` on its bytes."""
        path_obj = Path(path)
        try:
            data = path_obj.read_bytes()
        except OSError as e:
            logger.warning(f"Could not read {path}: {e}")
            return DetectionResult.failure(f"Could not read image: {path_obj.name}")

        return self.detect(
            data,
            use_ai=use_ai,
            filename=path_obj.name,
            include_previews=include_previews,
        )

    def extract(
        self,
        image: np.ndarray,
        regions: Sequence[Region],
        enhance: bool = False,
    ) -> ExtractionResult:
        """Crop full-resolution photos for the given regions.

        Args:
            image: Decoded page image, float32 RGB [0, 1]
            regions: Regions from a detection result
            enhance: Upscale and enhance each extracted photo

        Returns:
            ExtractionResult with photos, the clamped regions and per-photo errors
        """
        return extract_photos(
            image,
            regions,
            enhance=enhance,
            min_size=self.config.extract_min_size,
            enhance_options={
                "upscale": self.config.enhance_upscale,
                "sharpen_sigma": self.config.enhance_sharpen_sigma,
                "sharpen_amount": self.config.enhance_sharpen_amount,
                "brightness": self.config.enhance_brightness,
                "saturation": self.config.enhance_saturation,
            },
        )

    def _run(self, run: DetectionRun) -> None:
        state = DetectionState.AWAITING_IMAGE
        while state is not DetectionState.DONE:
            run.states.append(state.value)
            step_start = time.time()
            next_state = self._handlers[state](run)
            run.step_times[state.value] = time.time() - step_start
            logger.debug(
                f"{state.value} -> {next_state.value} "
                f"({run.step_times[state.value]:.3f}s, {len(run.regions)} region(s))"
            )
            state = next_state
        run.states.append(DetectionState.DONE.value)

    # ------------------------------------------------------------------
    # State handlers
    # ------------------------------------------------------------------

    def _decode(self, run: DetectionRun) -> DetectionState:
        run.image, run.metadata = decode_image(run.image_bytes, run.filename)
        return DetectionState.VISION_ATTEMPT if run.use_ai else DetectionState.GAP_ANALYSIS

    def _vision_attempt(self, run: DetectionRun) -> DetectionState:
        payload, media_type, scale = self._vision_payload(run)
        send_width = int(round(run.width * scale))
        send_height = int(round(run.height * scale))

        regions = detect_photos_with_vision(
            payload,
            media_type,
            send_width,
            send_height,
            requester=self.vision_requester,
            max_regions=self.config.max_vision_regions,
            timeout=self.config.vision_timeout,
        )
        if scale != 1.0:
            regions = [_rescale_region(r, 1.0 / scale) for r in regions]

        # Model boxes may overhang the frame; keep the part inside it
        clamped = [clamp_to_image(r, run.width, run.height) for r in regions]
        clamped = [r for r in clamped if r is not None]

        valid = filter_valid_regions(
            clamped,
            run.width,
            run.height,
            min_size=self.config.vision_min_region_size,
            max_area_fraction=self.config.max_area_fraction,
        )

        if not valid:
            logger.info("Vision pass found no valid regions, using histogram analysis")
            return DetectionState.GAP_ANALYSIS

        run.regions = valid
        run.method = "vision"
        return DetectionState.VALIDATE

    def _gap_analysis(self, run: DetectionRun) -> DetectionState:
        run.analysis = prepare_analysis_image(run.image, self.config.analysis_max_dimension)
        run.gaps = analyze_gaps(
            run.analysis,
            threshold=self.config.gap_brightness_threshold,
            min_gap_ratio=self.config.gap_min_size_ratio,
        )
        return DetectionState.GRID_OR_FALLBACK

    def _grid_or_fallback(self, run: DetectionRun) -> DetectionState:
        regions = build_grid_regions(
            run.analysis,
            run.width,
            run.height,
            run.gaps.horizontal_gaps,
            run.gaps.vertical_gaps,
            min_size=self.config.min_region_size,
            content_threshold=self.config.content_brightness_threshold,
            confidence=self.config.grid_confidence,
        )
        if regions:
            run.method = "grid"
        else:
            logger.debug("No grid found, scanning for content bounds")
            regions = detect_content_bounds(
                run.analysis,
                run.width,
                run.height,
                threshold=self.config.content_brightness_threshold,
                min_size=self.config.min_region_size,
                confidence=self.config.fallback_confidence,
            )
            run.method = "content_bounds" if regions else "none"

        run.regions = regions
        return DetectionState.VALIDATE

    def _validate(self, run: DetectionRun) -> DetectionState:
        run.regions = filter_valid_regions(
            run.regions,
            run.width,
            run.height,
            min_size=self.config.min_region_size,
            max_area_fraction=self.config.max_area_fraction,
        )
        return DetectionState.MERGE

    def _merge(self, run: DetectionRun) -> DetectionState:
        run.regions = merge_overlapping_regions(run.regions, self.config.merge_iou_threshold)
        return DetectionState.PAD

    def _pad(self, run: DetectionRun) -> DetectionState:
        if run.method == "vision" and run.regions:
            padded = [
                add_padding(r, run.width, run.height, self.config.vision_padding)
                for r in run.regions
            ]
            # Padding can push boxes together or past the area cutoff
            padded = filter_valid_regions(
                padded,
                run.width,
                run.height,
                min_size=self.config.min_region_size,
                max_area_fraction=self.config.max_area_fraction,
            )
            run.regions = merge_overlapping_regions(padded, self.config.merge_iou_threshold)
        return DetectionState.CROP_PREVIEWS

    def _crop_previews(self, run: DetectionRun) -> DetectionState:
        if run.include_previews and run.regions:
            run.regions = attach_previews(
                run.image,
                run.regions,
                size=self.config.preview_size,
                quality=self.config.preview_quality,
                max_workers=self.config.max_preview_workers,
            )
        return DetectionState.DONE

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _vision_payload(self, run: DetectionRun) -> Tuple[bytes, str, float]:
        """Pick the bytes sent to the vision model.

        The upload is sent as-is when the model accepts its format and no
        EXIF rotation was applied; otherwise the decoded pixels are re-encoded
        as JPEG, downscaled when the payload would be too large.

        Returns:
            Tuple of (payload bytes, media type, payload px per source px)
        """
        media_type = _VISION_MEDIA_TYPES.get(run.metadata.format)
        if (
            media_type is not None
            and run.metadata.orientation == 1
            and len(run.image_bytes) <= self.config.vision_max_bytes
        ):
            return run.image_bytes, media_type, 1.0

        payload = encode_jpeg(run.image, quality=90)
        if len(payload) <= self.config.vision_max_bytes:
            return payload, "image/jpeg", 1.0

        scale = min(1.0, self.config.vision_max_dimension / max(run.width, run.height))
        new_size = (
            max(1, int(round(run.width * scale))),
            max(1, int(round(run.height * scale))),
        )
        resized = cv2.resize(to_uint8(run.image), new_size, interpolation=cv2.INTER_AREA)
        logger.debug(f"Vision payload downscaled to {new_size[0]}x{new_size[1]}")
        return encode_jpeg(resized, quality=85), "image/jpeg", scale


def _rescale_region(region: Region, factor: float) -> Region:
    return replace(
        region,
        x=int(round(region.x * factor)),
        y=int(round(region.y * factor)),
        width=max(1, int(round(region.width * factor))),
        height=max(1, int(round(region.height * factor))),
    )


def detect_photos(
    image_bytes: Optional[bytes],
    use_ai: bool = False,
    filename: Optional[str] = None,
    config: Optional[DetectionConfig] = None,
) -> DetectionResult:
    """Convenience wrapper: run one detection with a fresh segmenter."""
    return PhotoSegmenter(config).detect(image_bytes, use_ai=use_ai, filename=filename)
