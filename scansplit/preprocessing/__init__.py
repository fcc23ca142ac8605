"""Image decoding and analysis-resolution preprocessing."""

from scansplit.preprocessing.loader import (
    ImageDecodeError,
    ImageMetadata,
    decode_image,
    load_image,
)
from scansplit.preprocessing.normalizer import AnalysisImage, prepare_analysis_image

__all__ = [
    "ImageDecodeError",
    "ImageMetadata",
    "decode_image",
    "load_image",
    "AnalysisImage",
    "prepare_analysis_image",
]
