"""Enhancement for extracted photos."""

from scansplit.color.enhance import enhance_extracted_photo, measure_sharpness

__all__ = [
    "enhance_extracted_photo",
    "measure_sharpness",
]
