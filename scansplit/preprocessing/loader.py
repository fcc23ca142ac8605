"""Image decoding with support for JPEG, PNG, TIFF, WEBP, HEIC and RAW/DNG input."""

import io
import logging
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger(__name__)

HEIC_EXTENSIONS = ('.heic', '.heif')
RAW_EXTENSIONS = ('.dng', '.cr2', '.nef', '.arw')
STANDARD_EXTENSIONS = ('.jpg', '.jpeg', '.png', '.tiff', '.tif', '.webp', '.gif', '.bmp')

_EXIF_ORIENTATION_TAG = 0x0112


class ImageDecodeError(ValueError):
    """Raised when the input cannot be decoded into a usable image."""


class ImageMetadata:
    """Metadata extracted from a decoded image."""

    def __init__(
        self,
        original_size: Tuple[int, int],
        format: str,
        bit_depth: int,
        orientation: int = 1
    ) -> None:
        self.original_size = original_size  # (width, height) after EXIF orientation
        self.format = format
        self.bit_depth = bit_depth
        self.orientation = orientation


def _apply_exif_orientation(img: Image.Image) -> Tuple[Image.Image, int]:
    """Rotate/flip the image upright according to its EXIF orientation tag.

    Returns:
        Tuple of (upright image, EXIF orientation value that was applied)
    """
    try:
        orientation = int(img.getexif().get(_EXIF_ORIENTATION_TAG, 1))
    except (AttributeError, KeyError, TypeError, ValueError, OSError) as e:
        logger.debug(f"No usable EXIF orientation: {e}")
        return img, 1

    if orientation not in range(2, 9):
        return img, 1

    upright = ImageOps.exif_transpose(img)
    logger.debug(f"EXIF orientation {orientation}: {img.size} -> {upright.size}")
    return upright, orientation


def _to_rgb_array(img: Image.Image) -> np.ndarray:
    """Convert a PIL image to float32 RGB [0, 1], shape (H, W, 3)."""
    if img.mode not in ('RGB', 'L', 'RGBA'):
        img = img.convert('RGB')

    arr = np.asarray(img).astype(np.float32) / 255.0

    # Ensure RGB (handle RGBA or grayscale)
    if arr.ndim == 2:
        arr = np.stack([arr, arr, arr], axis=-1)
    elif arr.shape[2] == 4:
        arr = arr[:, :, :3]

    return np.ascontiguousarray(arr)


def _decode_with_pil(data: bytes) -> Tuple[np.ndarray, ImageMetadata]:
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageDecodeError(f"Invalid image: {e}") from e

    format_name = img.format or "UNKNOWN"
    img, orientation = _apply_exif_orientation(img)
    arr = _to_rgb_array(img)

    metadata = ImageMetadata(
        original_size=(arr.shape[1], arr.shape[0]),
        format=format_name,
        bit_depth=8,
        orientation=orientation,
    )
    return arr, metadata


def decode_heic(data: bytes) -> Tuple[np.ndarray, ImageMetadata]:
    """Decode HEIC/HEIF bytes using pillow-heif.

    Returns:
        Tuple of (RGB array as float32 [0,1], metadata)
    """
    try:
        from pillow_heif import register_heif_opener
        register_heif_opener()
    except ImportError as e:
        raise ImportError(
            "pillow-heif is required for HEIC support. "
            "Install with: pip install pillow-heif"
        ) from e

    arr, metadata = _decode_with_pil(data)
    metadata.format = "HEIC"
    return arr, metadata


def decode_raw(data: bytes) -> Tuple[np.ndarray, ImageMetadata]:
    """Decode DNG/RAW bytes using rawpy.

    Returns:
        Tuple of (RGB array as float32 [0,1], metadata)
    """
    try:
        import rawpy
    except ImportError as e:
        raise ImportError(
            "rawpy is required for DNG/RAW support. "
            "Install with: pip install rawpy"
        ) from e

    try:
        with rawpy.imread(io.BytesIO(data)) as raw:
            # Demosaic with camera white balance, sRGB output, 16-bit
            rgb = raw.postprocess(
                use_camera_wb=True,
                output_color=rawpy.ColorSpace.sRGB,
                output_bps=16,
                no_auto_bright=False,
            )
    except (rawpy.LibRawError, OSError, ValueError) as e:
        raise ImageDecodeError(f"Invalid image: {e}") from e

    arr = rgb.astype(np.float32) / 65535.0

    metadata = ImageMetadata(
        original_size=(arr.shape[1], arr.shape[0]),
        format="DNG",
        bit_depth=16,
    )
    return arr, metadata


def decode_image(
    data: Optional[bytes],
    filename: Optional[str] = None,
) -> Tuple[np.ndarray, ImageMetadata]:
    """Decode uploaded image bytes.

    The filename extension, when given, selects the HEIC or RAW decoder;
    everything else goes through Pillow's format sniffing.

    Args:
        data: Encoded image bytes
        filename: Optional original filename, used only for its extension

    Returns:
        Tuple of (RGB array as float32 [0,1] with shape (H, W, 3), metadata)

    Raises:
        ImageDecodeError: If no data is given, the data cannot be decoded,
            or the decoded image has a zero dimension
    """
    if not data:
        raise ImageDecodeError("No image provided")

    ext = Path(filename).suffix.lower() if filename else ""

    if ext in HEIC_EXTENSIONS:
        arr, metadata = decode_heic(data)
    elif ext in RAW_EXTENSIONS:
        arr, metadata = decode_raw(data)
    else:
        arr, metadata = _decode_with_pil(data)

    if arr.ndim != 3 or arr.shape[0] == 0 or arr.shape[1] == 0:
        raise ImageDecodeError("Invalid image: zero-dimension image")

    logger.info(f"Decoded {metadata.format}: {arr.shape[1]}x{arr.shape[0]}")

    return arr, metadata


def load_image(path: Union[str, Path]) -> Tuple[np.ndarray, ImageMetadata]:
    """Load image from any supported format on disk.

    Args:
        path: Path to image file

    Returns:
        Tuple of (RGB array as float32 [0,1] with shape (H, W, 3), metadata)

    Raises:
        FileNotFoundError: If file does not exist
        ImageDecodeError: If the file extension is not supported or the
            content cannot be decoded
    """
    path_obj = Path(path)

    if not path_obj.exists():
        raise FileNotFoundError(f"Image file not found: {path}")

    ext = path_obj.suffix.lower()
    if ext not in HEIC_EXTENSIONS + RAW_EXTENSIONS + STANDARD_EXTENSIONS:
        raise ImageDecodeError(f"Unsupported image format: {ext}")

    return decode_image(path_obj.read_bytes(), filename=path_obj.name)
