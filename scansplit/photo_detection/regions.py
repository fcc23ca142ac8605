"""Region and detection result types."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Region:
    """A candidate rectangle believed to bound one printed photo.

    Coordinates are in source-image pixels. Regions are immutable; merge,
    padding and preview steps build new instances with ``dataclasses.replace``.
    """

    id: str
    x: int
    y: int
    width: int
    height: int
    confidence: float  # 0.0 to 1.0
    preview: Optional[str] = None  # data:image/jpeg;base64,... (final response only)

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def bbox(self) -> Tuple[int, int, int, int]:
        """Bounding box as (x1, y1, x2, y2)."""
        return (self.x, self.y, self.right, self.bottom)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "confidence": round(float(self.confidence), 4),
        }
        if self.preview is not None:
            data["preview"] = self.preview
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_id: str = "photo_0") -> "Region":
        """Build a region from a previously serialized dict.

        Raises:
            ValueError: If a coordinate field is missing or not numeric
        """
        try:
            return cls(
                id=str(data.get("id", default_id)),
                x=int(data["x"]),
                y=int(data["y"]),
                width=int(data["width"]),
                height=int(data["height"]),
                confidence=float(data.get("confidence", 1.0)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid region data: {data!r}") from e


@dataclass
class DetectionResult:
    """Output of one detection run."""

    success: bool
    photos: List[Region]
    original_width: int
    original_height: int
    error: Optional[str] = None
    method: str = "none"  # "vision", "grid", "content_bounds", or "none"
    states: List[str] = field(default_factory=list)
    processing_time: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the JSON response shape (camelCase keys)."""
        data: Dict[str, Any] = {
            "success": self.success,
            "photos": [photo.to_dict() for photo in self.photos],
            "originalWidth": self.original_width,
            "originalHeight": self.original_height,
        }
        if not self.success:
            data["error"] = self.error or "Detection failed"
        return data

    @classmethod
    def failure(cls, message: str) -> "DetectionResult":
        return cls(
            success=False,
            photos=[],
            original_width=0,
            original_height=0,
            error=message,
        )
