"""
Detection models for object detection results.

All boxes are in normalized image-fraction coordinates of the original frame:
x, y is the top-left corner, width and height are fractions of the frame size.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Iterator, Optional, Sequence, Tuple

WorldPosition = Tuple[float, float, float]


def _clamp01(v: float) -> float:
    return min(max(v, 0.0), 1.0)


@dataclass(frozen=True)
class BoundingBox:
    """
    A bounding box in normalized coordinates.

    Attributes:
        x: Left edge as a fraction of frame width.
        y: Top edge as a fraction of frame height.
        width: Box width as a fraction of frame width.
        height: Box height as a fraction of frame height.
    """
    x: float
    y: float
    width: float
    height: float

    @property
    def x2(self) -> float:
        return self.x + self.width

    @property
    def y2(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    @property
    def area(self) -> float:
        return max(self.width, 0.0) * max(self.height, 0.0)

    def as_corners(self) -> Tuple[float, float, float, float]:
        """Return as (x1, y1, x2, y2) tuple."""
        return (self.x, self.y, self.x2, self.y2)

    @classmethod
    def from_corners(cls, x1: float, y1: float, x2: float, y2: float) -> "BoundingBox":
        """Create from corner pair, clipped to [0, 1]."""
        x1, x2 = sorted((_clamp01(x1), _clamp01(x2)))
        y1, y2 = sorted((_clamp01(y1), _clamp01(y2)))
        return cls(x=x1, y=y1, width=x2 - x1, height=y2 - y1)

    @classmethod
    def from_center(cls, cx: float, cy: float, w: float, h: float) -> "BoundingBox":
        """Create from centre + extent, clipped to [0, 1]."""
        return cls.from_corners(cx - w / 2, cy - h / 2, cx + w / 2, cy + h / 2)

    def clipped(self) -> "BoundingBox":
        return BoundingBox.from_corners(*self.as_corners())

    def iou(self, other: "BoundingBox") -> float:
        """Intersection over union with another box."""
        ix1 = max(self.x, other.x)
        iy1 = max(self.y, other.y)
        ix2 = min(self.x2, other.x2)
        iy2 = min(self.y2, other.y2)
        inter = max(0.0, ix2 - ix1) * max(0.0, iy2 - iy1)
        if inter <= 0.0:
            return 0.0
        union = self.area + other.area - inter
        return inter / union if union > 0 else 0.0

    def to_pixels(self, frame_w: int, frame_h: int) -> Tuple[int, int, int, int]:
        """Return integer pixel corners (x1, y1, x2, y2) for a frame of the given size."""
        return (
            int(round(self.x * frame_w)),
            int(round(self.y * frame_h)),
            int(round(self.x2 * frame_w)),
            int(round(self.y2 * frame_h)),
        )


@dataclass(frozen=True)
class Detection:
    """
    A single labeled, scored, located object instance.

    Attributes:
        label: Class name, empty string if the class index is not in the label table.
        confidence: Detection confidence score (0-1).
        bbox: Normalized bounding box.
        class_id: Class index reported by the model, if any.
        world_position: Resolved 3D position, None unless a spatial resolver supplied one.
    """
    label: str
    confidence: float
    bbox: BoundingBox
    class_id: Optional[int] = None
    world_position: Optional[WorldPosition] = None

    def with_world_position(self, position: Optional[WorldPosition]) -> "Detection":
        return Detection(
            label=self.label,
            confidence=self.confidence,
            bbox=self.bbox,
            class_id=self.class_id,
            world_position=position,
        )

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "confidence": self.confidence,
            "bbox": {
                "x": self.bbox.x,
                "y": self.bbox.y,
                "width": self.bbox.width,
                "height": self.bbox.height,
            },
            "class_id": self.class_id,
            "world_position": list(self.world_position) if self.world_position is not None else None,
        }


@dataclass(frozen=True)
class DetectionSet:
    """
    Detections computed from one frame generation.

    A DetectionSet is only ever replaced wholesale, never mutated.

    Attributes:
        detections: Ordered detections (confidence-descending when produced by the filter).
        frame_sequence_id: Sequence id of the source frame, None for the initial empty set.
        timestamp: Unix timestamp when the set was built.
    """
    detections: Tuple[Detection, ...] = ()
    frame_sequence_id: Optional[int] = None
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def build(cls, detections: Sequence[Detection], frame_sequence_id: int) -> "DetectionSet":
        return cls(detections=tuple(detections), frame_sequence_id=frame_sequence_id)

    @classmethod
    def empty(cls) -> "DetectionSet":
        return cls(detections=(), frame_sequence_id=None, timestamp=0.0)

    @property
    def is_empty(self) -> bool:
        return not self.detections

    def __len__(self) -> int:
        return len(self.detections)

    def __iter__(self) -> Iterator[Detection]:
        return iter(self.detections)

    def to_dict(self) -> dict:
        return {
            "frame_sequence_id": self.frame_sequence_id,
            "timestamp": self.timestamp,
            "detections": [d.to_dict() for d in self.detections],
        }


EMPTY_DETECTION_SET = DetectionSet.empty()
