"""
Debug preview overlay: draw a DetectionSet onto a BGR image.

Normalized boxes map to pixel rectangles with the origin at the top-left and
y growing downward, matching OpenCV image coordinates.
"""

from __future__ import annotations

from typing import Dict, Tuple

import cv2
import numpy as np

from models.detection import Detection, DetectionSet

Color = Tuple[int, int, int]

# Colors (BGR)
COLOR_BOX = (0, 255, 0)
COLOR_TEXT = (255, 255, 255)
COLOR_UNLABELED = (0, 165, 255)

_PALETTE = [
    (0, 255, 0),
    (255, 201, 0),
    (71, 99, 255),
    (255, 0, 255),
    (0, 255, 255),
    (255, 128, 0),
]


def color_for(detection: Detection) -> Color:
    """Stable per-class color; unmapped labels get a fixed warning color."""
    if not detection.label:
        return COLOR_UNLABELED
    if detection.class_id is None:
        return COLOR_BOX
    return _PALETTE[detection.class_id % len(_PALETTE)]


def format_caption(detection: Detection) -> str:
    label = detection.label or "?"
    caption = f"{label} {detection.confidence:.2f}"
    if detection.world_position is not None:
        x, y, z = detection.world_position
        caption += f" ({x:.1f}, {y:.1f}, {z:.1f})m"
    return caption


def draw_detections(frame: np.ndarray, detections: DetectionSet, thickness: int = 2) -> np.ndarray:
    """
    Draw boxes and captions in place and return the frame.

    Args:
        frame: BGR image, shape (H, W, 3).
        detections: Snapshot to draw; boxes are normalized to the frame size.
    """
    frame_h, frame_w = frame.shape[:2]
    font = cv2.FONT_HERSHEY_SIMPLEX

    for det in detections:
        x1, y1, x2, y2 = det.bbox.to_pixels(frame_w, frame_h)
        color = color_for(det)
        cv2.rectangle(frame, (x1, y1), (x2, y2), color, thickness)

        # Label with background, kept inside the frame for boxes touching the top edge
        caption = format_caption(det)
        (tw, th), _ = cv2.getTextSize(caption, font, 0.5, 1)
        top = max(y1 - th - 6, 0)
        cv2.rectangle(frame, (x1, top), (x1 + tw + 4, top + th + 6), color, -1)
        cv2.putText(frame, caption, (x1 + 2, top + th + 2), font, 0.5, COLOR_TEXT, 1)

    return frame


def summarize(detections: DetectionSet) -> Dict[str, int]:
    """Count detections per label, for the preview status line."""
    counts: Dict[str, int] = {}
    for det in detections:
        key = det.label or "?"
        counts[key] = counts.get(key, 0) + 1
    return counts


def draw_status(frame: np.ndarray, text: str) -> np.ndarray:
    cv2.putText(frame, text, (10, 20), cv2.FONT_HERSHEY_SIMPLEX, 0.5, COLOR_TEXT, 1)
    return frame
