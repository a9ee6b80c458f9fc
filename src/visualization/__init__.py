"""
Visualization reference adapter: draws published detections for the preview window.
"""

from .overlay import (
    COLOR_BOX,
    COLOR_TEXT,
    COLOR_UNLABELED,
    color_for,
    draw_detections,
    draw_status,
    format_caption,
    summarize,
)

__all__ = [
    "COLOR_BOX",
    "COLOR_TEXT",
    "COLOR_UNLABELED",
    "color_for",
    "draw_detections",
    "draw_status",
    "format_caption",
    "summarize",
]
