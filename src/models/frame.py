"""
Frame model for captured video frames.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class Frame:
    """
    An immutable snapshot of pixel data at a point in time.

    The pixel buffer is owned by the producing source and is only valid until
    the next ``latest_frame()`` call on that source. Call ``copy()`` to keep a
    frame across ticks.

    Attributes:
        pixels: Interleaved 8-bit RGB data, shape (height, width, 3).
        width: Frame width in pixels.
        height: Frame height in pixels.
        sequence_id: Monotonically increasing id assigned by the source.
        timestamp: Unix timestamp when the frame was produced.
        source: Identifier of the producing source.
    """
    pixels: np.ndarray = field(repr=False)
    width: int
    height: int
    sequence_id: int
    timestamp: float = 0.0
    source: Optional[str] = None

    @classmethod
    def from_numpy(
        cls,
        pixels: np.ndarray,
        sequence_id: int,
        timestamp: float = 0.0,
        source: Optional[str] = None,
    ) -> "Frame":
        """Create a Frame from an RGB numpy array, deriving width and height."""
        h, w = pixels.shape[:2]
        return cls(
            pixels=pixels,
            width=w,
            height=h,
            sequence_id=sequence_id,
            timestamp=timestamp,
            source=source,
        )

    @property
    def size(self) -> Tuple[int, int]:
        """Return (width, height)."""
        return (self.width, self.height)

    def copy(self) -> "Frame":
        """Return a frame backed by a private copy of the pixel buffer."""
        return Frame(
            pixels=np.array(self.pixels, copy=True),
            width=self.width,
            height=self.height,
            sequence_id=self.sequence_id,
            timestamp=self.timestamp,
            source=self.source,
        )
