"""
Frame → model input tensor conversion.
"""

from __future__ import annotations

from typing import Optional, Tuple

import cv2
import numpy as np

from models.config import CHANNEL_ORDERS, TENSOR_LAYOUTS
from models.errors import InvalidFrameError
from models.frame import Frame
from models.tensor import Tensor

_SCALE = np.float32(1.0 / 255.0)


def validate_frame(frame: Optional[Frame]) -> None:
    """
    Check that a frame's buffer matches its declared geometry.

    Raises:
        InvalidFrameError: On zero dimensions, a non-RGB buffer, or a buffer
            whose size does not match width × height × 3.
    """
    if frame is None:
        raise InvalidFrameError("Frame is None")
    if frame.width <= 0 or frame.height <= 0:
        raise InvalidFrameError(f"Frame has zero dimension: {frame.width}x{frame.height}")

    pixels = frame.pixels
    if not isinstance(pixels, np.ndarray):
        raise InvalidFrameError(f"Frame pixels must be a numpy array, got {type(pixels).__name__}")
    if pixels.dtype != np.uint8:
        raise InvalidFrameError(f"Frame pixels must be uint8, got {pixels.dtype}")

    expected = frame.width * frame.height * 3
    if pixels.size != expected:
        raise InvalidFrameError(
            f"Frame buffer has {pixels.size} values, {frame.width}x{frame.height} RGB needs {expected}"
        )
    if pixels.shape != (frame.height, frame.width, 3):
        raise InvalidFrameError(
            f"Frame buffer shape {pixels.shape} does not match declared "
            f"({frame.height}, {frame.width}, 3)"
        )


class Preprocessor:
    """
    Resize (bilinear), reorder channels and scale a frame to [0, 1].

    The output tensor has ``target_width × target_height × 3`` float32 values,
    shaped [1, 3, H, W] for "nchw" or [1, H, W, 3] for "nhwc". Stateless and
    deterministic.
    """

    def __init__(self, layout: str = "nchw", channel_order: str = "rgb"):
        if layout not in TENSOR_LAYOUTS:
            raise ValueError(f"Unknown tensor layout {layout!r}, expected one of {TENSOR_LAYOUTS}")
        if channel_order not in CHANNEL_ORDERS:
            raise ValueError(f"Unknown channel order {channel_order!r}, expected one of {CHANNEL_ORDERS}")
        self.layout = layout
        self.channel_order = channel_order

    def input_shape(self, target_width: int, target_height: int) -> Tuple[int, int, int, int]:
        """Shape of the tensor ``prepare()`` produces for a target size."""
        if self.layout == "nchw":
            return (1, 3, target_height, target_width)
        return (1, target_height, target_width, 3)

    def prepare(self, frame: Frame, target_width: int, target_height: int) -> Tensor:
        if target_width <= 0 or target_height <= 0:
            raise ValueError(f"Target size must be positive, got {target_width}x{target_height}")
        validate_frame(frame)

        pixels = frame.pixels
        if (frame.width, frame.height) != (target_width, target_height):
            pixels = cv2.resize(pixels, (target_width, target_height), interpolation=cv2.INTER_LINEAR)

        # Frames are RGB; models trained on OpenCV-decoded images want BGR
        if self.channel_order == "bgr":
            pixels = pixels[..., ::-1]

        arr = pixels.astype(np.float32) * _SCALE
        np.clip(arr, 0.0, 1.0, out=arr)
        if self.layout == "nchw":
            arr = arr.transpose(2, 0, 1)
        return Tensor.from_array(np.ascontiguousarray(arr[np.newaxis, ...]))


def prepare(frame: Frame, target_width: int, target_height: int) -> Tensor:
    """Module-level convenience: NCHW RGB preprocessing."""
    return Preprocessor().prepare(frame, target_width, target_height)
