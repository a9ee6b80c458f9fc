"""
Synthetic frame source.

Generates deterministic RGB frames without any hardware. Each
``latest_frame()`` call while running produces one new frame, so a scheduler
driving it always has a fresh frame available. Useful for offline runs,
benchmarks and tests.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from models.config import CameraConfig
from models.frame import Frame
from .base import FrameSlot, SourceConfig

FrameGenerator = Callable[[int, int, int], np.ndarray]


def gradient_pattern(index: int, width: int, height: int) -> np.ndarray:
    """Horizontal/vertical gradient that shifts with the frame index."""
    xs = (np.arange(width, dtype=np.uint32) + index) % 256
    ys = (np.arange(height, dtype=np.uint32) + index) % 256
    frame = np.empty((height, width, 3), dtype=np.uint8)
    frame[..., 0] = xs[None, :]
    frame[..., 1] = ys[:, None]
    frame[..., 2] = (index * 8) % 256
    return frame


def solid_pattern(index: int, width: int, height: int) -> np.ndarray:
    """Mid-grey frame."""
    return np.full((height, width, 3), 128, dtype=np.uint8)


PATTERNS = {
    "gradient": gradient_pattern,
    "solid": solid_pattern,
}


@dataclass
class SyntheticSourceConfig(SourceConfig):
    """
    Configuration for the synthetic source.

    Attributes:
        pattern: Built-in pattern name ("gradient" or "solid").
        width: Frame width in pixels.
        height: Frame height in pixels.
    """
    pattern: str = "gradient"
    width: int = 640
    height: int = 480

    @classmethod
    def from_camera_config(cls, camera_cfg: CameraConfig, source_id: str = "synthetic") -> "SyntheticSourceConfig":
        width, height = (camera_cfg.resolution or [640, 480])[:2]
        pattern = camera_cfg.device_id if isinstance(camera_cfg.device_id, str) else "gradient"
        return cls(
            source_id=source_id,
            resolution=(width, height),
            fps=camera_cfg.fps,
            pattern=pattern,
            width=width,
            height=height,
        )


class SyntheticSource:
    """Frame source that renders frames on demand from a generator."""

    kind = "synthetic"

    def __init__(self, config: SyntheticSourceConfig, generator: Optional[FrameGenerator] = None):
        if generator is None:
            if config.pattern not in PATTERNS:
                raise ValueError(
                    f"Unknown synthetic pattern {config.pattern!r}, expected one of {sorted(PATTERNS)}"
                )
            generator = PATTERNS[config.pattern]
        self._config = config
        self._generator = generator
        self._slot = FrameSlot(config.source_id)
        self._running = False
        self._produced = 0

    @property
    def source_id(self) -> str:
        return self._config.source_id

    @property
    def frames_produced(self) -> int:
        return self._produced

    def start(self) -> None:
        if self._running:
            logging.warning(f"Source {self.source_id} already running, start() ignored")
            return
        self._running = True
        logging.info(
            f"SyntheticSource started: source_id={self.source_id}, "
            f"size={self._config.width}x{self._config.height}"
        )

    def is_running(self) -> bool:
        return self._running

    def latest_frame(self) -> Optional[Frame]:
        if not self._running:
            return None
        pixels = self._generator(self._produced, self._config.width, self._config.height)
        self._produced += 1
        self._slot.write(pixels, time.time())
        return self._slot.read()

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        self._slot.clear()
        logging.info(f"SyntheticSource stopped: source_id={self.source_id}")
