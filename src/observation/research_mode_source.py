"""
Hardware research-mode frame source (placeholder).

This provider documents the contract for headset research-mode sensor streams
(visible-light or depth cameras exposed by the device's research API). The
native sensor path is not wired up in this build, so the source follows the
normal Stopped/Running state machine but ``latest_frame()`` returns None
indefinitely while running. That is a valid terminal behaviour: the scheduler
treats it as "no frame yet" and simply keeps ticking.

To integrate a real sensor stream, implement a reader that writes RGB frames
into ``self._slot`` from the sensor callback; nothing else needs to change.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from models.config import CameraConfig
from models.errors import AcquisitionError
from models.frame import Frame
from .base import FrameSlot, SourceConfig
from .devices import devices


@dataclass
class ResearchModeSourceConfig(SourceConfig):
    """
    Configuration for the research-mode source.

    Attributes:
        sensor: Sensor stream name (e.g., "photo_video", "visible_light_left", "depth").
        target_width: Width frames would be delivered at.
        target_height: Height frames would be delivered at.
    """
    sensor: str = "photo_video"
    target_width: int = 640
    target_height: int = 480

    @classmethod
    def from_camera_config(cls, camera_cfg: CameraConfig, source_id: str = "research-mode") -> "ResearchModeSourceConfig":
        width, height = (camera_cfg.resolution or [640, 480])[:2]
        sensor = camera_cfg.device_id if isinstance(camera_cfg.device_id, str) else "photo_video"
        return cls(
            source_id=source_id,
            resolution=(width, height),
            fps=camera_cfg.fps,
            sensor=sensor,
            target_width=width,
            target_height=height,
        )


class ResearchModeSource:
    """Research-mode sensor source whose frame path is not wired up."""

    kind = "research_mode"

    def __init__(self, config: ResearchModeSourceConfig):
        self._config = config
        self._slot = FrameSlot(config.source_id)
        # Distinct per instance, so two sources sharing a source_id still conflict
        self._owner = f"{config.source_id}@{id(self):x}"
        self._lock = threading.Lock()
        self._running = False
        self._warned = False

    @property
    def source_id(self) -> str:
        return self._config.source_id

    @property
    def device_key(self) -> str:
        return f"research_mode:{self._config.sensor}"

    def start(self) -> None:
        with self._lock:
            if self._running:
                logging.warning(f"Source {self.source_id} already running, start() ignored")
                return
            if not devices.claim(self.device_key, self._owner):
                raise AcquisitionError(
                    f"Research-mode sensor {self._config.sensor} is already claimed by "
                    f"{devices.owner_of(self.device_key)}"
                )
            self._running = True
            self._warned = False
        logging.info(
            f"ResearchModeSource started: source_id={self.source_id}, sensor={self._config.sensor}"
        )

    def is_running(self) -> bool:
        return self._running

    def latest_frame(self) -> Optional[Frame]:
        if not self._running:
            return None
        if not self._warned:
            logging.warning(
                f"Research-mode frame path for sensor {self._config.sensor} is not wired up; "
                f"{self.source_id} will not produce frames"
            )
            self._warned = True
        return self._slot.read()

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
        self._slot.clear()
        devices.release(self.device_key, self._owner)
        logging.info(f"ResearchModeSource stopped: source_id={self.source_id}")
