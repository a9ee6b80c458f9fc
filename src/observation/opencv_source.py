"""
OpenCV-based live frame source.

Supports:
- USB webcams (device_id as int, e.g., 0)
- RTSP/IP cameras (device_id as str URL)
- Offline clips (device_id as file path), paced at the clip's native fps

A background capture thread reads at the device-native rate and writes into a
double-buffered FrameSlot; ``latest_frame()`` never blocks on the device.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass
from typing import Optional, Union
from urllib.parse import urlparse

import cv2
import numpy as np

from models.config import CameraConfig
from models.errors import AcquisitionError
from models.frame import Frame
from .base import FrameSlot, SourceConfig
from .devices import devices


def sanitize_url(device_id: Union[int, str]) -> str:
    """Mask credentials embedded in a stream URL for logging."""
    if not isinstance(device_id, str) or "://" not in device_id:
        return str(device_id)
    parsed = urlparse(device_id)
    if parsed.password is None:
        return device_id
    netloc = f"{parsed.username}:***@{parsed.hostname}"
    if parsed.port:
        netloc += f":{parsed.port}"
    return parsed._replace(netloc=netloc).geturl()


@dataclass
class OpenCVSourceConfig(SourceConfig):
    """
    Configuration for OpenCV-based frame sources.

    Attributes:
        device_id: Camera index (int), RTSP URL (str), or file path (str).
        loop: Rewind offline clips at end of file instead of going quiet.
        max_retries: Maximum attempts to open the device on start().
        buffer_size: OpenCV capture buffer size (reduces latency for live feeds).
        max_consecutive_failures: Read failures tolerated before reopening the device.
    """
    device_id: Union[int, str] = 0
    loop: bool = False
    max_retries: int = 3
    buffer_size: int = 1
    max_consecutive_failures: int = 3

    @classmethod
    def from_camera_config(cls, camera_cfg: CameraConfig, source_id: str = "camera") -> "OpenCVSourceConfig":
        """Adapter: Create OpenCVSourceConfig from the typed camera config."""
        resolution = tuple(camera_cfg.resolution) if camera_cfg.resolution else None
        return cls(
            source_id=source_id,
            resolution=resolution,
            fps=camera_cfg.fps,
            device_id=camera_cfg.device_id,
            loop=camera_cfg.loop,
            max_retries=camera_cfg.max_retries,
        )


class OpenCVCameraSource:
    """
    Live-device frame source backed by cv2.VideoCapture.

    Example:
        source = OpenCVCameraSource(OpenCVSourceConfig(device_id=0, resolution=(1280, 720)))
        source.start()
        frame = source.latest_frame()
        source.stop()
    """

    kind = "webcam"

    def __init__(self, config: OpenCVSourceConfig):
        self._config = config
        self._slot = FrameSlot(config.source_id)
        # Distinct per instance, so two sources sharing a source_id still conflict
        self._owner = f"{config.source_id}@{id(self):x}"
        self._cap: Optional[cv2.VideoCapture] = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._state_lock = threading.Lock()
        # Guards self._cap between the capture thread and stop()
        self._cap_lock = threading.Lock()
        self._running = False
        self._claimed = False
        self._exhausted = False
        self._consecutive_failures = 0
        self._frame_period = 0.0

    @property
    def source_id(self) -> str:
        return self._config.source_id

    @property
    def device_id(self) -> Union[int, str]:
        return self._config.device_id

    @property
    def is_rtsp(self) -> bool:
        """Check if this is an RTSP stream."""
        return isinstance(self.device_id, str) and (
            self.device_id.startswith("rtsp://") or
            self.device_id.startswith("rtsps://")
        )

    @property
    def is_file(self) -> bool:
        """Check if this is an offline clip."""
        return (
            isinstance(self.device_id, str) and
            not self.is_rtsp and
            os.path.exists(self.device_id)
        )

    @property
    def device_key(self) -> str:
        return f"opencv:{self.device_id}"

    def start(self) -> None:
        """Open the device and start the capture thread."""
        with self._state_lock:
            if self._running:
                logging.warning(f"Source {self.source_id} already running, start() ignored")
                return

            # Offline clips can be opened by several readers.
            if not self.is_file:
                if not devices.claim(self.device_key, self._owner):
                    raise AcquisitionError(
                        f"Device {sanitize_url(self.device_id)} is already claimed by "
                        f"{devices.owner_of(self.device_key)}"
                    )
                self._claimed = True

            self._stop_event.clear()
            try:
                self._open_capture(retry_count=0)
            except AcquisitionError:
                self._release_claim()
                raise

            self._exhausted = False
            self._consecutive_failures = 0
            self._thread = threading.Thread(
                target=self._capture_loop,
                name=f"capture-{self.source_id}",
                daemon=True,
            )
            self._running = True
            self._thread.start()

        logging.info(
            f"OpenCVCameraSource started: source_id={self.source_id}, "
            f"device={sanitize_url(self.device_id)}, resolution={self._config.resolution}"
        )

    def _open_capture(self, retry_count: int = 0) -> None:
        """
        Open the capture device, retrying with backoff.

        Returns without a capture once stop() has been requested.
        """
        with self._cap_lock:
            if self._cap is not None:
                self._cap.release()
                self._cap = None

        if retry_count > 0:
            wait_time = min(2 ** retry_count, 10)
            logging.info(
                f"Retrying device open (attempt {retry_count + 1}/"
                f"{self._config.max_retries}) after {wait_time}s"
            )
            if self._stop_event.wait(wait_time):
                return
        if self._stop_event.is_set():
            return

        cap = cv2.VideoCapture(self.device_id)
        if not cap.isOpened():
            cap.release()
            if retry_count < self._config.max_retries - 1:
                logging.warning(f"Failed to open device {sanitize_url(self.device_id)}, retrying...")
                return self._open_capture(retry_count + 1)
            raise AcquisitionError(
                f"No device available at {sanitize_url(self.device_id)} after "
                f"{self._config.max_retries} attempts"
            )

        # Properties only apply to USB cameras, not streams or files
        if isinstance(self.device_id, int) and self._config.resolution:
            w, h = self._config.resolution
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, w)
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, h)
            if self._config.fps:
                cap.set(cv2.CAP_PROP_FPS, self._config.fps)
            cap.set(cv2.CAP_PROP_BUFFERSIZE, self._config.buffer_size)

        self._frame_period = 0.0
        if self.is_file:
            native_fps = cap.get(cv2.CAP_PROP_FPS) or self._config.fps or 0
            if native_fps and native_fps > 0:
                self._frame_period = 1.0 / float(native_fps)

        with self._cap_lock:
            if self._stop_event.is_set():
                cap.release()
                return
            self._cap = cap

    def _capture_loop(self) -> None:
        while not self._stop_event.is_set():
            ok = self._capture_once()
            if ok:
                if self._frame_period:
                    self._stop_event.wait(self._frame_period)
                continue
            if self._exhausted:
                break
            self._stop_event.wait(0.05)
        logging.debug(f"Capture thread for {self.source_id} exiting")

    def _capture_once(self) -> bool:
        """Read one frame from the device into the slot. Returns True on success."""
        cap = self._cap
        if cap is None:
            return False

        ret, frame = cap.read()
        if not ret or frame is None:
            return self._handle_read_failure()

        self._consecutive_failures = 0
        rgb = self._to_rgb(frame)
        self._slot.write(rgb, time.time())
        return True

    def _handle_read_failure(self) -> bool:
        if self.is_file:
            if self._config.loop and self._cap is not None:
                self._cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
                return False
            logging.info(f"End of clip reached for {self.source_id}")
            self._exhausted = True
            return False

        self._consecutive_failures += 1
        if self._consecutive_failures < self._config.max_consecutive_failures:
            logging.warning(
                f"Failed to read frame (failures: {self._consecutive_failures}) from {self.source_id}"
            )
            return False

        logging.warning(f"Too many consecutive read failures on {self.source_id}, reopening device")
        try:
            self._open_capture(retry_count=self._config.max_retries - 1)
            self._consecutive_failures = 0
        except AcquisitionError as e:
            logging.error(f"Reopen failed: {e}")
            self._stop_event.wait(1.0)
        return False

    @staticmethod
    def _to_rgb(frame: np.ndarray) -> np.ndarray:
        if frame.ndim == 2:
            return cv2.cvtColor(frame, cv2.COLOR_GRAY2RGB)
        if frame.shape[2] == 4:
            return cv2.cvtColor(frame, cv2.COLOR_BGRA2RGB)
        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

    def is_running(self) -> bool:
        return self._running

    def latest_frame(self) -> Optional[Frame]:
        if not self._running:
            return None
        return self._slot.read()

    def stop(self) -> None:
        """Stop the capture thread and release the device. Safe to call multiple times."""
        with self._state_lock:
            if not self._running:
                return
            self._running = False
            self._stop_event.set()
            thread = self._thread
            self._thread = None

        if thread is not None:
            thread.join(timeout=2.0)
            if thread.is_alive():
                logging.warning(f"Capture thread for {self.source_id} did not exit in time")

        # A thread that outlived the join cannot install a capture after this
        with self._cap_lock:
            if self._cap is not None:
                self._cap.release()
                self._cap = None
        self._slot.clear()
        self._release_claim()
        logging.info(f"OpenCVCameraSource stopped: source_id={self.source_id}")

    def _release_claim(self) -> None:
        if self._claimed:
            devices.release(self.device_key, self._owner)
            self._claimed = False
