"""
Pytest configuration and shared fixtures.
"""

import os
import sys
from typing import List

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models.frame import Frame  # noqa: E402
from models.tensor import Tensor  # noqa: E402
from observation.devices import devices  # noqa: E402

COCO_LABELS_PATH = os.path.join(os.path.dirname(__file__), "..", "config", "coco_labels.txt")


@pytest.fixture(autouse=True)
def reset_device_claims():
    """Every test starts with no claimed devices."""
    devices.reset()
    yield
    devices.reset()


@pytest.fixture
def make_frame():
    """Factory for RGB frames with a given size and fill value."""
    def _make(width: int = 64, height: int = 48, value: int = 128, sequence_id: int = 1) -> Frame:
        pixels = np.full((height, width, 3), value, dtype=np.uint8)
        return Frame.from_numpy(pixels, sequence_id=sequence_id, timestamp=0.0, source="test")
    return _make


@pytest.fixture
def coco_labels() -> List[str]:
    with open(COCO_LABELS_PATH, "r", encoding="utf-8") as f:
        return [line.strip() for line in f if line.strip()]


@pytest.fixture
def labels_file(tmp_path):
    path = tmp_path / "labels.txt"
    path.write_text("person\nbicycle\n\n  car  \n")
    return str(path)


class FakeEngine:
    """Engine double returning canned outputs, or raising a queued error."""

    def __init__(self, outputs: List[Tensor] = None, error: Exception = None):
        self.outputs = outputs if outputs is not None else []
        self.error = error
        self.calls = 0
        self.closed = False

    def execute(self, input_tensor: Tensor) -> List[Tensor]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.outputs)

    def close(self) -> None:
        self.closed = True


class FakeSource:
    """Frame source double serving frames from a list, or nothing."""

    def __init__(self, frames: List[Frame] = None, source_id: str = "fake"):
        self._frames = list(frames or [])
        self._source_id = source_id
        self._running = False
        self._pos = 0
        self.start_calls = 0
        self.stop_calls = 0

    @property
    def source_id(self) -> str:
        return self._source_id

    def start(self) -> None:
        self.start_calls += 1
        self._running = True

    def stop(self) -> None:
        self.stop_calls += 1
        self._running = False

    def is_running(self) -> bool:
        return self._running

    def latest_frame(self):
        if not self._running or not self._frames:
            return None
        frame = self._frames[min(self._pos, len(self._frames) - 1)]
        self._pos += 1
        return frame


@pytest.fixture
def fake_engine_cls():
    return FakeEngine


@pytest.fixture
def fake_source_cls():
    return FakeSource


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
camera:
  provider: "synthetic"
  device_id: "solid"
  resolution: [640, 480]
  fps: 30

model:
  path: "models/test.onnx"
  labels_path: "config/labels.txt"
  family: "grid"

pipeline:
  model_input_width: 416
  model_input_height: 416
  confidence_threshold: 0.5
  inference_interval: 5

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "camera": {
            "provider": "webcam",
            "device_id": 0,
            "resolution": [1280, 720],
            "fps": 30,
        },
        "model": {
            "path": "models/test.onnx",
            "labels_path": "config/labels.txt",
            "family": "grid",
            "coords": "input_pixels",
            "nms_iou_threshold": 0.45,
        },
        "pipeline": {
            "model_input_width": 416,
            "model_input_height": 416,
            "confidence_threshold": 0.5,
            "inference_interval": 5,
            "tick_hz": 30,
        },
        "web": {
            "enabled": False,
            "port": 8000,
        },
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }
