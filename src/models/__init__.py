"""
Typed models for the detection pipeline.

Frames, tensors and detections flow between pipeline stages; configuration
models mirror the YAML config structure.
"""

from .frame import Frame
from .tensor import Tensor, RawOutput, as_output_list
from .detection import BoundingBox, Detection, DetectionSet, EMPTY_DETECTION_SET, WorldPosition
from .errors import (
    PipelineError,
    ConfigError,
    AcquisitionError,
    InvalidFrameError,
    UnsupportedOutputShapeError,
    EngineExecutionError,
    ModelLoadError,
    LabelLoadError,
)
from .config import (
    AppConfig,
    CameraConfig,
    ModelConfig,
    PipelineConfig,
    SpatialConfig,
    WebConfig,
)

__all__ = [
    # Frame / tensor
    "Frame",
    "Tensor",
    "RawOutput",
    "as_output_list",
    # Detection
    "BoundingBox",
    "Detection",
    "DetectionSet",
    "EMPTY_DETECTION_SET",
    "WorldPosition",
    # Errors
    "PipelineError",
    "ConfigError",
    "AcquisitionError",
    "InvalidFrameError",
    "UnsupportedOutputShapeError",
    "EngineExecutionError",
    "ModelLoadError",
    "LabelLoadError",
    # Config
    "AppConfig",
    "CameraConfig",
    "ModelConfig",
    "PipelineConfig",
    "SpatialConfig",
    "WebConfig",
]
