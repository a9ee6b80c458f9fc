"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .errors import ConfigError


SOURCE_PROVIDERS = ("webcam", "research_mode", "synthetic")
OUTPUT_FAMILIES = ("grid", "flat", "multi")
COORD_SPACES = ("normalized", "input_pixels", "source_pixels")
TENSOR_LAYOUTS = ("nchw", "nhwc")
CHANNEL_ORDERS = ("rgb", "bgr")
BOX_ORDERS = ("xyxy", "yxyx")


@dataclass
class CameraConfig:
    """Frame source configuration."""
    provider: str = "webcam"
    device_id: Union[int, str] = 0
    resolution: List[int] = field(default_factory=lambda: [1280, 720])
    fps: int = 30
    loop: bool = False
    max_retries: int = 3

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CameraConfig":
        """Adapter: Create from config dictionary."""
        return cls(
            provider=d.get("provider", "webcam"),
            device_id=d.get("device_id", 0),
            resolution=d.get("resolution", [1280, 720]),
            fps=d.get("fps", 30),
            loop=d.get("loop", False),
            max_retries=d.get("max_retries", 3),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "device_id": self.device_id,
            "resolution": self.resolution,
            "fps": self.fps,
            "loop": self.loop,
            "max_retries": self.max_retries,
        }


@dataclass
class ModelConfig:
    """
    Model, label and output-decoding configuration.

    Attributes:
        path: Model file (ONNX, Caffe, TF, Darknet... anything cv2.dnn.readNet accepts).
        labels_path: Text file with one class label per line.
        family: Output layout family: grid, flat or multi.
        coords: Coordinate space of decoded boxes: normalized, input_pixels or source_pixels.
        layout: Input tensor layout: nchw or nhwc.
        channel_order: Channel order the model expects: rgb or bgr.
        has_objectness: Grid rows carry an objectness score at index 4.
        apply_sigmoid: Grid scores are logits and need a sigmoid.
        class_offset: Subtracted from decoded class ids before label lookup.
        box_order: Box component order for the multi family.
        nms_iou_threshold: Overlap above which same-label boxes are suppressed.
        backend: cv2.dnn backend name (default, opencv, cuda).
        target: cv2.dnn target name (cpu, opencl, cuda).
    """
    path: str = ""
    labels_path: str = ""
    family: str = "grid"
    coords: str = "input_pixels"
    layout: str = "nchw"
    channel_order: str = "rgb"
    has_objectness: bool = True
    apply_sigmoid: bool = False
    class_offset: int = 0
    box_order: str = "yxyx"
    nms_iou_threshold: float = 0.45
    backend: str = "default"
    target: str = "cpu"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ModelConfig":
        return cls(
            path=d.get("path", ""),
            labels_path=d.get("labels_path", ""),
            family=d.get("family", "grid"),
            coords=d.get("coords", "input_pixels"),
            layout=d.get("layout", "nchw"),
            channel_order=d.get("channel_order", "rgb"),
            has_objectness=d.get("has_objectness", True),
            apply_sigmoid=d.get("apply_sigmoid", False),
            class_offset=d.get("class_offset", 0),
            box_order=d.get("box_order", "yxyx"),
            nms_iou_threshold=d.get("nms_iou_threshold", 0.45),
            backend=d.get("backend", "default"),
            target=d.get("target", "cpu"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "labels_path": self.labels_path,
            "family": self.family,
            "coords": self.coords,
            "layout": self.layout,
            "channel_order": self.channel_order,
            "has_objectness": self.has_objectness,
            "apply_sigmoid": self.apply_sigmoid,
            "class_offset": self.class_offset,
            "box_order": self.box_order,
            "nms_iou_threshold": self.nms_iou_threshold,
            "backend": self.backend,
            "target": self.target,
        }


@dataclass
class PipelineConfig:
    """
    Scheduling and filtering configuration, supplied once at startup.

    Attributes:
        model_input_width: Width of the model input tensor.
        model_input_height: Height of the model input tensor.
        confidence_threshold: Detections below this confidence are dropped.
        inference_interval: Attempt inference once per N scheduling ticks.
        tick_hz: Scheduling loop cadence used by the tick driver.
        offload: Run inference on a worker thread instead of inside the tick.
    """
    model_input_width: int = 416
    model_input_height: int = 416
    confidence_threshold: float = 0.5
    inference_interval: int = 5
    tick_hz: float = 30.0
    offload: bool = False

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        for name in ("model_input_width", "model_input_height", "inference_interval"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigError(f"{name} must be a positive integer, got {value!r}")
        if not 0.0 <= float(self.confidence_threshold) <= 1.0:
            raise ConfigError(
                f"confidence_threshold must be in [0, 1], got {self.confidence_threshold!r}"
            )
        if self.tick_hz <= 0:
            raise ConfigError(f"tick_hz must be positive, got {self.tick_hz!r}")

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PipelineConfig":
        return cls(
            model_input_width=d.get("model_input_width", 416),
            model_input_height=d.get("model_input_height", 416),
            confidence_threshold=d.get("confidence_threshold", 0.5),
            inference_interval=d.get("inference_interval", 5),
            tick_hz=d.get("tick_hz", 30.0),
            offload=d.get("offload", False),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model_input_width": self.model_input_width,
            "model_input_height": self.model_input_height,
            "confidence_threshold": self.confidence_threshold,
            "inference_interval": self.inference_interval,
            "tick_hz": self.tick_hz,
            "offload": self.offload,
        }


@dataclass
class SpatialConfig:
    """
    World-position resolution configuration.

    Intrinsics are in pixels of the source frame. When fx/fy are not given they
    are derived from the horizontal field of view.
    """
    enabled: bool = False
    horizontal_fov_deg: float = 64.7
    fx: Optional[float] = None
    fy: Optional[float] = None
    cx: Optional[float] = None
    cy: Optional[float] = None
    default_depth_m: float = 2.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SpatialConfig":
        return cls(
            enabled=d.get("enabled", False),
            horizontal_fov_deg=d.get("horizontal_fov_deg", 64.7),
            fx=d.get("fx"),
            fy=d.get("fy"),
            cx=d.get("cx"),
            cy=d.get("cy"),
            default_depth_m=d.get("default_depth_m", 2.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "enabled": self.enabled,
            "horizontal_fov_deg": self.horizontal_fov_deg,
            "default_depth_m": self.default_depth_m,
        }
        for key in ("fx", "fy", "cx", "cy"):
            if getattr(self, key) is not None:
                d[key] = getattr(self, key)
        return d


@dataclass
class WebConfig:
    """Read-only detections API configuration."""
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 8000

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WebConfig":
        return cls(
            enabled=d.get("enabled", False),
            host=d.get("host", "127.0.0.1"),
            port=d.get("port", 8000),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"enabled": self.enabled, "host": self.host, "port": self.port}


@dataclass
class AppConfig:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    camera: CameraConfig = field(default_factory=CameraConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    spatial: SpatialConfig = field(default_factory=SpatialConfig)
    web: WebConfig = field(default_factory=WebConfig)
    log_path: str = "logs/holodetect.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AppConfig":
        """Adapter: Create AppConfig from raw dictionary (e.g., from load_config)."""
        return cls(
            camera=CameraConfig.from_dict(d.get("camera", {}) or {}),
            model=ModelConfig.from_dict(d.get("model", {}) or {}),
            pipeline=PipelineConfig.from_dict(d.get("pipeline", {}) or {}),
            spatial=SpatialConfig.from_dict(d.get("spatial", {}) or {}),
            web=WebConfig.from_dict(d.get("web", {}) or {}),
            log_path=d.get("log_path", "logs/holodetect.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "camera": self.camera.to_dict(),
            "model": self.model.to_dict(),
            "pipeline": self.pipeline.to_dict(),
            "spatial": self.spatial.to_dict(),
            "web": self.web.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
