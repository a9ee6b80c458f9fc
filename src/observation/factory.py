"""
Frame source dispatch table.

Providers are selected by the ``camera.provider`` kind from configuration.
Adding a sensor type means registering one more entry here.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict

from models.config import CameraConfig
from models.errors import ConfigError
from .base import FrameSource
from .opencv_source import OpenCVCameraSource, OpenCVSourceConfig
from .research_mode_source import ResearchModeSource, ResearchModeSourceConfig
from .synthetic_source import SyntheticSource, SyntheticSourceConfig

SourceBuilder = Callable[[CameraConfig, str], FrameSource]

SOURCE_BUILDERS: Dict[str, SourceBuilder] = {
    "webcam": lambda cfg, sid: OpenCVCameraSource(OpenCVSourceConfig.from_camera_config(cfg, sid)),
    "research_mode": lambda cfg, sid: ResearchModeSource(ResearchModeSourceConfig.from_camera_config(cfg, sid)),
    "synthetic": lambda cfg, sid: SyntheticSource(SyntheticSourceConfig.from_camera_config(cfg, sid)),
}


def create_source_from_config(camera_cfg: CameraConfig, source_id: str = "main-camera") -> FrameSource:
    """
    Factory: create the frame source selected by ``camera_cfg.provider``.

    Raises:
        ConfigError: If the provider kind is unknown.
    """
    builder = SOURCE_BUILDERS.get(camera_cfg.provider)
    if builder is None:
        raise ConfigError(
            f"Unknown camera provider {camera_cfg.provider!r}, expected one of {sorted(SOURCE_BUILDERS)}"
        )
    source = builder(camera_cfg, source_id)
    logging.info(f"Frame source created: provider={camera_cfg.provider}, source_id={source_id}")
    return source
