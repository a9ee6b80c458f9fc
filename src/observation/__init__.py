"""
Observation layer for pluggable frame sources.

This layer abstracts where frames come from (live camera, offline clip,
research-mode sensor, synthetic feed) from the inference pipeline. Every
source implements the FrameSource contract and hands out Frame objects.
"""

from .base import FrameSource, FrameSlot, SourceConfig
from .devices import DeviceRegistry, devices
from .opencv_source import OpenCVCameraSource, OpenCVSourceConfig
from .research_mode_source import ResearchModeSource, ResearchModeSourceConfig
from .synthetic_source import SyntheticSource, SyntheticSourceConfig
from .factory import SOURCE_BUILDERS, create_source_from_config

__all__ = [
    "FrameSource",
    "FrameSlot",
    "SourceConfig",
    "DeviceRegistry",
    "devices",
    "OpenCVCameraSource",
    "OpenCVSourceConfig",
    "ResearchModeSource",
    "ResearchModeSourceConfig",
    "SyntheticSource",
    "SyntheticSourceConfig",
    "SOURCE_BUILDERS",
    "create_source_from_config",
]
